#!/usr/bin/env python3
"""
起動中のサーバに対して一通りの流れを流す確認用スクリプト。

    uvicorn santa_room.main:app
    python scripts/smoke_flow.py [BASE_URL]
"""
import sys
import tempfile
import threading
from pathlib import Path

from santa_room.client import RoomClient
from santa_room.core.errors import AlreadyClaimed, SantaError
from santa_room.device import DeviceIdentityStore

BASE_URL = "http://127.0.0.1:8000"


def device(tmp, name, base_url):
    """端末ごとに別の ID ファイルを持つクライアント"""
    store = DeviceIdentityStore(Path(tmp) / f"{name}.json")
    return RoomClient.connect(base_url, store)


def by_name(client, name):
    for p in client.participants:
        if p["name"] == name:
            return p
    raise RuntimeError(f"{name} not found in {client.participants}")


def print_case(title):
    print("")
    print(f"== {title}")


def case_full_flow(tmp, base_url):
    print_case("create -> add -> claim -> draw -> reset")
    admin = device(tmp, "mom", base_url)
    code = admin.create_room("Mom")
    for name in ("Dad", "Kid1", "Kid2"):
        admin.add_participant(name)
    admin.add_exclusion(by_name(admin, "Dad")["id"], by_name(admin, "Mom")["id"])

    others = {}
    for name in ("Dad", "Kid1", "Kid2"):
        c = device(tmp, name.lower(), base_url)
        c.join(code)
        c.claim(by_name(c, name)["id"])
        others[name] = c

    admin.start_draw()
    seen = {}
    for name, c in [("Mom", admin), *others.items()]:
        c.refresh()
        if c.phase != "REVEAL" or c.receiver is None:
            raise RuntimeError(f"{name} has no receiver after draw")
        seen[name] = c.receiver["name"]
    if seen["Dad"] == "Mom":
        raise RuntimeError("exclusion Dad -> Mom was not respected")
    if sorted(seen.values()) != sorted(seen.keys()):
        raise RuntimeError(f"not a permutation: {seen}")
    print(f"room {code}: {seen}")

    admin.reset()
    for c in others.values():
        c.refresh()
        if c.phase != "LOBBY" or c.receiver is not None:
            raise RuntimeError("reset did not clear receivers")
    print("full flow ok")


def case_claim_race(tmp, base_url):
    print_case("two devices claim the same slot")
    admin = device(tmp, "race-admin", base_url)
    code = admin.create_room("Host")
    slot = admin.add_participant("Shared")

    a = device(tmp, "race-a", base_url)
    b = device(tmp, "race-b", base_url)
    a.join(code)
    b.join(code)

    results = []

    def run(c):
        try:
            c.claim(slot["id"])
            results.append("ok")
        except AlreadyClaimed:
            results.append("claimed")

    threads = [threading.Thread(target=run, args=(c,)) for c in (a, b)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    if sorted(results) != ["claimed", "ok"]:
        raise RuntimeError(f"expected one winner, got {results}")
    print("claim race ok")


def main():
    base_url = sys.argv[1] if len(sys.argv) > 1 else BASE_URL
    with tempfile.TemporaryDirectory() as tmp:
        try:
            case_full_flow(tmp, base_url)
            case_claim_race(tmp, base_url)
        except SantaError as e:
            print(f"FAILED: {type(e).__name__}: {e.message}")
            return 1
    print("")
    print("all smoke cases passed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
