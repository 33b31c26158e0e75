# tests/test_client.py
import pytest
from fastapi.testclient import TestClient

from santa_room.client import RoomClient
from santa_room.core.errors import (
    AlreadyClaimed,
    CollaboratorUnavailable,
    DuplicateName,
    ParticipantNotFound,
    RoomNotFound,
)


def _by_name(c: RoomClient, name: str) -> dict:
    return next(p for p in c.participants if p["name"] == name)


def _family(client: TestClient):
    mom = RoomClient(client, "device-mom")
    code = mom.create_room("Mom")
    for name in ("Dad", "Kid1", "Kid2"):
        mom.add_participant(name)

    others = {}
    for name in ("Dad", "Kid1", "Kid2"):
        c = RoomClient(client, f"device-{name.lower()}")
        c.join(code)
        c.claim(_by_name(c, name)["id"])
        others[name] = c
    return code, mom, others


def test_full_flow_through_clients(client: TestClient):
    code, mom, others = _family(client)
    mom.add_exclusion(_by_name(mom, "Dad")["id"], _by_name(mom, "Mom")["id"])
    assert len(mom.exclusions) == 1

    mom.start_draw()
    assert mom.phase == "REVEAL"
    assert mom.receiver is not None

    received = {"Mom": mom.receiver["name"]}
    for name, c in others.items():
        # 抽選は別の端末が行ったので、読み直すまでは知らない
        assert c.receiver is None
        c.refresh()
        assert c.phase == "REVEAL"
        received[name] = c.receiver["name"]

    assert received["Dad"] != "Mom"
    assert sorted(received.values()) == sorted(received.keys())
    assert all(giver != receiver for giver, receiver in received.items())

    mom.reset()
    assert mom.receiver is None
    for c in others.values():
        c.refresh()
        assert c.phase == "LOBBY"
        assert c.receiver is None


def test_join_normalizes_code_and_unknown_room(client: TestClient):
    code, _, _ = _family(client)

    visitor = RoomClient(client, "device-visitor")
    visitor.join(code.lower())
    assert visitor.room_code == code
    assert visitor.me is None
    assert len(visitor.participants) == 4

    with pytest.raises(RoomNotFound):
        visitor.join("XXXXX")


def test_errors_come_back_typed(client: TestClient):
    code, mom, others = _family(client)

    with pytest.raises(DuplicateName):
        mom.add_participant("kid1")

    intruder = RoomClient(client, "device-intruder")
    intruder.join(code)
    with pytest.raises(AlreadyClaimed):
        intruder.claim(_by_name(intruder, "Dad")["id"])


def test_refresh_drops_identity_released_elsewhere(client: TestClient):
    code, mom, others = _family(client)
    kid1 = others["Kid1"]
    assert kid1.me is not None

    # 別の端末から「これは Kid1 じゃない」と解放された
    helper = RoomClient(client, "device-helper")
    helper.join(code)
    helper.me = _by_name(helper, "Kid1")
    helper.release()

    kid1.refresh()
    assert kid1.me is None


def test_refresh_drops_identity_of_removed_slot(client: TestClient):
    code, mom, others = _family(client)
    kid2 = others["Kid2"]

    mom.remove_participant(kid2.me["id"])
    kid2.refresh()
    assert kid2.me is None
    assert [p["name"] for p in kid2.participants] == ["Mom", "Dad", "Kid1"]


def test_resolve_session_after_reconnect(client: TestClient):
    code, _, others = _family(client)
    dad_id = others["Dad"].me["id"]

    # 同じ端末IDで作り直したクライアント（再起動相当）
    again = RoomClient(client, "device-dad")
    me = again.resolve_session()
    assert me["id"] == dad_id
    assert again.room_code == code

    stranger = RoomClient(client, "device-stranger")
    assert stranger.resolve_session() is None


def test_failed_release_keeps_its_own_error(client: TestClient, monkeypatch):
    code, _, others = _family(client)
    dad = others["Dad"]
    dad.me = {"id": "missing"}

    def storage_down():
        raise CollaboratorUnavailable()

    monkeypatch.setattr(dad, "refresh", storage_down)

    # 読み直しのエラーで解放のエラーが隠れない
    with pytest.raises(ParticipantNotFound):
        dad.release()
    assert dad.me is None
    assert dad.receiver is None
