# santa_room/client.py
"""
端末側のクライアント。

サーバの応答を正として、手元の状態（部屋コード・自分の枠・贈り相手）を
refresh() のたびに突き合わせる。手元の状態は他の端末にとっての正ではない。
"""
import logging
from typing import Optional

import httpx

from .config import settings
from .core import errors
from .device import DeviceIdentityStore

logger = logging.getLogger(__name__)

_ERRORS = {
    cls.__name__: cls
    for cls in vars(errors).values()
    if isinstance(cls, type) and issubclass(cls, errors.SantaError)
}


class RoomClient:
    def __init__(self, http: httpx.Client, device_id: str, prefix: str = "/api"):
        self.http = http
        self.device_id = device_id
        self.prefix = prefix

        self.room_code: Optional[str] = None
        self.phase: str = "LOBBY"
        self.me: Optional[dict] = None
        self.participants: list[dict] = []
        self.exclusions: list[dict] = []
        self.receiver: Optional[dict] = None

    @classmethod
    def connect(cls, base_url: str, store: Optional[DeviceIdentityStore] = None) -> "RoomClient":
        """store を省略したら設定の SANTA_DEVICE_FILE を使う"""
        store = store or DeviceIdentityStore(settings.device_file)
        return cls(httpx.Client(base_url=base_url, timeout=10), store.get_or_create())

    # -----------------------------
    # 通信
    # -----------------------------

    def _call(self, method: str, path: str, json=None):
        try:
            res = self.http.request(
                method,
                self.prefix + path,
                json=json,
                headers={"X-Device-Id": self.device_id},
            )
        except httpx.TransportError as e:
            raise errors.CollaboratorUnavailable() from e

        if res.status_code >= 400:
            body = {}
            try:
                body = res.json()
            except ValueError:
                pass
            cls = _ERRORS.get(body.get("error"), errors.SantaError)
            detail = body.get("detail")
            raise cls(detail if isinstance(detail, str) else None)

        if res.status_code == 204 or not res.content:
            return None
        return res.json()

    def _require_room(self) -> str:
        if not self.room_code:
            raise errors.RoomNotFound("Not in a room")
        return self.room_code

    # -----------------------------
    # セッション
    # -----------------------------

    def resolve_session(self) -> Optional[dict]:
        """再接続時。サーバが覚えている最新の枠を手元に復元する"""
        data = self._call("GET", "/session")
        if not data["me"]:
            return None
        self.room_code = data["room"]["code"]
        self.phase = data["room"]["phase"]
        self.me = data["me"]
        self.receiver = None
        return self.me

    def create_room(self, admin_name: str) -> str:
        data = self._call("POST", "/rooms", json={"admin_name": admin_name})
        self.room_code = data["room"]["code"]
        self.phase = data["room"]["phase"]
        self.me = data["me"]
        self.receiver = None
        self.refresh()
        return self.room_code

    def join(self, code: str) -> None:
        """部屋があるか確認するだけ。枠は claim() で選ぶ"""
        room = self._call("GET", f"/rooms/{code.strip().upper()}")
        self.room_code = room["code"]
        self.phase = room["phase"]
        self.me = None
        self.receiver = None
        self.refresh()

    def claim(self, participant_id: str) -> dict:
        self.me = self._call("POST", f"/participants/{participant_id}/claim")
        self.refresh()
        return self.me

    def release(self) -> None:
        """「これは自分じゃない」。サーバ側の解放に失敗しても手元は外す"""
        if not self.me:
            return
        participant_id = self.me["id"]
        try:
            self._call("POST", f"/participants/{participant_id}/release")
        finally:
            self.me = None
            self.receiver = None
        # 解放に失敗したときはそのエラーを優先する（読み直しはしない）
        self.refresh()

    # -----------------------------
    # 管理者の操作
    # -----------------------------

    def add_participant(self, name: str) -> dict:
        code = self._require_room()
        p = self._call("POST", f"/rooms/{code}/participants", json={"name": name})
        self.refresh()
        return p

    def remove_participant(self, participant_id: str) -> None:
        self._call("DELETE", f"/participants/{participant_id}")
        self.refresh()

    def add_exclusion(self, giver_id: str, receiver_id: str) -> dict:
        code = self._require_room()
        ex = self._call(
            "POST",
            f"/rooms/{code}/exclusions",
            json={"giver_id": giver_id, "receiver_id": receiver_id},
        )
        self.refresh()
        return ex

    def remove_exclusion(self, exclusion_id: str) -> None:
        self._call("DELETE", f"/exclusions/{exclusion_id}")
        self.refresh()

    def start_draw(self) -> dict:
        code = self._require_room()
        result = self._call("POST", f"/rooms/{code}/draw")
        self.refresh()
        return result

    def reset(self) -> dict:
        code = self._require_room()
        result = self._call("POST", f"/rooms/{code}/reset")
        self.receiver = None
        self.refresh()
        return result

    # -----------------------------
    # 読み直し
    # -----------------------------

    def my_receiver(self) -> Optional[dict]:
        code = self._require_room()
        if not self.me:
            return None
        data = self._call("GET", f"/rooms/{code}/participants/{self.me['id']}/receiver")
        self.receiver = data["receiver"]
        return self.receiver

    def refresh(self) -> None:
        """部屋の状態を読み直して手元の状態を合わせる"""
        if not self.room_code:
            return
        code = self.room_code
        try:
            self.phase = self._call("GET", f"/rooms/{code}")["phase"]
        except errors.RoomNotFound:
            logger.warning(f"room {code} is gone, leaving it")
            self.room_code = None
            self.me = None
            self.receiver = None
            return

        self.participants = self._call("GET", f"/rooms/{code}/participants")
        self.exclusions = self._call("GET", f"/rooms/{code}/exclusions")

        if self.me:
            current = next((p for p in self.participants if p["id"] == self.me["id"]), None)
            if current is None or not current["claimed"]:
                # 削除された / 誰かに解放された
                self.me = None
                self.receiver = None
            else:
                self.me = current

        if self.phase == "LOBBY":
            self.receiver = None
        elif self.me and self.receiver is None:
            try:
                self.my_receiver()
            except errors.NotAuthorized:
                # 別の端末に名乗り直された
                self.me = None
                self.receiver = None
