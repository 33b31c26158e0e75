# santa_room/services/events.py
import asyncio
import logging
import threading
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

Listener = Callable[[dict], None]


class RoomEventHub:
    """
    部屋コードごとの「何か変わった」通知。
    中身は目安なので、受け取った側は必ず読み直すこと。
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._listeners: Dict[str, List[Listener]] = {}

    def subscribe(self, room_code: str, listener: Listener) -> Callable[[], None]:
        """listener を登録し、登録解除用の関数を返す"""
        with self._lock:
            self._listeners.setdefault(room_code, []).append(listener)

        def unsubscribe():
            with self._lock:
                listeners = self._listeners.get(room_code)
                if listeners and listener in listeners:
                    listeners.remove(listener)
                    # 誰もいなくなったら掃除
                    if not listeners:
                        del self._listeners[room_code]

        return unsubscribe

    def publish(self, room_code: str, reason: str = "changed") -> None:
        event = {"type": "room_changed", "code": room_code, "reason": reason}
        with self._lock:
            listeners = list(self._listeners.get(room_code, ()))
        logger.debug(f"Broadcasting {reason} to {len(listeners)} listeners of room {room_code}")
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                # 通知の失敗で本処理を失敗させない
                logger.exception("room listener failed for %s", room_code)

    def subscriber_count(self, room_code: str) -> int:
        with self._lock:
            return len(self._listeners.get(room_code, ()))

    def queue_for(self, room_code: str, loop: asyncio.AbstractEventLoop):
        """
        websocket 用。別スレッドからの publish をイベントループ側の Queue に流す。
        (queue, unsubscribe) を返す。
        """
        queue: asyncio.Queue = asyncio.Queue()

        def forward(event: dict):
            loop.call_soon_threadsafe(queue.put_nowait, event)

        return queue, self.subscribe(room_code, forward)
