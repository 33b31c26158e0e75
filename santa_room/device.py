# santa_room/device.py
import json
import logging
import threading
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)


def new_device_id() -> str:
    return str(uuid.uuid4())


class DeviceIdentityStore:
    """
    端末ごとの匿名 ID を JSON ファイルに保存する。
    一度作った ID は再起動しても同じものを返す。
    """

    def __init__(self, path):
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()

    def _read(self) -> dict:
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning(f"device file {self.path} is broken, issuing a new id")
            return {}

    def get(self) -> str | None:
        return self._read().get("device_id")

    def get_or_create(self) -> str:
        with self._lock:
            data = self._read()
            device_id = data.get("device_id")
            if device_id:
                return device_id

            data["device_id"] = new_device_id()
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(data), encoding="utf-8")
            tmp.replace(self.path)
            logger.info(f"new device id stored in {self.path}")
            return data["device_id"]
