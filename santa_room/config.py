# santa_room/config.py
import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class Settings(BaseModel):
    # 空文字なら一時ディレクトリのローカルストアで動く
    database_url: str = "sqlite:///./santa_room.db"
    min_participants: int = Field(default=3, ge=2)
    max_draw_attempts: int = Field(default=2000, ge=1)
    room_code_length: int = Field(default=4, ge=2)
    log_level: str = "INFO"
    device_file: str = "~/.santa_room/device.json"


def load_settings() -> Settings:
    """環境変数（import 時に .env も読み込み済み）から設定を組み立てる。"""
    values = {
        "database_url": os.getenv("SANTA_DATABASE_URL"),
        "min_participants": os.getenv("SANTA_MIN_PARTICIPANTS"),
        "max_draw_attempts": os.getenv("SANTA_MAX_DRAW_ATTEMPTS"),
        "room_code_length": os.getenv("SANTA_ROOM_CODE_LENGTH"),
        "log_level": os.getenv("SANTA_LOG_LEVEL"),
        "device_file": os.getenv("SANTA_DEVICE_FILE"),
    }
    return Settings(**{k: v for k, v in values.items() if v is not None})


settings = load_settings()
