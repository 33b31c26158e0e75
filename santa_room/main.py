import logging

from fastapi import FastAPI

from .config import settings
from .db import Base, SessionLocal, engine
from .api.errors import santa_error_handler
from .api.v1 import api_router as api_v1_router
from .core.errors import SantaError
from .services.coordinator import SessionCoordinator
from .services.events import RoomEventHub
from . import models  # noqa: F401  テーブル定義の登録

logging.basicConfig(level=settings.log_level.upper())

# モデルからテーブル作成（開発用）
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="Secret Santa Room API",
    version="0.1.0",
)

# ストアと通知は起動時に一度だけ組み立てて注入する
app.state.coordinator = SessionCoordinator(
    session_factory=SessionLocal,
    events=RoomEventHub(),
    settings=settings,
)

app.add_exception_handler(SantaError, santa_error_handler)

app.include_router(api_v1_router, prefix="/api")


@app.get("/")
def read_root():
    return {"message": "Secret Santa Room API is running"}
