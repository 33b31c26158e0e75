# tests/conftest.py
import os
import tempfile

# アプリを import する前にテスト用の DB ファイルを指定する
_TEST_DIR = tempfile.mkdtemp(prefix="santa-room-tests-")
os.environ["SANTA_DATABASE_URL"] = f"sqlite:///{_TEST_DIR}/test.db"
os.environ["SANTA_MIN_PARTICIPANTS"] = "3"

import pytest  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from santa_room.db import Base, engine, SessionLocal  # noqa: E402
from santa_room.main import app  # noqa: E402
from santa_room.services.coordinator import SessionCoordinator  # noqa: E402


@pytest.fixture(scope="function")
def db() -> Session:
    """
    テストごとにクリーンな DB を用意するフィクスチャ。
    アプリ本体と同じ engine を使う。
    ※ SQLite は BEGIN IMMEDIATE なので、このセッションで読んだら
      アプリを呼ぶ前に db.rollback() しておくこと（書き込みが待たされる）。
    """
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db) -> TestClient:
    """通常の FastAPI app をそのまま使う TestClient。"""
    with TestClient(app) as c:
        yield c


@pytest.fixture(scope="function")
def coordinator(db) -> SessionCoordinator:
    """app に注入されているものと同じ窓口"""
    return app.state.coordinator
