# santa_room/db.py
import logging
import os
import tempfile

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base

from .config import settings

logger = logging.getLogger(__name__)

LOCAL_STORE_FILE = "santa_room_local.db"
SQLITE_BUSY_TIMEOUT = 15  # 秒


def _serialize_sqlite_transactions(engine) -> None:
    """
    SQLite はトランザクションを BEGIN IMMEDIATE で始める。
    遅延ロックのままだと、同時に claim した 2 台目が待たずに "database is locked" になる。
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # pysqlite 自身の BEGIN 発行を止めて、下の begin イベントに任せる
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str):
    """
    ストアの選択は起動時に一度だけ決める。
    URL が空なら一時ディレクトリのローカル SQLite ファイルを使う（永続性は期待しない）。
    """
    if not database_url:
        path = os.path.join(tempfile.gettempdir(), LOCAL_STORE_FILE)
        logger.warning(f"SANTA_DATABASE_URL is empty. Using local fallback store {path}")
        database_url = f"sqlite:///{path}"

    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={
                "check_same_thread": False,  # SQLite用
                "timeout": SQLITE_BUSY_TIMEOUT,
            },
        )
        _serialize_sqlite_transactions(engine)
        return engine

    return create_engine(database_url, pool_pre_ping=True)


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()
