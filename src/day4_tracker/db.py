from __future__ import annotations

from functools import lru_cache
import logging
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel, Session, create_engine

from day4_tracker.core.config import get_settings
from day4_tracker.db_migrations import apply_sqlite_migrations

logger = logging.getLogger(__name__)


def _is_sqlite(database_url: str) -> bool:
    return database_url.startswith("sqlite")


def _engine_options(database_url: str) -> dict[str, Any]:
    if not _is_sqlite(database_url):
        return {"pool_pre_ping": True}
    # Sync handlers run on FastAPI's threadpool, so connections cross threads.
    # NullPool: a pooled SQLite file under bursty writes runs out of slots.
    return {
        "connect_args": {"check_same_thread": False},
        "poolclass": NullPool,
        "pool_pre_ping": True,
    }


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
    # Off by default in SQLite; goal_records.goal_id and settings rely on it.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@lru_cache
def _engine_for_url(database_url: str) -> Engine:
    engine = create_engine(database_url, echo=False, **_engine_options(database_url))
    if _is_sqlite(database_url):
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def get_engine() -> Engine:
    return _engine_for_url(get_settings().database_url)


def init_db() -> None:
    # Registers every table on SQLModel.metadata
    import day4_tracker.models  # noqa: F401

    database_url = get_settings().database_url
    engine = get_engine()
    SQLModel.metadata.create_all(engine)
    if _is_sqlite(database_url):
        apply_sqlite_migrations(engine)
    logger.info("database ready (%s)", engine.dialect.name)


def get_session():
    with Session(get_engine()) as session:
        yield session
