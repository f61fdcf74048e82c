"""Primary keys for stores that do not hand out sequence values.

The allocator reads ``max(id)``, proposes ``max + 1`` and inserts. A
primary-key collision (another writer took the same id) is rolled back and the
whole read/insert is retried, up to ``MAX_ALLOCATION_ATTEMPTS`` times.

This is optimistic, not a lock: it absorbs a handful of concurrent writers to
the same table but gives no guarantee beyond the retry bound. When the
backing store offers a real sequence, use that instead.
"""

from __future__ import annotations

import logging
from typing import TypeVar

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, SQLModel, select

from day4_tracker.core.errors import AllocationExhausted

logger = logging.getLogger(__name__)

MAX_ALLOCATION_ATTEMPTS = 5

ModelT = TypeVar("ModelT", bound=SQLModel)

_PG_UNIQUE_VIOLATION = "23505"


def read_max_id(session: Session, model: type[SQLModel]) -> int:
    value = session.exec(select(func.max(model.id))).one()
    return int(value or 0)


def is_primary_key_conflict(exc: IntegrityError, table_name: str) -> bool:
    """True only for a duplicate primary key on ``table_name``.

    Other integrity failures (foreign keys, NOT NULL, other unique columns)
    are not collisions and must not be retried.
    """

    orig = getattr(exc, "orig", None)

    # PostgreSQL (psycopg 3 exposes .sqlstate, psycopg2 .pgcode)
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate is not None:
        if sqlstate != _PG_UNIQUE_VIOLATION:
            return False
        constraint = getattr(getattr(orig, "diag", None), "constraint_name", None)
        return constraint is None or constraint == f"{table_name}_pkey"

    # SQLite: "UNIQUE constraint failed: goals.id"
    return f"UNIQUE constraint failed: {table_name}.id" in str(orig or exc)


def insert_with_allocated_id(session: Session, row: ModelT) -> ModelT:
    """Assign ``row.id`` and commit the insert, retrying on id collisions."""

    model = type(row)
    table_name = model.__tablename__

    for attempt in range(1, MAX_ALLOCATION_ATTEMPTS + 1):
        row.id = read_max_id(session, model) + 1
        session.add(row)
        try:
            session.commit()
        except IntegrityError as e:
            session.rollback()
            if not is_primary_key_conflict(e, table_name):
                raise
            logger.warning(
                "id collision on %s (id=%s, attempt %d/%d); retrying",
                table_name,
                row.id,
                attempt,
                MAX_ALLOCATION_ATTEMPTS,
            )
            continue

        session.refresh(row)
        return row

    logger.error("id allocation exhausted for %s after %d attempts", table_name, MAX_ALLOCATION_ATTEMPTS)
    raise AllocationExhausted(f"could not allocate an id for {table_name}; try again")
