from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import text
from sqlalchemy.engine import Engine


@dataclass(frozen=True)
class _ColumnSpec:
    name: str
    sql_type: str


def _table_exists(conn, table_name: str) -> bool:
    row = conn.execute(
        text("SELECT name FROM sqlite_master WHERE type='table' AND name=:name"), {"name": table_name}
    ).fetchone()
    return row is not None


def _existing_columns(conn, table_name: str) -> set[str]:
    rows = conn.execute(text(f"PRAGMA table_info({table_name})")).fetchall()
    return {r[1] for r in rows}  # name


def _add_column_if_missing(conn, *, table: str, col: _ColumnSpec) -> None:
    if col.name in _existing_columns(conn, table):
        return
    conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {col.name} {col.sql_type}"))


def _create_index_if_missing(conn, *, index_name: str, table: str, columns: str) -> None:
    conn.execute(text(f"CREATE INDEX IF NOT EXISTS {index_name} ON {table} ({columns})"))


def apply_sqlite_migrations(engine: Engine) -> None:
    """Bring DB files created by earlier releases up to the current schema.

    Only ADD COLUMN / CREATE INDEX; nothing is dropped or rewritten.
    """

    migrations: dict[str, list[_ColumnSpec]] = {
        # Profile fields arrived with external sign-in
        "users": [
            _ColumnSpec("picture_url", "TEXT"),
            _ColumnSpec("updated_at", "TIMESTAMP"),
        ],
        # Free-text notes on records
        "goal_records": [
            _ColumnSpec("message", "TEXT"),
        ],
        "user_settings": [
            _ColumnSpec("updated_at", "TIMESTAMP"),
        ],
    }

    indexes: list[tuple[str, str, str]] = [
        # Chatbot key resolution looks up (key, value) = (hash setting, digest)
        ("ix_user_settings_key_value", "user_settings", "key, value"),
        ("ix_goal_records_goal_id_date", "goal_records", "goal_id, date"),
        ("ix_goals_user_id_name", "goals", "user_id, name"),
    ]

    with engine.begin() as conn:
        for table, cols in migrations.items():
            if not _table_exists(conn, table):
                continue
            for col in cols:
                _add_column_if_missing(conn, table=table, col=col)

        for index_name, table, columns in indexes:
            if not _table_exists(conn, table):
                continue
            _create_index_if_missing(conn, index_name=index_name, table=table, columns=columns)
