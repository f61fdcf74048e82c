from __future__ import annotations

from datetime import datetime

from sqlmodel import Field, SQLModel

from day4_tracker.core.time import utcnow


class UserSetting(SQLModel, table=True):
    __tablename__ = "user_settings"

    # One row per (user, key); upserts rely on this composite key.
    user_id: int = Field(primary_key=True, foreign_key="users.id")
    key: str = Field(primary_key=True, index=True)
    value: str = Field(index=True)
    updated_at: datetime = Field(default_factory=utcnow)
