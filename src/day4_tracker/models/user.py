from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlmodel import Field, SQLModel

from day4_tracker.core.time import utcnow

# google_sub reserved for the shared guest account
GUEST_GOOGLE_SUB = "guest-mode"


class User(SQLModel, table=True):
    __tablename__ = "users"

    # Assigned by the id allocator, not by the store.
    id: Optional[int] = Field(default=None, primary_key=True)
    google_sub: str = Field(index=True, unique=True)
    email: Optional[str] = None
    name: Optional[str] = None
    picture_url: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class UserPublic(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    email: Optional[str] = None
    name: Optional[str] = None
    picture_url: Optional[str] = None
