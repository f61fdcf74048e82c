from __future__ import annotations

import datetime as dt
import math
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from sqlmodel import Field, SQLModel

from day4_tracker.core.time import utcnow

MAX_GOALS_PER_USER = 10
MAX_RECORDS_PER_GOAL = 100


class Goal(SQLModel, table=True):
    __tablename__ = "goals"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True, foreign_key="users.id")
    # Not unique per user; see services.goal_resolver for name lookups.
    name: str = Field(index=True)
    target_date: dt.date
    target_level: float
    unit: str
    created_at: dt.datetime = Field(default_factory=utcnow)


class GoalRecord(SQLModel, table=True):
    __tablename__ = "goal_records"

    id: Optional[int] = Field(default=None, primary_key=True)
    goal_id: int = Field(index=True, foreign_key="goals.id")
    date: dt.date
    level: float
    message: Optional[str] = None
    created_at: dt.datetime = Field(default_factory=utcnow)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class RecordPublic(_CamelModel):
    id: int
    date: dt.date
    level: float
    message: Optional[str] = None


class GoalPublic(_CamelModel):
    id: int
    name: str
    target_date: dt.date
    target_level: float
    unit: str


class GoalWithRecords(GoalPublic):
    inputs: list[RecordPublic] = []


class GoalCreate(_CamelModel):
    name: str
    target_date: dt.date
    target_level: float
    unit: str

    @field_validator("name", "unit")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("target_level")
    @classmethod
    def finite_level(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("must be a finite number")
        return v
