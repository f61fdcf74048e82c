"""Request schemas for the chatbot endpoints.

Each validator returns ``Ok(value)`` or ``Err(message)`` instead of
raising, so the batch coordinator can validate item by item and the routers can
turn an ``Err`` into a 400 without FastAPI's generic 422.
"""

from __future__ import annotations

from dataclasses import dataclass
import datetime as dt
import re
from typing import Any, Generic, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

T = TypeVar("T")

MAX_MESSAGE_LENGTH = 500
MAX_BATCH_SIZE = 50

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    message: str
    kind: str = "invalid_payload"


Validated = Union[Ok[T], Err]


@dataclass(frozen=True)
class GoalRef:
    goal_id: int | None = None
    goal_name: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.goal_id is None and not self.goal_name


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    goal_id: Optional[int] = Field(default=None, gt=0)
    goal_name: Optional[str] = None

    @field_validator("goal_id", mode="before")
    @classmethod
    def check_goal_id(cls, v: Any) -> Any:
        if isinstance(v, bool):
            raise ValueError("must be a positive integer")
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("goal_name", mode="before")
    @classmethod
    def trim_goal_name(cls, v: Any) -> Any:
        if v is None:
            return None
        if not isinstance(v, str):
            raise ValueError("must be a string")
        return v.strip() or None

    @field_validator("date", mode="before", check_fields=False)
    @classmethod
    def parse_date(cls, v: Any) -> dt.date:
        return _parse_day(v)

    @field_validator("level", mode="before", check_fields=False)
    @classmethod
    def check_level(cls, v: Any) -> Any:
        return _check_level(v)

    @field_validator("message", mode="before", check_fields=False)
    @classmethod
    def normalize_message(cls, v: Any) -> Optional[str]:
        return _normalize_message(v)

    @property
    def goal_ref(self) -> GoalRef:
        return GoalRef(goal_id=self.goal_id, goal_name=self.goal_name)


def _parse_day(v: Any) -> dt.date:
    if not isinstance(v, str) or not _DATE_RE.match(v.strip()):
        raise ValueError("use YYYY-MM-DD format")
    try:
        return dt.date.fromisoformat(v.strip())
    except ValueError as e:
        raise ValueError("not a calendar date") from e


def _check_level(v: Any) -> Any:
    # JSON numbers only; "12" or true are not levels.
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise ValueError("must be a number")
    return v


def _normalize_message(v: Any) -> Optional[str]:
    if v is None:
        return None
    if not isinstance(v, str):
        raise ValueError("must be a string")
    v = v.strip()
    if len(v) > MAX_MESSAGE_LENGTH:
        raise ValueError(f"must be at most {MAX_MESSAGE_LENGTH} characters")
    return v or None


class RecordCreatePayload(_Payload):
    date: dt.date
    level: float = Field(allow_inf_nan=False)
    message: Optional[str] = None


class RecordUpdatePayload(_Payload):
    date: Optional[dt.date] = None
    level: Optional[float] = Field(default=None, allow_inf_nan=False)
    message: Optional[str] = None

    def changes(self) -> dict[str, Any]:
        """Only the fields the caller actually sent; ``message: null`` clears it."""

        return {name: getattr(self, name) for name in ("date", "level", "message") if name in self.model_fields_set}


class GoalRefPayload(_Payload):
    pass


def _describe(e: ValidationError) -> str:
    first = e.errors()[0]
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "__root__")
    msg = str(first.get("msg", "invalid value"))
    # pydantic prefixes messages raised from validators
    msg = msg.removeprefix("Value error, ")
    return f"invalid payload: {field} {msg}".strip() if field else f"invalid payload: {msg}"


def validate_record_create(raw: Any) -> Validated[RecordCreatePayload]:
    if not isinstance(raw, dict):
        return Err("invalid payload: expected an object")
    try:
        payload = RecordCreatePayload.model_validate(raw)
    except ValidationError as e:
        return Err(_describe(e))
    if payload.goal_ref.is_empty:
        return Err("invalid payload: goalId or goalName is required")
    return Ok(payload)


def validate_record_update(raw: Any) -> Validated[RecordUpdatePayload]:
    if not isinstance(raw, dict):
        return Err("invalid payload: expected an object")
    try:
        payload = RecordUpdatePayload.model_validate(raw)
    except ValidationError as e:
        return Err(_describe(e))
    changes = payload.changes()
    if not changes:
        return Err("invalid payload: nothing to update (date, level or message)")
    return Ok(payload)


def validate_goal_ref(raw: dict[str, Any], *, required: bool) -> Validated[GoalRef]:
    try:
        ref = GoalRefPayload.model_validate(raw).goal_ref
    except ValidationError as e:
        return Err(_describe(e))
    if required and ref.is_empty:
        return Err("invalid payload: goalId or goalName is required")
    return Ok(ref)


def validate_batch(raw: Any) -> Validated[list[Any]]:
    items = raw.get("records") if isinstance(raw, dict) else raw
    if not isinstance(items, list):
        return Err("invalid payload: records must be an array")
    if not 1 <= len(items) <= MAX_BATCH_SIZE:
        return Err(f"invalid payload: records must contain 1 to {MAX_BATCH_SIZE} items")
    return Ok(items)


def parse_record_id(raw: str) -> Validated[int]:
    s = str(raw or "").strip()
    if not (s.isascii() and s.isdigit()) or int(s) <= 0:
        return Err("invalid payload: record id must be a positive integer")
    return Ok(int(s))
