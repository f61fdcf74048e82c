"""Record writes on behalf of a user (chatbot keys and the web session alike).

Create runs its checks in a fixed order and the first failure wins:
payload shape, goal resolution, per-goal quota, message normalization, id
allocation + insert.

The quota check is a count followed by an insert, not a transaction. Two
writers racing on the same goal can overshoot ``MAX_RECORDS_PER_GOAL`` by a
record or two; that is accepted for single-user write rates.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, TypeVar

from sqlalchemy import func
from sqlmodel import Session, select

from day4_tracker.core.errors import InvalidPayload, NotFound, QuotaExceeded, RecordGoalMismatch
from day4_tracker.models.goal import MAX_RECORDS_PER_GOAL, Goal, GoalRecord, RecordPublic
from day4_tracker.services.goal_resolver import resolve_goal
from day4_tracker.services.id_allocator import insert_with_allocated_id
from day4_tracker.services.validation import (
    Err,
    GoalRef,
    Validated,
    validate_record_create,
    validate_record_update,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RecordWriteResult:
    goal_id: int
    goal_name: str
    record_id: int

    def to_dict(self) -> dict[str, Any]:
        return {"goalId": self.goal_id, "goalName": self.goal_name, "recordId": self.record_id}


def unwrap(result: Validated[T]) -> T:
    if isinstance(result, Err):
        raise InvalidPayload(result.message, code=result.kind)
    return result.value


def count_records(session: Session, goal_id: int) -> int:
    return int(session.exec(select(func.count()).select_from(GoalRecord).where(GoalRecord.goal_id == goal_id)).one())


def create_record(session: Session, user_id: int, raw: Any) -> RecordWriteResult:
    payload = unwrap(validate_record_create(raw))

    goal = resolve_goal(session, user_id, payload.goal_ref)
    goal_id, goal_name = goal.id, goal.name

    if count_records(session, goal_id) >= MAX_RECORDS_PER_GOAL:
        raise QuotaExceeded(
            f"goal '{goal_name}' already has {MAX_RECORDS_PER_GOAL} records",
            code="record_quota_exceeded",
        )

    message = (payload.message or "").strip() or None
    record = insert_with_allocated_id(
        session,
        GoalRecord(goal_id=goal_id, date=payload.date, level=payload.level, message=message),
    )
    logger.info("record %s created for goal %s (user_id=%s)", record.id, goal_id, user_id)
    return RecordWriteResult(goal_id=goal_id, goal_name=goal_name, record_id=record.id)


def _load_owned_record(session: Session, user_id: int, record_id: int) -> tuple[GoalRecord, Goal]:
    record = session.get(GoalRecord, record_id)
    goal = session.get(Goal, record.goal_id) if record else None
    if not record or not goal or goal.user_id != user_id:
        raise NotFound("record not found", code="record_not_found")
    return record, goal


def _check_same_goal(session: Session, user_id: int, ref: GoalRef, goal: Goal, record_id: int) -> None:
    if ref.is_empty:
        return
    target = resolve_goal(session, user_id, ref)
    if target.id != goal.id:
        raise RecordGoalMismatch(f"record {record_id} belongs to goal {goal.id} ('{goal.name}'), not goal {target.id}")


def update_record(session: Session, user_id: int, record_id: int, raw: Any) -> RecordWriteResult:
    payload = unwrap(validate_record_update(raw))

    record, goal = _load_owned_record(session, user_id, record_id)
    _check_same_goal(session, user_id, payload.goal_ref, goal, record_id)

    for name, value in payload.changes().items():
        setattr(record, name, value)
    session.add(record)

    result = RecordWriteResult(goal_id=goal.id, goal_name=goal.name, record_id=record.id)
    session.commit()
    logger.info("record %s updated (user_id=%s)", record_id, user_id)
    return result


def delete_record(session: Session, user_id: int, record_id: int, ref: GoalRef) -> RecordWriteResult:
    record, goal = _load_owned_record(session, user_id, record_id)
    _check_same_goal(session, user_id, ref, goal, record_id)

    result = RecordWriteResult(goal_id=goal.id, goal_name=goal.name, record_id=record.id)
    session.delete(record)
    session.commit()
    logger.info("record %s deleted (user_id=%s)", record_id, user_id)
    return result


def list_records(session: Session, user_id: int, ref: GoalRef, *, limit: int = MAX_RECORDS_PER_GOAL) -> dict[str, Any]:
    goal = resolve_goal(session, user_id, ref)
    limit = max(1, min(int(limit), MAX_RECORDS_PER_GOAL))
    rows = session.exec(
        select(GoalRecord)
        .where(GoalRecord.goal_id == goal.id)
        .order_by(GoalRecord.date.desc(), GoalRecord.id.desc())
        .limit(limit)
    ).all()
    records = [RecordPublic.model_validate(r).model_dump(mode="json", by_alias=True) for r in rows]
    return {"goalId": goal.id, "goalName": goal.name, "count": len(records), "records": records}
