from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func
from sqlmodel import Session, select

from day4_tracker.core.errors import QuotaExceeded
from day4_tracker.models.goal import (
    MAX_GOALS_PER_USER,
    Goal,
    GoalCreate,
    GoalPublic,
    GoalRecord,
    GoalWithRecords,
    RecordPublic,
)
from day4_tracker.services.goal_resolver import get_owned_goal
from day4_tracker.services.id_allocator import insert_with_allocated_id

logger = logging.getLogger(__name__)


def count_goals(session: Session, user_id: int) -> int:
    return int(session.exec(select(func.count()).select_from(Goal).where(Goal.user_id == user_id)).one())


def _user_goals(session: Session, user_id: int) -> list[Goal]:
    return list(session.exec(select(Goal).where(Goal.user_id == user_id).order_by(Goal.id.desc())))


def list_goals_with_records(session: Session, user_id: int) -> list[dict[str, Any]]:
    goals = _user_goals(session, user_id)
    if not goals:
        return []

    by_goal: dict[int, GoalWithRecords] = {
        g.id: GoalWithRecords.model_validate(g, from_attributes=True) for g in goals
    }
    records = session.exec(
        select(GoalRecord)
        .where(GoalRecord.goal_id.in_(list(by_goal)))
        .order_by(GoalRecord.date.desc(), GoalRecord.id.desc())
    ).all()
    for r in records:
        by_goal[r.goal_id].inputs.append(RecordPublic.model_validate(r))

    return [by_goal[g.id].model_dump(mode="json", by_alias=True) for g in goals]


def list_goal_summaries(session: Session, user_id: int) -> list[dict[str, Any]]:
    """Goals without their records, plus a record count; what chatbots list."""

    goals = _user_goals(session, user_id)
    counts = dict(
        session.exec(
            select(GoalRecord.goal_id, func.count())
            .where(GoalRecord.goal_id.in_([g.id for g in goals]))
            .group_by(GoalRecord.goal_id)
        ).all()
    ) if goals else {}

    out: list[dict[str, Any]] = []
    for g in goals:
        item = GoalPublic.model_validate(g).model_dump(mode="json", by_alias=True)
        item["recordCount"] = int(counts.get(g.id, 0))
        out.append(item)
    return out


def create_goal(session: Session, user_id: int, data: GoalCreate) -> Goal:
    if count_goals(session, user_id) >= MAX_GOALS_PER_USER:
        raise QuotaExceeded(
            f"a user can have at most {MAX_GOALS_PER_USER} goals",
            code="goal_quota_exceeded",
        )

    goal = insert_with_allocated_id(
        session,
        Goal(
            user_id=user_id,
            name=data.name,
            target_date=data.target_date,
            target_level=data.target_level,
            unit=data.unit,
        ),
    )
    logger.info("goal %s created (user_id=%s)", goal.id, user_id)
    return goal


def update_goal(session: Session, user_id: int, goal_id: int, data: GoalCreate) -> Goal:
    goal = get_owned_goal(session, user_id, goal_id)
    goal.name = data.name
    goal.target_date = data.target_date
    goal.target_level = data.target_level
    goal.unit = data.unit
    session.add(goal)
    session.commit()
    session.refresh(goal)
    return goal


def delete_goal(session: Session, user_id: int, goal_id: int) -> None:
    goal = get_owned_goal(session, user_id, goal_id)
    # Records go with their goal.
    for r in session.exec(select(GoalRecord).where(GoalRecord.goal_id == goal.id)).all():
        session.delete(r)
    session.flush()
    session.delete(goal)
    session.commit()
    logger.info("goal %s deleted with its records (user_id=%s)", goal_id, user_id)
