"""Map a caller's goal reference to exactly one goal the caller owns.

Goal names are not unique, so a name lookup that hits several goals is an
error the caller has to resolve by sending ``goalId``; nothing is picked on
their behalf.
"""

from __future__ import annotations

from sqlmodel import Session, select

from day4_tracker.core.errors import Ambiguous, InvalidPayload, NotFound
from day4_tracker.models.goal import Goal
from day4_tracker.services.validation import GoalRef


def get_owned_goal(session: Session, user_id: int, goal_id: int) -> Goal:
    goal = session.get(Goal, goal_id)
    if not goal or goal.user_id != user_id:
        raise NotFound("goal not found", code="goal_not_found")
    return goal


def resolve_goal(session: Session, user_id: int, ref: GoalRef) -> Goal:
    if ref.goal_id is not None:
        return get_owned_goal(session, user_id, ref.goal_id)

    name = (ref.goal_name or "").strip()
    if not name:
        raise InvalidPayload("invalid payload: goalId or goalName is required")

    # Two rows are enough to tell "unique" from "ambiguous".
    matches = session.exec(
        select(Goal).where(Goal.user_id == user_id).where(Goal.name == name).order_by(Goal.id).limit(2)
    ).all()
    if not matches:
        raise NotFound(f"goal not found: {name}", code="goal_not_found")
    if len(matches) > 1:
        raise Ambiguous(f"multiple goals are named '{name}'; use goalId")
    return matches[0]
