from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, status
from sqlmodel import Session

from day4_tracker.db import get_session
from day4_tracker.models.goal import GoalCreate
from day4_tracker.models.user import User
from day4_tracker.routers.deps import get_current_user
from day4_tracker.services import goals as goal_service
from day4_tracker.services import ingestion
from day4_tracker.services.validation import GoalRef

router = APIRouter(prefix="/goals", tags=["goals"])


def _bound_to_goal(body: Any, goal_id: int) -> Any:
    # The path decides the goal; a goalName in the body must not retarget it.
    if not isinstance(body, dict):
        return body
    return {**body, "goalId": goal_id, "goalName": None}


@router.get("")
def list_goals(
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return goal_service.list_goals_with_records(session, user.id)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_goal(
    payload: GoalCreate,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    goal = goal_service.create_goal(session, user.id, payload)
    return {"id": goal.id}


@router.put("/{goal_id}")
def update_goal(
    goal_id: int,
    payload: GoalCreate,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    goal_service.update_goal(session, user.id, goal_id, payload)
    return {"ok": True}


@router.delete("/{goal_id}")
def delete_goal(
    goal_id: int,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    goal_service.delete_goal(session, user.id, goal_id)
    return {"ok": True}


@router.post("/{goal_id}/records", status_code=status.HTTP_201_CREATED)
def create_record(
    goal_id: int,
    body: Any = Body(default=None),
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    created = ingestion.create_record(session, user.id, _bound_to_goal(body, goal_id))
    return {"id": created.record_id}


@router.put("/{goal_id}/records/{record_id}")
def update_record(
    goal_id: int,
    record_id: int,
    body: Any = Body(default=None),
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    ingestion.update_record(session, user.id, record_id, _bound_to_goal(body, goal_id))
    return {"ok": True}


@router.delete("/{goal_id}/records/{record_id}")
def delete_record(
    goal_id: int,
    record_id: int,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    ingestion.delete_record(session, user.id, record_id, GoalRef(goal_id=goal_id))
    return {"ok": True}
