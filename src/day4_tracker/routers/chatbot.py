"""Endpoints for chatbots and agents (API key auth) and key management (web session)."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query, status
from sqlmodel import Session

from day4_tracker.db import get_session
from day4_tracker.models.goal import MAX_RECORDS_PER_GOAL
from day4_tracker.models.user import User
from day4_tracker.routers.deps import get_chatbot_user, get_current_user
from day4_tracker.services import credentials, ingestion
from day4_tracker.services.batch import create_batch
from day4_tracker.services.goals import list_goal_summaries
from day4_tracker.services.ingestion import unwrap
from day4_tracker.services.validation import parse_record_id, validate_goal_ref

router = APIRouter(prefix="/chatbot", tags=["chatbot"])

KEY_WARNING = "Store this key somewhere safe. Issuing a new key invalidates the previous one."


@router.get("/goals")
def list_goals(
    session: Session = Depends(get_session),
    user: User = Depends(get_chatbot_user),
):
    return list_goal_summaries(session, user.id)


@router.post("/records", status_code=status.HTTP_201_CREATED)
def create_record(
    body: Any = Body(default=None),
    session: Session = Depends(get_session),
    user: User = Depends(get_chatbot_user),
):
    return ingestion.create_record(session, user.id, body).to_dict()


@router.post("/records/batch")
def create_records_batch(
    body: Any = Body(default=None),
    session: Session = Depends(get_session),
    user: User = Depends(get_chatbot_user),
):
    # 200 even when items failed: the report carries the per-item outcome.
    return create_batch(session, user.id, body).to_dict()


@router.get("/records")
def list_records(
    goal_id: Optional[str] = Query(default=None, alias="goalId"),
    goal_name: Optional[str] = Query(default=None, alias="goalName"),
    limit: int = MAX_RECORDS_PER_GOAL,
    session: Session = Depends(get_session),
    user: User = Depends(get_chatbot_user),
):
    ref = unwrap(validate_goal_ref({"goalId": goal_id, "goalName": goal_name}, required=True))
    return ingestion.list_records(session, user.id, ref, limit=limit)


@router.put("/records/{record_id}")
def update_record(
    record_id: str,
    body: Any = Body(default=None),
    session: Session = Depends(get_session),
    user: User = Depends(get_chatbot_user),
):
    rid = unwrap(parse_record_id(record_id))
    updated = ingestion.update_record(session, user.id, rid, body)
    return {"ok": True, **updated.to_dict()}


@router.delete("/records/{record_id}")
def delete_record(
    record_id: str,
    goal_id: Optional[str] = Query(default=None, alias="goalId"),
    goal_name: Optional[str] = Query(default=None, alias="goalName"),
    session: Session = Depends(get_session),
    user: User = Depends(get_chatbot_user),
):
    rid = unwrap(parse_record_id(record_id))
    ref = unwrap(validate_goal_ref({"goalId": goal_id, "goalName": goal_name}, required=False))
    deleted = ingestion.delete_record(session, user.id, rid, ref)
    return {"ok": True, **deleted.to_dict()}


@router.get("/api-key")
def api_key_status(
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    s = credentials.key_status(session, user.id)
    return {"hasKey": s.has_key, "keyPrefix": s.key_prefix, "issuedAt": s.issued_at, "apiKey": s.api_key}


@router.post("/api-key/issue")
def issue_api_key(
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    issued = credentials.issue_key(session, user.id)
    return {
        "apiKey": issued.api_key,
        "keyPrefix": issued.key_prefix,
        "issuedAt": issued.issued_at,
        "warning": KEY_WARNING,
    }


@router.delete("/api-key")
def revoke_api_key(
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    credentials.revoke_key(session, user.id)
    return {"ok": True}
