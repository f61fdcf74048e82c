from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlmodel import Session

from day4_tracker.core.errors import IngestionError, Unauthorized
from day4_tracker.core.security import create_access_token
from day4_tracker.db import get_session
from day4_tracker.models.user import User, UserPublic
from day4_tracker.routers.deps import get_current_user
from day4_tracker.services.identity import (
    IdentityVerificationError,
    IdentityVerifier,
    ensure_guest_user,
    get_identity_verifier,
    upsert_identity_user,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


class GoogleSignIn(BaseModel):
    credential: str = Field(min_length=1)


def _session_response(user: User) -> dict:
    token = create_access_token(subject=str(user.id), extra_claims={"googleSub": user.google_sub})
    return {"token": token, "user": UserPublic.model_validate(user).model_dump(by_alias=True)}


@router.post("/guest")
def guest(session: Session = Depends(get_session)):
    """Sign in as the shared guest account."""

    return _session_response(ensure_guest_user(session))


@router.post("/google")
def google(
    payload: GoogleSignIn,
    session: Session = Depends(get_session),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
):
    try:
        identity = verifier.verify(payload.credential)
    except IdentityVerificationError as e:
        logger.info("google sign-in rejected: %s", e)
        raise Unauthorized("invalid token") from e
    except RuntimeError as e:
        raise IngestionError(str(e), code="identity_not_configured") from e

    return _session_response(upsert_identity_user(session, identity))


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return {"user": UserPublic.model_validate(user).model_dump(by_alias=True)}
