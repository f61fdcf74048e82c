from __future__ import annotations

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlmodel import Session

from day4_tracker.core.errors import Unauthorized
from day4_tracker.core.security import decode_access_token
from day4_tracker.db import get_session
from day4_tracker.models.user import User
from day4_tracker.services.credentials import resolve_key

# auto_error=False: a missing header is a 401 here, not FastAPI's 403.
bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User:
    """Signed-in web user (JWT session token)."""

    if creds is None:
        raise Unauthorized("unauthorized")
    try:
        payload = decode_access_token(creds.credentials)
        user_id = int(payload.get("sub"))
    except (JWTError, TypeError, ValueError) as e:
        raise Unauthorized("unauthorized") from e

    user = session.get(User, user_id)
    if not user:
        raise Unauthorized("unauthorized")
    return user


def get_chatbot_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User:
    """Owner of the presented chatbot API key."""

    if creds is None:
        raise Unauthorized("missing API key")
    user = resolve_key(session, creds.credentials)
    if not user:
        raise Unauthorized("invalid API key")
    return user
