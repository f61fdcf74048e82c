from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Optional, Protocol

import httpx
from sqlmodel import Session, select

from day4_tracker.core.config import get_settings
from day4_tracker.core.time import utcnow
from day4_tracker.models.user import GUEST_GOOGLE_SUB, User
from day4_tracker.services.id_allocator import insert_with_allocated_id

logger = logging.getLogger(__name__)


class IdentityVerificationError(Exception):
    pass


@dataclass(frozen=True)
class VerifiedIdentity:
    subject: str
    email: Optional[str] = None
    name: Optional[str] = None
    picture_url: Optional[str] = None


class IdentityVerifier(Protocol):
    def verify(self, credential: str) -> VerifiedIdentity: ...


@dataclass(frozen=True)
class GoogleIdentityVerifier:
    """Checks a Google ID token against the tokeninfo endpoint.

    Signature and expiry checks are Google's; we only insist that the token
    was minted for our client id.
    """

    client_id: str
    tokeninfo_url: str = "https://oauth2.googleapis.com/tokeninfo"
    timeout_seconds: float = 10.0

    def verify(self, credential: str) -> VerifiedIdentity:
        if not self.client_id:
            raise RuntimeError("GOOGLE_CLIENT_ID is not configured")

        try:
            with httpx.Client(timeout=self.timeout_seconds, trust_env=False) as client:
                resp = client.get(self.tokeninfo_url, params={"id_token": credential})
        except httpx.HTTPError as e:
            raise IdentityVerificationError("identity provider unreachable") from e

        if resp.status_code != 200:
            raise IdentityVerificationError("invalid token")
        data = resp.json() or {}

        if data.get("aud") != self.client_id:
            raise IdentityVerificationError("token audience mismatch")
        subject = str(data.get("sub") or "").strip()
        if not subject:
            raise IdentityVerificationError("token has no subject")

        return VerifiedIdentity(
            subject=subject,
            email=data.get("email") or None,
            name=data.get("name") or None,
            picture_url=data.get("picture") or None,
        )


def get_identity_verifier() -> IdentityVerifier:
    s = get_settings()
    return GoogleIdentityVerifier(
        client_id=s.google_client_id,
        tokeninfo_url=s.google_tokeninfo_url,
        timeout_seconds=s.google_timeout_seconds,
    )


def upsert_identity_user(session: Session, identity: VerifiedIdentity) -> User:
    """Create the user on first sign-in; refresh profile fields afterwards."""

    user = session.exec(select(User).where(User.google_sub == identity.subject)).first()
    if user:
        user.email = identity.email
        user.name = identity.name
        user.picture_url = identity.picture_url
        user.updated_at = utcnow()
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    user = insert_with_allocated_id(
        session,
        User(
            google_sub=identity.subject,
            email=identity.email,
            name=identity.name,
            picture_url=identity.picture_url,
        ),
    )
    logger.info("created user %s", user.id)
    return user


def ensure_guest_user(session: Session) -> User:
    """The single shared guest account, created on first use."""

    return upsert_identity_user(session, VerifiedIdentity(subject=GUEST_GOOGLE_SUB, name="Guest"))
