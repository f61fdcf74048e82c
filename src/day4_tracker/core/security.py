from __future__ import annotations

from datetime import timedelta
import hashlib
import hmac
import secrets
from typing import Any

from jose import jwt

from day4_tracker.core.config import get_settings
from day4_tracker.core.time import utcnow

CHATBOT_KEY_TAG = "day4_ck_"
CHATBOT_KEY_PREFIX_LENGTH = 16


def create_access_token(*, subject: str, extra_claims: dict[str, Any] | None = None) -> str:
    settings = get_settings()
    now = utcnow()
    expire = now + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode: dict[str, Any] = {"sub": subject, "iat": int(now.timestamp()), "exp": int(expire.timestamp())}
    if extra_claims:
        to_encode.update(extra_claims)
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    """Raises jose.JWTError on a bad signature or an expired token."""

    settings = get_settings()
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])


def generate_chatbot_key() -> str:
    return CHATBOT_KEY_TAG + secrets.token_urlsafe(32)


def has_chatbot_key_format(value: object) -> bool:
    return isinstance(value, str) and value.startswith(CHATBOT_KEY_TAG) and len(value) > len(CHATBOT_KEY_TAG)


def hash_chatbot_key(api_key: str) -> str:
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()


def chatbot_key_prefix(api_key: str) -> str:
    return api_key[:CHATBOT_KEY_PREFIX_LENGTH]


def digests_match(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))
