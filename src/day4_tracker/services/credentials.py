"""Scoped chatbot API keys.

One active key per user, kept as four user settings. The plaintext value is
only retained when ``CHATBOT_STORE_PLAINTEXT_KEY`` is on, so that the owner can
view it again; resolution always goes through the SHA-256 digest.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging

from sqlmodel import Session

from day4_tracker.core.config import get_settings
from day4_tracker.core.errors import CredentialConflict
from day4_tracker.core.security import (
    chatbot_key_prefix,
    digests_match,
    generate_chatbot_key,
    has_chatbot_key_format,
    hash_chatbot_key,
)
from day4_tracker.core.time import isoformat_utc, utcnow
from day4_tracker.models.user import User
from day4_tracker.services import user_settings

logger = logging.getLogger(__name__)

HASH_KEY = "chatbot_api_key_hash"
PREFIX_KEY = "chatbot_api_key_prefix"
ISSUED_AT_KEY = "chatbot_api_key_issued_at"
VALUE_KEY = "chatbot_api_key_value"

CREDENTIAL_KEYS = [HASH_KEY, PREFIX_KEY, ISSUED_AT_KEY, VALUE_KEY]


@dataclass(frozen=True)
class IssuedKey:
    api_key: str
    key_prefix: str
    issued_at: str


@dataclass(frozen=True)
class KeyStatus:
    has_key: bool
    key_prefix: str | None = None
    issued_at: str | None = None
    api_key: str | None = None


def issue_key(session: Session, user_id: int) -> IssuedKey:
    """Replace the user's key. The previous key stops resolving on commit."""

    api_key = generate_chatbot_key()
    prefix = chatbot_key_prefix(api_key)
    issued_at = isoformat_utc(utcnow())

    user_settings.put_setting(session, user_id, HASH_KEY, hash_chatbot_key(api_key))
    user_settings.put_setting(session, user_id, PREFIX_KEY, prefix)
    user_settings.put_setting(session, user_id, ISSUED_AT_KEY, issued_at)
    if get_settings().chatbot_store_plaintext_key:
        user_settings.put_setting(session, user_id, VALUE_KEY, api_key)
    else:
        # A value left over from an earlier issue must not outlive its key.
        user_settings.delete_settings(session, user_id, [VALUE_KEY])
    session.commit()

    logger.info("issued chatbot key for user_id=%s prefix=%s", user_id, prefix)
    return IssuedKey(api_key=api_key, key_prefix=prefix, issued_at=issued_at)


def key_status(session: Session, user_id: int) -> KeyStatus:
    values = user_settings.get_settings_map(session, user_id, CREDENTIAL_KEYS)
    if not values.get(HASH_KEY):
        return KeyStatus(has_key=False)
    return KeyStatus(
        has_key=True,
        key_prefix=values.get(PREFIX_KEY),
        issued_at=values.get(ISSUED_AT_KEY),
        api_key=values.get(VALUE_KEY),
    )


def revoke_key(session: Session, user_id: int) -> None:
    removed = user_settings.delete_settings(session, user_id, CREDENTIAL_KEYS)
    session.commit()
    if removed:
        logger.info("revoked chatbot key for user_id=%s", user_id)


def resolve_key(session: Session, presented_key: str | None) -> User | None:
    """Return the owner of ``presented_key`` or None.

    Keys without the ``day4_ck_`` tag are rejected before any lookup.
    """

    if not has_chatbot_key_format(presented_key):
        return None

    digest = hash_chatbot_key(presented_key)
    owner_ids = user_settings.find_owner_ids(session, HASH_KEY, digest)
    if not owner_ids:
        return None
    if len(owner_ids) > 1:
        logger.error("chatbot key hash shared by users %s", sorted(owner_ids))
        raise CredentialConflict("credential is not uniquely owned")

    owner_id = owner_ids[0]
    stored = user_settings.get_setting(session, owner_id, HASH_KEY)
    if stored is None or not digests_match(stored, digest):
        return None
    return session.get(User, owner_id)
