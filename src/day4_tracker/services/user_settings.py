from __future__ import annotations

from sqlmodel import Session, select

from day4_tracker.core.time import utcnow
from day4_tracker.models.user_setting import UserSetting

CHART_SPACING_MODE_KEY = "chart_spacing_mode"
LANGUAGE_KEY = "language"

CHART_SPACING_MODES = ("equal", "actual")
LANGUAGES = ("ko", "en")


def get_setting(session: Session, user_id: int, key: str) -> str | None:
    row = session.get(UserSetting, (user_id, key))
    return row.value if row else None


def get_settings_map(session: Session, user_id: int, keys: list[str]) -> dict[str, str]:
    rows = session.exec(
        select(UserSetting).where(UserSetting.user_id == user_id).where(UserSetting.key.in_(keys))
    ).all()
    return {r.key: r.value for r in rows}


def put_setting(session: Session, user_id: int, key: str, value: str) -> None:
    """Stage an upsert; the caller commits."""

    row = session.get(UserSetting, (user_id, key))
    if row is None:
        row = UserSetting(user_id=user_id, key=key, value=value)
    else:
        row.value = value
        row.updated_at = utcnow()
    session.add(row)


def delete_settings(session: Session, user_id: int, keys: list[str]) -> int:
    """Stage deletes; the caller commits. Returns how many rows were found."""

    rows = session.exec(
        select(UserSetting).where(UserSetting.user_id == user_id).where(UserSetting.key.in_(keys))
    ).all()
    for r in rows:
        session.delete(r)
    return len(rows)


def find_owner_ids(session: Session, key: str, value: str) -> list[int]:
    rows = session.exec(
        select(UserSetting.user_id).where(UserSetting.key == key).where(UserSetting.value == value)
    ).all()
    return [int(r) for r in rows]


def read_display_settings(session: Session, user_id: int) -> dict[str, str]:
    values = get_settings_map(session, user_id, [CHART_SPACING_MODE_KEY, LANGUAGE_KEY])
    mode = values.get(CHART_SPACING_MODE_KEY)
    lang = values.get(LANGUAGE_KEY)
    return {
        "chartSpacingMode": mode if mode in CHART_SPACING_MODES else "equal",
        "language": lang if lang in LANGUAGES else "ko",
    }
