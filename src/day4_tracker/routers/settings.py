from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from day4_tracker.core.errors import InvalidPayload
from day4_tracker.db import get_session
from day4_tracker.models.user import User
from day4_tracker.routers.deps import get_current_user
from day4_tracker.services.user_settings import (
    CHART_SPACING_MODE_KEY,
    CHART_SPACING_MODES,
    LANGUAGE_KEY,
    LANGUAGES,
    put_setting,
    read_display_settings,
)

router = APIRouter(prefix="/settings", tags=["settings"])


class DisplaySettingsUpdate(BaseModel):
    chartSpacingMode: Optional[str] = None
    language: Optional[str] = None


@router.get("")
def get_display_settings(
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    return read_display_settings(session, user.id)


@router.put("")
def update_display_settings(
    payload: DisplaySettingsUpdate,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    has_mode = payload.chartSpacingMode in CHART_SPACING_MODES
    has_language = payload.language in LANGUAGES
    if not (has_mode or has_language):
        raise InvalidPayload("invalid payload: chartSpacingMode or language required")

    if has_mode:
        put_setting(session, user.id, CHART_SPACING_MODE_KEY, payload.chartSpacingMode)
    if has_language:
        put_setting(session, user.id, LANGUAGE_KEY, payload.language)
    session.commit()
    return {"ok": True}
