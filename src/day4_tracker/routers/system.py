from __future__ import annotations

from fastapi import APIRouter

from day4_tracker.core.config import get_settings

router = APIRouter(prefix="/system", tags=["system"])


BUILD_TAG = "day4-2026-10-19"


@router.get("/health")
def health():
    return {"ok": True}


@router.get("/info")
def info():
    s = get_settings()
    # No secrets here.
    return {
        "build_tag": BUILD_TAG,
        "app_name": s.app_name,
        "env": s.env,
        "database_url": "sqlite" if s.database_url.startswith("sqlite") else "other",
        "google_configured": bool((s.google_client_id or "").strip()),
        "chatbot_store_plaintext_key": bool(s.chatbot_store_plaintext_key),
    }
