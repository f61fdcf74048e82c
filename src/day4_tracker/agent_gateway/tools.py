"""Tool logic behind the MCP server.

Every tool returns a plain dict: ``{"ok": True, ...}`` on success or
``{"ok": False, "error": ..., "status": ..., "code": ...}`` when the chatbot API
rejected the call. A missing key is a normal result with ``needsApiKey`` set so
the agent can ask the user for one.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from day4_tracker.agent_gateway.client import ChatbotApiClient, ChatbotApiError
from day4_tracker.agent_gateway.session_keys import SessionKeyCache
from day4_tracker.core.errors import IngestionError
from day4_tracker.core.security import has_chatbot_key_format

logger = logging.getLogger(__name__)

NEEDS_API_KEY_HINT = (
    "No Day4 API key for this session. Ask the user for their chatbot API key "
    "(Settings > Chatbot API key, starts with 'day4_ck_') and call set_api_key, "
    "or pass api_key to this tool."
)


def _needs_key() -> dict[str, Any]:
    return {"ok": False, "needsApiKey": True, "error": NEEDS_API_KEY_HINT}


def _failure(message: str, *, status: Optional[int] = None, code: Optional[str] = None) -> dict[str, Any]:
    out: dict[str, Any] = {"ok": False, "error": message}
    if status is not None:
        out["status"] = status
    if code is not None:
        out["code"] = code
    return out


def _goal_ref(goal_id: Optional[int], goal_name: Optional[str]) -> dict[str, Any]:
    ref: dict[str, Any] = {}
    if goal_id is not None:
        ref["goalId"] = goal_id
    if goal_name is not None and goal_name.strip():
        ref["goalName"] = goal_name
    return ref


class ToolGateway:
    def __init__(self, client: ChatbotApiClient, keys: SessionKeyCache) -> None:
        self.client = client
        self.keys = keys

    def _pick_key(self, session_id: Optional[str], api_key: Optional[str]) -> Optional[str]:
        explicit = (api_key or "").strip()
        if explicit:
            return explicit
        return self.keys.get(session_id)

    async def _call(
        self,
        session_id: Optional[str],
        api_key: Optional[str],
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[dict[str, Any]] = None,
    ) -> tuple[Optional[Any], Optional[dict[str, Any]]]:
        key = self._pick_key(session_id, api_key)
        if not key:
            return None, _needs_key()
        try:
            data = await self.client.request(method, path, key, json=json, params=params)
        except ChatbotApiError as e:
            if e.status == 401:
                if not (api_key or "").strip():
                    # Revoked or reissued; later calls must not keep sending it.
                    self.keys.clear(session_id)
                return None, {**_failure(e.message, status=401, code=e.code), "needsApiKey": True}
            return None, _failure(e.message, status=e.status, code=e.code)
        except IngestionError as e:
            logger.warning("chatbot API call %s %s failed: %s", method, path, e.message)
            return None, _failure(e.message, status=e.status_code, code=e.code)
        return data, None

    def set_api_key(self, session_id: Optional[str], api_key: str) -> dict[str, Any]:
        key = (api_key or "").strip()
        if not has_chatbot_key_format(key):
            return _failure("API key must start with 'day4_ck_'", status=400, code="invalid_payload")
        self.keys.set(session_id, key)
        return {"ok": True, "message": "API key saved for this session."}

    def clear_api_key(self, session_id: Optional[str]) -> dict[str, Any]:
        had_key = self.keys.clear(session_id)
        return {"ok": True, "cleared": had_key}

    async def list_goals(self, session_id: Optional[str], api_key: Optional[str] = None) -> dict[str, Any]:
        data, err = await self._call(session_id, api_key, "GET", "/chatbot/goals")
        if err:
            return err
        return {"ok": True, "goals": data}

    async def add_goal_record(
        self,
        session_id: Optional[str],
        *,
        date: str,
        level: float,
        goal_id: Optional[int] = None,
        goal_name: Optional[str] = None,
        message: Optional[str] = None,
        api_key: Optional[str] = None,
    ) -> dict[str, Any]:
        body = {**_goal_ref(goal_id, goal_name), "date": date, "level": level}
        if message is not None:
            body["message"] = message
        data, err = await self._call(session_id, api_key, "POST", "/chatbot/records", json=body)
        if err:
            return err
        return {"ok": True, **data}

    async def add_goal_records_batch(
        self,
        session_id: Optional[str],
        *,
        records: list[dict[str, Any]],
        api_key: Optional[str] = None,
    ) -> dict[str, Any]:
        data, err = await self._call(
            session_id, api_key, "POST", "/chatbot/records/batch", json={"records": records}
        )
        if err:
            return err
        return {"ok": True, "report": data}

    async def list_goal_records(
        self,
        session_id: Optional[str],
        *,
        goal_id: Optional[int] = None,
        goal_name: Optional[str] = None,
        limit: Optional[int] = None,
        api_key: Optional[str] = None,
    ) -> dict[str, Any]:
        params = {**_goal_ref(goal_id, goal_name), "limit": limit}
        data, err = await self._call(session_id, api_key, "GET", "/chatbot/records", params=params)
        if err:
            return err
        return {"ok": True, **data}

    async def update_goal_record(
        self,
        session_id: Optional[str],
        *,
        record_id: int,
        date: Optional[str] = None,
        level: Optional[float] = None,
        message: Optional[str] = None,
        goal_id: Optional[int] = None,
        goal_name: Optional[str] = None,
        api_key: Optional[str] = None,
    ) -> dict[str, Any]:
        body = _goal_ref(goal_id, goal_name)
        if date is not None:
            body["date"] = date
        if level is not None:
            body["level"] = level
        if message is not None:
            body["message"] = message
        data, err = await self._call(
            session_id, api_key, "PUT", f"/chatbot/records/{int(record_id)}", json=body
        )
        if err:
            return err
        return {**data, "ok": True}

    async def delete_goal_record(
        self,
        session_id: Optional[str],
        *,
        record_id: int,
        goal_id: Optional[int] = None,
        goal_name: Optional[str] = None,
        api_key: Optional[str] = None,
    ) -> dict[str, Any]:
        data, err = await self._call(
            session_id,
            api_key,
            "DELETE",
            f"/chatbot/records/{int(record_id)}",
            params=_goal_ref(goal_id, goal_name),
        )
        if err:
            return err
        return {**data, "ok": True}
