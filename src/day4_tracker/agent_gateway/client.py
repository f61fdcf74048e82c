from __future__ import annotations

import asyncio
from typing import Any, Optional

import httpx

from day4_tracker.core.errors import UpstreamUnavailable


class ChatbotApiError(Exception):
    """The chatbot API answered with a non-2xx status."""

    def __init__(self, message: str, *, status: int, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code


def _json_or_none(resp: httpx.Response) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return None


class ChatbotApiClient:
    """Async client for the /chatbot HTTP API, authenticated per call with an API key.

    Each call is bounded by ``timeout_seconds`` end to end; expiry cancels the
    request and surfaces as ``UpstreamUnavailable``.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = float(timeout_seconds)
        self._transport = transport

    async def request(
        self,
        method: str,
        path: str,
        api_key: str,
        *,
        json: Any = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        headers = {"Authorization": f"Bearer {api_key}"}
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        # Do not read system proxy env vars; local proxies turn API errors into 502s.
        async with httpx.AsyncClient(
            timeout=self._timeout, trust_env=False, transport=self._transport
        ) as client:
            try:
                resp = await asyncio.wait_for(
                    client.request(method, self._base_url + path, json=json, params=params, headers=headers),
                    timeout=self._timeout,
                )
            except (asyncio.TimeoutError, httpx.TimeoutException) as e:
                raise UpstreamUnavailable(f"request timed out after {self._timeout:g}s") from e
            except httpx.TransportError as e:
                raise UpstreamUnavailable(f"chatbot API unreachable: {e}") from e

        data = _json_or_none(resp)
        if resp.is_error:
            detail = data.get("detail") if isinstance(data, dict) else None
            code = data.get("code") if isinstance(data, dict) else None
            raise ChatbotApiError(str(detail or f"HTTP {resp.status_code}"), status=resp.status_code, code=code)
        # Every chatbot endpoint answers with a JSON object or array.
        if not isinstance(data, (dict, list)):
            raise UpstreamUnavailable("chatbot API returned a non-JSON response")
        return data
