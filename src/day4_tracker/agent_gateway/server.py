"""Day4 MCP server: goal-record tools for conversational agents.

Tools call the /chatbot HTTP API with the user's chatbot API key. The key is
passed per call (``api_key``) or cached once per MCP session via
``set_api_key``.

Run:
    day4-mcp                       # stdio (MCP_TRANSPORT=stdio, default)
    MCP_TRANSPORT=http day4-mcp    # streamable HTTP on MCP_HOST:MCP_PORT/MCP_PATH
"""

import logging
from typing import Any, Optional

from mcp.server.fastmcp import Context, FastMCP

from day4_tracker.agent_gateway.client import ChatbotApiClient
from day4_tracker.agent_gateway.session_keys import DEFAULT_SESSION_ID, SessionKeyCache
from day4_tracker.agent_gateway.tools import ToolGateway
from day4_tracker.core.config import get_settings

log = logging.getLogger(__name__)

SESSION_HEADER = "mcp-session-id"

INSTRUCTIONS = (
    "Day4 goal tracker. Record daily progress toward the user's goals.\n"
    "Call list_goals first to see goal ids and names. Refer to a goal by goal_id "
    "when two goals share a name.\n"
    "Dates are YYYY-MM-DD. Messages are optional, at most 500 characters.\n"
    "If a tool answers needsApiKey, ask the user for their Day4 chatbot API key "
    "and call set_api_key."
)


def _session_id(ctx: Optional[Context]) -> str:
    if ctx is None:
        return DEFAULT_SESSION_ID
    try:
        request = ctx.request_context.request
    except (AttributeError, ValueError):
        return DEFAULT_SESSION_ID
    headers = getattr(request, "headers", None)
    if headers is None:
        return DEFAULT_SESSION_ID
    return headers.get(SESSION_HEADER) or DEFAULT_SESSION_ID


def create_mcp_server(gateway: ToolGateway, *, streamable_http_path: str = "/mcp") -> FastMCP:
    mcp = FastMCP("Day4", instructions=INSTRUCTIONS, streamable_http_path=streamable_http_path)

    @mcp.tool()
    def set_api_key(api_key: str, ctx: Context) -> dict:
        """Remember the user's Day4 chatbot API key (day4_ck_...) for this session."""
        return gateway.set_api_key(_session_id(ctx), api_key)

    @mcp.tool()
    def clear_api_key(ctx: Context) -> dict:
        """Forget the API key cached for this session."""
        return gateway.clear_api_key(_session_id(ctx))

    @mcp.tool()
    async def list_goals(ctx: Context, api_key: Optional[str] = None) -> dict:
        """List the user's goals with target date, target level, unit and record count."""
        return await gateway.list_goals(_session_id(ctx), api_key)

    @mcp.tool()
    async def add_goal_record(
        date: str,
        level: float,
        ctx: Context,
        goal_id: Optional[int] = None,
        goal_name: Optional[str] = None,
        message: Optional[str] = None,
        api_key: Optional[str] = None,
    ) -> dict:
        """Add one progress record to a goal.

        Args:
            date: Day of the record, YYYY-MM-DD.
            level: Progress level reached on that day.
            goal_id: Goal id from list_goals (preferred).
            goal_name: Exact goal name, used when goal_id is not given.
            message: Optional note, at most 500 characters.
            api_key: Overrides the session key for this call.
        """
        return await gateway.add_goal_record(
            _session_id(ctx),
            date=date,
            level=level,
            goal_id=goal_id,
            goal_name=goal_name,
            message=message,
            api_key=api_key,
        )

    @mcp.tool()
    async def add_goal_records_batch(
        records: list[dict[str, Any]],
        ctx: Context,
        api_key: Optional[str] = None,
    ) -> dict:
        """Add 1 to 50 records in one call.

        Each item is an object with goalId or goalName, date, level and an
        optional message. Items are applied in order; the report lists which
        indexes succeeded and which failed.
        """
        return await gateway.add_goal_records_batch(_session_id(ctx), records=records, api_key=api_key)

    @mcp.tool()
    async def list_goal_records(
        ctx: Context,
        goal_id: Optional[int] = None,
        goal_name: Optional[str] = None,
        limit: Optional[int] = None,
        api_key: Optional[str] = None,
    ) -> dict:
        """List a goal's records, newest first."""
        return await gateway.list_goal_records(
            _session_id(ctx), goal_id=goal_id, goal_name=goal_name, limit=limit, api_key=api_key
        )

    @mcp.tool()
    async def update_goal_record(
        record_id: int,
        ctx: Context,
        date: Optional[str] = None,
        level: Optional[float] = None,
        message: Optional[str] = None,
        goal_id: Optional[int] = None,
        goal_name: Optional[str] = None,
        api_key: Optional[str] = None,
    ) -> dict:
        """Change the date, level or message of a record. An empty message clears it."""
        return await gateway.update_goal_record(
            _session_id(ctx),
            record_id=record_id,
            date=date,
            level=level,
            message=message,
            goal_id=goal_id,
            goal_name=goal_name,
            api_key=api_key,
        )

    @mcp.tool()
    async def delete_goal_record(
        record_id: int,
        ctx: Context,
        goal_id: Optional[int] = None,
        goal_name: Optional[str] = None,
        api_key: Optional[str] = None,
    ) -> dict:
        """Delete a record. When a goal is given it must be the record's goal."""
        return await gateway.delete_goal_record(
            _session_id(ctx), record_id=record_id, goal_id=goal_id, goal_name=goal_name, api_key=api_key
        )

    return mcp


class SessionCloseMiddleware:
    """Drops a session's cached key when the client ends the MCP session.

    Streamable HTTP clients end a session with ``DELETE <mcp path>`` carrying
    the session header. Idle sessions are swept on every other request.
    """

    def __init__(self, app, keys: SessionKeyCache, path: str = "/mcp") -> None:
        self.app = app
        self.keys = keys
        self.path = path.rstrip("/") or "/"

    async def __call__(self, scope, receive, send):
        if scope.get("type") == "http" and (scope.get("path") or "").rstrip("/") == self.path:
            if scope.get("method") == "DELETE":
                sid = _header(scope, SESSION_HEADER)
                if sid:
                    self.keys.on_session_close(sid)
            else:
                self.keys.cleanup_stale()
        await self.app(scope, receive, send)


def _header(scope, name: str) -> Optional[str]:
    wanted = name.lower().encode("latin-1")
    for k, v in scope.get("headers") or []:
        if k.lower() == wanted:
            return v.decode("latin-1")
    return None


def build_gateway() -> ToolGateway:
    settings = get_settings()
    client = ChatbotApiClient(settings.mcp_api_base_url, timeout_seconds=settings.mcp_request_timeout_seconds)
    keys = SessionKeyCache(ttl_seconds=settings.mcp_session_ttl_seconds)
    return ToolGateway(client, keys)


def main() -> None:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)

    gateway = build_gateway()
    mcp = create_mcp_server(gateway, streamable_http_path=settings.mcp_path)

    if settings.mcp_transport.strip().lower() == "http":
        import uvicorn

        app = SessionCloseMiddleware(mcp.streamable_http_app(), gateway.keys, path=settings.mcp_path)
        log.info(
            "Starting Day4 MCP server (HTTP on %s:%d%s, API at %s)",
            settings.mcp_host,
            settings.mcp_port,
            settings.mcp_path,
            settings.mcp_api_base_url,
        )
        uvicorn.run(app, host=settings.mcp_host, port=settings.mcp_port)
    else:
        log.info("Starting Day4 MCP server (stdio, API at %s)", settings.mcp_api_base_url)
        mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
