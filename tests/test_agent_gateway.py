import asyncio

import httpx
import pytest

from conftest import create_goal, issue_key, sign_in
from day4_tracker.agent_gateway.client import ChatbotApiClient
from day4_tracker.agent_gateway.server import SessionCloseMiddleware, create_mcp_server
from day4_tracker.agent_gateway.session_keys import DEFAULT_SESSION_ID, SessionKeyCache
from day4_tracker.agent_gateway.tools import ToolGateway


@pytest.fixture
def gateway(app, client):
    # client keeps the app's lifespan (and so the database) up
    api = ChatbotApiClient("http://testserver", timeout_seconds=5, transport=httpx.ASGITransport(app=app))
    return ToolGateway(api, SessionKeyCache(ttl_seconds=60))


@pytest.fixture
def account(client):
    headers = sign_in(client)
    return headers, issue_key(client, headers)


def test_missing_key_returns_a_hint(gateway):
    result = asyncio.run(gateway.list_goals("s1"))
    assert result["ok"] is False
    assert result["needsApiKey"] is True
    assert "set_api_key" in result["error"]


def test_session_key_is_used_until_cleared(gateway, client, account):
    headers, key = account
    goal_id = create_goal(client, headers)

    assert gateway.set_api_key("s1", "not-a-day4-key")["ok"] is False
    assert gateway.set_api_key("s1", key)["ok"] is True

    result = asyncio.run(gateway.list_goals("s1"))
    assert result["ok"] is True
    assert [g["id"] for g in result["goals"]] == [goal_id]

    # Other sessions do not see the key.
    assert asyncio.run(gateway.list_goals("s2"))["needsApiKey"] is True

    assert gateway.clear_api_key("s1") == {"ok": True, "cleared": True}
    assert asyncio.run(gateway.list_goals("s1"))["needsApiKey"] is True


def test_explicit_key_wins_over_session_key(gateway, client, account):
    headers, key = account
    create_goal(client, headers)
    gateway.set_api_key("s1", "day4_ck_" + "z" * 43)

    result = asyncio.run(gateway.list_goals("s1"))
    assert result["ok"] is False
    assert result["status"] == 401
    assert result["needsApiKey"] is True

    result = asyncio.run(gateway.list_goals("s1", api_key=key))
    assert result["ok"] is True
    assert len(result["goals"]) == 1


def test_rejected_session_key_is_dropped(gateway, client, account):
    _, key = account
    gateway.set_api_key("s1", "day4_ck_" + "z" * 43)

    result = asyncio.run(gateway.list_goals("s1"))
    assert result["status"] == 401
    assert gateway.keys.get("s1") is None

    # A rejected explicit key leaves the session key alone.
    gateway.set_api_key("s1", key)
    result = asyncio.run(gateway.list_goals("s1", api_key="day4_ck_" + "y" * 43))
    assert result["status"] == 401
    assert gateway.keys.get("s1") == key


def test_non_json_success_is_a_tool_result():
    def proxy_page(request):
        return httpx.Response(200, text="<html>proxy</html>", headers={"content-type": "text/html"})

    api = ChatbotApiClient("http://day4", transport=httpx.MockTransport(proxy_page))
    gateway = ToolGateway(api, SessionKeyCache())

    result = asyncio.run(
        gateway.add_goal_record("s1", goal_name="Pushups", date="2026-10-01", level=1, api_key="day4_ck_" + "a" * 43)
    )
    assert result == {
        "ok": False,
        "error": "chatbot API returned a non-JSON response",
        "status": 502,
        "code": "upstream_unavailable",
    }


def test_record_tools_round_trip(gateway, client, account):
    headers, key = account
    goal_id = create_goal(client, headers)
    gateway.set_api_key("s1", key)

    added = asyncio.run(gateway.add_goal_record("s1", goal_name="Pushups", date="2026-10-01", level=10))
    assert added["ok"] is True
    assert added["goalId"] == goal_id
    rid = added["recordId"]

    report = asyncio.run(
        gateway.add_goal_records_batch(
            "s1",
            records=[
                {"goalId": goal_id, "date": "2026-10-02", "level": 12},
                {"goalName": "Nope", "date": "2026-10-03", "level": 1},
            ],
        )
    )
    assert report["ok"] is True
    assert report["report"]["inserted"] == 1
    assert report["report"]["failed"][0]["index"] == 1

    updated = asyncio.run(gateway.update_goal_record("s1", record_id=rid, level=11, message="better"))
    assert updated == {"ok": True, "goalId": goal_id, "goalName": "Pushups", "recordId": rid}

    listed = asyncio.run(gateway.list_goal_records("s1", goal_id=goal_id))
    assert listed["ok"] is True
    assert listed["count"] == 2
    assert listed["records"][1]["message"] == "better"

    deleted = asyncio.run(gateway.delete_goal_record("s1", record_id=rid, goal_name="Pushups"))
    assert deleted["ok"] is True
    assert asyncio.run(gateway.list_goal_records("s1", goal_name="Pushups"))["count"] == 1


def test_api_rejections_become_tool_results(gateway, client, account):
    headers, key = account
    create_goal(client, headers, name="Run")
    create_goal(client, headers, name="Run")

    result = asyncio.run(gateway.add_goal_record("s1", goal_name="Run", date="2026-10-01", level=1, api_key=key))
    assert result["ok"] is False
    assert result["status"] == 409
    assert result["code"] == "ambiguous_goal_name"

    result = asyncio.run(gateway.add_goal_record("s1", goal_name="Swim", date="2026-10-01", level=1, api_key=key))
    assert result["status"] == 404


def test_slow_upstream_times_out():
    async def slow(request):
        await asyncio.sleep(1)
        return httpx.Response(200, json=[])

    api = ChatbotApiClient("http://day4", timeout_seconds=0.05, transport=httpx.MockTransport(slow))
    gateway = ToolGateway(api, SessionKeyCache())

    result = asyncio.run(gateway.list_goals("s1", api_key="day4_ck_" + "a" * 43))
    assert result == {
        "ok": False,
        "error": "request timed out after 0.05s",
        "status": 502,
        "code": "upstream_unavailable",
    }


def test_unreachable_upstream_is_reported():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    api = ChatbotApiClient("http://day4", transport=httpx.MockTransport(refuse))
    gateway = ToolGateway(api, SessionKeyCache())

    result = asyncio.run(gateway.list_goals("s1", api_key="day4_ck_" + "a" * 43))
    assert result["ok"] is False
    assert result["code"] == "upstream_unavailable"


def test_session_key_cache_expiry_and_close():
    keys = SessionKeyCache(ttl_seconds=60)
    keys.set(None, "day4_ck_a")
    keys.set("s1", "day4_ck_b")
    assert keys.get(DEFAULT_SESSION_ID) == "day4_ck_a"
    assert len(keys) == 2

    keys._keys["s1"].last_active -= 120
    assert keys.get("s1") is None

    keys.set("s2", "day4_ck_c")
    keys._keys["s2"].last_active -= 120
    assert keys.cleanup_stale() == 1
    assert len(keys) == 1

    keys.on_session_close(DEFAULT_SESSION_ID)
    assert len(keys) == 0


def test_session_delete_drops_cached_key():
    keys = SessionKeyCache()
    keys.set("abc", "day4_ck_a")
    seen = []

    async def inner(scope, receive, send):
        seen.append(scope["method"])

    app = SessionCloseMiddleware(inner, keys, path="/mcp")
    scope = {"type": "http", "method": "DELETE", "path": "/mcp", "headers": [(b"mcp-session-id", b"abc")]}
    asyncio.run(app(scope, None, None))

    assert seen == ["DELETE"]
    assert keys.get("abc") is None


def test_mcp_server_exposes_the_tools():
    gateway = ToolGateway(ChatbotApiClient("http://day4"), SessionKeyCache())
    mcp = create_mcp_server(gateway)

    tools = {t.name: t for t in asyncio.run(mcp.list_tools())}
    assert set(tools) == {
        "set_api_key",
        "clear_api_key",
        "list_goals",
        "add_goal_record",
        "add_goal_records_batch",
        "list_goal_records",
        "update_goal_record",
        "delete_goal_record",
    }
    assert set(tools["set_api_key"].inputSchema["properties"]) == {"api_key"}
    assert "ctx" not in tools["add_goal_record"].inputSchema["properties"]
