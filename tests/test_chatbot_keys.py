from sqlmodel import Session

from conftest import bearer, issue_key, sign_in
from day4_tracker.core.security import hash_chatbot_key
from day4_tracker.db import get_engine
from day4_tracker.services import credentials, user_settings


def test_issue_status_and_revoke(client):
    headers = sign_in(client)

    r = client.get("/chatbot/api-key", headers=headers)
    assert r.status_code == 200
    assert r.json() == {"hasKey": False, "keyPrefix": None, "issuedAt": None, "apiKey": None}

    r = client.post("/chatbot/api-key/issue", headers=headers)
    assert r.status_code == 200
    issued = r.json()
    key = issued["apiKey"]
    assert key.startswith("day4_ck_")
    assert issued["keyPrefix"] == key[:16]
    assert issued["issuedAt"].endswith("Z")
    assert issued["warning"]

    status = client.get("/chatbot/api-key", headers=headers).json()
    assert status == {"hasKey": True, "keyPrefix": key[:16], "issuedAt": issued["issuedAt"], "apiKey": key}

    assert client.get("/chatbot/goals", headers=bearer(key)).json() == []

    r = client.delete("/chatbot/api-key", headers=headers)
    assert r.json() == {"ok": True}
    assert client.get("/chatbot/api-key", headers=headers).json()["hasKey"] is False

    r = client.get("/chatbot/goals", headers=bearer(key))
    assert r.status_code == 401
    assert r.json() == {"detail": "invalid API key", "code": "unauthorized"}


def test_reissue_invalidates_previous_key(client):
    headers = sign_in(client)
    old = issue_key(client, headers)
    new = issue_key(client, headers)
    assert old != new

    assert client.get("/chatbot/goals", headers=bearer(old)).status_code == 401
    assert client.get("/chatbot/goals", headers=bearer(new)).status_code == 200


def test_rejects_missing_and_malformed_keys(client):
    r = client.get("/chatbot/goals")
    assert r.status_code == 401
    assert r.json()["detail"] == "missing API key"

    r = client.get("/chatbot/goals", headers=bearer("sk-not-ours"))
    assert r.status_code == 401

    r = client.get("/chatbot/goals", headers=bearer("day4_ck_" + "x" * 43))
    assert r.status_code == 401


def test_key_management_needs_a_web_session(client):
    headers = sign_in(client)
    key = issue_key(client, headers)

    assert client.get("/chatbot/api-key").status_code == 401
    assert client.post("/chatbot/api-key/issue", headers=bearer(key)).status_code == 401


def test_keys_resolve_to_their_own_user(client):
    alice_key = issue_key(client, sign_in(client, "alice", "Alice"))
    bob_headers = sign_in(client, "bob", "Bob")
    bob_key = issue_key(client, bob_headers)

    with Session(get_engine()) as session:
        alice = credentials.resolve_key(session, alice_key)
        bob = credentials.resolve_key(session, bob_key)
        assert alice.google_sub == "alice"
        assert bob.google_sub == "bob"
        assert credentials.resolve_key(session, None) is None


def test_plaintext_retention_can_be_turned_off(client, monkeypatch):
    headers = sign_in(client)
    issue_key(client, headers)
    assert client.get("/chatbot/api-key", headers=headers).json()["apiKey"]

    monkeypatch.setenv("CHATBOT_STORE_PLAINTEXT_KEY", "false")
    key = issue_key(client, headers)

    status = client.get("/chatbot/api-key", headers=headers).json()
    assert status["hasKey"] is True
    assert status["keyPrefix"] == key[:16]
    assert status["apiKey"] is None
    assert client.get("/chatbot/goals", headers=bearer(key)).status_code == 200


def test_shared_key_hash_is_a_server_error(client):
    alice_key = issue_key(client, sign_in(client, "alice", "Alice"))
    bob_id = client.get("/auth/me", headers=sign_in(client, "bob", "Bob")).json()["user"]["id"]

    with Session(get_engine()) as session:
        user_settings.put_setting(session, bob_id, credentials.HASH_KEY, hash_chatbot_key(alice_key))
        session.commit()

    r = client.get("/chatbot/goals", headers=bearer(alice_key))
    assert r.status_code == 500
    assert r.json()["code"] == "credential_conflict"
