import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Let tests import the package under src/ without installing it
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

# Separate database file so tests never touch day4.db
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

# Mark the pytest run (config loading skips .env / .env.local)
os.environ["PYTEST_RUNNING"] = "1"

from day4_tracker.main import create_app  # noqa: E402
from day4_tracker.services.identity import VerifiedIdentity, get_identity_verifier  # noqa: E402


class FakeVerifier:
    """Accepts credentials of the form ``ok:<subject>[:<name>]``."""

    def verify(self, credential: str) -> VerifiedIdentity:
        from day4_tracker.services.identity import IdentityVerificationError

        parts = credential.split(":")
        if len(parts) < 2 or parts[0] != "ok":
            raise IdentityVerificationError("invalid token")
        name = parts[2] if len(parts) > 2 else None
        return VerifiedIdentity(subject=parts[1], email=f"{parts[1]}@example.com", name=name)


@pytest.fixture
def app(tmp_path, monkeypatch):
    # Temporary sqlite file per test
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path.as_posix()}")
    app = create_app()
    app.dependency_overrides[get_identity_verifier] = FakeVerifier
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def sign_in(client, subject: str = "alice", name: str = "Alice") -> dict:
    r = client.post("/auth/google", json={"credential": f"ok:{subject}:{name}"})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['token']}"}


def issue_key(client, headers: dict) -> str:
    r = client.post("/chatbot/api-key/issue", headers=headers)
    assert r.status_code == 200, r.text
    return r.json()["apiKey"]


def bearer(api_key: str) -> dict:
    return {"Authorization": f"Bearer {api_key}"}


def create_goal(client, headers: dict, name: str = "Pushups", **overrides) -> int:
    body = {"name": name, "targetDate": "2026-12-31", "targetLevel": 100, "unit": "reps", **overrides}
    r = client.post("/goals", json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["id"]
