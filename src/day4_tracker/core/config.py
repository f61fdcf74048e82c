from __future__ import annotations

import os

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Allow keeping secrets in .env.local (not committed) while .env can stay non-sensitive.
    # NOTE: tests set PYTEST_RUNNING=1 to avoid reading local .env/.env.local.
    model_config = SettingsConfigDict(
        env_file=None if os.environ.get("PYTEST_RUNNING") else (".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    env: str = "dev"
    app_name: str = "Day4-API"
    database_url: str = "sqlite:///./day4.db"
    log_level: str = "INFO"
    cors_allow_origins: list[str] = ["*"]

    jwt_secret: str = "change-this-dev-secret"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7

    # External identity (Google ID token) verification
    google_client_id: str = ""
    google_tokeninfo_url: str = "https://oauth2.googleapis.com/tokeninfo"
    google_timeout_seconds: float = 10.0

    # Keep the plaintext chatbot key so the owner can view it again.
    # Turn off to store only the hash (a lost key then requires reissue).
    chatbot_store_plaintext_key: bool = True

    # MCP gateway -> chatbot HTTP API
    mcp_api_base_url: str = "http://127.0.0.1:8787"
    mcp_request_timeout_seconds: float = 10.0
    mcp_transport: str = "stdio"  # stdio | http
    mcp_host: str = "0.0.0.0"
    mcp_port: int = 8788
    mcp_path: str = "/mcp"
    mcp_session_ttl_seconds: int = 3600 * 4


def _validate_settings(s: Settings) -> None:
    # Security: avoid shipping with the default secret outside dev.
    if (not s.jwt_secret) or (s.jwt_secret.strip() == "change-this-dev-secret"):
        if str(s.env).lower() != "dev":
            raise RuntimeError("JWT_SECRET is missing or still the default; set a random secret in .env")

    if float(s.mcp_request_timeout_seconds) <= 0:
        raise RuntimeError("MCP_REQUEST_TIMEOUT_SECONDS must be positive")

    if str(s.mcp_transport).strip().lower() not in ("stdio", "http"):
        raise RuntimeError("MCP_TRANSPORT must be 'stdio' or 'http'")


def _inject_dotenv_files() -> None:
    # Only non-empty values are copied into the environment so that empty
    # placeholders in .env (e.g. GOOGLE_CLIENT_ID=) do not shadow real values.
    from dotenv import dotenv_values

    def _inject_non_empty(path: str, *, allow_override_empty: bool) -> None:
        vals = dotenv_values(path)
        for k, v in (vals or {}).items():
            if k is None or v is None:
                continue
            vv = str(v)
            if not vv.strip():
                continue
            cur = os.environ.get(k)
            if cur is None:
                os.environ[k] = vv
            elif allow_override_empty and str(cur).strip() == "":
                os.environ[k] = vv

    # .env: only fill missing keys
    _inject_non_empty(".env", allow_override_empty=False)
    # .env.local: fill missing keys and replace empty placeholders
    _inject_non_empty(".env.local", allow_override_empty=True)


def get_settings() -> Settings:
    # Not cached: tests switch DATABASE_URL etc. between cases via env vars.
    if not os.environ.get("PYTEST_RUNNING"):
        _inject_dotenv_files()

    settings = Settings()

    # Postgres driver selection:
    # We ship psycopg3 (`psycopg`), so normalize plain postgres URLs to
    # `postgresql+psycopg://...` to avoid SQLAlchemy defaulting to psycopg2.
    db_url = str(settings.database_url or "").strip()
    if db_url and ("+" not in db_url.split("://", 1)[0]):
        if db_url.startswith("postgresql://"):
            settings.database_url = "postgresql+psycopg://" + db_url[len("postgresql://") :]
        elif db_url.startswith("postgres://"):
            settings.database_url = "postgresql+psycopg://" + db_url[len("postgres://") :]

    _validate_settings(settings)
    return settings
