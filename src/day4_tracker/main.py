from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from day4_tracker.core.config import get_settings
from day4_tracker.core.errors import IngestionError
from day4_tracker.db import init_db
from day4_tracker.routers import auth, chatbot, goals, settings as settings_router, system

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        init_db()
        yield

    app = FastAPI(
        title=settings.app_name,
        lifespan=lifespan,
        docs_url="/docs" if settings.env == "dev" else None,
        redoc_url=None,
    )

    @app.exception_handler(IngestionError)
    async def _ingestion_error(_request: Request, exc: IngestionError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("request failed: %s (%s)", exc.message, exc.code)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    # Malformed bodies/params are a plain 400 "invalid payload", same as the
    # chatbot validators, instead of FastAPI's 422 error list.
    @app.exception_handler(RequestValidationError)
    async def _request_validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": "invalid payload", "code": "invalid_payload"})

    # The web UI and chatbot clients call from other origins.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(system.router)
    app.include_router(auth.router)
    app.include_router(settings_router.router)
    app.include_router(goals.router)
    app.include_router(chatbot.router)

    return app


app = create_app()
