"""
REST API Layer for the JournalMate planner.

Provides:
- FastAPI application with CORS middleware
- Planner endpoints under the /api/v1 prefix
- Exception handlers mapping planner errors onto the response envelope
- Root-level health check for infrastructure health checks
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from journalmate.api.routes import router
from journalmate.api.schemas import error_response
from journalmate.config.planner import PlannerSettings
from journalmate.lib.errors import INTERNAL_ERROR, INVALID_STATE, SESSION_NOT_FOUND, VALIDATION_ERROR
from journalmate.lib.exceptions import SessionNotFound, StateError
from journalmate.models import Base
from journalmate.services.content_extraction import ContentExtractor, HttpContentExtractor
from journalmate.services.llm import LLMClient, build_llm_client
from journalmate.services.redis_service import RedisService
from journalmate.services.session_store import LockRegistry

logger = logging.getLogger(__name__)

_ALLOWED_HEADERS: list[str] = [
    "Content-Type",
    "Accept",
    "Accept-Language",
    "X-Request-ID",
    "X-User-Id",
]


def async_database_url(database_url: str) -> str:
    """Map a plain database URL onto its async driver (aiosqlite, asyncpg)."""
    scheme, sep, rest = database_url.partition("://")
    if "+" in scheme or not sep:
        return database_url
    if scheme == "sqlite":
        return f"sqlite+aiosqlite://{rest}"
    if scheme in ("postgres", "postgresql"):
        return f"postgresql+asyncpg://{rest}"
    return database_url


def create_engine_for(database_url: str) -> AsyncEngine:
    """Async SQLAlchemy engine; in-memory SQLite gets a single shared connection."""
    url = async_database_url(database_url)
    if not url.startswith("sqlite"):
        return create_async_engine(url, pool_pre_ping=True)
    if url.endswith("://") or url.endswith(":memory:"):
        return create_async_engine(url, poolclass=StaticPool)
    return create_async_engine(url)


def create_app(
    settings: PlannerSettings | None = None,
    llm: LLMClient | None = None,
    content_extractor: ContentExtractor | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Planner settings (read from the environment when omitted)
        llm: AI client; built from settings when omitted (None without API keys)
        content_extractor: Source extractor; an httpx-backed one when omitted

    Returns:
        Configured FastAPI application instance.
    """
    settings = settings or PlannerSettings.from_env()
    is_production = settings.environment == "production"

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        async with app.state.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        yield
        if app.state.redis_service is not None:
            await app.state.redis_service.close()
        for client in app.state.owned_clients:
            await client.aclose()
        await app.state.engine.dispose()

    app = FastAPI(
        title="JournalMate Planner",
        description="Conversational planning that turns a chat into an activity with tasks",
        version="0.1.0",
        docs_url=None if is_production else "/docs",
        redoc_url=None if is_production else "/redoc",
        lifespan=lifespan,
    )

    engine = create_engine_for(settings.database_url)

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = async_sessionmaker(engine, expire_on_commit=False)
    app.state.llm = llm if llm is not None else build_llm_client(settings)
    app.state.content_extractor = content_extractor or HttpContentExtractor()
    # HTTP clients built here are closed on shutdown; injected ones belong to the caller
    app.state.owned_clients = [
        client
        for client, given in ((app.state.llm, llm), (app.state.content_extractor, content_extractor))
        if given is None and client is not None
    ]
    app.state.redis_service = RedisService(settings.redis_url) if settings.redis_url else None
    app.state.planner_locks = LockRegistry()

    if app.state.llm is None:
        logger.info("No AI provider configured; planner runs on templates")

    # -------------------------------------------------------------------------
    # Exception handlers
    # -------------------------------------------------------------------------
    @app.exception_handler(SessionNotFound)
    async def session_not_found_handler(request: Request, exc: SessionNotFound) -> JSONResponse:
        logger.info("Session not found on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=404, content=error_response(SESSION_NOT_FOUND))

    @app.exception_handler(StateError)
    async def state_error_handler(request: Request, exc: StateError) -> JSONResponse:
        logger.warning("Invalid state on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=409, content=error_response(INVALID_STATE))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content=error_response(VALIDATION_ERROR, details={"errors": errors}),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=error_response(INTERNAL_ERROR))

    # -------------------------------------------------------------------------
    # CORS Middleware
    # -------------------------------------------------------------------------
    # Comma-separated list in JOURNALMATE_CORS_ORIGINS; empty means no cross-origin access
    cors_origins = [
        origin.strip()
        for origin in os.getenv("JOURNALMATE_CORS_ORIGINS", "").split(",")
        if origin.strip()
    ]
    if is_production and "*" in cors_origins:
        raise ValueError("JOURNALMATE_CORS_ORIGINS must not contain '*' in production")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=_ALLOWED_HEADERS,
    )

    app.include_router(router)

    @app.get("/health")
    async def root_health_check() -> dict[str, str]:
        """Root health check for infrastructure health checks."""
        return {"status": "ok"}

    return app


__all__ = ["async_database_url", "create_app", "create_engine_for", "router"]
