"""FastAPI application entry-point.

Assembles routers, middleware, exception handlers, and lifecycle hooks.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from model_router.adapters.inbound.rest.routers import (
    completions_router,
    health_router,
    providers_router,
)
from model_router.config import Settings, get_settings
from model_router.dependencies import init_router, reset_router
from model_router.shared.errors import register_exception_handlers
from model_router.shared.middleware import (
    LoggingMiddleware,
    MetricsMiddleware,
    RequestIdMiddleware,
)
from model_router.shared.observability import configure_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifecycle: startup & shutdown hooks."""
    settings: Settings = app.state.settings
    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.is_production,
    )
    logger.info("application_starting", env=settings.app_env.value)

    router = init_router(settings)
    if router is not None:
        logger.info(
            "model_router_ready",
            providers=sorted(router.adapters),
            intents=router.selector.intents,
        )
        for line in router.summary().splitlines():
            logger.info("provider_summary", line=line.strip())
        router.start()

    yield

    if router is not None:
        await router.aclose()
    reset_router()
    logger.info("application_shutdown")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Application factory: creates a fully configured FastAPI instance."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Model Router",
        description=(
            "Routes LLM completion requests across free-tier and low-cost "
            "providers by intent, failing over on rate limits, outages "
            "and exhausted daily quotas."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # ── Middleware (order matters: last added = outermost) ───
    allow_all_origins = "*" in settings.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[] if allow_all_origins else settings.cors_origins,
        allow_origin_regex=".*" if allow_all_origins else None,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # ── Exception handlers ───────────────────────────────────
    register_exception_handlers(app)

    # ── REST routers (versioned) ─────────────────────────────
    api_v1 = "/api/v1"
    app.include_router(health_router, prefix=api_v1)
    app.include_router(completions_router, prefix=api_v1)
    app.include_router(providers_router, prefix=api_v1)

    return app


# Uvicorn entry-point
app = create_app()
