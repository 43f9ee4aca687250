"""Global exception handlers: map domain errors to HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse
import structlog

from model_router.domain.exceptions import (
    AggregateFailureError,
    DomainError,
    NoProvidersConfiguredError,
    NoViableCandidateError,
    UnknownIntentError,
)

logger = structlog.get_logger(__name__)


def _error(status_code: int, exc: DomainError) -> ORJSONResponse:
    return ORJSONResponse(
        status_code=status_code,
        content={"code": exc.code, "message": exc.message},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all domain→HTTP exception mappings."""

    @app.exception_handler(NoViableCandidateError)
    async def handle_no_viable(request: Request, exc: NoViableCandidateError) -> ORJSONResponse:
        logger.warning("no_viable_candidate_http", message=exc.message)
        return _error(503, exc)

    @app.exception_handler(NoProvidersConfiguredError)
    async def handle_no_providers(request: Request, exc: NoProvidersConfiguredError) -> ORJSONResponse:
        return _error(503, exc)

    @app.exception_handler(AggregateFailureError)
    async def handle_aggregate(request: Request, exc: AggregateFailureError) -> ORJSONResponse:
        logger.error("all_providers_failed_http", message=exc.message)
        return _error(502, exc)

    @app.exception_handler(UnknownIntentError)
    async def handle_unknown_intent(request: Request, exc: UnknownIntentError) -> ORJSONResponse:
        return _error(400, exc)

    @app.exception_handler(DomainError)
    async def handle_domain(request: Request, exc: DomainError) -> ORJSONResponse:
        return _error(400, exc)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("unhandled_exception", error=str(exc))
        return ORJSONResponse(
            status_code=500,
            content={
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            },
        )
