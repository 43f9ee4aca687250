"""Health, Completions, Providers: REST routers."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from model_router.application.dtos import (
    BalanceResponse,
    CompletionRequest,
    CompletionResponse,
    ErrorResponse,
    HealthResponse,
    ProviderStatusResponse,
    ProviderSummaryResponse,
    QuotaResetResponse,
)
from model_router.application.services import ModelRouter
from model_router.dependencies import get_optional_router, get_router


# ═══════════════════════════════════════════════════════════════
#  Health
# ═══════════════════════════════════════════════════════════════
health_router = APIRouter(tags=["Health"])


@health_router.get("/health", response_model=HealthResponse)
async def health_check(
    request: Request,
    router: ModelRouter | None = Depends(get_optional_router),
) -> HealthResponse:
    settings = request.app.state.settings
    providers = len(router.adapters) if router is not None else 0
    return HealthResponse(
        status="ok" if providers else "degraded",
        environment=settings.app_env.value,
        providers=providers,
    )


@health_router.get("/metrics")
async def prometheus_metrics() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


# ═══════════════════════════════════════════════════════════════
#  Completions
# ═══════════════════════════════════════════════════════════════
completions_router = APIRouter(tags=["Completions"])


@completions_router.post(
    "/completions",
    response_model=CompletionResponse,
    responses={
        400: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def create_completion(
    body: CompletionRequest,
    router: ModelRouter = Depends(get_router),
) -> CompletionResponse:
    result = await router.submit(body.intent, body.to_canonical())
    return CompletionResponse.from_result(result)


# ═══════════════════════════════════════════════════════════════
#  Provider Health (Admin)
# ═══════════════════════════════════════════════════════════════
providers_router = APIRouter(prefix="/providers", tags=["Provider Health"])


@providers_router.get("", response_model=list[ProviderStatusResponse])
async def list_providers(
    router: ModelRouter = Depends(get_router),
) -> list[ProviderStatusResponse]:
    """Health snapshots for every enabled provider."""
    health = router.health
    return [
        ProviderStatusResponse(
            provider=h.provider,
            available=health.is_available(h.provider),
            score=round(health.score(h.provider), 4),
            reliability=round(h.reliability, 4),
            daily_used=h.daily_used,
            daily_limit=h.daily_limit,
            minute_used=h.minute_used,
            minute_limit=h.minute_limit,
            cool_until=h.cool_until,
            credentials=router.adapters[h.provider].credential_count if h.provider in router.adapters else None,
        )
        for h in health.snapshots()
    ]


@providers_router.get("/summary", response_model=ProviderSummaryResponse)
async def provider_summary(
    router: ModelRouter = Depends(get_router),
) -> ProviderSummaryResponse:
    return ProviderSummaryResponse(providers=len(router.adapters), summary=router.summary())


@providers_router.get("/{name}/balance", response_model=BalanceResponse)
async def provider_balance(
    name: str,
    router: ModelRouter = Depends(get_router),
) -> BalanceResponse:
    """Cached hosted balance, fetched on demand when nothing is cached yet."""
    if name not in router.adapters or name not in router.reporter.balance_providers():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No balance endpoint for provider {name!r}",
        )
    balance = router.reporter.get_cached_balance(name) or await router.refresh_balance(name)
    if balance is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Balance for {name!r} is unavailable",
        )
    return BalanceResponse(
        provider=name,
        total=balance.total,
        granted=balance.granted,
        topped_up=balance.topped_up,
        currency=balance.currency,
        fetched_at=router.reporter.balance_fetched_at(name),
    )


@providers_router.post("/reset-quota", response_model=QuotaResetResponse)
async def reset_quota(
    router: ModelRouter = Depends(get_router),
) -> QuotaResetResponse:
    """Manual quota-epoch reset for every provider."""
    router.health.reset_all_rpd()
    return QuotaResetResponse(providers=router.health.providers())
