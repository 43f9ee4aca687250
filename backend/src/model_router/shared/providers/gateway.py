"""Router execute: the failover loop behind every completion request.

Walks the selector's candidates strictly in order, one live call each.
The first success wins.  A failure is classified and charged to the
provider's health before the next candidate is tried; nothing a provider
raises reaches the caller directly.
"""

from __future__ import annotations

import time
from dataclasses import replace
from typing import Callable, Mapping

import structlog

from model_router.domain.enums import ErrorKind
from model_router.domain.exceptions import (
    MAX_ATTEMPT_NOTE,
    AggregateFailureError,
    GenericProviderError,
    NoViableCandidateError,
    ProviderCallError,
    truncate,
)
from model_router.ports.outbound import ProviderAdapter
from model_router.shared.observability.metrics import (
    ROUTER_ATTEMPTS,
    ROUTER_EXHAUSTED,
    ROUTER_LATENCY,
)
from model_router.shared.providers.health import ProviderHealth
from model_router.shared.providers.selector import ModelSelector
from model_router.shared.providers.types import CanonicalRequest, CanonicalResult, RouteMeta

logger = structlog.get_logger(__name__)


def classify(provider: str, exc: BaseException) -> ProviderCallError:
    """Normalise any adapter failure into a ``ProviderCallError``."""
    if isinstance(exc, ProviderCallError):
        return exc
    return GenericProviderError(provider, f"{type(exc).__name__}: {exc}")


class RouterExecutor:
    """Orchestrates selection → adapter calls → health updates → failover."""

    def __init__(
        self,
        adapters: Mapping[str, ProviderAdapter],
        health: ProviderHealth,
        selector: ModelSelector,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._adapters = adapters
        self._health = health
        self._selector = selector
        self._clock = clock
        self._penalties: dict[ErrorKind, Callable[[ProviderCallError], None]] = {
            ErrorKind.RATE_LIMITED: lambda e: health.on_429(e.provider, e.retry_after_ms),
            ErrorKind.OVERLOADED: lambda e: health.on_503(e.provider),
            ErrorKind.FATAL: lambda e: health.on_fatal(e.provider),
            ErrorKind.GENERIC: lambda e: health.on_error(e.provider),
        }

    async def execute(self, intent: str, request: CanonicalRequest) -> CanonicalResult:
        """Complete ``request`` on the first candidate that succeeds.

        Raises:
            UnknownIntentError: ``intent`` is not configured.
            NoViableCandidateError: no candidate could be attempted.
            AggregateFailureError: every attempted candidate failed.
        """
        start = self._clock()
        candidates = self._selector.select(intent)
        if not candidates:
            ROUTER_EXHAUSTED.labels(intent=intent).inc()
            raise NoViableCandidateError(intent)

        attempts: list[tuple[str, str]] = []

        for idx, candidate in enumerate(candidates):
            provider, model = candidate.provider, candidate.model
            adapter = self._adapters.get(provider)
            if adapter is None:
                logger.warning("router_adapter_missing", provider=provider, intent=intent)
                continue

            log = logger.bind(provider=provider, model=model, intent=intent)
            try:
                result = await adapter.complete(replace(request, model=model, intent=intent))
            except Exception as exc:
                error = classify(provider, exc)
                self._penalties[error.kind](error)
                attempts.append((provider, truncate(error.message, MAX_ATTEMPT_NOTE)))
                ROUTER_ATTEMPTS.labels(provider=provider, model=model, outcome=error.kind.value).inc()
                log.warning("router_candidate_failed", kind=error.kind.value, error=error.message)
                if idx < len(candidates) - 1:
                    log.info("router_failover", next_provider=candidates[idx + 1].provider)
                continue

            latency_ms = (self._clock() - start) * 1000
            self._health.on_success(provider)
            ROUTER_ATTEMPTS.labels(provider=provider, model=model, outcome="success").inc()
            ROUTER_LATENCY.labels(provider=provider).observe(latency_ms / 1000)
            log.info(
                "router_success",
                latency_ms=round(latency_ms, 1),
                failed_providers=[p for p, _ in attempts],
            )
            return replace(
                result,
                meta=RouteMeta(provider=provider, model=model, latency_ms=latency_ms, intent=intent),
            )

        ROUTER_EXHAUSTED.labels(intent=intent).inc()
        if not attempts:
            raise NoViableCandidateError(intent)
        logger.error("router_all_failed", intent=intent, attempts=len(attempts))
        raise AggregateFailureError(intent, attempts)
