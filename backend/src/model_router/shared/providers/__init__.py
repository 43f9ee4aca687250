"""Intent-based provider routing.

Per-provider health and quota tracking, candidate selection per intent,
and sequential failover across the selected candidates.
"""

from model_router.shared.providers.types import (
    CanonicalRequest,
    CanonicalResult,
    Candidate,
    HealthSnapshot,
    ProviderConfig,
)
from model_router.shared.providers.health import ProviderHealth
from model_router.shared.providers.selector import ModelSelector
from model_router.shared.providers.gateway import RouterExecutor
from model_router.shared.providers.reporter import HealthReporter
from model_router.shared.providers.scheduler import QuotaEpochScheduler

__all__ = [
    "CanonicalRequest",
    "CanonicalResult",
    "Candidate",
    "HealthReporter",
    "HealthSnapshot",
    "ModelSelector",
    "ProviderConfig",
    "ProviderHealth",
    "QuotaEpochScheduler",
    "RouterExecutor",
]
