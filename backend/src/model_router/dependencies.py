"""Dependency injection container: wires adapters to the router service.

FastAPI's ``Depends()`` system uses these factories to hand the single
``ModelRouter`` (and with it the single ``ProviderHealth``) to route
handlers.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Mapping

import structlog
from fastapi import Depends

from model_router.adapters.outbound.llm import build_adapters
from model_router.application.services import ModelRouter
from model_router.config import Settings, get_settings
from model_router.domain.exceptions import NoProvidersConfiguredError
from model_router.ports.outbound import ProviderAdapter

logger = structlog.get_logger(__name__)


# ── Settings ─────────────────────────────────────────────────
@lru_cache(maxsize=1)
def get_cached_settings() -> Settings:
    return get_settings()


# ── Singletons ───────────────────────────────────────────────
_router: ModelRouter | None = None


def init_router(
    settings: Settings | None = None,
    *,
    adapters: Mapping[str, ProviderAdapter] | None = None,
) -> ModelRouter | None:
    """Build the process-wide router; ``None`` when no provider has a secret."""
    global _router
    s = settings or get_cached_settings()
    built = adapters if adapters is not None else build_adapters(s)
    try:
        _router = ModelRouter(built, s)
    except NoProvidersConfiguredError:
        logger.warning("no_providers_configured")
        _router = None
    return _router


def reset_router() -> None:
    global _router
    _router = None


def get_optional_router() -> ModelRouter | None:
    return _router


def get_router(router: ModelRouter | None = Depends(get_optional_router)) -> ModelRouter:
    if router is None:
        raise NoProvidersConfiguredError()
    return router
