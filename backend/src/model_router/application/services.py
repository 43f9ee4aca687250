"""Model router service: the caller-facing facade.

Owns the single ``ProviderHealth`` instance and threads it into the
selector, the executor and the reporter.  Background work (quota-epoch
resets, balance refreshes) is started and stopped here so the web layer
only deals with one object.
"""

from __future__ import annotations

import asyncio
from typing import Mapping

import structlog

from model_router.config import Settings
from model_router.domain.exceptions import NoProvidersConfiguredError
from model_router.ports.outbound import ProviderAdapter
from model_router.shared.providers.configs import PROVIDER_CONFIGS
from model_router.shared.providers.gateway import RouterExecutor
from model_router.shared.providers.health import ProviderHealth
from model_router.shared.providers.intents import INTENT_PREFERENCES, IntentMatrix
from model_router.shared.providers.reporter import Balance, HealthReporter
from model_router.shared.providers.scheduler import QuotaEpochScheduler
from model_router.shared.providers.selector import ModelSelector
from model_router.shared.providers.types import CanonicalRequest, CanonicalResult, ProviderConfig

logger = structlog.get_logger(__name__)

# Providers whose terms allow prompts to be retained for training
_DATA_RETENTION_PROVIDERS = frozenset({"deepseek"})


class ModelRouter:
    """Routes canonical requests across the enabled providers."""

    def __init__(
        self,
        adapters: Mapping[str, ProviderAdapter],
        settings: Settings,
        *,
        configs: Mapping[str, ProviderConfig] = PROVIDER_CONFIGS,
        preferences: IntentMatrix = INTENT_PREFERENCES,
        health: ProviderHealth | None = None,
        reporter: HealthReporter | None = None,
    ) -> None:
        if not adapters:
            raise NoProvidersConfiguredError()

        self._settings = settings
        self._configs = configs
        self.adapters = dict(adapters)
        self.health = health or ProviderHealth()
        for name in self.adapters:
            self.health.register(name, configs.get(name) or ProviderConfig(name=name))

        self.selector = ModelSelector(self.health, preferences=preferences)
        self.executor = RouterExecutor(self.adapters, self.health, self.selector)
        self.reporter = reporter or HealthReporter(configs)
        self.scheduler = QuotaEpochScheduler(
            self.health,
            timezone=settings.quota_epoch_timezone,
            margin_s=settings.quota_epoch_margin_seconds,
        )
        self._balance_task: asyncio.Task[None] | None = None

        for name in sorted(_DATA_RETENTION_PROVIDERS & self.adapters.keys()):
            logger.warning("provider_data_retention_notice", provider=name)

    async def submit(self, intent: str, request: CanonicalRequest) -> CanonicalResult:
        return await self.executor.execute(intent, request)

    def summary(self) -> str:
        return self.reporter.get_summary(self.health, self.adapters)

    # ── Balances ─────────────────────────────────────────────
    async def refresh_balance(self, provider: str) -> Balance | None:
        config = self._configs.get(provider)
        if config is None or provider not in self.adapters:
            return None
        secret = self._settings.secret_for(config.secret_ref)
        return await self.reporter.fetch_balance(provider, secret)

    async def refresh_balances(self) -> None:
        for provider in self.reporter.balance_providers():
            await self.refresh_balance(provider)

    async def _balance_loop(self) -> None:
        while True:
            await self.refresh_balances()
            await asyncio.sleep(self._settings.balance_refresh_seconds)

    # ── Lifecycle ────────────────────────────────────────────
    def start(self) -> None:
        """Start background tasks; requires a running event loop."""
        self.scheduler.start()
        has_balance = any(p in self.adapters for p in self.reporter.balance_providers())
        if has_balance and self._balance_task is None:
            self._balance_task = asyncio.create_task(self._balance_loop(), name="balance-refresher")

    async def aclose(self) -> None:
        await self.scheduler.stop()
        if self._balance_task is not None:
            self._balance_task.cancel()
            try:
                await self._balance_task
            except asyncio.CancelledError:
                pass
            self._balance_task = None
        for adapter in self.adapters.values():
            await adapter.aclose()
        await self.reporter.aclose()
        logger.info("model_router_closed")
