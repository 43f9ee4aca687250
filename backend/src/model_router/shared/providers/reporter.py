"""Health reporter: read-only status formatting and cached balance lookups.

Never on the request hot path: balances are pulled on demand (or by a
background refresher) and the last good value is cached.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Mapping

import httpx
import structlog

from model_router.ports.outbound import ProviderAdapter
from model_router.shared.providers.health import ProviderHealth
from model_router.shared.providers.types import ProviderConfig

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Balance:
    total: float
    granted: float
    topped_up: float
    currency: str = "USD"


class HealthReporter:
    """Formats provider health and tracks externally hosted balances."""

    def __init__(
        self,
        configs: Mapping[str, ProviderConfig],
        *,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._configs = configs
        self._client = client or httpx.AsyncClient(timeout=10.0)
        self._clock = clock
        self._balances: dict[str, Balance] = {}
        self._fetched_at: dict[str, float] = {}

    def get_summary(
        self,
        health: ProviderHealth,
        adapters: Mapping[str, ProviderAdapter] | None = None,
    ) -> str:
        """One line per credentialed provider: quota ceiling and key count."""
        lines: list[str] = []
        for h in health.snapshots():
            if not h.has_credential:
                continue
            limit = "unbounded" if h.daily_limit is None else str(h.daily_limit)
            key_info = ""
            if adapters is not None:
                adapter = adapters.get(h.provider)
                if adapter is not None and adapter.credential_count is not None:
                    key_info = f", {adapter.credential_count} key(s)"
            lines.append(f"  {h.provider}: RPD limit {limit}{key_info}")
        return "\n".join(lines)

    # ── Balance ──────────────────────────────────────────────
    async def fetch_balance(self, provider: str, secret: str) -> Balance | None:
        """Refresh ``provider``'s balance; failures return the cached value."""
        config = self._configs.get(provider)
        if config is None or not config.balance_url or not secret:
            return self._balances.get(provider)
        try:
            resp = await self._client.get(
                config.balance_url,
                headers={"Authorization": f"Bearer {secret}"},
            )
            resp.raise_for_status()
            infos = resp.json().get("balance_infos") or []
            if infos:
                info = infos[0]
                self._balances[provider] = Balance(
                    total=float(info.get("total_balance", 0)),
                    granted=float(info.get("granted_balance", 0)),
                    topped_up=float(info.get("topped_up_balance", 0)),
                    currency=info.get("currency", "USD"),
                )
                self._fetched_at[provider] = self._clock()
                logger.info("provider_balance", provider=provider, total=self._balances[provider].total)
        except (httpx.HTTPError, ValueError, TypeError, AttributeError) as exc:
            logger.debug("provider_balance_failed", provider=provider, error=str(exc))
        return self._balances.get(provider)

    def get_cached_balance(self, provider: str) -> Balance | None:
        return self._balances.get(provider)

    def balance_fetched_at(self, provider: str) -> float | None:
        return self._fetched_at.get(provider)

    def balance_providers(self) -> list[str]:
        return [name for name, cfg in self._configs.items() if cfg.balance_url]

    async def aclose(self) -> None:
        await self._client.aclose()
