"""Tests for HealthReporter summaries and balance lookups."""

from __future__ import annotations

import httpx
import pytest

from conftest import FakeAdapter, FakeClock
from model_router.shared.providers.health import ProviderHealth
from model_router.shared.providers.reporter import Balance, HealthReporter
from model_router.shared.providers.types import ProviderConfig

BALANCE_PAYLOAD = {
    "is_available": True,
    "balance_infos": [
        {
            "currency": "USD",
            "total_balance": "4.20",
            "granted_balance": "1.00",
            "topped_up_balance": "3.20",
        }
    ],
}


def make_reporter(
    configs: dict[str, ProviderConfig],
    handler,
    clock: FakeClock,
) -> HealthReporter:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HealthReporter(configs, client=client, clock=clock)


# ═══════════════════════════════════════════════════════════════
#  Summary
# ═══════════════════════════════════════════════════════════════
class TestSummary:
    def test_one_line_per_provider(
        self,
        health: ProviderHealth,
        provider_configs: dict[str, ProviderConfig],
    ) -> None:
        reporter = HealthReporter(provider_configs)
        assert reporter.get_summary(health).splitlines() == [
            "  alpha: RPD limit 20",
            "  beta: RPD limit 1000",
            "  gamma: RPD limit unbounded",
        ]

    def test_key_counts_from_adapters(
        self,
        health: ProviderHealth,
        provider_configs: dict[str, ProviderConfig],
    ) -> None:
        reporter = HealthReporter(provider_configs)
        adapters = {
            "alpha": FakeAdapter("alpha", keys=3),
            "beta": FakeAdapter("beta", keys=None),
        }
        lines = reporter.get_summary(health, adapters).splitlines()
        assert lines[0] == "  alpha: RPD limit 20, 3 key(s)"
        assert lines[1] == "  beta: RPD limit 1000"
        assert lines[2] == "  gamma: RPD limit unbounded"

    def test_empty_health(self, provider_configs: dict[str, ProviderConfig]) -> None:
        assert HealthReporter(provider_configs).get_summary(ProviderHealth()) == ""


# ═══════════════════════════════════════════════════════════════
#  Balance
# ═══════════════════════════════════════════════════════════════
class TestBalance:
    @pytest.mark.asyncio
    async def test_fetch_and_cache(
        self,
        provider_configs: dict[str, ProviderConfig],
        clock: FakeClock,
    ) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=BALANCE_PAYLOAD)

        reporter = make_reporter(provider_configs, handler, clock)
        balance = await reporter.fetch_balance("gamma", "sk-gamma-secret")

        assert balance == Balance(total=4.2, granted=1.0, topped_up=3.2, currency="USD")
        assert reporter.get_cached_balance("gamma") == balance
        assert reporter.balance_fetched_at("gamma") == clock.now
        assert str(seen[0].url) == "https://gamma.test/user/balance"
        assert seen[0].headers["Authorization"] == "Bearer sk-gamma-secret"
        await reporter.aclose()

    @pytest.mark.asyncio
    async def test_failure_keeps_last_good_value(
        self,
        provider_configs: dict[str, ProviderConfig],
        clock: FakeClock,
    ) -> None:
        responses = iter([
            httpx.Response(200, json=BALANCE_PAYLOAD),
            httpx.Response(500, text="upstream down"),
        ])
        reporter = make_reporter(provider_configs, lambda request: next(responses), clock)

        first = await reporter.fetch_balance("gamma", "sk-gamma-secret")
        fetched_at = reporter.balance_fetched_at("gamma")
        clock.advance(300)
        second = await reporter.fetch_balance("gamma", "sk-gamma-secret")

        assert second == first
        assert reporter.balance_fetched_at("gamma") == fetched_at
        await reporter.aclose()

    @pytest.mark.asyncio
    async def test_failure_without_cache_returns_none(
        self,
        provider_configs: dict[str, ProviderConfig],
        clock: FakeClock,
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        reporter = make_reporter(provider_configs, handler, clock)
        assert await reporter.fetch_balance("gamma", "sk-gamma-secret") is None
        await reporter.aclose()

    @pytest.mark.asyncio
    async def test_malformed_payload_is_swallowed(
        self,
        provider_configs: dict[str, ProviderConfig],
        clock: FakeClock,
    ) -> None:
        reporter = make_reporter(
            provider_configs,
            lambda request: httpx.Response(200, json={"balance_infos": [{"total_balance": "n/a"}]}),
            clock,
        )
        assert await reporter.fetch_balance("gamma", "sk-gamma-secret") is None
        await reporter.aclose()

    @pytest.mark.asyncio
    async def test_provider_without_balance_endpoint(
        self,
        provider_configs: dict[str, ProviderConfig],
        clock: FakeClock,
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        reporter = make_reporter(provider_configs, handler, clock)
        assert await reporter.fetch_balance("alpha", "sk-alpha-secret") is None
        assert await reporter.fetch_balance("gamma", "") is None
        assert await reporter.fetch_balance("unknown", "sk-secret") is None
        await reporter.aclose()

    def test_cached_lookup_never_fetches(self, provider_configs: dict[str, ProviderConfig]) -> None:
        reporter = HealthReporter(provider_configs)
        assert reporter.get_cached_balance("gamma") is None
        assert reporter.balance_fetched_at("gamma") is None

    def test_balance_providers(self, provider_configs: dict[str, ProviderConfig]) -> None:
        assert HealthReporter(provider_configs).balance_providers() == ["gamma"]
