"""Tests for RouterExecutor: sequential failover and health feedback."""

from __future__ import annotations

from types import MappingProxyType
from typing import Callable
from unittest.mock import patch

import pytest

from conftest import FakeAdapter, FakeClock
from model_router.domain.exceptions import (
    AggregateFailureError,
    FatalProviderError,
    GenericProviderError,
    NoViableCandidateError,
    OverloadedError,
    RateLimitedError,
    UnknownIntentError,
)
from model_router.shared.providers.gateway import RouterExecutor, classify
from model_router.shared.providers.health import ProviderHealth
from model_router.shared.providers.selector import ModelSelector
from model_router.shared.providers.types import (
    CanonicalRequest,
    CanonicalResult,
    Candidate,
    ProviderConfig,
)

CHAT = MappingProxyType({
    "chat": (
        Candidate("alpha", "alpha-large"),
        Candidate("beta", "beta-1"),
        Candidate("gamma", "gamma-chat"),
    ),
})


def make_executor(
    health: ProviderHealth,
    adapters: dict[str, FakeAdapter],
    clock: FakeClock,
    preferences: MappingProxyType = CHAT,
) -> RouterExecutor:
    selector = ModelSelector(health, preferences=preferences)
    return RouterExecutor(adapters, health, selector, clock=clock)


# ═══════════════════════════════════════════════════════════════
#  Classification
# ═══════════════════════════════════════════════════════════════
class TestClassify:
    def test_provider_errors_pass_through(self) -> None:
        err = OverloadedError("alpha", "503")
        assert classify("alpha", err) is err

    def test_unexpected_exception_becomes_generic(self) -> None:
        err = classify("alpha", RuntimeError("socket closed"))
        assert isinstance(err, GenericProviderError)
        assert err.provider == "alpha"
        assert "RuntimeError: socket closed" in err.message


# ═══════════════════════════════════════════════════════════════
#  Execute
# ═══════════════════════════════════════════════════════════════
class TestExecute:
    @pytest.mark.asyncio
    async def test_first_success_wins(
        self,
        health: ProviderHealth,
        clock: FakeClock,
        request_factory: Callable[..., CanonicalRequest],
        ok_result: CanonicalResult,
    ) -> None:
        adapters = {
            "alpha": FakeAdapter("alpha", [ok_result]),
            "beta": FakeAdapter("beta"),
        }
        result = await make_executor(health, adapters, clock).execute("chat", request_factory())

        assert result.text == "done"
        assert result.usage.output_tokens == 5
        assert result.meta.provider == "alpha"
        assert result.meta.model == "alpha-large"
        assert result.meta.intent == "chat"
        assert adapters["beta"].calls == []
        assert health.get("alpha").daily_used == 1

    @pytest.mark.asyncio
    async def test_failover_to_third_candidate(
        self,
        health: ProviderHealth,
        clock: FakeClock,
        request_factory: Callable[..., CanonicalRequest],
        ok_result: CanonicalResult,
    ) -> None:
        adapters = {
            "alpha": FakeAdapter("alpha", [GenericProviderError("alpha", "HTTP 500")]),
            "beta": FakeAdapter("beta", [GenericProviderError("beta", "empty response")]),
            "gamma": FakeAdapter("gamma", [ok_result]),
        }
        executor = make_executor(health, adapters, clock)

        with patch.object(health, "on_error", wraps=health.on_error) as on_error, \
                patch.object(health, "on_success", wraps=health.on_success) as on_success:
            result = await executor.execute("chat", request_factory())

        assert result.meta.provider == "gamma"
        assert result.text == "done"
        assert on_error.call_count == 2
        assert [c.args[0] for c in on_error.call_args_list] == ["alpha", "beta"]
        on_success.assert_called_once_with("gamma")
        assert all(len(a.calls) == 1 for a in adapters.values())

    @pytest.mark.asyncio
    async def test_all_fail_names_every_provider(
        self,
        health: ProviderHealth,
        clock: FakeClock,
        request_factory: Callable[..., CanonicalRequest],
    ) -> None:
        adapters = {
            "alpha": FakeAdapter("alpha", [RateLimitedError("alpha", "429", retry_after_ms=30_000)]),
            "beta": FakeAdapter("beta", [OverloadedError("beta", "503")]),
            "gamma": FakeAdapter("gamma", [FatalProviderError("gamma", "HTTP 401")]),
        }
        with pytest.raises(AggregateFailureError) as exc_info:
            await make_executor(health, adapters, clock).execute("chat", request_factory())

        err = exc_info.value
        assert err.code == "ALL_PROVIDERS_FAILED"
        assert err.providers == ["alpha", "beta", "gamma"]
        assert "intent: chat" in err.message
        for provider in ("alpha", "beta", "gamma"):
            assert f"{provider}: " in err.message

    @pytest.mark.asyncio
    async def test_each_kind_charges_its_penalty(
        self,
        health: ProviderHealth,
        clock: FakeClock,
        request_factory: Callable[..., CanonicalRequest],
    ) -> None:
        adapters = {
            "alpha": FakeAdapter("alpha", [RateLimitedError("alpha", "429", retry_after_ms=30_000)]),
            "beta": FakeAdapter("beta", [OverloadedError("beta", "503")]),
            "gamma": FakeAdapter("gamma", [FatalProviderError("gamma", "HTTP 401")]),
        }
        with pytest.raises(AggregateFailureError):
            await make_executor(health, adapters, clock).execute("chat", request_factory())

        assert health.get("alpha").cool_until == clock.now + 30
        assert health.get("alpha").reliability == 1.0
        assert health.get("beta").reliability == pytest.approx(0.8)
        assert health.get("gamma").reliability == 0.0
        assert health.get("gamma").cool_until == clock.now + 86_400

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_generic_failure(
        self,
        health: ProviderHealth,
        clock: FakeClock,
        request_factory: Callable[..., CanonicalRequest],
    ) -> None:
        adapters = {
            "alpha": FakeAdapter("alpha", [KeyError("choices")]),
            "beta": FakeAdapter("beta"),
        }
        result = await make_executor(health, adapters, clock).execute("chat", request_factory())
        assert result.meta.provider == "beta"
        assert health.get("alpha").reliability == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_attempt_notes_are_truncated(
        self,
        health: ProviderHealth,
        clock: FakeClock,
        request_factory: Callable[..., CanonicalRequest],
    ) -> None:
        adapters = {"alpha": FakeAdapter("alpha", [GenericProviderError("alpha", "x" * 500)])}
        prefs = MappingProxyType({"chat": (Candidate("alpha", "alpha-large"),)})
        with pytest.raises(AggregateFailureError) as exc_info:
            await make_executor(health, adapters, clock, prefs).execute("chat", request_factory())

        (_, reason), = exc_info.value.attempts
        assert len(reason) == 60

    @pytest.mark.asyncio
    async def test_request_carries_candidate_model_and_intent(
        self,
        health: ProviderHealth,
        clock: FakeClock,
        request_factory: Callable[..., CanonicalRequest],
    ) -> None:
        adapters = {
            "alpha": FakeAdapter("alpha", [GenericProviderError("alpha", "boom")]),
            "beta": FakeAdapter("beta"),
        }
        original = request_factory("hi", model="ignored", max_tokens=64)
        await make_executor(health, adapters, clock).execute("chat", original)

        assert adapters["alpha"].calls[0].model == "alpha-large"
        assert adapters["beta"].calls[0].model == "beta-1"
        assert adapters["beta"].calls[0].intent == "chat"
        assert adapters["beta"].calls[0].max_tokens == 64
        assert original.model == "ignored"

    @pytest.mark.asyncio
    async def test_latency_measured_from_request_start(
        self,
        health: ProviderHealth,
        clock: FakeClock,
        request_factory: Callable[..., CanonicalRequest],
    ) -> None:
        adapters = {
            "alpha": FakeAdapter(
                "alpha",
                [GenericProviderError("alpha", "boom")],
                on_call=lambda: clock.advance(1.5),
            ),
            "beta": FakeAdapter("beta", on_call=lambda: clock.advance(0.5)),
        }
        result = await make_executor(health, adapters, clock).execute("chat", request_factory())
        assert result.meta.latency_ms == pytest.approx(2000.0)

    @pytest.mark.asyncio
    async def test_candidate_list_is_fixed_for_the_request(
        self,
        health: ProviderHealth,
        clock: FakeClock,
        request_factory: Callable[..., CanonicalRequest],
    ) -> None:
        # beta is fatally penalised while alpha is in flight; it is still tried
        adapters = {
            "alpha": FakeAdapter(
                "alpha",
                [GenericProviderError("alpha", "boom")],
                on_call=lambda: health.on_fatal("beta"),
            ),
            "beta": FakeAdapter("beta"),
        }
        result = await make_executor(health, adapters, clock).execute("chat", request_factory())
        assert result.meta.provider == "beta"


# ═══════════════════════════════════════════════════════════════
#  No candidates
# ═══════════════════════════════════════════════════════════════
class TestNoCandidates:
    @pytest.mark.asyncio
    async def test_empty_selection(
        self,
        health: ProviderHealth,
        clock: FakeClock,
        request_factory: Callable[..., CanonicalRequest],
    ) -> None:
        for provider in ("alpha", "beta", "gamma"):
            health.on_fatal(provider)
        adapters = {p: FakeAdapter(p) for p in ("alpha", "beta", "gamma")}

        with pytest.raises(NoViableCandidateError) as exc_info:
            await make_executor(health, adapters, clock).execute("chat", request_factory())

        assert exc_info.value.code == "NO_VIABLE_CANDIDATE"
        assert all(a.calls == [] for a in adapters.values())

    @pytest.mark.asyncio
    async def test_missing_adapters_are_skipped(
        self,
        health: ProviderHealth,
        clock: FakeClock,
        request_factory: Callable[..., CanonicalRequest],
    ) -> None:
        adapters = {"gamma": FakeAdapter("gamma")}
        result = await make_executor(health, adapters, clock).execute("chat", request_factory())
        assert result.meta.provider == "gamma"
        # Skipping is not a failure
        assert health.get("alpha").reliability == 1.0

    @pytest.mark.asyncio
    async def test_no_adapter_at_all(
        self,
        health: ProviderHealth,
        clock: FakeClock,
        request_factory: Callable[..., CanonicalRequest],
    ) -> None:
        with pytest.raises(NoViableCandidateError):
            await make_executor(health, {}, clock).execute("chat", request_factory())

    @pytest.mark.asyncio
    async def test_unknown_intent(
        self,
        health: ProviderHealth,
        clock: FakeClock,
        request_factory: Callable[..., CanonicalRequest],
    ) -> None:
        with pytest.raises(UnknownIntentError):
            await make_executor(health, {}, clock).execute("sonnet", request_factory())


# ═══════════════════════════════════════════════════════════════
#  Utility scenario
# ═══════════════════════════════════════════════════════════════
class TestUtilityScenario:
    @pytest.mark.asyncio
    async def test_exhausted_primary_routes_to_groq(
        self,
        clock: FakeClock,
        request_factory: Callable[..., CanonicalRequest],
    ) -> None:
        health = ProviderHealth(clock=clock)
        health.register("gemini", ProviderConfig(name="gemini", per_model_daily_quota={"flash-lite": 20}))
        health.register("groq", ProviderConfig(name="groq", per_model_daily_quota={"llama-70b": 1000}))
        health.on_429("gemini", 7_200_000)

        prefs = MappingProxyType({
            "utility": (Candidate("gemini", "flash-lite"), Candidate("groq", "llama-70b")),
        })
        adapters = {"gemini": FakeAdapter("gemini"), "groq": FakeAdapter("groq")}

        result = await make_executor(health, adapters, clock, prefs).execute("utility", request_factory())

        assert adapters["gemini"].calls == []
        assert len(adapters["groq"].calls) == 1
        assert (result.meta.provider, result.meta.model, result.meta.intent) == ("groq", "llama-70b", "utility")
