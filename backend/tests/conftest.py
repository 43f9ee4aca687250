"""Shared test fixtures."""

from __future__ import annotations

from typing import Any, Callable, Sequence

import pytest

from model_router.config import Settings
from model_router.ports.outbound import ProviderAdapter
from model_router.shared.providers.health import ProviderHealth
from model_router.shared.providers.types import (
    CanonicalRequest,
    CanonicalResult,
    ChatMessage,
    ProviderConfig,
    Usage,
)


class FakeClock:
    """Manually advanced clock for deterministic cooldown checks."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeAdapter(ProviderAdapter):
    """Adapter that replays scripted outcomes and records every request."""

    def __init__(
        self,
        name: str,
        outcomes: Sequence[CanonicalResult | BaseException] = (),
        *,
        keys: int | None = 1,
        on_call: Callable[[], None] | None = None,
    ) -> None:
        self.name = name
        self._outcomes = list(outcomes)
        self._keys = keys
        self._on_call = on_call
        self.calls: list[CanonicalRequest] = []
        self.closed = False

    def is_available(self) -> bool:
        return True

    @property
    def credential_count(self) -> int | None:
        return self._keys

    async def complete(self, request: CanonicalRequest) -> CanonicalResult:
        self.calls.append(request)
        if self._on_call is not None:
            self._on_call()
        outcome = self._outcomes.pop(0) if self._outcomes else CanonicalResult(text=f"{self.name} ok")
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def aclose(self) -> None:
        self.closed = True


# ═══════════════════════════════════════════════════════════════
#  Fixtures
# ═══════════════════════════════════════════════════════════════
@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provider_configs() -> dict[str, ProviderConfig]:
    return {
        "alpha": ProviderConfig(
            name="alpha",
            base_url="https://alpha.test/v1",
            secret_ref="ALPHA_API_KEY",
            per_model_daily_quota={"alpha-large": 20, "alpha-small": 100},
            default_per_minute_quota=10,
        ),
        "beta": ProviderConfig(
            name="beta",
            base_url="https://beta.test/v1",
            secret_ref="BETA_API_KEY",
            per_model_daily_quota={"beta-1": 1000},
            default_per_minute_quota=30,
        ),
        "gamma": ProviderConfig(
            name="gamma",
            base_url="https://gamma.test/v1",
            secret_ref="GAMMA_API_KEY",
            per_model_daily_quota={"gamma-chat": None},
            default_per_minute_quota=60,
            balance_url="https://gamma.test/user/balance",
        ),
    }


@pytest.fixture
def health(clock: FakeClock, provider_configs: dict[str, ProviderConfig]) -> ProviderHealth:
    h = ProviderHealth(clock=clock)
    for name, config in provider_configs.items():
        h.register(name, config)
    return h


@pytest.fixture
def request_factory() -> Callable[..., CanonicalRequest]:
    def make(*texts: str, **kwargs: Any) -> CanonicalRequest:
        messages = tuple(ChatMessage(role="user", content=t) for t in (texts or ("hello",)))
        return CanonicalRequest(messages=messages, **kwargs)

    return make


@pytest.fixture
def ok_result() -> CanonicalResult:
    return CanonicalResult(text="done", usage=Usage(input_tokens=3, output_tokens=5))


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)
