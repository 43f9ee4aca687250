"""Provider health: quota, reliability and cooldown state per provider.

Single source of truth for whether (and how well) a provider can serve a
request right now.  State is written exclusively through the ``on_*``
mutators and ``reset_all_rpd``; readers receive immutable snapshots.

Reliability is an exponentially smoothed trust score in [0, 1]:

    success      r ← 0.9·r + 0.1
    503          r ← 0.8·r        (30 s cooldown)
    other error  r ← 0.5·r        (60 s cooldown)
    fatal        r ← 0            (24 h cooldown)
    epoch reset  r ← 0.8·r + 0.2
"""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable

import structlog

from model_router.shared.observability.metrics import PROVIDER_DAILY_USED, PROVIDER_RELIABILITY
from model_router.shared.providers.types import HealthSnapshot, ProviderConfig

logger = structlog.get_logger(__name__)

DEFAULT_DAILY_LIMIT = 1000
DEFAULT_429_COOLDOWN_MS = 90_000
LONG_429_THRESHOLD_MS = 3_600_000
OVERLOAD_COOLDOWN_S = 30.0
ERROR_COOLDOWN_S = 60.0
FATAL_COOLDOWN_S = 86_400.0
QUOTA_SOFT_MARGIN = 0.95
MINUTE_WINDOW_S = 60.0


@dataclass
class _State:
    has_credential: bool
    daily_used: int
    daily_limit: int | None
    minute_limit: int
    per_model_daily_limits: dict[str, int | None]
    reliability: float = 1.0
    cool_until: float = 0.0
    last_success: float = 0.0
    recent_successes: deque[float] = field(default_factory=deque)


class ProviderHealth:
    """Thread-safe health registry shared by every in-flight request."""

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._states: dict[str, _State] = {}
        self._lock = threading.Lock()

    # ── Registration ─────────────────────────────────────────
    def register(self, name: str, config: ProviderConfig) -> None:
        limits = dict(config.per_model_daily_quota)
        daily_limit = next(iter(limits.values())) if limits else DEFAULT_DAILY_LIMIT
        with self._lock:
            self._states[name] = _State(
                has_credential=True,
                daily_used=0,
                daily_limit=daily_limit,
                minute_limit=config.default_per_minute_quota,
                per_model_daily_limits=limits,
            )
        self._publish(name)

    def providers(self) -> list[str]:
        with self._lock:
            return list(self._states)

    # ── Queries ──────────────────────────────────────────────
    def get(self, provider: str, model: str | None = None) -> HealthSnapshot | None:
        """Snapshot of ``provider``; a per-model quota override replaces the limit."""
        with self._lock:
            state = self._states.get(provider)
            if state is None:
                return None
            return self._snapshot(provider, state, model)

    def snapshots(self) -> list[HealthSnapshot]:
        with self._lock:
            return [self._snapshot(name, s, None) for name, s in self._states.items()]

    def is_available(self, provider: str, model: str | None = None) -> bool:
        h = self.get(provider, model)
        if h is None or not h.has_credential:
            return False
        if h.cool_until > self._clock():
            return False
        if h.daily_limit is not None and h.daily_used >= h.daily_limit * QUOTA_SOFT_MARGIN:
            return False
        return True

    def score(self, provider: str, model: str | None = None) -> float:
        """Remaining daily headroom × reliability; a ranking signal, never a gate."""
        h = self.get(provider, model)
        if h is None:
            return 0.0
        if h.daily_limit is None:
            return h.reliability
        if h.daily_limit <= 0:
            return 0.0
        headroom = 1.0 - h.daily_used / h.daily_limit
        return min(1.0, max(0.0, headroom * h.reliability))

    # ── Mutators ─────────────────────────────────────────────
    def on_success(self, provider: str) -> None:
        with self._lock:
            state = self._states.get(provider)
            if state is None:
                return
            now = self._clock()
            state.daily_used += 1
            state.last_success = now
            state.reliability = _clamp(state.reliability * 0.9 + 0.1)
            state.recent_successes.append(now)
            self._evict(state, now)
        self._publish(provider)

    def on_429(self, provider: str, retry_after_ms: int | None = None) -> None:
        cooldown_ms = retry_after_ms or DEFAULT_429_COOLDOWN_MS
        with self._lock:
            state = self._states.get(provider)
            if state is None:
                return
            if retry_after_ms is not None and retry_after_ms > LONG_429_THRESHOLD_MS:
                # Treated as daily quota exhaustion until the next epoch reset
                if state.daily_limit is not None:
                    state.daily_used = max(state.daily_used, state.daily_limit)
            state.cool_until = self._clock() + cooldown_ms / 1000.0
        logger.warning(
            "provider_cooldown_429",
            provider=provider,
            cooldown_s=round(cooldown_ms / 1000.0, 1),
            quota_exhausted=bool(retry_after_ms and retry_after_ms > LONG_429_THRESHOLD_MS),
        )
        self._publish(provider)

    def on_503(self, provider: str) -> None:
        self._penalise(provider, cooldown_s=OVERLOAD_COOLDOWN_S, factor=0.8, event="provider_overloaded")

    def on_error(self, provider: str) -> None:
        self._penalise(provider, cooldown_s=ERROR_COOLDOWN_S, factor=0.5, event="provider_error")

    def on_fatal(self, provider: str) -> None:
        self._penalise(provider, cooldown_s=FATAL_COOLDOWN_S, factor=0.0, event="provider_fatal")

    def reset_all_rpd(self) -> None:
        """Quota-epoch boundary: clear daily usage, partially restore trust."""
        with self._lock:
            for state in self._states.values():
                state.daily_used = 0
                state.reliability = _clamp(state.reliability * 0.8 + 0.2)
            names = list(self._states)
        for name in names:
            self._publish(name)
        logger.info("provider_daily_quota_reset", providers=len(names))

    # ── Internals ────────────────────────────────────────────
    def _penalise(self, provider: str, *, cooldown_s: float, factor: float, event: str) -> None:
        with self._lock:
            state = self._states.get(provider)
            if state is None:
                return
            state.cool_until = self._clock() + cooldown_s
            state.reliability = _clamp(state.reliability * factor)
            reliability = state.reliability
        logger.warning(event, provider=provider, cooldown_s=cooldown_s, reliability=round(reliability, 3))
        self._publish(provider)

    def _snapshot(self, name: str, state: _State, model: str | None) -> HealthSnapshot:
        """Pure view of ``state`` (caller holds lock)."""
        daily_limit = state.daily_limit
        if model is not None and model in state.per_model_daily_limits:
            daily_limit = state.per_model_daily_limits[model]
        self._evict(state, self._clock())
        return HealthSnapshot(
            provider=name,
            has_credential=state.has_credential,
            daily_used=state.daily_used,
            daily_limit=daily_limit,
            minute_used=len(state.recent_successes),
            minute_limit=state.minute_limit,
            reliability=state.reliability,
            cool_until=state.cool_until,
            last_success=state.last_success,
        )

    @staticmethod
    def _evict(state: _State, now: float) -> None:
        """Drop successes older than the minute window (caller holds lock)."""
        cutoff = now - MINUTE_WINDOW_S
        while state.recent_successes and state.recent_successes[0] < cutoff:
            state.recent_successes.popleft()

    def _publish(self, provider: str) -> None:
        h = self.get(provider)
        if h is None:
            return
        PROVIDER_RELIABILITY.labels(provider=provider).set(h.reliability)
        PROVIDER_DAILY_USED.labels(provider=provider).set(h.daily_used)


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))
