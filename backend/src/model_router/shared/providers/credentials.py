"""Credential pool: rotation and per-key cooldown for one provider.

Each ``complete()`` call draws exactly one key: round-robin over keys that
are not cooling down.  When every key is cooling, the one whose cooldown
ends first is released early so the call still goes out.  Rotation happens
between calls, never as a second live call for the same candidate.
"""

from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Callable, Sequence

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class KeyState:
    """State for a single API key."""

    api_key: str
    index: int
    cool_until: float = 0.0


class CredentialPool:
    """Round-robin pool of API keys with optional call spacing."""

    def __init__(
        self,
        provider: str,
        api_keys: Sequence[str],
        *,
        min_interval_s: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.provider = provider
        self._keys = [KeyState(api_key=k, index=i) for i, k in enumerate(api_keys)]
        self._min_interval = min_interval_s
        self._clock = clock
        self._lock = threading.Lock()
        self._rr_index = 0
        self._last_call = 0.0
        self._throttle = asyncio.Lock()

    @property
    def key_count(self) -> int:
        return len(self._keys)

    def select_key(self) -> KeyState | None:
        """Next key not cooling down, or the earliest to recover."""
        with self._lock:
            count = len(self._keys)
            if count == 0:
                return None

            now = self._clock()
            for i in range(count):
                idx = (self._rr_index + i) % count
                ks = self._keys[idx]
                if ks.cool_until <= now:
                    self._rr_index = (idx + 1) % count
                    return ks

            earliest = min(self._keys, key=lambda k: k.cool_until)
            earliest.cool_until = 0.0
            self._rr_index = (earliest.index + 1) % count
            logger.debug("credential_pool_all_cooling", provider=self.provider, released=earliest.index)
            return earliest

    async def acquire(self) -> KeyState | None:
        """``select_key`` spaced at least ``min_interval_s`` after the previous call."""
        if self._min_interval <= 0:
            return self.select_key()
        async with self._throttle:
            wait = self._last_call + self._min_interval - self._clock()
            if wait > 0:
                await asyncio.sleep(wait)
            self._last_call = self._clock()
            return self.select_key()

    def min_cooldown_remaining(self) -> float:
        """Seconds until the first key is usable again; 0 while any key is ready."""
        now = self._clock()
        with self._lock:
            if not self._keys:
                return 0.0
            return max(0.0, min(k.cool_until for k in self._keys) - now)

    def mark_cooldown(self, key_index: int, duration_s: float) -> None:
        with self._lock:
            if 0 <= key_index < len(self._keys):
                self._keys[key_index].cool_until = self._clock() + duration_s
        logger.info(
            "credential_cooldown",
            provider=self.provider,
            key_index=key_index,
            cooldown_s=round(duration_s, 1),
        )
