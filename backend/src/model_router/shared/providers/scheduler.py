"""Quota-epoch scheduler: resets daily quotas at each epoch boundary.

Providers reset their free-tier daily quotas at midnight in one timezone
(Pacific for the current set).  The scheduler sleeps until that boundary
plus a small safety margin, calls ``ProviderHealth.reset_all_rpd()`` and
re-arms itself.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import structlog

from model_router.shared.providers.health import ProviderHealth

logger = structlog.get_logger(__name__)

DEFAULT_EPOCH_TIMEZONE = "America/Los_Angeles"


def seconds_until_epoch_reset(
    timezone: str = DEFAULT_EPOCH_TIMEZONE,
    *,
    margin_s: float = 0.0,
    now: datetime | None = None,
) -> float:
    """Seconds from ``now`` until the next local midnight in ``timezone``."""
    tz = ZoneInfo(timezone)
    local_now = now.astimezone(tz) if now is not None else datetime.now(tz)
    next_midnight = datetime.combine(
        local_now.date() + timedelta(days=1),
        datetime.min.time(),
        tzinfo=tz,
    )
    # Elapsed seconds, not wall-clock difference (DST days are 23 or 25 h)
    return next_midnight.timestamp() - local_now.timestamp() + margin_s


class QuotaEpochScheduler:
    """Background task invoking ``reset_all_rpd`` once per quota epoch."""

    def __init__(
        self,
        health: ProviderHealth,
        *,
        timezone: str = DEFAULT_EPOCH_TIMEZONE,
        margin_s: float = 30.0,
    ) -> None:
        self._health = health
        self._timezone = timezone
        self._margin = margin_s
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="quota-epoch-scheduler")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        while True:
            delay = seconds_until_epoch_reset(self._timezone, margin_s=self._margin)
            logger.info("quota_epoch_scheduled", timezone=self._timezone, in_s=round(delay))
            await asyncio.sleep(delay)
            self._health.reset_all_rpd()
