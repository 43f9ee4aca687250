"""Tests for the quota-epoch scheduler."""

from __future__ import annotations

import asyncio
from datetime import datetime
from unittest.mock import MagicMock, patch
from zoneinfo import ZoneInfo

import pytest

from model_router.shared.providers.scheduler import QuotaEpochScheduler, seconds_until_epoch_reset

PACIFIC = ZoneInfo("America/Los_Angeles")


class TestSecondsUntilEpochReset:
    def test_one_hour_before_midnight(self) -> None:
        now = datetime(2025, 1, 15, 23, 0, tzinfo=PACIFIC)
        assert seconds_until_epoch_reset(now=now) == pytest.approx(3600)

    def test_margin_is_added(self) -> None:
        now = datetime(2025, 1, 15, 23, 0, tzinfo=PACIFIC)
        assert seconds_until_epoch_reset(margin_s=30, now=now) == pytest.approx(3630)

    def test_converts_from_other_timezones(self) -> None:
        # 07:00 UTC on Jan 16 is 23:00 on Jan 15 in Los Angeles (PST, UTC-8)
        now = datetime(2025, 1, 16, 7, 0, tzinfo=ZoneInfo("UTC"))
        assert seconds_until_epoch_reset(now=now) == pytest.approx(3600)

    def test_just_after_midnight_waits_a_full_day(self) -> None:
        now = datetime(2025, 6, 1, 0, 0, 1, tzinfo=PACIFIC)
        assert seconds_until_epoch_reset(now=now) == pytest.approx(86_399)

    def test_dst_transition_day_is_shorter(self) -> None:
        # Clocks jump forward at 02:00 on 2025-03-09 in Los Angeles
        now = datetime(2025, 3, 9, 1, 0, tzinfo=PACIFIC)
        assert seconds_until_epoch_reset(now=now) == pytest.approx(22 * 3600)

    def test_custom_timezone(self) -> None:
        tokyo = ZoneInfo("Asia/Tokyo")
        now = datetime(2025, 3, 1, 12, 0, tzinfo=tokyo)
        assert seconds_until_epoch_reset("Asia/Tokyo", now=now) == pytest.approx(12 * 3600)


class TestQuotaEpochScheduler:
    @pytest.mark.asyncio
    async def test_resets_health_at_each_epoch(self) -> None:
        health = MagicMock()
        scheduler = QuotaEpochScheduler(health, margin_s=0)
        with patch(
            "model_router.shared.providers.scheduler.seconds_until_epoch_reset",
            return_value=0.0,
        ):
            scheduler.start()
            assert scheduler.running is True
            for _ in range(5):
                await asyncio.sleep(0)
            await scheduler.stop()

        assert health.reset_all_rpd.call_count >= 1
        assert scheduler.running is False

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self) -> None:
        scheduler = QuotaEpochScheduler(MagicMock())
        scheduler.start()
        task = scheduler._task
        scheduler.start()
        assert scheduler._task is task
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_stop_without_start(self) -> None:
        scheduler = QuotaEpochScheduler(MagicMock())
        await scheduler.stop()
        assert scheduler.running is False
