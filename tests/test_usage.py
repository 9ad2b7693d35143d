"""Tests for usage recording."""

import logging

import pytest

from rad_bot.types.usage import TrackingContext, UsageRecord
from rad_bot.usage import InMemoryUsageStore, UsageRecorder


def usage(user="42", session="s1", tokens=100, cost=0.01):
    return UsageRecord(
        context=TrackingContext(user, session, "m1"),
        model="anthropic/claude-3.5-sonnet",
        prompt_tokens=tokens - 20,
        completion_tokens=20,
        total_tokens=tokens,
        cost=cost,
    )


class FailingStore:
    async def save_usage(self, usage):
        raise RuntimeError("database is locked")


class TestUsageRecorder:
    @pytest.mark.asyncio
    async def test_records_in_background(self):
        """Test that usage is saved in the background."""
        store = InMemoryUsageStore()
        recorder = UsageRecorder(store)

        recorder.record(usage())
        recorder.record(usage(tokens=50))
        assert recorder.pending == 2

        await recorder.drain()

        assert recorder.pending == 0
        assert len(store.records) == 2
        stats = store.user_stats("42")
        assert stats.requests == 2
        assert stats.total_tokens == 150
        assert stats.cost == pytest.approx(0.02)
        assert store.session_stats("s1").requests == 2

    @pytest.mark.asyncio
    async def test_failures_are_logged_not_raised(self, caplog):
        """Test that save failures are logged, not raised."""
        recorder = UsageRecorder(FailingStore())

        with caplog.at_level(logging.ERROR, logger="rad_bot.usage"):
            recorder.record(usage())
            await recorder.drain()

        assert "database is locked" in caplog.text

    def test_outside_event_loop(self, caplog):
        """Test recording outside a running event loop."""
        recorder = UsageRecorder(InMemoryUsageStore())
        with caplog.at_level(logging.ERROR, logger="rad_bot.usage"):
            recorder.record(usage())
        assert recorder.pending == 0
        assert "outside a running event loop" in caplog.text


class TestInMemoryUsageStore:
    @pytest.mark.asyncio
    async def test_totals_per_user(self):
        """Test usage totals per user and session."""
        store = InMemoryUsageStore()
        await store.save_usage(usage(user="1"))
        await store.save_usage(usage(user="2", session=None))

        assert store.user_stats("1").requests == 1
        assert store.user_stats("2").requests == 1
        assert store.user_stats("3").requests == 0
        assert store.session_stats("s1").requests == 1
