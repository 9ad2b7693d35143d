"""
Best-effort usage telemetry.

``UsageRecorder.record`` never blocks and never raises: each record is saved in
a background task and failures are logged. Call ``drain`` (the client does so
on ``aclose``) to wait for pending writes.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from rad_bot.types.usage import UsageRecord

__all__ = [
    "UsageSink",
    "UsageStore",
    "UsageRecorder",
    "UsageStats",
    "InMemoryUsageStore",
]


@runtime_checkable
class UsageSink(Protocol):
    def record(self, usage: UsageRecord) -> None:
        ...


@runtime_checkable
class UsageStore(Protocol):
    async def save_usage(self, usage: UsageRecord) -> None:
        ...


class UsageRecorder:
    """Schedules ``UsageStore.save_usage`` without awaiting it."""

    def __init__(self, store: UsageStore, *, logger: Optional[logging.Logger] = None) -> None:
        self._store = store
        self._pending: set[asyncio.Task[None]] = set()
        self.logger = logger or logging.getLogger(__name__)

    def record(self, usage: UsageRecord) -> None:
        try:
            task = asyncio.get_running_loop().create_task(self._save(usage))
        except RuntimeError:
            self.logger.error("Cannot record usage outside a running event loop")
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _save(self, usage: UsageRecord) -> None:
        try:
            await self._store.save_usage(usage)
        except Exception as exc:
            self.logger.error(
                "Failed to save usage for user %s (%s): %s",
                usage.context.telegram_user_id,
                usage.model,
                exc,
            )

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending))


@dataclass(slots=True)
class UsageStats:
    requests: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    reasoning_tokens: int = 0
    cached_tokens: int = 0
    cost: float = 0.0

    def add(self, usage: UsageRecord) -> None:
        self.requests += 1
        self.prompt_tokens += usage.prompt_tokens
        self.completion_tokens += usage.completion_tokens
        self.total_tokens += usage.total_tokens
        self.reasoning_tokens += usage.reasoning_tokens
        self.cached_tokens += usage.cached_tokens
        self.cost += usage.cost


class InMemoryUsageStore:
    """Append-only usage log with per-user and per-session totals."""

    def __init__(self) -> None:
        self.records: list[UsageRecord] = []
        self._by_user: dict[str, UsageStats] = defaultdict(UsageStats)
        self._by_session: dict[str, UsageStats] = defaultdict(UsageStats)

    async def save_usage(self, usage: UsageRecord) -> None:
        self.records.append(usage)
        self._by_user[usage.context.telegram_user_id].add(usage)
        if usage.context.session_id:
            self._by_session[usage.context.session_id].add(usage)

    def user_stats(self, telegram_user_id: str) -> UsageStats:
        return self._by_user.get(telegram_user_id, UsageStats())

    def session_stats(self, session_id: str) -> UsageStats:
        return self._by_session.get(session_id, UsageStats())
