"""Token and cost accounting for a single LLM call."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

__all__ = ["TrackingContext", "UsageRecord"]


@dataclass(frozen=True, slots=True)
class TrackingContext:
    """Who an LLM call is accounted to."""

    telegram_user_id: str
    session_id: Optional[str] = None
    message_id: Optional[str] = None


@dataclass(slots=True)
class UsageRecord:
    """One row of usage telemetry; append-only."""

    context: TrackingContext
    model: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cached_tokens: int = 0
    cache_write_tokens: int = 0
    reasoning_tokens: int = 0
    audio_tokens: int = 0
    cost: float = 0.0
    upstream_cost: Optional[float] = None
    finish_reason: Optional[str] = None
    has_tool_calls: bool = False
    tool_call_count: int = 0
    request_duration_ms: int = 0
