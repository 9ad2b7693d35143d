"""Typed events produced by ``OpenRouterClient.stream_chat``."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional, Union

from rad_bot.types.tool import ToolCall

__all__ = [
    "ReasoningEvent",
    "ContentDelta",
    "ToolCallIdentified",
    "StreamDone",
    "StreamEvent",
]


@dataclass(frozen=True, slots=True)
class ReasoningEvent:
    """Reasoning text became available (reasoning-capable models only)."""
    text: str
    details: Any = None
    type: ClassVar[str] = "reasoning"


@dataclass(frozen=True, slots=True)
class ContentDelta:
    text: str
    type: ClassVar[str] = "content"


@dataclass(frozen=True, slots=True)
class ToolCallIdentified:
    """
    The name of the tool call at ``index`` is known.

    Arguments may still be streaming; complete calls are only exposed on
    ``StreamDone``.
    """
    index: int
    id: str
    name: str
    type: ClassVar[str] = "tool_call"


@dataclass(frozen=True, slots=True)
class StreamDone:
    """Terminal event of a successful stream."""
    finish_reason: str
    content: str
    reasoning_details: Optional[list[Any]] = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    type: ClassVar[str] = "done"


StreamEvent = Union[ReasoningEvent, ContentDelta, ToolCallIdentified, StreamDone]
