"""
Provider-neutral dataclasses for tool use.

They are intentionally minimal: routing and execution live in ``rad_bot.tools``.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

__all__ = ["ToolCall", "ToolResult", "ToolUse"]


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A tool call requested by the LLM; ``arguments`` is the raw JSON string."""
    id: str
    name: str
    arguments: str = "{}"


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Normalized outcome of any tool executor."""
    success: bool
    content: str = ""
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str) -> "ToolResult":
        return cls(success=False, content="", error=error)

    def as_message_content(self) -> str:
        """Text handed back to the LLM as the ``tool`` message."""
        if self.success:
            return self.content
        return f"Error: {self.error or 'Unknown error'}"


@dataclass(slots=True)
class ToolUse:
    """A tool invocation as shown to the user in process summaries."""
    name: str
    args: Any = None
