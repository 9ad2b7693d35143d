"""Role-tagged chat messages used throughout the conversation pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Optional, Union

__all__ = [
    "SystemMessage",
    "UserMessage",
    "AssistantTextMessage",
    "AssistantToolCallMessage",
    "ToolResultMessage",
    "ChatMessage",
    "MessageRecord",
    "message_from_record",
]


@dataclass(frozen=True, slots=True)
class SystemMessage:
    content: str
    role: ClassVar[str] = "system"


@dataclass(frozen=True, slots=True)
class UserMessage:
    content: str
    role: ClassVar[str] = "user"


@dataclass(frozen=True, slots=True)
class AssistantTextMessage:
    content: str
    role: ClassVar[str] = "assistant"


@dataclass(frozen=True, slots=True)
class AssistantToolCallMessage:
    """
    One tool call issued by the assistant.

    Several of these in a row form a single LLM response with multiple tool
    calls; the request adapter collapses such a run into one wire message.
    ``reasoning_details`` is the opaque provider payload that must be replayed
    alongside the call for reasoning models.
    """

    tool_call_id: str
    tool_name: str
    tool_args: str = "{}"
    content: str = ""
    reasoning_details: Any = None
    role: ClassVar[str] = "assistant"


@dataclass(frozen=True, slots=True)
class ToolResultMessage:
    """Result of a tool call, correlated to the call by ``tool_call_id``."""

    tool_call_id: str
    content: str
    tool_name: Optional[str] = None
    role: ClassVar[str] = "tool"


ChatMessage = Union[
    SystemMessage,
    UserMessage,
    AssistantTextMessage,
    AssistantToolCallMessage,
    ToolResultMessage,
]


@dataclass(slots=True)
class MessageRecord:
    """A message as persisted by the message store."""

    role: str
    content: str
    tool_call_id: Optional[str] = None
    tool_name: Optional[str] = None
    tool_args: Optional[str] = None


def message_from_record(record: MessageRecord) -> ChatMessage:
    """
    Map a stored record onto the message union.

    Assistant records only become tool calls when they carry both a call id and
    a tool name; a tool record without a call id keeps an empty id so the
    history sanitizer treats it as an orphan.
    """
    content = record.content or ""
    if record.role == "user":
        return UserMessage(content)
    if record.role == "system":
        return SystemMessage(content)
    if record.role == "tool":
        return ToolResultMessage(
            tool_call_id=record.tool_call_id or "",
            content=content,
            tool_name=record.tool_name,
        )
    if record.role == "assistant":
        if record.tool_call_id and record.tool_name:
            return AssistantToolCallMessage(
                tool_call_id=record.tool_call_id,
                tool_name=record.tool_name,
                tool_args=record.tool_args or "{}",
                content=content,
            )
        return AssistantTextMessage(content)
    raise ValueError(f"Unknown message role: {record.role!r}")
