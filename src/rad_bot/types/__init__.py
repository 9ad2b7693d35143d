from .chat import (
    AssistantTextMessage,
    AssistantToolCallMessage,
    ChatMessage,
    MessageRecord,
    SystemMessage,
    ToolResultMessage,
    UserMessage,
    message_from_record,
)
from .stream import ContentDelta, ReasoningEvent, StreamDone, StreamEvent, ToolCallIdentified
from .tool import ToolCall, ToolResult, ToolUse
from .usage import TrackingContext, UsageRecord

__all__ = [
    "AssistantTextMessage",
    "AssistantToolCallMessage",
    "ChatMessage",
    "MessageRecord",
    "SystemMessage",
    "ToolResultMessage",
    "UserMessage",
    "message_from_record",
    "ContentDelta",
    "ReasoningEvent",
    "StreamDone",
    "StreamEvent",
    "ToolCallIdentified",
    "ToolCall",
    "ToolResult",
    "ToolUse",
    "TrackingContext",
    "UsageRecord",
]
