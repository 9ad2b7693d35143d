from .conversation import ConversationOrchestrator, TurnRequest
from .errors import describe_error, is_connectivity_error, streaming_error_message
from .response import (
    ReasoningStep,
    build_empty_search_notification,
    build_expandable_summary,
    build_final_response,
)
from .streaming import StreamDisplay, StreamOutcome, consume_stream
from .tool_loop import ToolLoop, TurnState

__all__ = [
    "ConversationOrchestrator",
    "TurnRequest",
    "describe_error",
    "is_connectivity_error",
    "streaming_error_message",
    "ReasoningStep",
    "build_empty_search_notification",
    "build_expandable_summary",
    "build_final_response",
    "StreamDisplay",
    "StreamOutcome",
    "consume_stream",
    "ToolLoop",
    "TurnState",
]
