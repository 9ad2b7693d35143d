"""
rad-bot - conversation orchestration for an LLM-backed Telegram assistant.
"""

from ._exceptions import LLMClientError
from .adapters import ChatOptions, ChatResult, OpenRouterRequestAdapter
from .client import OpenRouterClient
from .config import ModelCapabilities, Settings, TurnSettings, get_api_key
from .factory import create_client, create_orchestrator
from .history import (
    remove_orphaned_tool_messages,
    trim_conversation_history,
    trim_conversation_history_by_tokens,
    validate_message_history,
)
from .orchestrator import ConversationOrchestrator, TurnRequest
from .tools import ToolCatalog, ToolDispatcher
from .usage import InMemoryUsageStore, UsageRecorder

__version__ = "0.1.0"

__all__ = [
    "LLMClientError",
    "ChatOptions",
    "ChatResult",
    "OpenRouterRequestAdapter",
    "OpenRouterClient",
    "ModelCapabilities",
    "Settings",
    "TurnSettings",
    "get_api_key",
    "create_client",
    "create_orchestrator",
    "remove_orphaned_tool_messages",
    "trim_conversation_history",
    "trim_conversation_history_by_tokens",
    "validate_message_history",
    "ConversationOrchestrator",
    "TurnRequest",
    "ToolCatalog",
    "ToolDispatcher",
    "InMemoryUsageStore",
    "UsageRecorder",
]
