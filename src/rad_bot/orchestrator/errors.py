"""User-facing error messages for failed turns."""

from __future__ import annotations

import re
from typing import Optional

import openai

from rad_bot._exceptions import CONN_ERRORS
from rad_bot.config import ModelCapabilities

__all__ = [
    "NETWORK_ERROR_MESSAGE",
    "PLAIN_ERROR_MESSAGE",
    "describe_error",
    "is_connectivity_error",
    "model_family",
    "streaming_error_message",
]

PLAIN_ERROR_MESSAGE = "❌ Sorry, I encountered an error. Please try again."

GENERIC_ERROR_MESSAGE = (
    "<b>❌ Something went wrong</b>\n\n"
    "I couldn't process your message. Please try again in a moment."
)

# substrings of stream failures caused by a dropped connection
_DROPPED_SIGNATURES = (
    "stream terminated",
    "socket",
    "econnreset",
    "connection error",
    "connection reset",
    "connection closed",
    "premature close",
)

# an HTTP status in the text means the provider answered
_STATUS_CODE = re.compile(r"\b[45]\d\d\b")


def model_family(model: str) -> str:
    model_id = model.lower()
    if "gemini" in model_id:
        return "Gemini"
    if "claude" in model_id:
        return "Claude"
    if "gpt" in model_id:
        return "GPT"
    return "AI model"


def _rate_limit(model: str) -> str:
    return (
        "<b>⏳ Rate limit reached</b>\n\n"
        f"The {model_family(model)} provider is temporarily limiting requests.\n\n"
        "<b>What to do:</b>\n"
        "• Wait a minute and send your message again\n"
        "• Your message has been saved\n\n"
        "<i>Free and shared models are rate-limited more often.</i>"
    )


NETWORK_ERROR_MESSAGE = (
    "<b>🌐 Network problem</b>\n\n"
    "The connection to the AI service failed.\n\n"
    "<b>Try:</b>\n"
    "• Waiting a few seconds and retrying\n"
    "• Checking that the service is reachable\n"
    "• Contacting an admin if this keeps happening"
)

_NO_TOOL_SUPPORT = (
    "<b>🔧 Model not compatible</b>\n\n"
    "The configured model does not support tool use, which this bot needs.\n\n"
    "<b>Compatible models:</b>\n"
    "• anthropic/claude-3.5-sonnet\n"
    "• openai/gpt-4-turbo\n"
    "• google/gemini-pro-1.5\n\n"
    "<i>Ask an admin to switch the model.</i>"
)

_CREDITS = (
    "<b>💳 Out of credits</b>\n\n"
    "The AI account has run out of credits or quota.\n\n"
    "Please ask an admin to top it up."
)

_AUTH = (
    "<b>🔑 Authentication failed</b>\n\n"
    "The AI service rejected the API key.\n\n"
    "Please ask an admin to check the configuration."
)

_TOO_LARGE = (
    "<b>⚠️ Response Too Large</b>\n\n"
    "The data returned is too large to process. This usually happens with:\n"
    "• Viewing too many tasks at once (try limiting to specific projects)\n"
    "• Long time periods with lots of activity\n"
    "• Cards with very long descriptions\n\n"
    "<b>💡 What to do:</b>\n"
    "• Ask for a specific project or time period\n"
    "• Request a summary instead of full details\n"
    "• Break your request into smaller queries\n\n"
    '<i>Example: "Show me overdue tasks only" or "Summary of my tasks"</i>'
)

_TIMEOUT = (
    "<b>⌛ Request timed out</b>\n\n"
    "The AI took too long to answer.\n\n"
    "<b>Try:</b>\n"
    "• Simplifying your request\n"
    "• Retrying in a moment\n"
    "• Breaking it into smaller questions"
)


def describe_error(error: BaseException, model: str) -> str:
    """Map an error to an actionable HTML message by matching its text."""
    text = str(error).lower()

    if any(p in text for p in ("429", "rate limit", "temporarily rate-limited", "provider returned error")):
        return _rate_limit(model)
    if any(p in text for p in ("network connection failed", "socket hang up", "econnreset")):
        return NETWORK_ERROR_MESSAGE
    if "tool use" in text or "endpoints found" in text:
        return _NO_TOOL_SUPPORT
    if "insufficient credits" in text or "quota" in text:
        return _CREDITS
    if "unauthorized" in text or "401" in text:
        return _AUTH
    if "maximum context length" in text or "tokens" in text:
        return _TOO_LARGE
    if "timeout" in text or "timed out" in text:
        return _TIMEOUT
    return GENERIC_ERROR_MESSAGE


def is_connectivity_error(error: BaseException) -> bool:
    """
    True if a streaming failure looks like a dropped connection.

    Errors the provider answered with (an ``APIStatusError`` or a status code
    in the text) are not connectivity problems; ``describe_error`` explains
    them instead.
    """
    original: Optional[BaseException] = getattr(error, "original_exc", None)
    if isinstance(error, CONN_ERRORS) or isinstance(original, CONN_ERRORS):
        return True
    if isinstance(error, openai.APIStatusError) or isinstance(original, openai.APIStatusError):
        return False
    text = str(error).lower()
    if _STATUS_CODE.search(text):
        return False
    return any(signature in text for signature in _DROPPED_SIGNATURES)


def streaming_error_message(model: str, capabilities: ModelCapabilities) -> str:
    message = (
        "<b>📡 Connection interrupted</b>\n\n"
        "The response stream was cut off before it finished.\n\n"
    )
    if not capabilities.supports_tool_replay:
        return message + (
            f"💡 <b>Note:</b> {model_family(model)} models drop long streaming "
            "connections more often than others.\n\n"
            "<b>What to do:</b>\n"
            "• Send your message again\n"
            "• Ask an admin to switch models if this keeps happening\n"
        )
    return message + (
        "💡 <b>Try:</b>\n"
        "• Sending your message again\n"
        "• Simplifying your request\n"
    )
