"""
Translate noisy OpenAI-SDK tracebacks into a single `LLMClientError`, while
preserving the original exception for full tracebacks.
"""

from __future__ import annotations

import logging
from typing import Final, Optional, Type

import openai

__all__: tuple[str, ...] = ("LLMClientError", "classify_error", "CONN_ERRORS")


class LLMClientError(RuntimeError):
    """Client-level exception raised by ``chat`` and ``stream_chat``.

    Attributes:
        original_exc: The underlying SDK or stream exception, if any.
    """

    original_exc: Optional[Exception]

    def __init__(self, message: str, original_exc: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.original_exc = original_exc
        self.__cause__ = original_exc


CONN_ERRORS: Final[tuple[Type[BaseException], ...]] = (
    openai.APIConnectionError,
    TimeoutError,
    ConnectionError,
)

RATE_LIMIT_ERRORS: Final[tuple[Type[BaseException], ...]] = (openai.RateLimitError,)

API_ERRORS: Final[tuple[Type[BaseException], ...]] = (openai.APIError,)


def classify_error(exc: Exception, logger: Optional[logging.Logger] = None) -> str:
    """Return a short label for an SDK exception and log it."""
    log = logger or logging.getLogger("rad_bot.exceptions")

    if isinstance(exc, RATE_LIMIT_ERRORS):
        label = "Rate limit exceeded"
    elif isinstance(exc, CONN_ERRORS):
        label = "Connection problem"
    elif isinstance(exc, API_ERRORS):
        status = getattr(exc, "status_code", "unknown")
        label = f"API error ({status})"
    else:
        label = exc.__class__.__name__

    log.error("%s: %s", label, exc)
    return label
