from .openrouter import (
    DEFAULT_SYSTEM_PROMPT,
    ChatOptions,
    ChatResult,
    OpenRouterRequestAdapter,
)

__all__ = [
    "DEFAULT_SYSTEM_PROMPT",
    "ChatOptions",
    "ChatResult",
    "OpenRouterRequestAdapter",
]
