"""
Settings for rad-bot.

Static settings come from the environment; a ``.env`` file is loaded when the
API key is looked up.
Runtime settings that admins change while the bot runs are read from the
system config store at the start of every turn.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Final, Optional

from dotenv import load_dotenv

from rad_bot.store import SystemConfig

__all__ = [
    "DEFAULT_MODEL",
    "OPENROUTER_BASE_URL",
    "ModelCapabilities",
    "CapabilityResolver",
    "Settings",
    "TurnSettings",
    "get_api_key",
]

DEFAULT_MODEL: Final = "anthropic/claude-3.5-sonnet"
OPENROUTER_BASE_URL: Final = "https://openrouter.ai/api/v1"

# Gemini models reject replayed tool calls whose reasoning was not preserved,
# and only they emit reasoning_details through OpenRouter.
_DEFAULT_NO_TOOL_REPLAY: Final[tuple[str, ...]] = ("gemini", "google")
_DEFAULT_REASONING: Final[tuple[str, ...]] = ("gemini", "google")


def get_api_key() -> str:
    """Return the OpenRouter API key or raise RuntimeError."""
    load_dotenv()
    key = os.getenv("OPENROUTER_API_KEY")
    if not key:
        raise RuntimeError("OPENROUTER_API_KEY missing")
    return key


def _split(value: Optional[str], default: tuple[str, ...]) -> tuple[str, ...]:
    if value is None:
        return default
    return tuple(part.strip().lower() for part in value.split(",") if part.strip())


@dataclass(frozen=True, slots=True)
class ModelCapabilities:
    supports_tool_replay: bool = True
    reasoning: bool = False


@dataclass(frozen=True, slots=True)
class CapabilityResolver:
    """Maps a model id to its capabilities using configured id markers."""

    no_tool_replay_markers: tuple[str, ...] = _DEFAULT_NO_TOOL_REPLAY
    reasoning_markers: tuple[str, ...] = _DEFAULT_REASONING

    def for_model(self, model: str) -> ModelCapabilities:
        model_id = model.lower()
        return ModelCapabilities(
            supports_tool_replay=not any(m in model_id for m in self.no_tool_replay_markers),
            reasoning=any(m in model_id for m in self.reasoning_markers),
        )


@dataclass(frozen=True, slots=True)
class Settings:
    api_key: str
    model: str = DEFAULT_MODEL
    base_url: str = OPENROUTER_BASE_URL
    timeout: float = 60.0
    max_retries: int = 2
    capabilities: CapabilityResolver = field(default_factory=CapabilityResolver)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            api_key=get_api_key(),
            model=os.getenv("DEFAULT_AI_MODEL") or DEFAULT_MODEL,
            base_url=os.getenv("OPENROUTER_BASE_URL") or OPENROUTER_BASE_URL,
            timeout=float(os.getenv("OPENROUTER_TIMEOUT", "60")),
            max_retries=int(os.getenv("OPENROUTER_MAX_RETRIES", "2")),
            capabilities=CapabilityResolver(
                no_tool_replay_markers=_split(
                    os.getenv("NO_TOOL_REPLAY_MODELS"), _DEFAULT_NO_TOOL_REPLAY
                ),
                reasoning_markers=_split(os.getenv("REASONING_MODELS"), _DEFAULT_REASONING),
            ),
        )


def _int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


@dataclass(frozen=True, slots=True)
class TurnSettings:
    """Runtime options read from the system config store for one turn."""

    max_tool_calls: int = 30
    history_mode: str = "message_count"
    history_limit: int = 20
    middle_out: bool = True
    show_reasoning: bool = True

    @classmethod
    async def load(cls, config: SystemConfig) -> "TurnSettings":
        history_mode = await config.get_system_config("CHAT_HISTORY_MODE") or "message_count"
        default_limit = 4000 if history_mode == "token_size" else 20
        return cls(
            max_tool_calls=_int(await config.get_system_config("maxToolCalls"), 30),
            history_mode=history_mode,
            history_limit=_int(await config.get_system_config("CHAT_HISTORY_LIMIT"), default_limit),
            middle_out=(await config.get_system_config("ENABLE_MIDDLE_OUT_TRANSFORM")) != "false",
            show_reasoning=(await config.get_system_config("SHOW_REASONING_TO_USERS")) != "false",
        )
