"""Tests for environment settings and per-turn settings."""

import pytest

from rad_bot.config import (
    DEFAULT_MODEL,
    CapabilityResolver,
    Settings,
    TurnSettings,
    get_api_key,
)
from rad_bot.store import InMemorySystemConfig


class TestEnvironmentSettings:
    def test_missing_api_key(self, monkeypatch):
        """Test that a missing API key raises."""
        monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
        with pytest.raises(RuntimeError, match="OPENROUTER_API_KEY"):
            get_api_key()

    def test_from_env(self, monkeypatch):
        """Test loading settings from the environment."""
        monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or-test")
        monkeypatch.setenv("DEFAULT_AI_MODEL", "openai/gpt-4o")
        monkeypatch.setenv("OPENROUTER_TIMEOUT", "30")
        monkeypatch.setenv("NO_TOOL_REPLAY_MODELS", "gemini, deepseek")
        monkeypatch.delenv("REASONING_MODELS", raising=False)

        settings = Settings.from_env()

        assert settings.api_key == "sk-or-test"
        assert settings.model == "openai/gpt-4o"
        assert settings.timeout == 30.0
        assert settings.capabilities.no_tool_replay_markers == ("gemini", "deepseek")
        assert settings.capabilities.reasoning_markers == ("gemini", "google")

    def test_default_model(self, monkeypatch):
        """Test the model used when none is configured."""
        monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or-test")
        monkeypatch.delenv("DEFAULT_AI_MODEL", raising=False)
        assert Settings.from_env().model == DEFAULT_MODEL


class TestCapabilities:
    def test_gemini_needs_special_handling(self):
        """Test the capabilities of Gemini models."""
        caps = CapabilityResolver().for_model("google/gemini-2.5-pro")
        assert caps.supports_tool_replay is False
        assert caps.reasoning is True

    def test_other_models(self):
        """Test the capabilities of other models."""
        caps = CapabilityResolver().for_model("anthropic/claude-3.5-sonnet")
        assert caps.supports_tool_replay is True
        assert caps.reasoning is False


class TestTurnSettings:
    @pytest.mark.asyncio
    async def test_defaults(self):
        """Test the defaults when nothing is configured."""
        settings = await TurnSettings.load(InMemorySystemConfig())
        assert settings == TurnSettings()
        assert settings.max_tool_calls == 30
        assert settings.history_limit == 20

    @pytest.mark.asyncio
    async def test_reads_system_config(self):
        """Test reading turn settings from the system config."""
        config = InMemorySystemConfig(
            {
                "maxToolCalls": "5",
                "CHAT_HISTORY_MODE": "token_size",
                "ENABLE_MIDDLE_OUT_TRANSFORM": "false",
                "SHOW_REASONING_TO_USERS": "false",
            }
        )
        settings = await TurnSettings.load(config)

        assert settings.max_tool_calls == 5
        assert settings.history_mode == "token_size"
        assert settings.history_limit == 4000
        assert settings.middle_out is False
        assert settings.show_reasoning is False

    @pytest.mark.asyncio
    async def test_invalid_numbers_fall_back(self):
        """Test that invalid numbers fall back to defaults."""
        config = InMemorySystemConfig({"maxToolCalls": "lots", "CHAT_HISTORY_LIMIT": "12"})
        settings = await TurnSettings.load(config)
        assert settings.max_tool_calls == 30
        assert settings.history_limit == 12
