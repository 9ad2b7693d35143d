"""Tests for tool catalogs, executors and the dispatcher."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from conftest import FakeMcpSession
from rad_bot.tools.catalog import CompositeToolProvider, ToolCatalog, to_function_name
from rad_bot.tools.dispatcher import ToolDispatcher, parse_arguments, resolve_tool_name
from rad_bot.tools.executors import (
    McpToolExecutor,
    PlankaToolExecutor,
    RastarCredentials,
    RastarToolExecutor,
    result_from_mcp,
)
from rad_bot.types.tool import ToolCall, ToolResult

PLANKA_TOOLS = (
    "planka.cards.search",
    "planka.auth.login",
    "planka.auth.register",
    "planka.auth.logout",
)


class StaticTokens:
    def __init__(self, credentials=None):
        self.credentials = credentials

    async def get_valid_rastar_token(self, telegram_user_id):
        return self.credentials


class TestToolCatalog:
    def test_function_names_have_no_dots(self):
        """Test that function names contain no dots."""
        assert to_function_name("planka.cards.search") == "planka_cards_search"

    @pytest.mark.asyncio
    async def test_logout_is_never_offered(self):
        """Test that logout is never offered."""
        catalog = ToolCatalog(FakeMcpSession(PLANKA_TOOLS), namespace="planka")
        tools = await catalog.tools_for("42")

        names = [t["function"]["name"] for t in tools]
        assert names == ["planka_cards_search", "planka_auth_login", "planka_auth_register"]
        assert tools[0]["type"] == "function"
        assert tools[0]["function"]["parameters"] == {"type": "object", "properties": {}}

    @pytest.mark.asyncio
    async def test_login_hidden_for_linked_users(self):
        """Test that login is hidden for linked users."""
        catalog = ToolCatalog(
            FakeMcpSession(PLANKA_TOOLS),
            namespace="planka",
            is_authenticated=AsyncMock(return_value=True),
        )
        tools = await catalog.tools_for("42")
        assert [t["function"]["name"] for t in tools] == ["planka_cards_search"]

    @pytest.mark.asyncio
    async def test_maps_function_names_back(self):
        """Test mapping function names back to tool names."""
        catalog = ToolCatalog(FakeMcpSession(["time.get_current"]), namespace="time", hidden=())
        await catalog.tools_for("1")

        assert catalog.original_name("time_get_current") == "time.get_current"
        assert catalog.namespace_of("time_get_current") == "time"
        assert catalog.original_name("unknown") is None
        assert catalog.namespace_of("unknown") is None

    @pytest.mark.asyncio
    async def test_composite_concatenates(self):
        """Test that a composite provider joins its catalogs."""
        planka = ToolCatalog(FakeMcpSession(["planka.cards.search"]), namespace="planka")
        rastar = ToolCatalog(FakeMcpSession(["rastar.get_status"]), namespace="rastar")
        provider = CompositeToolProvider([planka, rastar])

        tools = await provider.tools_for("1")

        assert [t["function"]["name"] for t in tools] == ["planka_cards_search", "rastar_get_status"]
        assert provider.namespace_of("rastar_get_status") == "rastar"
        assert provider.original_name("planka_cards_search") == "planka.cards.search"

    @pytest.mark.asyncio
    async def test_listing_errors_propagate(self):
        """Test that listing errors propagate."""
        catalog = ToolCatalog(FakeMcpSession(list_error=RuntimeError("token expired")))
        with pytest.raises(RuntimeError):
            await catalog.tools_for("1")


class TestExecutors:
    def test_result_from_mcp(self):
        """Test reading an MCP tool result."""
        ok = SimpleNamespace(
            content=[SimpleNamespace(type="text", text="a"), SimpleNamespace(type="image", data="")],
            isError=False,
        )
        assert result_from_mcp(ok) == ToolResult(success=True, content="a")

        failed = result_from_mcp({"content": [], "isError": True})
        assert failed.success is False
        assert failed.error == "Tool reported an error"

    @pytest.mark.asyncio
    async def test_planka_adds_user_id(self):
        """Test that Planka calls carry the Telegram user id."""
        session = FakeMcpSession(results={"planka.cards.search": "[]"})
        result = await PlankaToolExecutor(session)("42", "planka.cards.search", {"query": "x"})

        assert result == ToolResult(success=True, content="[]")
        assert session.calls == [("planka.cards.search", {"query": "x", "telegramUserId": "42"})]

    @pytest.mark.asyncio
    async def test_rastar_adds_credentials(self):
        """Test that Rastar calls carry the user's credentials."""
        session = FakeMcpSession()
        executor = RastarToolExecutor(session, StaticTokens(RastarCredentials("tok", "u-9")))

        await executor("42", "rastar.get_status", {})

        assert session.calls == [("rastar.get_status", {"accessToken": "tok", "userId": "u-9"})]

    @pytest.mark.asyncio
    async def test_rastar_not_linked(self):
        """Test a Rastar call for a user without a linked account."""
        session = FakeMcpSession()
        result = await RastarToolExecutor(session, StaticTokens(None))("42", "rastar.get_status", {})

        assert result.success is False
        assert "Rastar not linked" in result.error
        assert session.calls == []

    @pytest.mark.asyncio
    async def test_session_errors_become_failures(self):
        """Test that session errors become failed results."""
        session = FakeMcpSession(results={"time.now": ConnectionError("mcp down")})
        result = await McpToolExecutor(session)("1", "time.now", {})

        assert result == ToolResult.failure("mcp down")
        assert result.as_message_content() == "Error: mcp down"


class TestDispatcher:
    def setup_method(self):
        self.planka = AsyncMock(return_value=ToolResult(True, "planka result"))
        self.rastar = AsyncMock(return_value=ToolResult(True, "rastar result"))
        self.dispatcher = ToolDispatcher({"planka": self.planka, "rastar": self.rastar})

    def test_resolve_tool_name(self):
        """Test resolving function names to tool names."""
        assert resolve_tool_name("rastar_get_status") == "rastar.get_status"
        assert resolve_tool_name("planka_cards_search") == "planka.cards_search"
        assert resolve_tool_name("planka.cards.search") == "planka.cards.search"
        assert resolve_tool_name("planka_cards_search", {"planka_cards_search": "planka.cards.search"}.get) == (
            "planka.cards.search"
        )

    def test_parse_arguments(self):
        """Test parsing tool arguments."""
        assert parse_arguments("") == {}
        assert parse_arguments('{"a": 1}') == {"a": 1}
        with pytest.raises(ValueError):
            parse_arguments("[1, 2]")

    @pytest.mark.asyncio
    async def test_routes_rastar_by_prefix(self):
        """Test that rastar tools are routed by prefix."""
        result = await self.dispatcher.dispatch("42", ToolCall("c1", "rastar_get_status", "{}"))

        assert result.content == "rastar result"
        self.rastar.assert_awaited_once_with("42", "rastar.get_status", {})
        self.planka.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_namespace_falls_back_to_planka(self):
        """Test that unknown namespaces fall back to Planka."""
        await self.dispatcher.dispatch("42", ToolCall("c1", "cards_search", '{"q": "x"}'))
        self.planka.assert_awaited_once_with("42", "cards.search", {"q": "x"})

    @pytest.mark.asyncio
    async def test_invalid_arguments(self):
        """Test that invalid arguments are reported to the model."""
        result = await self.dispatcher.dispatch("42", ToolCall("c1", "planka_cards_search", "{not json"))

        assert result.success is False
        assert result.error.startswith("Invalid tool arguments - ")
        self.planka.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_executor_exception_is_normalized(self):
        """Test that executor exceptions become failed results."""
        self.planka.side_effect = RuntimeError("boom")
        result = await self.dispatcher.dispatch("42", ToolCall("c1", "planka_cards_search", "{}"))
        assert result == ToolResult.failure("boom")

    @pytest.mark.asyncio
    async def test_uses_catalog_namespace(self):
        """Test routing by the catalog's namespace."""
        time_executor = AsyncMock(return_value=ToolResult(True, "12:00"))
        dispatcher = ToolDispatcher(
            {"planka": self.planka, "time": time_executor},
            name_resolver={"get_current_time": "get_current_time"}.get,
            namespace_resolver={"get_current_time": "time"}.get,
        )
        await dispatcher.dispatch("1", ToolCall("c1", "get_current_time", ""))
        time_executor.assert_awaited_once_with("1", "get_current_time", {})

    def test_requires_default_executor(self):
        """Test that the dispatcher needs a Planka executor."""
        with pytest.raises(ValueError):
            ToolDispatcher({"rastar": self.rastar})
