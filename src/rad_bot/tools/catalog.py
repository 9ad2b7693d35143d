"""Tool definitions offered to the LLM, per user."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Iterable, Optional, Protocol, Sequence

from rad_bot.adapters.openrouter import field_of
from rad_bot.tools.executors import McpSession

__all__ = ["ToolProvider", "ToolCatalog", "CompositeToolProvider", "to_function_name"]


def to_function_name(tool_name: str) -> str:
    """``planka.cards.search`` -> ``planka_cards_search``; dots are not allowed in function names."""
    return tool_name.replace(".", "_")


class ToolProvider(Protocol):
    async def tools_for(self, telegram_user_id: str) -> list[dict[str, Any]]:
        ...

    def original_name(self, function_name: str) -> Optional[str]:
        ...

    def namespace_of(self, function_name: str) -> Optional[str]:
        ...


class ToolCatalog:
    """
    Lists the tools of one MCP server in OpenAI function format.

    ``planka.auth.logout`` is never offered. Tools in ``hidden_when_authenticated``
    are dropped for users that ``is_authenticated`` reports as already linked.
    """

    def __init__(
        self,
        session: McpSession,
        *,
        namespace: Optional[str] = None,
        hidden: Iterable[str] = ("planka.auth.logout",),
        hidden_when_authenticated: Iterable[str] = ("planka.auth.login", "planka.auth.register"),
        is_authenticated: Optional[Callable[[str], Awaitable[bool]]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.session = session
        self.namespace = namespace
        self.hidden = frozenset(hidden)
        self.hidden_when_authenticated = frozenset(hidden_when_authenticated)
        self.is_authenticated = is_authenticated
        self.logger = logger or logging.getLogger(__name__)
        self._names: dict[str, str] = {}

    async def tools_for(self, telegram_user_id: str) -> list[dict[str, Any]]:
        listing = await self.session.list_tools()
        tools = field_of(listing, "tools", listing) or []

        authenticated = False
        if self.is_authenticated is not None:
            authenticated = await self.is_authenticated(telegram_user_id)

        definitions = []
        for tool in tools:
            name = field_of(tool, "name", "")
            if not name or name in self.hidden:
                continue
            if authenticated and name in self.hidden_when_authenticated:
                continue
            function_name = to_function_name(name)
            self._names[function_name] = name
            definitions.append(
                {
                    "type": "function",
                    "function": {
                        "name": function_name,
                        "description": field_of(tool, "description", ""),
                        "parameters": field_of(tool, "inputSchema")
                        or {"type": "object", "properties": {}},
                    },
                }
            )

        self.logger.debug(
            "Offering %d of %d tools to user %s", len(definitions), len(tools), telegram_user_id
        )
        return definitions

    def original_name(self, function_name: str) -> Optional[str]:
        return self._names.get(function_name)

    def namespace_of(self, function_name: str) -> Optional[str]:
        if function_name in self._names:
            return self.namespace
        return None


class CompositeToolProvider:
    """Concatenates the tools of several catalogs."""

    def __init__(self, providers: Sequence[ToolProvider]) -> None:
        self.providers = list(providers)

    async def tools_for(self, telegram_user_id: str) -> list[dict[str, Any]]:
        tools: list[dict[str, Any]] = []
        for provider in self.providers:
            tools.extend(await provider.tools_for(telegram_user_id))
        return tools

    def original_name(self, function_name: str) -> Optional[str]:
        for provider in self.providers:
            name = provider.original_name(function_name)
            if name:
                return name
        return None

    def namespace_of(self, function_name: str) -> Optional[str]:
        for provider in self.providers:
            namespace = provider.namespace_of(function_name)
            if namespace:
                return namespace
        return None
