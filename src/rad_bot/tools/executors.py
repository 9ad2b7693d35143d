"""
Tool executors backed by MCP servers.

Every executor has the signature ``await executor(telegram_user_id, name, args)``
and returns a ``ToolResult``. Failures are normalized, never raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable

from rad_bot.adapters.openrouter import field_of
from rad_bot.types.tool import ToolResult

__all__ = [
    "McpSession",
    "ToolExecutor",
    "ToolExecutionError",
    "McpToolExecutor",
    "PlankaToolExecutor",
    "RastarCredentials",
    "RastarTokenStore",
    "RastarToolExecutor",
    "result_from_mcp",
]

RASTAR_NOT_LINKED = "Rastar not linked. Use /link_rastar to connect your account."


@runtime_checkable
class McpSession(Protocol):
    """The subset of an MCP client session the bot uses."""

    async def list_tools(self) -> Any:
        ...

    async def call_tool(self, name: str, arguments: Optional[dict[str, Any]] = None) -> Any:
        ...


class ToolExecutor(Protocol):
    async def __call__(
        self, telegram_user_id: str, tool_name: str, args: dict[str, Any]
    ) -> ToolResult:
        ...


class ToolExecutionError(Exception):
    """Raised inside an executor when a call cannot be made; becomes a failed result."""


def result_from_mcp(result: Any) -> ToolResult:
    """Join the text items of an MCP ``CallToolResult``; ``isError`` marks failure."""
    content = "".join(
        field_of(item, "text", "")
        for item in field_of(result, "content", [])
        if field_of(item, "type") == "text"
    )
    if field_of(result, "isError", False):
        return ToolResult(success=False, content=content, error=content or "Tool reported an error")
    return ToolResult(success=True, content=content)


class McpToolExecutor:
    """Calls tools on one MCP server; subclasses add per-user credentials."""

    server = "mcp"

    def __init__(self, session: McpSession, *, logger: Optional[logging.Logger] = None) -> None:
        self.session = session
        self.logger = logger or logging.getLogger(__name__)

    async def prepare_arguments(
        self, telegram_user_id: str, args: dict[str, Any]
    ) -> dict[str, Any]:
        return dict(args)

    async def __call__(
        self, telegram_user_id: str, tool_name: str, args: dict[str, Any]
    ) -> ToolResult:
        self.logger.debug("[%s] Calling tool %s", self.server, tool_name)
        try:
            arguments = await self.prepare_arguments(telegram_user_id, args)
            result = await self.session.call_tool(tool_name, arguments)
        except ToolExecutionError as exc:
            return ToolResult.failure(str(exc))
        except Exception as exc:
            self.logger.error("[%s] Error executing %s: %s", self.server, tool_name, exc)
            return ToolResult.failure(str(exc) or "Unknown error")
        return result_from_mcp(result)


class PlankaToolExecutor(McpToolExecutor):
    """Planka tools authenticate on the server side by Telegram user id."""

    server = "planka"

    async def prepare_arguments(
        self, telegram_user_id: str, args: dict[str, Any]
    ) -> dict[str, Any]:
        return {**args, "telegramUserId": telegram_user_id}


@dataclass(frozen=True, slots=True)
class RastarCredentials:
    access_token: str
    user_id: str


class RastarTokenStore(Protocol):
    async def get_valid_rastar_token(self, telegram_user_id: str) -> Optional[RastarCredentials]:
        ...


class RastarToolExecutor(McpToolExecutor):
    server = "rastar"

    def __init__(
        self,
        session: McpSession,
        tokens: RastarTokenStore,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(session, logger=logger)
        self.tokens = tokens

    async def prepare_arguments(
        self, telegram_user_id: str, args: dict[str, Any]
    ) -> dict[str, Any]:
        credentials = await self.tokens.get_valid_rastar_token(telegram_user_id)
        if credentials is None:
            raise ToolExecutionError(RASTAR_NOT_LINKED)
        return {
            **args,
            "accessToken": credentials.access_token,
            "userId": credentials.user_id,
        }
