"""Routes LLM tool calls to the executor of their namespace."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Mapping, Optional

from rad_bot.tools.executors import ToolExecutor
from rad_bot.types.tool import ToolCall, ToolResult

__all__ = ["ToolDispatcher", "resolve_tool_name"]


def resolve_tool_name(
    name: str, known: Optional[Callable[[str], Optional[str]]] = None
) -> str:
    """
    Return the dotted tool name for a function name chosen by the LLM.

    Dotted names pass through. Names the catalog exposed map back to the
    original. Anything else uses the first underscore as the namespace
    separator: ``rastar_get_status`` -> ``rastar.get_status``.
    """
    if "." in name:
        return name
    if known is not None:
        original = known(name)
        if original:
            return original
    return name.replace("_", ".", 1)


def parse_arguments(arguments: str) -> dict[str, Any]:
    if not arguments or not arguments.strip():
        return {}
    parsed = json.loads(arguments)
    if not isinstance(parsed, dict):
        raise ValueError("expected a JSON object")
    return parsed


class ToolDispatcher:
    """
    Executes a ``ToolCall`` and always returns a ``ToolResult``.

    The namespace is the one the catalog listed the tool under, otherwise the
    part of the dotted name before the first dot.
    Unknown namespaces fall back to ``default_namespace`` (Planka).
    """

    def __init__(
        self,
        executors: Mapping[str, ToolExecutor],
        *,
        default_namespace: str = "planka",
        name_resolver: Optional[Callable[[str], Optional[str]]] = None,
        namespace_resolver: Optional[Callable[[str], Optional[str]]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if default_namespace not in executors:
            raise ValueError(f"No executor registered for default namespace {default_namespace!r}")
        self.executors = dict(executors)
        self.default_namespace = default_namespace
        self.name_resolver = name_resolver
        self.namespace_resolver = namespace_resolver
        self.logger = logger or logging.getLogger(__name__)

    def route(self, name: str) -> tuple[str, ToolExecutor]:
        tool_name = resolve_tool_name(name, self.name_resolver)
        namespace = None
        if self.namespace_resolver is not None:
            namespace = self.namespace_resolver(name)
        namespace = namespace or tool_name.split(".", 1)[0]
        executor = self.executors.get(namespace) or self.executors[self.default_namespace]
        return tool_name, executor

    async def dispatch(self, telegram_user_id: str, tool_call: ToolCall) -> ToolResult:
        tool_name, executor = self.route(tool_call.name)

        try:
            args = parse_arguments(tool_call.arguments)
        except ValueError as exc:
            self.logger.error(
                "Failed to parse arguments for %s: %r (%s)", tool_name, tool_call.arguments, exc
            )
            return ToolResult.failure(f"Invalid tool arguments - {exc}")

        try:
            result = await executor(telegram_user_id, tool_name, args)
        except Exception as exc:
            self.logger.error("Tool %s failed: %s", tool_name, exc)
            return ToolResult.failure(str(exc) or "Unknown error")

        if not result.success:
            self.logger.warning("Tool %s returned an error: %s", tool_name, result.error)
        return result
