from .catalog import CompositeToolProvider, ToolCatalog, ToolProvider, to_function_name
from .dispatcher import ToolDispatcher, resolve_tool_name
from .executors import (
    McpSession,
    McpToolExecutor,
    PlankaToolExecutor,
    RastarCredentials,
    RastarTokenStore,
    RastarToolExecutor,
    ToolExecutionError,
    ToolExecutor,
    result_from_mcp,
)

__all__ = [
    "CompositeToolProvider",
    "ToolCatalog",
    "ToolProvider",
    "to_function_name",
    "ToolDispatcher",
    "resolve_tool_name",
    "McpSession",
    "McpToolExecutor",
    "PlankaToolExecutor",
    "RastarCredentials",
    "RastarTokenStore",
    "RastarToolExecutor",
    "ToolExecutionError",
    "ToolExecutor",
    "result_from_mcp",
]
