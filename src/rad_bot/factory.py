from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional

from openai import AsyncOpenAI

from rad_bot.client import OpenRouterClient
from rad_bot.config import DEFAULT_MODEL, Settings
from rad_bot.orchestrator.conversation import ConversationOrchestrator
from rad_bot.store import MessageStore, SystemConfig
from rad_bot.tools.catalog import CompositeToolProvider, ToolCatalog
from rad_bot.tools.dispatcher import ToolDispatcher
from rad_bot.tools.executors import (
    McpSession,
    McpToolExecutor,
    PlankaToolExecutor,
    RastarTokenStore,
    RastarToolExecutor,
)
from rad_bot.transport import ChatTransport
from rad_bot.usage import UsageSink


def create_client(
    settings: Optional[Settings] = None,
    *,
    client: Optional[AsyncOpenAI] = None,
    usage_sink: Optional[UsageSink] = None,
    logger: Optional[logging.Logger] = None,
) -> OpenRouterClient:
    """
    Build an ``OpenRouterClient``.

    Args:
        settings: Defaults to ``Settings.from_env()``, which needs OPENROUTER_API_KEY.
        client: Optional pre-configured ``AsyncOpenAI`` to wrap instead of creating one.
        usage_sink: Where usage records go, usually a ``UsageRecorder``.
        logger: Optional custom logger.
    """
    if client is not None:  # use caller-supplied client verbatim
        model = settings.model if settings else DEFAULT_MODEL
        return OpenRouterClient.from_client(
            client,
            model=model,
            usage_sink=usage_sink,
            capabilities=settings.capabilities if settings else None,
            logger=logger,
        )

    settings = settings or Settings.from_env()
    return OpenRouterClient(
        settings.model,
        api_key=settings.api_key,
        base_url=settings.base_url,
        timeout=settings.timeout,
        max_retries=settings.max_retries,
        usage_sink=usage_sink,
        capabilities=settings.capabilities,
        logger=logger,
    )


def create_orchestrator(
    client: OpenRouterClient,
    *,
    message_store: MessageStore,
    system_config: SystemConfig,
    transport: ChatTransport,
    planka: McpSession,
    has_planka_token: Optional[Callable[[str], Awaitable[bool]]] = None,
    rastar: Optional[McpSession] = None,
    rastar_tokens: Optional[RastarTokenStore] = None,
    extra_servers: Optional[dict[str, McpSession]] = None,
    logger: Optional[logging.Logger] = None,
    **orchestrator_kwargs: Any,
) -> ConversationOrchestrator:
    """
    Wire MCP sessions into a tool catalog and dispatcher and build the orchestrator.

    ``extra_servers`` maps a namespace (e.g. ``"time"``) to an MCP session whose
    tools need no per-user credentials.
    """
    catalogs = [ToolCatalog(planka, namespace="planka", is_authenticated=has_planka_token, logger=logger)]
    executors: dict[str, Any] = {"planka": PlankaToolExecutor(planka, logger=logger)}

    if rastar is not None:
        if rastar_tokens is None:
            raise ValueError("rastar_tokens is required when a Rastar session is given")
        catalogs.append(ToolCatalog(rastar, namespace="rastar", hidden=(), hidden_when_authenticated=(), logger=logger))
        executors["rastar"] = RastarToolExecutor(rastar, rastar_tokens, logger=logger)

    for namespace, session in (extra_servers or {}).items():
        catalogs.append(ToolCatalog(session, namespace=namespace, hidden=(), hidden_when_authenticated=(), logger=logger))
        executors[namespace] = McpToolExecutor(session, logger=logger)

    provider = CompositeToolProvider(catalogs)
    dispatcher = ToolDispatcher(
        executors,
        name_resolver=provider.original_name,
        namespace_resolver=provider.namespace_of,
        logger=logger,
    )
    return ConversationOrchestrator(
        client,
        dispatcher,
        provider,
        message_store,
        system_config,
        transport,
        logger=logger,
        **orchestrator_kwargs,
    )
