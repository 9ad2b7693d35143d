"""
OpenRouter chat client with ``chat()`` and ``stream_chat()``.
"""

from __future__ import annotations

import logging
import time
from typing import Any, AsyncGenerator, Optional, Self, Sequence

from openai import AsyncOpenAI

from rad_bot._exceptions import LLMClientError, classify_error
from rad_bot.adapters.openrouter import (
    ChatOptions,
    ChatResult,
    OpenRouterRequestAdapter,
    as_list,
    field_of,
)
from rad_bot.config import (
    DEFAULT_MODEL,
    OPENROUTER_BASE_URL,
    CapabilityResolver,
    ModelCapabilities,
)
from rad_bot.types.chat import ChatMessage
from rad_bot.types.stream import (
    ContentDelta,
    ReasoningEvent,
    StreamDone,
    StreamEvent,
    ToolCallIdentified,
)
from rad_bot.types.tool import ToolCall
from rad_bot.types.usage import TrackingContext
from rad_bot.usage import UsageSink

__all__ = ["OpenRouterClient"]


def _reasoning_text(delta: Any, details: list[Any]) -> str:
    text = field_of(delta, "reasoning", "")
    if text:
        return text
    parts = []
    for item in details:
        part = field_of(item, "text") or field_of(item, "summary")
        if isinstance(part, str):
            parts.append(part)
    return "".join(parts)


class OpenRouterClient:
    """
    Async client for OpenRouter's OpenAI-compatible API.

    Use ``OpenRouterClient.from_client`` when you already have an ``AsyncOpenAI``
    instance. When a ``usage_sink`` is given, every call made with a tracking
    context hands one ``UsageRecord`` to it.
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        *,
        api_key: str,
        base_url: str = OPENROUTER_BASE_URL,
        timeout: float = 60.0,
        max_retries: int = 2,
        usage_sink: Optional[UsageSink] = None,
        capabilities: Optional[CapabilityResolver] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> None:
        self._setup(model, usage_sink, capabilities, logger, name)
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
        )

    @classmethod
    def from_client(
        cls,
        client: AsyncOpenAI,
        *,
        model: str = DEFAULT_MODEL,
        usage_sink: Optional[UsageSink] = None,
        capabilities: Optional[CapabilityResolver] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> Self:
        """
        Build an ``OpenRouterClient`` around an already-configured ``AsyncOpenAI`` client.
        """
        if not isinstance(client, AsyncOpenAI):
            raise TypeError(
                f"OpenRouterClient.from_client expects AsyncOpenAI; got {type(client).__name__}"
            )

        self = cls.__new__(cls)  # bypass __init__
        self._setup(model, usage_sink, capabilities, logger, name)
        self._client = client
        return self

    def _setup(
        self,
        model: str,
        usage_sink: Optional[UsageSink],
        capabilities: Optional[CapabilityResolver],
        logger: Optional[logging.Logger],
        name: Optional[str],
    ) -> None:
        self.model = model
        self.usage_sink = usage_sink
        self.capabilities = capabilities or CapabilityResolver()
        self.logger = logger or logging.getLogger(__name__)
        self.name = name or self.__class__.__name__
        self._adapter = OpenRouterRequestAdapter()

    @property
    def adapter(self) -> OpenRouterRequestAdapter:
        return self._adapter

    def capabilities_for(self, model: Optional[str] = None) -> ModelCapabilities:
        return self.capabilities.for_model(model or self.model)

    def _request(
        self,
        messages: Sequence[ChatMessage],
        options: ChatOptions,
        tools: Optional[Sequence[dict[str, Any]]],
        stream: bool,
    ) -> dict[str, Any]:
        model = options.model or self.model
        args = self._adapter.build_request(
            messages,
            options,
            model=model,
            capabilities=self.capabilities_for(model),
            tools=tools,
            stream=stream,
        )
        self._log(
            f"Sending request to {model} "
            f"(messages: {len(args['messages'])}, tools: {len(tools or ())}, stream: {stream})",
            logging.DEBUG,
        )
        return args

    async def chat(
        self,
        messages: Sequence[ChatMessage],
        options: Optional[ChatOptions] = None,
        tools: Optional[Sequence[dict[str, Any]]] = None,
        tracking: Optional[TrackingContext] = None,
    ) -> ChatResult:
        """
        Send one non-streaming request.

        Raises:
            LLMClientError: on any transport, API or parsing failure.
        """
        options = options or ChatOptions()
        args = self._request(messages, options, tools, stream=False)
        started = time.monotonic()

        try:
            raw = await self._client.chat.completions.create(**args)
            error = field_of(raw, "error")
            if error:
                raise LLMClientError(f"AI chat error: {field_of(error, 'message', error)}")
            result = self._adapter.from_provider(raw)
        except LLMClientError:
            raise
        except Exception as exc:
            classify_error(exc, self.logger)
            raise LLMClientError(f"AI chat error: {exc}", exc) from exc

        self._record_usage(
            field_of(raw, "usage"),
            model=args["model"],
            tracking=tracking,
            finish_reason=result.finish_reason,
            tool_call_count=len(result.tool_calls),
            started=started,
        )
        return result

    async def stream_chat(
        self,
        messages: Sequence[ChatMessage],
        options: Optional[ChatOptions] = None,
        tools: Optional[Sequence[dict[str, Any]]] = None,
        tracking: Optional[TrackingContext] = None,
    ) -> AsyncGenerator[StreamEvent, None]:
        """
        Stream one response as typed events, ending with ``StreamDone``.

        Tool-call fragments are accumulated by stream index; a call is
        announced with ``ToolCallIdentified`` once its id and name are known,
        and complete calls are only exposed on ``StreamDone``. An upstream
        error reported inside the stream raises ``LLMClientError`` and no
        ``StreamDone`` is produced. The generator is single-pass; closing it
        early abandons the request.
        """
        options = options or ChatOptions()
        args = self._request(messages, options, tools, stream=True)
        started = time.monotonic()

        content = ""
        reasoning_details: list[Any] = []
        calls: list[dict[str, str]] = []
        announced: set[int] = set()
        finish_reason: Optional[str] = None
        usage_recorded = False

        try:
            stream = await self._client.chat.completions.create(**args)
            async for chunk in stream:
                choices = field_of(chunk, "choices", [])

                # recorded as soon as it arrives so a later error cannot lose it
                usage = field_of(chunk, "usage")
                if usage is not None and not usage_recorded:
                    usage_recorded = True
                    reason = field_of(choices[0], "finish_reason") if choices else None
                    self._record_usage(
                        usage,
                        model=args["model"],
                        tracking=tracking,
                        finish_reason=reason or finish_reason,
                        tool_call_count=sum(1 for c in calls if c["name"]),
                        started=started,
                    )

                error = field_of(chunk, "error")
                if error:
                    message = field_of(error, "message", "Unknown error")
                    raise LLMClientError(f"AI stream error: Stream error: {message}")

                if not choices:
                    continue
                choice = choices[0]
                delta = field_of(choice, "delta")

                details = as_list(field_of(delta, "reasoning_details")) or as_list(
                    field_of(chunk, "reasoning_details")
                )
                reasoning = _reasoning_text(delta, details)
                if details:
                    reasoning_details.extend(details)
                if reasoning or details:
                    yield ReasoningEvent(text=reasoning, details=details or None)

                piece = field_of(delta, "content", "") or field_of(
                    field_of(choice, "message"), "content", ""
                )
                if piece:
                    content += piece
                    yield ContentDelta(piece)

                for tc in field_of(delta, "tool_calls", []):
                    index = field_of(tc, "index", 0)
                    while len(calls) <= index:
                        calls.append({"id": "", "name": "", "arguments": ""})
                    agg = calls[index]
                    if field_of(tc, "id"):
                        agg["id"] = field_of(tc, "id")
                    function = field_of(tc, "function")
                    if field_of(function, "name"):
                        agg["name"] += field_of(function, "name")
                    if field_of(function, "arguments"):
                        agg["arguments"] += field_of(function, "arguments")
                    if index not in announced and agg["id"] and agg["name"]:
                        announced.add(index)
                        yield ToolCallIdentified(index=index, id=agg["id"], name=agg["name"])

                reason = field_of(choice, "finish_reason")
                if reason == "error":
                    raise LLMClientError("AI stream error: Stream terminated due to error")
                if reason:
                    finish_reason = reason
        except LLMClientError as exc:
            self._log(str(exc), logging.ERROR)
            raise
        except Exception as exc:
            classify_error(exc, self.logger)
            raise LLMClientError(f"AI stream error: {exc}", exc) from exc

        tool_calls = [
            ToolCall(id=c["id"], name=c["name"], arguments=c["arguments"] or "{}")
            for c in calls
            if c["name"]
        ]
        yield StreamDone(
            finish_reason=finish_reason or ("tool_calls" if tool_calls else "stop"),
            content=content,
            reasoning_details=reasoning_details or None,
            tool_calls=tool_calls,
        )

    def _record_usage(
        self,
        usage: Any,
        *,
        model: str,
        tracking: Optional[TrackingContext],
        finish_reason: Optional[str],
        tool_call_count: int,
        started: float,
    ) -> None:
        if usage is None or tracking is None or self.usage_sink is None:
            return
        try:
            record = self._adapter.usage_from(
                usage,
                model=model,
                context=tracking,
                finish_reason=finish_reason,
                tool_call_count=tool_call_count,
                request_duration_ms=int((time.monotonic() - started) * 1000),
            )
            self.usage_sink.record(record)
        except Exception as exc:
            self._log(f"Failed to record usage: {exc}", logging.ERROR)

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, f"[{self.name}] {message}")

    # --- lifecycle ---------------------------------------------------------
    async def aclose(self) -> None:
        """
        Close the HTTP client and wait for pending usage writes.
        Safe to call multiple times.
        """
        close = getattr(self._client, "close", None)
        if close:
            await close()
        drain = getattr(self.usage_sink, "drain", None)
        if drain:
            await drain()

    async def __aenter__(self) -> "OpenRouterClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
