"""OpenRouter adapter for pure request/response transformations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from openai.types.chat import ChatCompletion

from rad_bot.config import ModelCapabilities
from rad_bot.types.chat import AssistantToolCallMessage, ChatMessage, ToolResultMessage
from rad_bot.types.tool import ToolCall
from rad_bot.types.usage import TrackingContext, UsageRecord

__all__ = [
    "DEFAULT_SYSTEM_PROMPT",
    "ChatOptions",
    "ChatResult",
    "OpenRouterRequestAdapter",
    "as_list",
    "field_of",
]

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant."


def field_of(obj: Any, name: str, default: Any = None) -> Any:
    """Read ``name`` from an SDK model or a plain dict.

    OpenRouter-only fields (``cost``, ``reasoning_details``...) are not part of
    the OpenAI types and may arrive either way.
    """
    if obj is None:
        return default
    if isinstance(obj, dict):
        value = obj.get(name, default)
    else:
        value = getattr(obj, name, default)
    return default if value is None else value


def as_list(payload: Any) -> list[Any]:
    if payload is None:
        return []
    if isinstance(payload, (list, tuple)):
        return list(payload)
    return [payload]


@dataclass(slots=True)
class ChatOptions:
    model: Optional[str] = None
    system_prompt: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 2000
    use_middle_out_transform: bool = False


@dataclass(slots=True)
class ChatResult:
    """Normalized non-streaming completion."""

    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: Optional[str] = None
    reasoning_details: Optional[list[Any]] = None

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


class OpenRouterRequestAdapter:
    """Adapter between the message union and OpenRouter chat-completion payloads."""

    def build_messages(
        self, messages: Sequence[ChatMessage], system_prompt: Optional[str] = None
    ) -> list[dict[str, Any]]:
        """
        Convert messages to wire format, prefixed with the system prompt.

        A run of consecutive assistant tool calls is one LLM response, so it
        becomes a single assistant message with a ``tool_calls`` array. Any
        reasoning payloads of the run are merged onto that message.
        """
        wire: list[dict[str, Any]] = [
            {"role": "system", "content": system_prompt or DEFAULT_SYSTEM_PROMPT}
        ]

        i = 0
        while i < len(messages):
            msg = messages[i]

            if isinstance(msg, AssistantToolCallMessage):
                run: list[AssistantToolCallMessage] = []
                while i < len(messages) and isinstance(messages[i], AssistantToolCallMessage):
                    run.append(messages[i])
                    i += 1

                assistant: dict[str, Any] = {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [
                        {
                            "id": call.tool_call_id,
                            "type": "function",
                            "function": {
                                "name": call.tool_name,
                                "arguments": call.tool_args or "{}",
                            },
                        }
                        for call in run
                    ],
                }
                reasoning = [d for call in run for d in as_list(call.reasoning_details)]
                if reasoning:
                    assistant["reasoning_details"] = reasoning
                wire.append(assistant)
                continue

            if isinstance(msg, ToolResultMessage):
                wire.append(
                    {"role": "tool", "tool_call_id": msg.tool_call_id, "content": msg.content}
                )
            else:
                wire.append({"role": msg.role, "content": msg.content})
            i += 1

        return wire

    def build_request(
        self,
        messages: Sequence[ChatMessage],
        options: ChatOptions,
        *,
        model: str,
        capabilities: ModelCapabilities,
        tools: Optional[Sequence[dict[str, Any]]] = None,
        stream: bool = False,
    ) -> dict[str, Any]:
        """Keyword arguments for ``chat.completions.create``."""
        args: dict[str, Any] = {
            "model": model,
            "messages": self.build_messages(messages, options.system_prompt),
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
            "stream": stream,
        }
        if tools:
            args["tools"] = list(tools)
        if stream:
            args["stream_options"] = {"include_usage": True}

        # OpenRouter extensions the OpenAI SDK does not know about
        extra_body: dict[str, Any] = {}
        if options.use_middle_out_transform:
            extra_body["transforms"] = ["middle-out"]
        if capabilities.reasoning:
            extra_body["reasoning"] = {"enabled": True}
        if extra_body:
            args["extra_body"] = extra_body
        return args

    def from_provider(self, raw: ChatCompletion) -> ChatResult:
        """Convert a completion to ``ChatResult``."""
        choices = field_of(raw, "choices", [])
        if not choices:
            return ChatResult()

        choice = choices[0]
        message = field_of(choice, "message")
        tool_calls = [
            ToolCall(
                id=field_of(tc, "id", ""),
                name=field_of(field_of(tc, "function"), "name", ""),
                arguments=field_of(field_of(tc, "function"), "arguments", "") or "{}",
            )
            for tc in field_of(message, "tool_calls", [])
        ]
        reasoning = field_of(message, "reasoning_details")
        return ChatResult(
            content=field_of(message, "content", ""),
            tool_calls=tool_calls,
            finish_reason=field_of(choice, "finish_reason"),
            reasoning_details=as_list(reasoning) or None,
        )

    def usage_from(
        self,
        usage: Any,
        *,
        model: str,
        context: TrackingContext,
        finish_reason: Optional[str] = None,
        tool_call_count: int = 0,
        request_duration_ms: int = 0,
    ) -> UsageRecord:
        """Normalize OpenRouter usage (token details, cost) into a ``UsageRecord``."""
        prompt_details = field_of(usage, "prompt_tokens_details")
        completion_details = field_of(usage, "completion_tokens_details")
        cost_details = field_of(usage, "cost_details")
        upstream = field_of(cost_details, "upstream_inference_cost")

        return UsageRecord(
            context=context,
            model=model,
            prompt_tokens=int(field_of(usage, "prompt_tokens", 0)),
            completion_tokens=int(field_of(usage, "completion_tokens", 0)),
            total_tokens=int(field_of(usage, "total_tokens", 0)),
            cached_tokens=int(field_of(prompt_details, "cached_tokens", 0)),
            cache_write_tokens=int(field_of(prompt_details, "cache_write_tokens", 0)),
            audio_tokens=int(field_of(prompt_details, "audio_tokens", 0)),
            reasoning_tokens=int(field_of(completion_details, "reasoning_tokens", 0)),
            cost=float(field_of(usage, "cost", 0.0)),
            upstream_cost=float(upstream) if upstream is not None else None,
            finish_reason=finish_reason,
            has_tool_calls=tool_call_count > 0,
            tool_call_count=tool_call_count,
            request_duration_ms=request_duration_ms,
        )
