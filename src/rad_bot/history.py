"""
Conversation history sanitizing and trimming.

Chat-completion APIs reject a payload in which a ``tool`` message does not
follow the assistant message that issued the matching tool call. History read
back from storage, or cut down to fit a context window, can easily break that
rule; the functions here repair it by dropping the offending messages. They
never reorder messages and never raise.
"""

from __future__ import annotations

import math
from typing import Sequence

from rad_bot.types.chat import (
    AssistantToolCallMessage,
    ChatMessage,
    ToolResultMessage,
    UserMessage,
)

__all__ = [
    "validate_message_history",
    "trim_conversation_history",
    "trim_conversation_history_by_tokens",
    "remove_orphaned_tool_messages",
    "estimate_tokens",
]

# role and metadata overhead per message
TOKEN_OVERHEAD = 10


def _is_tool_call(msg: ChatMessage) -> bool:
    return isinstance(msg, AssistantToolCallMessage) and bool(msg.tool_call_id and msg.tool_name)


def validate_message_history(messages: Sequence[ChatMessage]) -> list[ChatMessage]:
    """
    Drop tool messages that are not answering a tool call still in the window.

    A run of assistant tool calls is kept together and followed only by the
    tool responses that answer it. Tool calls left without any emitted
    response are removed as well.
    """
    cleaned: list[ChatMessage] = []
    pending: set[str] = set()

    i = 0
    while i < len(messages):
        msg = messages[i]

        if _is_tool_call(msg):
            calls: list[ChatMessage] = [msg]
            pending.add(msg.tool_call_id)
            while i + 1 < len(messages) and _is_tool_call(messages[i + 1]):
                i += 1
                calls.append(messages[i])
                pending.add(messages[i].tool_call_id)
            cleaned.extend(calls)

            while i + 1 < len(messages) and isinstance(messages[i + 1], ToolResultMessage):
                i += 1
                response = messages[i]
                if response.tool_call_id and response.tool_call_id in pending:
                    cleaned.append(response)
                    pending.discard(response.tool_call_id)
        elif isinstance(msg, ToolResultMessage):
            if msg.tool_call_id and msg.tool_call_id in pending:
                cleaned.append(msg)
                pending.discard(msg.tool_call_id)
        else:
            cleaned.append(msg)
        i += 1

    answered = {m.tool_call_id for m in cleaned if isinstance(m, ToolResultMessage)}
    return [
        m
        for m in cleaned
        if not isinstance(m, AssistantToolCallMessage) or m.tool_call_id in answered
    ]


def estimate_tokens(message: ChatMessage) -> int:
    """Rough token cost of a message: four characters per token plus overhead."""
    tokens = math.ceil(len(message.content or "") / 4)
    if isinstance(message, AssistantToolCallMessage) and message.tool_args:
        tokens += math.ceil(len(message.tool_args) / 4)
    return tokens + TOKEN_OVERHEAD


def _extend_to_tool_call(
    messages: Sequence[ChatMessage], trimmed: list[ChatMessage], start: int
) -> list[ChatMessage]:
    """If ``trimmed`` opens with a tool result, pull its tool call back in."""
    if not trimmed or not isinstance(trimmed[0], ToolResultMessage):
        return trimmed

    tool_call_id = trimmed[0].tool_call_id
    for idx in range(start - 1, -1, -1):
        msg = messages[idx]
        if isinstance(msg, AssistantToolCallMessage) and msg.tool_call_id == tool_call_id:
            return list(messages[idx:])
    return trimmed


def trim_conversation_history(
    messages: Sequence[ChatMessage],
    max_messages: int = 20,
) -> list[ChatMessage]:
    """Keep the most recent ``max_messages`` messages without splitting tool pairs."""
    if len(messages) <= max_messages:
        return remove_orphaned_tool_messages(messages)
    if max_messages <= 0:
        return []

    start = len(messages) - max_messages
    trimmed = _extend_to_tool_call(messages, list(messages[start:]), start)
    return remove_orphaned_tool_messages(trimmed)


def trim_conversation_history_by_tokens(
    messages: Sequence[ChatMessage],
    max_tokens: int = 4000,
) -> list[ChatMessage]:
    """
    Keep the most recent messages whose estimated cost fits ``max_tokens``.

    The newest message is always kept, even if it alone exceeds the budget.
    """
    total = 0
    start = len(messages)
    for idx in range(len(messages) - 1, -1, -1):
        cost = estimate_tokens(messages[idx])
        if total + cost > max_tokens and start < len(messages):
            break
        total += cost
        start = idx

    trimmed = _extend_to_tool_call(messages, list(messages[start:]), start)
    return remove_orphaned_tool_messages(trimmed)


def remove_orphaned_tool_messages(messages: Sequence[ChatMessage]) -> list[ChatMessage]:
    """
    Remove incomplete tool exchanges and double-submitted user messages.

    - tool results whose call does not appear before them
    - tool calls that never got a result
    - consecutive user messages with identical content
    """
    seen_calls: set[str] = set()
    answered: set[str] = set()
    keep_result: list[bool] = []

    for msg in messages:
        if _is_tool_call(msg):
            seen_calls.add(msg.tool_call_id)
        if isinstance(msg, ToolResultMessage):
            ok = bool(msg.tool_call_id) and msg.tool_call_id in seen_calls
            if ok:
                answered.add(msg.tool_call_id)
            keep_result.append(ok)
        else:
            keep_result.append(True)

    result: list[ChatMessage] = []
    for msg, ok in zip(messages, keep_result):
        if not ok:
            continue
        if isinstance(msg, AssistantToolCallMessage) and msg.tool_call_id not in answered:
            continue
        if (
            isinstance(msg, UserMessage)
            and result
            and isinstance(result[-1], UserMessage)
            and result[-1].content == msg.content
        ):
            continue
        result.append(msg)
    return result
