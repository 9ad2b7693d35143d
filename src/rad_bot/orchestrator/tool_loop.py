"""
The bounded tool-execution loop of one turn.

Each round persists the assistant's tool calls, executes them in order through
the dispatcher, appends the results to the working history and asks the model
for its next response. The loop stops when a response has no tool calls or
when the round budget is spent.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from rad_bot.adapters.openrouter import ChatOptions, as_list, field_of
from rad_bot.client import OpenRouterClient
from rad_bot.config import TurnSettings
from rad_bot.formatting import format_tool_args, format_tool_name
from rad_bot.history import (
    estimate_tokens,
    trim_conversation_history,
    trim_conversation_history_by_tokens,
)
from rad_bot.orchestrator.response import ReasoningStep
from rad_bot.orchestrator.streaming import StreamDisplay
from rad_bot.store import MessageStore
from rad_bot.tools.dispatcher import ToolDispatcher
from rad_bot.types.chat import AssistantToolCallMessage, ChatMessage, ToolResultMessage
from rad_bot.types.tool import ToolCall, ToolUse
from rad_bot.types.usage import TrackingContext

__all__ = ["TurnState", "ToolLoop", "trim_history", "attach_reasoning"]


@dataclass(slots=True)
class TurnState:
    """Mutable state of one turn; discarded when the turn ends."""

    history: list[ChatMessage]
    settings: TurnSettings
    turn_messages: int = 0
    requested: list[ToolCall] = field(default_factory=list)
    tool_uses: list[ToolUse] = field(default_factory=list)
    reasoning_steps: list[ReasoningStep] = field(default_factory=list)

    def append(self, *messages: ChatMessage) -> None:
        self.history.extend(messages)
        self.turn_messages += len(messages)

    @property
    def tool_names(self) -> list[str]:
        return [call.name for call in self.requested]


def trim_history(
    history: Sequence[ChatMessage], settings: TurnSettings, turn_messages: int = 0
) -> list[ChatMessage]:
    """
    Trim by the configured mode.

    The budget grows by the messages added during the current turn so that
    the turn itself is never cut.
    """
    limit = max(settings.history_limit, 1)
    current = history[max(len(history) - turn_messages, 0) :] if turn_messages else []
    if settings.history_mode == "token_size":
        return trim_conversation_history_by_tokens(
            history, limit + sum(estimate_tokens(m) for m in current)
        )
    return trim_conversation_history(history, limit + turn_messages)


def attach_reasoning(
    tool_calls: Sequence[ToolCall], reasoning_details: Any
) -> list[AssistantToolCallMessage]:
    """
    Build the assistant messages of one round.

    Reasoning details that name a tool call id go to that call; the rest go to
    the first call of the round so the payload is replayed exactly once.
    """
    by_id: dict[str, list[Any]] = defaultdict(list)
    unmatched: list[Any] = []
    ids = {call.id for call in tool_calls}
    for detail in as_list(reasoning_details):
        detail_id = field_of(detail, "id")
        if detail_id in ids:
            by_id[detail_id].append(detail)
        else:
            unmatched.append(detail)

    messages = []
    for index, call in enumerate(tool_calls):
        details = (unmatched if index == 0 else []) + by_id.get(call.id, [])
        messages.append(
            AssistantToolCallMessage(
                tool_call_id=call.id,
                tool_name=call.name,
                tool_args=call.arguments or "{}",
                reasoning_details=details or None,
            )
        )
    return messages


def _reasoning_text(reasoning_details: Any) -> str:
    return "\n\n".join(
        field_of(d, "text", "")
        for d in as_list(reasoning_details)
        if field_of(d, "type") == "reasoning.text" and field_of(d, "text")
    )


class ToolLoop:
    def __init__(
        self,
        client: OpenRouterClient,
        dispatcher: ToolDispatcher,
        message_store: MessageStore,
        display: StreamDisplay,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.client = client
        self.dispatcher = dispatcher
        self.message_store = message_store
        self.display = display
        self.logger = logger or logging.getLogger(__name__)

    async def run(
        self,
        state: TurnState,
        tool_calls: Sequence[ToolCall],
        reasoning_details: Any,
        *,
        telegram_user_id: str,
        session_id: str,
        options: ChatOptions,
        tools: Optional[Sequence[dict[str, Any]]],
        tracking: TrackingContext,
    ) -> str:
        """Run tool rounds; return the final content, or ``""`` if there is none."""
        pending = list(tool_calls)
        budget = state.settings.max_tool_calls

        while pending and budget > 0:
            budget -= 1
            self.logger.info(
                "Tool round with %d call(s), %d round(s) left", len(pending), budget
            )

            for call in pending:
                await self.message_store.add_message(
                    session_id, "assistant", "", call.id, call.name, call.arguments
                )
            state.append(*attach_reasoning(pending, reasoning_details))

            displayed: set[str] = set()
            for call in pending:
                if call.name not in displayed:
                    displayed.add(call.name)
                    state.tool_uses.append(ToolUse(name=call.name, args=call.arguments))
                    label = format_tool_name(call.name)
                    self.display.add_tool(label, format_tool_args(call.arguments, 50))
                    self.display.executing = label.removeprefix("🔧 ")
                    await self.display.refresh()

                result = await self.dispatcher.dispatch(telegram_user_id, call)
                content = result.as_message_content()
                await self.message_store.add_message(
                    session_id, "tool", content, tool_call_id=call.id, tool_name=call.name
                )
                state.append(ToolResultMessage(call.id, content, call.name))

            self.display.executing = None
            state.history = trim_history(state.history, state.settings, state.turn_messages)

            response = await self.client.chat(state.history, options, tools, tracking)
            if not response.tool_calls:
                return response.content

            pending = response.tool_calls
            reasoning_details = response.reasoning_details
            state.requested.extend(pending)
            text = _reasoning_text(reasoning_details)
            if text:
                state.reasoning_steps.append(
                    ReasoningStep(
                        reasoning=text,
                        tools=[ToolUse(name=c.name, args=c.arguments) for c in pending],
                    )
                )

        if pending:
            self.logger.warning(
                "Tool call budget of %d round(s) spent with %d call(s) unresolved",
                state.settings.max_tool_calls,
                len(pending),
            )
        return ""
