"""
Live progress in the "Thinking..." placeholder while a response streams.

Edits are best-effort and rate-limited: a failed edit is logged and simply
superseded by the next one.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Optional

from rad_bot._exceptions import LLMClientError
from rad_bot.formatting import format_tool_name, markdown_to_telegram_html, split_html_safely
from rad_bot.orchestrator.response import ReasoningStep
from rad_bot.transport import MESSAGE_LIMIT, ChatTransport, SentMessage
from rad_bot.types.stream import (
    ContentDelta,
    ReasoningEvent,
    StreamDone,
    StreamEvent,
    ToolCallIdentified,
)
from rad_bot.types.tool import ToolCall, ToolUse

__all__ = ["StreamDisplay", "StreamOutcome", "consume_stream"]

_TYPING_INTERVAL = 4.0  # Telegram's typing indicator lasts about 5 seconds
_REASONING_PREVIEW = 500
_MAX_TOOL_LINES = 10
_CONTINUES = "\n\n<i>... (message continues)</i>"


class StreamDisplay:
    """Renders streaming state into the placeholder message."""

    def __init__(
        self,
        transport: ChatTransport,
        message: SentMessage,
        *,
        show_reasoning: bool = True,
        min_interval: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.transport = transport
        self.message = message
        self.show_reasoning = show_reasoning
        self.min_interval = min_interval
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)

        self.reasoning_active = False
        self.reasoning_text = ""
        self.tools: dict[str, str] = {}
        self.executing: Optional[str] = None
        self.content = ""

        self._last_edit: Optional[float] = None
        self._last_typing = clock()
        self._last_rendered: Optional[str] = None

    def add_tool(self, label: str, args: str = "") -> None:
        """Show ``label`` once; later ``args`` for the same tool replace earlier ones."""
        if args or label not in self.tools:
            self.tools[label] = label + args

    def _header(self) -> str:
        out = ""
        if self.reasoning_active:
            if self.show_reasoning and self.reasoning_text:
                preview = markdown_to_telegram_html(self.reasoning_text[-_REASONING_PREVIEW:])
                out += f"🧠 <b>Reasoning...</b>\n\n<blockquote>{preview}</blockquote>\n\n"
            else:
                out += "🤔 <i>Thinking...</i>\n\n"
        if self.show_reasoning and self.tools:
            out += "<b>🛠️ Tools in use:</b>\n"
            lines = list(self.tools.values())
            hidden = len(lines) - _MAX_TOOL_LINES
            if hidden > 0:
                lines = [f"<i>... and {hidden} more</i>"] + lines[-_MAX_TOOL_LINES:]
            out += "\n".join(f"  {line}" for line in lines)
            out += "\n\n"
        if self.executing:
            out += f"💭 <i>Executing {self.executing}...</i>\n\n"
        return out

    def render(self) -> str:
        header = self._header()
        if self.content:
            body = markdown_to_telegram_html(self.content)
        elif not self.reasoning_active and not self.tools:
            body = "💭 <i>Generating response...</i>"
        else:
            body = ""

        rendered = (header + body).strip()
        if len(rendered) <= MESSAGE_LIMIT:
            return rendered
        return split_html_safely(rendered, MESSAGE_LIMIT - len(_CONTINUES))[0] + _CONTINUES

    async def refresh(self, force: bool = False) -> None:
        now = self.clock()
        if not force and self._last_edit is not None and now - self._last_edit < self.min_interval:
            return
        self._last_edit = now

        if now - self._last_typing > _TYPING_INTERVAL:
            self._last_typing = now
            try:
                await self.transport.send_chat_action(self.message.chat_id, "typing")
            except Exception as exc:
                self.logger.debug("Could not send typing action: %s", exc)

        text = self.render()
        if not text or text == self._last_rendered:
            return
        try:
            await self.transport.edit_message(self.message.chat_id, self.message.message_id, text)
            self._last_rendered = text
        except Exception as exc:
            self.logger.debug("Could not update progress message: %s", exc)


@dataclass(slots=True)
class StreamOutcome:
    content: str
    finish_reason: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    reasoning_details: Optional[list[Any]] = None
    reasoning_steps: list[ReasoningStep] = field(default_factory=list)


async def consume_stream(events: AsyncIterator[StreamEvent], display: StreamDisplay) -> StreamOutcome:
    """
    Drive ``display`` from a stream and collect the outcome.

    Raises ``LLMClientError`` if the stream ends without a ``StreamDone`` event.
    """
    reasoning = ""
    content = ""
    done: Optional[StreamDone] = None

    async for event in events:
        if isinstance(event, ReasoningEvent):
            display.reasoning_active = True
            reasoning += event.text
            display.reasoning_text = reasoning
        elif isinstance(event, ToolCallIdentified):
            display.reasoning_active = False
            display.add_tool(format_tool_name(event.name))
        elif isinstance(event, ContentDelta):
            display.reasoning_active = False
            content += event.text
            display.content = content
        elif isinstance(event, StreamDone):
            display.reasoning_active = False
            done = event
            continue
        await display.refresh()

    if done is None:
        raise LLMClientError("AI stream error: Stream terminated before completion")

    content = content or done.content
    display.content = content
    steps = []
    if reasoning and done.tool_calls:
        steps.append(
            ReasoningStep(
                reasoning=reasoning,
                tools=[ToolUse(name=c.name, args=c.arguments) for c in done.tool_calls],
            )
        )
    if content or display.tools:
        await display.refresh(force=True)

    return StreamOutcome(
        content=content,
        finish_reason=done.finish_reason,
        tool_calls=list(done.tool_calls),
        reasoning_details=done.reasoning_details,
        reasoning_steps=steps,
    )
