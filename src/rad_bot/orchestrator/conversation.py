"""
One conversation turn, from the user's message to the delivered reply.

    HistoryLoaded -> Streaming -> ToolExecution (rounds) -> Finalizing -> Delivered

Any failure after the history is loaded ends in error recovery, which sends
the user an actionable message instead of raising.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Optional

from rad_bot._exceptions import LLMClientError
from rad_bot.adapters.openrouter import ChatOptions
from rad_bot.client import OpenRouterClient
from rad_bot.config import TurnSettings
from rad_bot.formatting import split_html_safely
from rad_bot.history import validate_message_history
from rad_bot.orchestrator.errors import (
    NETWORK_ERROR_MESSAGE,
    PLAIN_ERROR_MESSAGE,
    describe_error,
    is_connectivity_error,
    streaming_error_message,
)
from rad_bot.orchestrator.response import (
    FORCED_SUMMARY_PROMPT,
    NO_RESPONSE_MESSAGE,
    build_empty_search_notification,
    build_final_response,
    nothing_found_message,
)
from rad_bot.orchestrator.streaming import StreamDisplay, consume_stream
from rad_bot.orchestrator.tool_loop import ToolLoop, TurnState, trim_history
from rad_bot.store import MessageStore, SystemConfig
from rad_bot.tools.catalog import ToolProvider
from rad_bot.tools.dispatcher import ToolDispatcher
from rad_bot.transport import MESSAGE_LIMIT, ChatTransport, SentMessage
from rad_bot.types.chat import (
    AssistantToolCallMessage,
    ChatMessage,
    UserMessage,
    message_from_record,
)
from rad_bot.types.usage import TrackingContext

__all__ = ["TurnRequest", "ConversationOrchestrator"]

PLACEHOLDER_TEXT = "🤔 Thinking..."

TOOLS_UNAVAILABLE_WARNING = (
    "<b>⚠️ Planka tools are unavailable</b>\n\n"
    "I couldn't load your project tools, so I can't look up tasks or boards right now. "
    "Your Planka session may have expired; try linking your account again."
)

_TASK_KEYWORDS = (
    "task",
    "card",
    "board",
    "project",
    "planka",
    "list",
    "deadline",
    "تسک",
    "کارت",
    "پروژه",
    "برد",
)

_REPLY_CONTEXT_LIMIT = 200


def looks_task_related(text: str) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in _TASK_KEYWORDS)


@dataclass(frozen=True, slots=True)
class TurnRequest:
    chat_id: int
    telegram_user_id: str
    session_id: str
    text: str
    message_id: Optional[int] = None
    system_prompt: Optional[str] = None
    reply_to_text: Optional[str] = None

    def user_text(self) -> str:
        """The message as stored, prefixed with the quoted message it replies to."""
        if not self.reply_to_text:
            return self.text
        quoted = self.reply_to_text
        if len(quoted) > _REPLY_CONTEXT_LIMIT:
            quoted = quoted[:_REPLY_CONTEXT_LIMIT] + "..."
        return f'[Replying to: "{quoted}"]\n\n{self.text}'


class ConversationOrchestrator:
    """
    Runs conversation turns against injected collaborators.

    Turns of different users may run concurrently; the only state shared
    between turns is the set of users already warned about unavailable tools.
    """

    def __init__(
        self,
        client: OpenRouterClient,
        dispatcher: ToolDispatcher,
        tool_provider: ToolProvider,
        message_store: MessageStore,
        system_config: SystemConfig,
        transport: ChatTransport,
        *,
        system_prompt: Optional[str] = None,
        history_fetch_limit: int = 50,
        placeholder_retry_delay: float = 1.0,
        edit_interval: float = 0.5,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> None:
        self.client = client
        self.dispatcher = dispatcher
        self.tool_provider = tool_provider
        self.message_store = message_store
        self.system_config = system_config
        self.transport = transport
        self.system_prompt = system_prompt
        self.history_fetch_limit = history_fetch_limit
        self.placeholder_retry_delay = placeholder_retry_delay
        self.edit_interval = edit_interval
        self.logger = logger or logging.getLogger(__name__)
        self.name = name or self.__class__.__name__
        self._warned_users: set[str] = set()

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, f"[{self.name}] {message}")

    async def handle_message(self, request: TurnRequest) -> Optional[str]:
        """
        Process one user message.

        Returns the delivered HTML, or ``None`` when the message was ignored
        or the turn ended early.
        """
        text = (request.text or "").strip()
        if not text or text.startswith("/"):
            return None

        self._log(f"Processing message from {request.telegram_user_id}: {text[:50]!r}")
        try:
            return await self._run_turn(request)
        except Exception as exc:
            self.logger.exception("[%s] Turn failed", self.name)
            await self._send_error(request, describe_error(exc, self.client.model))
            return None

    # --- HistoryLoaded -----------------------------------------------------
    async def _load_history(self, request: TurnRequest, settings: TurnSettings) -> list[ChatMessage]:
        records = await self.message_store.get_session_messages(
            request.session_id, self.history_fetch_limit
        )
        history: list[ChatMessage] = []
        for record in records:
            try:
                history.append(message_from_record(record))
            except ValueError as exc:
                self._log(f"Skipping stored message: {exc}", logging.WARNING)

        if not self.client.capabilities_for().supports_tool_replay:
            history = [m for m in history if not isinstance(m, AssistantToolCallMessage)]
        history = validate_message_history(history)

        user_text = request.user_text()
        await self.message_store.add_message(request.session_id, "user", user_text)
        history.append(UserMessage(user_text))
        return trim_history(history, settings)

    async def _load_tools(self, request: TurnRequest) -> Optional[list[dict[str, Any]]]:
        """Tool definitions for the user; ``None`` means the turn must stop."""
        try:
            return await self.tool_provider.tools_for(request.telegram_user_id)
        except Exception as exc:
            self._log(f"Failed to load tools for {request.telegram_user_id}: {exc}", logging.WARNING)

        if request.telegram_user_id not in self._warned_users:
            self._warned_users.add(request.telegram_user_id)
            await self._send_error(request, TOOLS_UNAVAILABLE_WARNING)
        if looks_task_related(request.text):
            return None
        return []

    async def _send_placeholder(self, request: TurnRequest) -> Optional[SentMessage]:
        for attempt in (1, 2):
            try:
                return await self.transport.send_message(
                    request.chat_id,
                    PLACEHOLDER_TEXT,
                    reply_to_message_id=request.message_id,
                )
            except Exception as exc:
                self._log(f"Placeholder send failed (attempt {attempt}): {exc}", logging.WARNING)
                if attempt == 1:
                    await asyncio.sleep(self.placeholder_retry_delay)
        await self._send_error(request, NETWORK_ERROR_MESSAGE)
        return None

    # --- the turn ----------------------------------------------------------
    async def _run_turn(self, request: TurnRequest) -> Optional[str]:
        settings = await TurnSettings.load(self.system_config)
        history = await self._load_history(request, settings)

        tools = await self._load_tools(request)
        if tools is None:
            return None

        try:
            await self.transport.send_chat_action(request.chat_id, "typing")
        except Exception as exc:
            self._log(f"Could not send typing action: {exc}", logging.DEBUG)

        placeholder = await self._send_placeholder(request)
        if placeholder is None:
            return None

        options = ChatOptions(
            model=self.client.model,
            system_prompt=request.system_prompt or self.system_prompt,
            use_middle_out_transform=settings.middle_out,
        )
        tracking = TrackingContext(
            telegram_user_id=request.telegram_user_id,
            session_id=request.session_id,
            message_id=str(placeholder.message_id),
        )
        display = StreamDisplay(
            self.transport,
            placeholder,
            show_reasoning=settings.show_reasoning,
            min_interval=self.edit_interval,
        )

        # Streaming
        try:
            outcome = await consume_stream(
                self.client.stream_chat(history, options, tools or None, tracking), display
            )
        except Exception as exc:
            await self._delete(placeholder)
            if is_connectivity_error(exc):
                self._log(f"Stream interrupted: {exc}", logging.WARNING)
                await self._send_error(
                    request,
                    streaming_error_message(self.client.model, self.client.capabilities_for()),
                )
                return None
            raise

        state = TurnState(history=history, settings=settings, turn_messages=1)
        state.requested.extend(outcome.tool_calls)
        state.reasoning_steps.extend(outcome.reasoning_steps)

        # ToolExecution
        final = outcome.content
        if outcome.tool_calls:
            loop = ToolLoop(
                self.client, self.dispatcher, self.message_store, display, logger=self.logger
            )
            final = await loop.run(
                state,
                outcome.tool_calls,
                outcome.reasoning_details,
                telegram_user_id=request.telegram_user_id,
                session_id=request.session_id,
                options=options,
                tools=tools or None,
                tracking=tracking,
            )

        # Finalizing
        forced = False
        if not final.strip():
            if state.requested:
                final = await self._force_summary(state, options, tracking)
                forced = True
            else:
                self._log("Model returned neither content nor tool calls", logging.WARNING)
                final = NO_RESPONSE_MESSAGE

        reply = build_final_response(
            final,
            state.reasoning_steps if settings.show_reasoning else [],
            state.tool_uses,
            forced,
        )

        # Delivered
        await self._deliver(request, placeholder, reply)
        await self.message_store.add_message(request.session_id, "assistant", final)
        return reply

    async def _force_summary(
        self, state: TurnState, options: ChatOptions, tracking: TrackingContext
    ) -> str:
        """Ask once more, without tools, for a wrap-up of what the tools found."""
        history: list[ChatMessage] = [
            dataclasses.replace(m, reasoning_details=None)
            if isinstance(m, AssistantToolCallMessage)
            else m
            for m in state.history
        ]
        prompt = FORCED_SUMMARY_PROMPT
        notice = build_empty_search_notification(state.tool_names, history)
        if notice:
            prompt += notice
        history.append(UserMessage(prompt))

        self._log(f"Forcing a summary after {len(state.requested)} tool call(s)")
        try:
            result = await self.client.chat(history, options, None, tracking)
        except LLMClientError as exc:
            self._log(f"Forced summarization failed: {exc}", logging.WARNING)
            return nothing_found_message(state.tool_names)

        if result.content.strip():
            return result.content
        return nothing_found_message(state.tool_names)

    # --- transport helpers -------------------------------------------------
    async def _deliver(self, request: TurnRequest, placeholder: SentMessage, reply: str) -> None:
        if len(reply) <= MESSAGE_LIMIT:
            try:
                await self.transport.edit_message(placeholder.chat_id, placeholder.message_id, reply)
            except Exception as exc:
                if "message is not modified" not in str(exc):
                    self._log(f"Could not edit final message: {exc}", logging.WARNING)
            return

        await self._delete(placeholder)
        for chunk in split_html_safely(reply, MESSAGE_LIMIT):
            await self.transport.send_message(request.chat_id, chunk)

    async def _delete(self, message: SentMessage) -> None:
        try:
            await self.transport.delete_message(message.chat_id, message.message_id)
        except Exception as exc:
            self._log(f"Could not delete message {message.message_id}: {exc}", logging.DEBUG)

    async def _send_error(self, request: TurnRequest, html_text: str) -> None:
        """Send HTML, falling back to a plain-text apology."""
        try:
            await self.transport.send_message(request.chat_id, html_text, parse_mode="HTML")
            return
        except Exception as exc:
            self._log(f"Failed to send error message, retrying without HTML: {exc}", logging.ERROR)
        try:
            await self.transport.send_message(request.chat_id, PLAIN_ERROR_MESSAGE, parse_mode=None)
        except Exception as exc:
            self._log(f"Could not send any error message: {exc}", logging.ERROR)
