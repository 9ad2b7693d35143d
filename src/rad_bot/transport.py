"""Outbound chat transport used to deliver replies (Telegram in production)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

__all__ = ["SentMessage", "ChatTransport", "MESSAGE_LIMIT"]

# practical per-message limit; Telegram's hard limit is 4096
MESSAGE_LIMIT = 4000


@dataclass(frozen=True, slots=True)
class SentMessage:
    chat_id: int
    message_id: int


@runtime_checkable
class ChatTransport(Protocol):
    async def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        parse_mode: Optional[str] = "HTML",
        reply_to_message_id: Optional[int] = None,
    ) -> SentMessage:
        ...

    async def edit_message(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        *,
        parse_mode: Optional[str] = "HTML",
    ) -> None:
        ...

    async def delete_message(self, chat_id: int, message_id: int) -> None:
        ...

    async def send_chat_action(self, chat_id: int, action: str = "typing") -> None:
        ...
