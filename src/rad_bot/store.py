"""
Storage boundaries used by the orchestrator.

The bot persists messages and reads admin settings through a database layer
that lives outside this package; the orchestrator only sees these protocols.
The in-memory implementations back tests and local runs.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Optional, Protocol, runtime_checkable

from rad_bot.types.chat import MessageRecord

__all__ = ["MessageStore", "SystemConfig", "InMemoryMessageStore", "InMemorySystemConfig"]


@runtime_checkable
class MessageStore(Protocol):
    async def get_session_messages(self, session_id: str, limit: int) -> list[MessageRecord]:
        """Return the last ``limit`` messages of the session, oldest first."""
        ...

    async def add_message(
        self,
        session_id: str,
        role: str,
        content: str,
        tool_call_id: Optional[str] = None,
        tool_name: Optional[str] = None,
        tool_args: Optional[str] = None,
    ) -> None:
        ...


@runtime_checkable
class SystemConfig(Protocol):
    async def get_system_config(self, key: str) -> Optional[str]:
        ...


class InMemoryMessageStore:
    def __init__(self) -> None:
        self._sessions: dict[str, list[MessageRecord]] = defaultdict(list)

    async def get_session_messages(self, session_id: str, limit: int) -> list[MessageRecord]:
        if limit <= 0:
            return []
        return list(self._sessions[session_id][-limit:])

    async def add_message(
        self,
        session_id: str,
        role: str,
        content: str,
        tool_call_id: Optional[str] = None,
        tool_name: Optional[str] = None,
        tool_args: Optional[str] = None,
    ) -> None:
        self._sessions[session_id].append(
            MessageRecord(
                role=role,
                content=content,
                tool_call_id=tool_call_id,
                tool_name=tool_name,
                tool_args=tool_args,
            )
        )

    def messages(self, session_id: str) -> list[MessageRecord]:
        return list(self._sessions[session_id])


class InMemorySystemConfig:
    def __init__(self, values: Optional[dict[str, str]] = None) -> None:
        self._values = dict(values or {})

    async def get_system_config(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value
