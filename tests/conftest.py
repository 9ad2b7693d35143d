"""Shared fakes for the transport, MCP servers and the LLM client."""

from types import SimpleNamespace
from typing import Any, Optional
from unittest.mock import AsyncMock

import pytest
from openai import AsyncOpenAI

from rad_bot.config import CapabilityResolver
from rad_bot.store import InMemoryMessageStore, InMemorySystemConfig
from rad_bot.transport import SentMessage


class FakeTransport:
    """Records everything sent; ``fail_sends`` makes the next N sends raise."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.edits: list[dict[str, Any]] = []
        self.deleted: list[tuple[int, int]] = []
        self.actions: list[tuple[int, str]] = []
        self.fail_sends = 0
        self.fail_edits = False
        self._next_id = 100

    async def send_message(self, chat_id, text, *, parse_mode="HTML", reply_to_message_id=None):
        if self.fail_sends:
            self.fail_sends -= 1
            raise ConnectionError("send failed")
        self._next_id += 1
        self.sent.append(
            {
                "chat_id": chat_id,
                "text": text,
                "parse_mode": parse_mode,
                "reply_to": reply_to_message_id,
                "message_id": self._next_id,
            }
        )
        return SentMessage(chat_id, self._next_id)

    async def edit_message(self, chat_id, message_id, text, *, parse_mode="HTML"):
        if self.fail_edits:
            raise RuntimeError("edit failed")
        self.edits.append({"chat_id": chat_id, "message_id": message_id, "text": text})

    async def delete_message(self, chat_id, message_id):
        self.deleted.append((chat_id, message_id))

    async def send_chat_action(self, chat_id, action="typing"):
        self.actions.append((chat_id, action))


class FakeMcpSession:
    def __init__(self, tool_names=(), results: Optional[dict[str, Any]] = None, list_error=None):
        self.tools = [
            {
                "name": name,
                "description": f"{name} tool",
                "inputSchema": {"type": "object", "properties": {}},
            }
            for name in tool_names
        ]
        self.results = results or {}
        self.list_error = list_error
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def list_tools(self):
        if self.list_error is not None:
            raise self.list_error
        return {"tools": self.tools}

    async def call_tool(self, name, arguments=None):
        self.calls.append((name, arguments))
        result = self.results.get(name, '{"ok": true}')
        if isinstance(result, Exception):
            raise result
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=result)], isError=False)


class ScriptedClient:
    """
    Stands in for ``OpenRouterClient`` in orchestrator tests.

    ``streams`` holds one list of events per ``stream_chat`` call; an exception
    in the list is raised at that point. ``chats`` holds one ``ChatResult`` (or
    exception) per ``chat`` call.
    """

    def __init__(self, streams=(), chats=(), model="anthropic/claude-3.5-sonnet"):
        self.model = model
        self.streams = list(streams)
        self.chats = list(chats)
        self.stream_calls: list[dict[str, Any]] = []
        self.chat_calls: list[dict[str, Any]] = []
        self.resolver = CapabilityResolver()

    def capabilities_for(self, model=None):
        return self.resolver.for_model(model or self.model)

    async def stream_chat(self, messages, options=None, tools=None, tracking=None):
        self.stream_calls.append({"messages": list(messages), "tools": tools, "tracking": tracking})
        for event in self.streams.pop(0):
            if isinstance(event, Exception):
                raise event
            yield event

    async def chat(self, messages, options=None, tools=None, tracking=None):
        self.chat_calls.append({"messages": list(messages), "tools": tools, "tracking": tracking})
        result = self.chats.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


async def async_iter(items):
    for item in items:
        yield item


def completion(content="", tool_calls=None, finish_reason="stop", usage=None, reasoning_details=None):
    """A non-streaming completion shaped like the SDK's."""
    message = SimpleNamespace(
        content=content, tool_calls=tool_calls, reasoning_details=reasoning_details
    )
    return SimpleNamespace(
        choices=[SimpleNamespace(message=message, finish_reason=finish_reason)],
        usage=usage,
        error=None,
    )


def chunk(content=None, tool_calls=None, finish_reason=None, reasoning=None, usage=None, choices=True):
    """A streaming chunk shaped like the SDK's."""
    if not choices:
        return SimpleNamespace(choices=[], usage=usage, error=None)
    delta = SimpleNamespace(
        content=content, tool_calls=tool_calls, reasoning=reasoning, reasoning_details=None
    )
    return SimpleNamespace(
        choices=[SimpleNamespace(delta=delta, finish_reason=finish_reason, message=None)],
        usage=usage,
        error=None,
    )


def tool_call_delta(index, id=None, name=None, arguments=None):
    return SimpleNamespace(
        index=index, id=id, function=SimpleNamespace(name=name, arguments=arguments)
    )


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def message_store():
    return InMemoryMessageStore()


@pytest.fixture
def system_config():
    return InMemorySystemConfig()


@pytest.fixture
def openai_client():
    """A real ``AsyncOpenAI`` whose ``create`` is mocked."""
    client = AsyncOpenAI(api_key="test-key", base_url="https://openrouter.test/api/v1")
    client.chat.completions.create = AsyncMock()
    return client
