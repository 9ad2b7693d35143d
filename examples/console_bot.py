"""Console chat demonstrating the rad-bot turn pipeline without Telegram.

Needs OPENROUTER_API_KEY. Planka is replaced by a tiny in-process fake so the
model can call ``planka_cards_search``.
"""

from __future__ import annotations

import argparse
import asyncio
import itertools
import json
import logging

from rad_bot import InMemoryUsageStore, TurnRequest, UsageRecorder, create_client, create_orchestrator
from rad_bot.store import InMemoryMessageStore, InMemorySystemConfig
from rad_bot.transport import SentMessage

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

CARDS = [
    {"id": "1", "name": "Fix login redirect", "list": "In progress"},
    {"id": "2", "name": "Write release notes", "list": "Todo"},
]


class ConsoleTransport:
    """Prints what a Telegram chat would show."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)

    async def send_message(self, chat_id, text, *, parse_mode="HTML", reply_to_message_id=None):
        message_id = next(self._ids)
        print(f"\n[message {message_id}]\n{text}")
        return SentMessage(chat_id, message_id)

    async def edit_message(self, chat_id, message_id, text, *, parse_mode="HTML"):
        logger.debug("edit %s: %s", message_id, text[:80])

    async def delete_message(self, chat_id, message_id):
        logger.debug("delete %s", message_id)

    async def send_chat_action(self, chat_id, action="typing"):
        pass


class FakePlanka:
    """Minimal MCP session with one search tool."""

    async def list_tools(self):
        return {
            "tools": [
                {
                    "name": "planka.cards.search",
                    "description": "Search the user's Planka cards by text",
                    "inputSchema": {
                        "type": "object",
                        "properties": {"query": {"type": "string"}},
                        "required": ["query"],
                    },
                }
            ]
        }

    async def call_tool(self, name, arguments=None):
        query = (arguments or {}).get("query", "").lower()
        hits = [c for c in CARDS if query in c["name"].lower()]
        text = json.dumps({"totalFound": len(hits), "cards": hits})
        return {"content": [{"type": "text", "text": text}], "isError": False}


async def main(model: str | None) -> None:
    usage_store = InMemoryUsageStore()
    client = create_client(usage_sink=UsageRecorder(usage_store))
    if model:
        client.model = model

    orchestrator = create_orchestrator(
        client,
        message_store=InMemoryMessageStore(),
        system_config=InMemorySystemConfig({"maxToolCalls": "5"}),
        transport=ConsoleTransport(),
        planka=FakePlanka(),
    )

    async with client:
        while True:
            try:
                text = await asyncio.to_thread(input, "\nyou> ")
            except EOFError:
                break
            if text.strip() in {"quit", "exit"}:
                break
            await orchestrator.handle_message(
                TurnRequest(chat_id=1, telegram_user_id="console", session_id="console", text=text)
            )

    stats = usage_store.user_stats("console")
    print(f"\n📊 {stats.requests} request(s), {stats.total_tokens} tokens, ${stats.cost:.4f}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Chat with the bot in the terminal")
    parser.add_argument("--model", help="OpenRouter model id, e.g. openai/gpt-4o")
    args = parser.parse_args()
    asyncio.run(main(args.model))
