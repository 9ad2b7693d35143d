"""
Building the text the user finally sees.

The model's answer is converted to Telegram HTML and followed by a collapsed
"Process Summary" listing reasoning steps and the tools that were used.
"""

from __future__ import annotations

import html
import json
from dataclasses import dataclass, field
from typing import Optional, Sequence

from rad_bot.formatting import format_tool_args, format_tool_name, markdown_to_telegram_html
from rad_bot.types.chat import ChatMessage, ToolResultMessage
from rad_bot.types.tool import ToolUse

__all__ = [
    "ReasoningStep",
    "FORCED_SUMMARY_PROMPT",
    "NO_RESPONSE_MESSAGE",
    "build_final_response",
    "build_expandable_summary",
    "build_empty_search_notification",
    "nothing_found_message",
]

FORCED_SUMMARY_PROMPT = (
    "You have finished using tools. Do not call any more tools. "
    "Based on the tool results above, tell me what you searched for and what you found. "
    "If nothing relevant was found, say so clearly."
)

NO_RESPONSE_MESSAGE = (
    "I'm sorry, I didn't know how to respond to that. "
    "Could you rephrase your message or give me more details?"
)

EMPTY_SEARCH_NOTICE = (
    "\n\n⚠️ IMPORTANT: Some of your searches returned ZERO results (totalFound: 0). "
    "Do NOT make up or hallucinate data. If no results were found, clearly tell the "
    "user that no matching items were found."
)


@dataclass(slots=True)
class ReasoningStep:
    reasoning: str
    tools: list[ToolUse] = field(default_factory=list)


def _tool_line(tool: ToolUse) -> str:
    name = html.escape(format_tool_name(tool.name), quote=False)
    args = html.escape(format_tool_args(tool.args, 200), quote=False)
    return f"  • {name}{args}\n"


def build_expandable_summary(
    reasoning_steps: Sequence[ReasoningStep],
    tool_uses: Sequence[ToolUse],
    forced_summarization: bool = False,
) -> str:
    summary = ""

    if reasoning_steps:
        summary += "<b>💭 Reasoning Process:</b>\n\n"
        for number, step in enumerate(reasoning_steps, start=1):
            summary += f"<b>Step {number}:</b> {html.escape(step.reasoning, quote=False)}\n"
            if step.tools:
                summary += "<b>Tools used:</b>\n"
                summary += "".join(_tool_line(tool) for tool in step.tools)
            summary += "\n"
    elif tool_uses:
        summary += "<b>🛠️ Tools used:</b>\n"
        summary += "".join(_tool_line(tool) for tool in tool_uses)
        summary += "\n"

    if forced_summarization:
        summary += "<i>ℹ️ Used forced summarization due to context limits</i>\n"

    if not summary:
        return ""
    return f"<blockquote expandable>💡 <b>Process Summary</b>\n\n{summary}</blockquote>"


def build_final_response(
    final_response: str,
    reasoning_steps: Sequence[ReasoningStep],
    tool_uses: Sequence[ToolUse],
    forced_summarization: bool = False,
) -> str:
    response = markdown_to_telegram_html(final_response)
    summary = build_expandable_summary(reasoning_steps, tool_uses, forced_summarization)
    if summary:
        response += "\n\n" + summary
    return response


def _is_empty_result(content: str) -> bool:
    try:
        result = json.loads(content)
    except (TypeError, ValueError):
        return False
    if not isinstance(result, dict):
        return False
    if result.get("totalFound") == 0:
        return True
    return any(
        isinstance(result.get(key), list) and not result[key] for key in ("cards", "tasks")
    )


def build_empty_search_notification(
    tool_names: Sequence[str], history: Sequence[ChatMessage]
) -> Optional[str]:
    """
    Warn the model not to invent data when a search or list tool found nothing.

    Returns ``None`` unless a search/list tool was called and at least one tool
    result reports zero hits.
    """
    if not any("search" in name or "list" in name for name in tool_names):
        return None
    if any(isinstance(m, ToolResultMessage) and _is_empty_result(m.content) for m in history):
        return EMPTY_SEARCH_NOTICE
    return None


def nothing_found_message(tool_names: Sequence[str]) -> str:
    """Last-resort reply when the model produced no text after using tools."""
    unique = list(dict.fromkeys(tool_names))
    shown = ", ".join(format_tool_name(name).removeprefix("🔧 ") for name in unique)
    count = len(tool_names)
    return (
        f"I searched using {count} tool call{'s' if count != 1 else ''} ({shown}) "
        "but couldn't find anything to report. Please try rephrasing your request "
        "or asking about something more specific."
    )
