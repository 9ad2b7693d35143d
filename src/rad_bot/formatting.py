"""
Text formatting for Telegram delivery.

Telegram accepts a small HTML subset (b, i, s, u, code, pre, a, blockquote).
Model output is Markdown, so it is converted here, and long HTML replies are
split into chunks that each stay well-formed.
"""

from __future__ import annotations

import html
import json
import re
from typing import Any

from rad_bot.transport import MESSAGE_LIMIT

__all__ = [
    "markdown_to_telegram_html",
    "format_tool_name",
    "format_tool_args",
    "split_html_safely",
]

_CODE_BLOCK = re.compile(r"```[ \t]*([\w+-]*)[ \t]*\n?(.*?)```", re.DOTALL)
_INLINE_CODE = re.compile(r"`([^`\n]+)`")
_HEADING = re.compile(r"^[ \t]*#{1,6}[ \t]+(.+?)[ \t]*#*[ \t]*$", re.MULTILINE)
_BULLET = re.compile(r"^([ \t]*)[-*+][ \t]+", re.MULTILINE)
_BOLD = re.compile(r"\*\*(.+?)\*\*|__(.+?)__", re.DOTALL)
_ITALIC = re.compile(r"(?<![\w*])\*(?!\s)(.+?)(?<!\s)\*(?![\w*])|(?<![\w_])_(?!\s)(.+?)(?<!\s)_(?![\w_])")
_STRIKE = re.compile(r"~~(.+?)~~")
_LINK = re.compile(r'\[([^\]]+)\]\((https?://[^\s)"]+)\)')
_TAG = re.compile(r"<(/?)([a-zA-Z][a-zA-Z0-9-]*)([^>]*)>")


def markdown_to_telegram_html(text: str) -> str:
    """Convert Markdown model output to Telegram-safe HTML."""
    if not text:
        return ""

    slots: list[str] = []

    def stash(fragment: str) -> str:
        slots.append(fragment)
        return f"\x00{len(slots) - 1}\x00"

    text = _CODE_BLOCK.sub(
        lambda m: stash(f"<pre>{html.escape(m.group(2).rstrip(), quote=False)}</pre>"), text
    )
    text = _INLINE_CODE.sub(
        lambda m: stash(f"<code>{html.escape(m.group(1), quote=False)}</code>"), text
    )

    text = html.escape(text, quote=False)
    text = _LINK.sub(
        lambda m: stash(f'<a href="{m.group(2)}">{m.group(1)}</a>'), text
    )
    text = _HEADING.sub(r"<b>\1</b>", text)
    text = _BULLET.sub(r"\1• ", text)
    text = _BOLD.sub(lambda m: f"<b>{m.group(1) or m.group(2)}</b>", text)
    text = _ITALIC.sub(lambda m: f"<i>{m.group(1) or m.group(2)}</i>", text)
    text = _STRIKE.sub(r"<s>\1</s>", text)

    text = re.sub(r"\x00(\d+)\x00", lambda m: slots[int(m.group(1))], text)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def format_tool_name(tool_name: str) -> str:
    """``planka_cards_search`` -> ``🔧 Cards Search``."""
    name = re.sub(r"^(planka|rastar)[._]", "", tool_name)
    parts = [p for p in re.split(r"[._]", name) if p]
    return "🔧 " + " ".join(p[:1].upper() + p[1:] for p in parts)


def format_tool_args(args: Any, max_length: int = 60) -> str:
    """
    Render tool arguments for display, e.g. `` (projectId: "123", query: "test")``.

    Strings longer than 30 characters are shortened, nested values are shown
    as ``[...]`` and null values are skipped. Returns ``""`` when there is
    nothing to show.
    """
    if not args:
        return ""
    if isinstance(args, str):
        try:
            args = json.loads(args)
        except json.JSONDecodeError:
            return ""
    if not isinstance(args, dict):
        return ""

    pairs = []
    for key, value in args.items():
        if value is None:
            continue
        if isinstance(value, str):
            shown = f'"{value[:27]}..."' if len(value) > 30 else f'"{value}"'
        elif isinstance(value, (dict, list)):
            shown = "[...]"
        elif isinstance(value, bool):
            shown = "true" if value else "false"
        else:
            shown = str(value)
        pairs.append(f"{key}: {shown}")

    if not pairs:
        return ""
    result = f" ({', '.join(pairs)})"
    if len(result) > max_length:
        return result[: max_length - 4] + "...)"
    return result


def _safe_cut(text: str, cut: int) -> int:
    # never cut inside an HTML entity such as &amp;
    amp = text.rfind("&", max(0, cut - 8), cut)
    if amp > 0 and ";" not in text[amp:cut]:
        return amp
    return cut


class _HtmlSplitter:
    def __init__(self, max_length: int) -> None:
        self.max_length = max_length
        self.chunks: list[str] = []
        self.stack: list[tuple[str, str]] = []  # (name, opening tag)
        self.current = ""
        self.has_body = False

    @staticmethod
    def _closing(stack: list[tuple[str, str]]) -> str:
        return "".join(f"</{name}>" for name, _ in reversed(stack))

    def _flush(self) -> None:
        if self.has_body and self.current.strip():
            self.chunks.append(self.current + self._closing(self.stack))
        self.current = "".join(tag for _, tag in self.stack)
        self.has_body = False

    def _stack_after(self, tag: str, name: str, is_close: bool) -> list[tuple[str, str]]:
        after = list(self.stack)
        if is_close:
            for idx in range(len(after) - 1, -1, -1):
                if after[idx][0] == name:
                    del after[idx]
                    break
        elif not tag.endswith("/>"):
            after.append((name, tag))
        return after

    def add_tag(self, tag: str, name: str, is_close: bool) -> None:
        after = self._stack_after(tag, name, is_close)
        if self.has_body and len(self.current) + len(tag) + len(self._closing(after)) > self.max_length:
            self._flush()
        self.current += tag
        self.stack = after

    def add_text(self, segment: str) -> None:
        while segment:
            room = self.max_length - len(self.current) - len(self._closing(self.stack))
            if len(segment) <= room:
                self.current += segment
                self.has_body = True
                return
            if room <= 0 and self.has_body:
                self._flush()
                continue
            room = max(room, 1)

            cut = room
            brk = max(segment.rfind("\n", 0, room), segment.rfind(" ", 0, room))
            if brk >= room * 0.8:
                cut = brk + 1
            cut = _safe_cut(segment, cut)

            self.current += segment[:cut]
            self.has_body = True
            segment = segment[cut:]
            self._flush()

    def finish(self) -> list[str]:
        self._flush()
        return self.chunks


def split_html_safely(text: str, max_length: int = MESSAGE_LIMIT) -> list[str]:
    """
    Split HTML into chunks of at most ``max_length`` characters.

    Chunks are never cut inside a tag. Tags still open at a chunk boundary are
    closed at the end of the chunk and reopened at the start of the next one.
    Text is broken at a newline or space when one is found in the last 20% of
    the available room.
    """
    if len(text) <= max_length:
        return [text]

    splitter = _HtmlSplitter(max_length)
    pos = 0
    for match in _TAG.finditer(text):
        splitter.add_text(text[pos : match.start()])
        splitter.add_tag(match.group(0), match.group(2).lower(), match.group(1) == "/")
        pos = match.end()
    splitter.add_text(text[pos:])
    return splitter.finish()
