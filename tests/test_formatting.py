"""Tests for Telegram HTML formatting and splitting."""

import re

from rad_bot.formatting import (
    format_tool_args,
    format_tool_name,
    markdown_to_telegram_html,
    split_html_safely,
)


def balanced(chunk):
    stack = []
    for closing, name in re.findall(r"<(/?)([a-z]+)[^>]*>", chunk):
        if closing:
            if not stack or stack[-1] != name:
                return False
            stack.pop()
        else:
            stack.append(name)
    return not stack


class TestMarkdownToTelegramHtml:
    def test_bold_italic_strike(self):
        """Test bold, italic and strikethrough conversion."""
        assert markdown_to_telegram_html("**bold** and *it* and ~~gone~~") == (
            "<b>bold</b> and <i>it</i> and <s>gone</s>"
        )

    def test_escapes_html(self):
        """Test that HTML in the text is escaped."""
        assert markdown_to_telegram_html("a < b & c") == "a &lt; b &amp; c"

    def test_code_is_not_formatted(self):
        """Test that markdown inside code is left alone."""
        html = markdown_to_telegram_html("use `**x**` or\n```python\nif a < b:\n    pass\n```")
        assert "<code>**x**</code>" in html
        assert "<pre>if a &lt; b:\n    pass</pre>" in html

    def test_headings_and_bullets(self):
        """Test heading and bullet conversion."""
        html = markdown_to_telegram_html("## Tasks\n- one\n- two")
        assert html == "<b>Tasks</b>\n• one\n• two"

    def test_links(self):
        """Test link conversion."""
        html = markdown_to_telegram_html("[Board](https://planka.example/b/1?a=1&b=2)")
        assert html == '<a href="https://planka.example/b/1?a=1&amp;b=2">Board</a>'

    def test_empty(self):
        """Test converting an empty string."""
        assert markdown_to_telegram_html("") == ""


class TestToolDisplay:
    def test_format_tool_name(self):
        """Test display names for tools."""
        assert format_tool_name("planka_cards_search") == "🔧 Cards Search"
        assert format_tool_name("rastar.get_status") == "🔧 Get Status"
        assert format_tool_name("time_now") == "🔧 Time Now"

    def test_format_tool_args(self):
        """Test display of tool arguments."""
        assert format_tool_args('{"projectId": "123", "limit": 5, "done": false}') == (
            ' (projectId: "123", limit: 5, done: false)'
        )

    def test_format_tool_args_shortens(self):
        """Test that long argument values are shortened."""
        args = {"query": "x" * 40, "filters": {"a": 1}, "skip": None}
        assert format_tool_args(args, 200) == f' (query: "{"x" * 27}...", filters: [...])'

    def test_format_tool_args_truncates(self):
        """Test that the argument display is truncated to its limit."""
        text = format_tool_args({f"key{i}": i for i in range(20)}, 40)
        assert len(text) == 40
        assert text.endswith("...)")

    def test_format_tool_args_invalid(self):
        """Test that unreadable arguments display nothing."""
        assert format_tool_args("not json") == ""
        assert format_tool_args("{}") == ""
        assert format_tool_args(None) == ""


class TestSplitHtmlSafely:
    def test_short_text_is_one_chunk(self):
        """Test that short text is not split."""
        assert split_html_safely("<b>hi</b>", 100) == ["<b>hi</b>"]

    def test_respects_limit_and_balance(self):
        """Test that every chunk fits the limit with balanced tags."""
        text = "<b>" + "word " * 300 + "</b>\n<i>" + "more " * 200 + "</i>"
        chunks = split_html_safely(text, 200)

        assert len(chunks) > 1
        for chunk in chunks:
            assert len(chunk) <= 200
            assert balanced(chunk)

    def test_reopens_tags(self):
        """Test that open tags are reopened in the next chunk."""
        text = "<blockquote expandable>" + "line\n" * 100 + "</blockquote>"
        chunks = split_html_safely(text, 120)
        assert all(c.startswith("<blockquote expandable>") for c in chunks)
        assert all(c.endswith("</blockquote>") for c in chunks)

    def test_keeps_all_text(self):
        """Test that splitting loses no text."""
        words = [f"w{i}" for i in range(400)]
        text = "<b>" + " ".join(words) + "</b>"
        chunks = split_html_safely(text, 150)
        joined = " ".join(re.sub(r"<[^>]+>", "", c) for c in chunks)
        assert joined.split() == words

    def test_does_not_cut_entities(self):
        """Test that HTML entities are never cut."""
        chunks = split_html_safely("&amp;" * 400, 97)
        assert "".join(chunks) == "&amp;" * 400
        for chunk in chunks:
            assert chunk.count("&") == chunk.count(";")
