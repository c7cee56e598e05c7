"""Content-type sniffing and body rendering helpers."""

from __future__ import annotations

import html
import re

INLINE_TEXT_LIMIT = 1000

_MARKDOWN_TYPES = ("text/markdown", "text/x-markdown", "text/md")
_STRUCTURED_TEXT_TYPES = frozenset(
    {
        "application/json",
        "application/xml",
        "text/xml",
        "application/yaml",
        "application/x-yaml",
    }
)

_SCRIPT_RE = re.compile(r"<script[\s\S]*?</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style[\s\S]*?</style>", re.IGNORECASE)
_PARAGRAPH_END_RE = re.compile(r"</p>", re.IGNORECASE)
_BREAK_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_ENTITIES = (
    (re.compile(r"&nbsp;", re.IGNORECASE), " "),
    (re.compile(r"&amp;", re.IGNORECASE), "&"),
    (re.compile(r"&lt;", re.IGNORECASE), "<"),
    (re.compile(r"&gt;", re.IGNORECASE), ">"),
    (re.compile(r"&quot;", re.IGNORECASE), '"'),
    (re.compile(r"&#39;", re.IGNORECASE), "'"),
)


def is_inline_text_type(content_type: str) -> bool:
    """True for text/*, the markdown family and structured-text types."""
    normalized = content_type.lower()
    if normalized.startswith("text/"):
        return True
    if normalized.startswith(_MARKDOWN_TYPES):
        return True
    return normalized in _STRUCTURED_TEXT_TYPES


def decode_utf8(content: bytes) -> str:
    return content.decode("utf-8", errors="replace")


def should_inline(content_type: str, content: bytes) -> bool:
    """
    Decide whether an attachment is returned inline rather than saved.

    Only inline-eligible types qualify, and only when the UTF-8 decoded text
    is shorter than INLINE_TEXT_LIMIT characters.
    """
    if not is_inline_text_type(content_type):
        return False
    return len(decode_utf8(content)) < INLINE_TEXT_LIMIT


def html_to_text(markup: str) -> str:
    """
    Best-effort plain text from HTML.

    Not a markup parser: drops script/style blocks, turns paragraph ends and
    line breaks into newlines, strips remaining tags and decodes the six
    common entities.
    """
    text = _SCRIPT_RE.sub("", markup)
    text = _STYLE_RE.sub("", text)
    text = _PARAGRAPH_END_RE.sub("\n\n", text)
    text = _BREAK_RE.sub("\n", text)
    text = _TAG_RE.sub("", text)
    for pattern, replacement in _ENTITIES:
        text = pattern.sub(replacement, text)
    return text.strip()


def text_to_html(text: str) -> str:
    """Render plain text as minimal HTML paragraphs."""
    paragraphs = re.split(r"\r?\n\s*\r?\n", text.strip())
    rendered = []
    for paragraph in paragraphs:
        if not paragraph:
            continue
        lines = [html.escape(line) for line in paragraph.splitlines()]
        rendered.append("<p>" + "<br/>".join(lines) + "</p>")
    return "".join(rendered)
