"""Free-text sanitizing for titles and descriptions."""

import html
import re

_TAG_PATTERN = re.compile(r"<[^>]*>")
_WHITESPACE_PATTERN = re.compile(r"\s+")


def _decode_entities(text: str) -> str:
    while True:
        decoded = html.unescape(text)
        if decoded == text:
            return text
        text = decoded


def strip_markup(value: str | None) -> str:
    """Remove HTML tags from user-supplied text and collapse whitespace.

    Entities are decoded (repeatedly, for double-escaped input) before tags are
    removed, so an escaped tag such as ``&lt;b&gt;`` is stripped like a real one.

    Args:
        value: Raw text, or None

    Returns:
        The cleaned text; an empty string for None
    """
    if not value:
        return ""
    text = _decode_entities(value)
    while True:
        stripped = _TAG_PATTERN.sub("", text)
        if stripped == text:
            break
        text = stripped
    return _WHITESPACE_PATTERN.sub(" ", text).strip()
