"""Small text helpers shared by agents and renderers."""

from __future__ import annotations

import re

_LEADING_HEADING_RE = re.compile(r"^#[^\n]*\n")
_WHITESPACE_RE = re.compile(r"\s")


def strip_leading_heading(text: str) -> str:
    """Drop a leading markdown heading line from generated body text.

    The renderer writes section titles itself, so a body must never repeat its own title.
    """

    if not text.strip().startswith("#"):
        return text
    stripped = text.strip()
    without = _LEADING_HEADING_RE.sub("", stripped, count=1)
    if without == stripped:
        # A heading with nothing after it
        return ""
    return without.strip()


def ensure_heading_marker(title: str, level: int) -> str:
    if title.startswith("#"):
        return title
    return "#" * max(1, level) + " " + title


def count_words(text: str | None) -> int:
    """Count non-whitespace characters, the usual length measure for Chinese text."""

    if not text:
        return 0
    return len(_WHITESPACE_RE.sub("", text))
