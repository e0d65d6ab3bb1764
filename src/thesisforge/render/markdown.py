"""Markdown rendering of an outline.

Markdown is the canonical export form; other document formats are produced from it
downstream.
"""

from __future__ import annotations

from thesisforge.models.outline import Outline

TOC_HEADING = "## 目录 (Table of Contents)"
TOC_MAX_LEVEL = 2


def render_thesis_markdown(outline: Outline, topic: str | None = None) -> str:
    """Render headings, content and visuals in outline order with a table of contents."""

    if len(outline) == 0:
        return ""

    parts: list[str] = []
    if topic:
        parts.append(f"# {topic}\n\n")

    parts.append(TOC_HEADING + "\n")
    for s in outline:
        if s.level <= TOC_MAX_LEVEL:
            indent = "  " * max(0, s.level - 1)
            parts.append(f"{indent}- {s.clean_title}\n")
    parts.append("\n---\n\n")

    for s in outline:
        parts.append(f"{'#' * s.level} {s.clean_title}\n\n")
        if s.content:
            parts.append(f"{s.content}\n\n")
        if s.visuals:
            parts.append(f"{s.visuals}\n\n")
        if s.level == 1:
            parts.append("\n---\n\n")

    return "".join(parts)
