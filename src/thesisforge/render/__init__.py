from __future__ import annotations

from thesisforge.render.markdown import render_thesis_markdown

__all__ = ["render_thesis_markdown"]
