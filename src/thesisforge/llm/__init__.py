"""LLM gateway."""

from __future__ import annotations

from thesisforge.llm.client import ApiConfig, ChatMessage, LLMClient

__all__ = ["ApiConfig", "ChatMessage", "LLMClient"]
