"""Pydantic models used across the project."""

from __future__ import annotations

from thesisforge.models.agent import AgentDescriptor, AgentKind, AgentStatus
from thesisforge.models.outline import Chapter, FillMode, Outline, Section, UserInput

__all__ = [
    "AgentDescriptor",
    "AgentKind",
    "AgentStatus",
    "Chapter",
    "FillMode",
    "Outline",
    "Section",
    "UserInput",
]
