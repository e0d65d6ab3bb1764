"""Agent descriptors.

An agent is a named system prompt plus the kind of work it does. The kind decides which
pipeline runs it; the display name is never inspected.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class AgentKind(str, Enum):
    ARCHITECT = "architect"
    CONTENT = "content"
    VISUALS = "visuals"
    CHIEF_EDITOR = "chief_editor"


class AgentStatus(str, Enum):
    IDLE = "idle"
    WAITING = "waiting"
    WORKING = "working"
    COMPLETED = "completed"
    ERROR = "error"


class AgentDescriptor(BaseModel):
    """One step of the drafting chain."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    role: str = ""
    description: str = ""
    kind: AgentKind = AgentKind.CONTENT
    system_prompt: str = Field(default="", alias="systemPrompt")
    status: AgentStatus = AgentStatus.IDLE
    word_count: int | None = Field(default=None, alias="wordCount")
    is_custom: bool = Field(default=False, alias="isCustom")
