"""Event model used for streaming workflow progress.

Every workflow step produces events; the HTTP API streams them as server-sent events and the
CLI prints them.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """High-level event categories."""

    SYSTEM = "system"
    LLM = "llm"
    ERROR = "error"


class ContentType(str, Enum):
    """Semantic types within event streams."""

    WORKFLOW_STARTED = "workflow_started"
    AGENT_STARTED = "agent_started"
    OUTLINE_BUILT = "outline_built"
    AGENT_COMPLETED = "agent_completed"
    AGENT_FAILED = "agent_failed"
    PAUSED_FOR_REVIEW = "paused_for_review"
    SECTIONS_REGENERATED = "sections_regenerated"
    SECTIONS_DELETED = "sections_deleted"
    WORKFLOW_DONE = "workflow_done"


class RunEvent(BaseModel):
    """A single event in a run."""

    run_id: str
    seq: int = Field(ge=1)
    ts: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    event_type: EventType
    content_type: ContentType

    data: str | dict | list | None = None
    metadata: dict[str, str | int | float | bool | None] = Field(default_factory=dict)

    def to_sse(self) -> bytes:
        """Encode as one server-sent event frame named after the content type."""

        payload = json.dumps(self.model_dump(mode="json"), ensure_ascii=False)
        return f"id: {self.seq}\nevent: {self.content_type.value}\ndata: {payload}\n\n".encode("utf-8")
