"""Session persistence.

A session is one JSON document holding everything needed to resume a drafting run at its
last checkpoint: the user input, the agent chain with statuses, the outline with generated
text inline, per-agent markdown snapshots, the log, and the step pointer.

Sessions carry `format_version`. Files with an unknown version are rejected. Files without a
version but with the camelCase keys written by the original browser app are read as legacy
version 1 saves.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from thesisforge.errors import SessionFormatError
from thesisforge.logging import get_logger
from thesisforge.models.agent import AgentDescriptor, AgentKind
from thesisforge.models.outline import Outline, UserInput
from thesisforge.orchestrator.state import Phase

logger = get_logger(__name__)

SESSION_FORMAT_VERSION = 1

LogType = Literal["info", "success", "error"]


class LogEntry(BaseModel):
    time: str
    message: str
    type: LogType = "info"


class Session(BaseModel):
    """Persisted state of one drafting run."""

    model_config = ConfigDict(populate_by_name=True)

    format_version: int = SESSION_FORMAT_VERSION
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    input: UserInput
    agents: list[AgentDescriptor] = Field(default_factory=list)
    outline: Outline = Field(
        default_factory=Outline,
        validation_alias=AliasChoices("outline", "thesisStructure"),
    )
    doc_history: dict[str, str] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("doc_history", "docHistory"),
    )
    logs: list[LogEntry] = Field(default_factory=list)
    current_agent_index: int = Field(
        default=-1,
        validation_alias=AliasChoices("current_agent_index", "currentAgentIndex"),
    )
    is_paused: bool = Field(default=False, validation_alias=AliasChoices("is_paused", "isPaused"))
    phase: Phase | None = None

    def to_json(self) -> str:
        return json.dumps(self.model_dump(mode="json"), ensure_ascii=False, indent=2)


def default_session_filename(session: Session) -> str:
    stamp = int(datetime.now(timezone.utc).timestamp() * 1000)
    return f"thesis_forge_save_{session.input.topic[:10]}_{stamp}.json"


def save_session(session: Session, path: Path) -> Path:
    """Write `session` to the file `path`."""

    path.parent.mkdir(parents=True, exist_ok=True)
    session.timestamp = datetime.now(timezone.utc)
    path.write_text(session.to_json(), encoding="utf-8")
    logger.info("Session saved", extra={"path": str(path)})
    return path


def save_session_in(session: Session, directory: Path) -> Path:
    """Write `session` under `directory` with a generated file name, creating the directory."""

    directory.mkdir(parents=True, exist_ok=True)
    return save_session(session, directory / default_session_filename(session))


def load_session(path: Path) -> Session:
    return parse_session(path.read_text(encoding="utf-8"))


def parse_session(text: str) -> Session:
    """Validate a session document.

    Raises:
        SessionFormatError: Not JSON, unknown version, or a shape that does not validate.
    """

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise SessionFormatError(f"session file is not valid JSON: {e}") from e
    return session_from_dict(data)


def session_from_dict(data: Any) -> Session:
    if not isinstance(data, dict):
        raise SessionFormatError("session file must contain a JSON object")

    version = data.get("format_version")
    if version is None:
        if "input" in data and "thesisStructure" in data:
            data = _upgrade_legacy(data)
        else:
            raise SessionFormatError("missing format_version; this is not a ThesisForge session file")
    elif version != SESSION_FORMAT_VERSION:
        raise SessionFormatError(
            f"unsupported session format_version {version!r}; this build reads version {SESSION_FORMAT_VERSION}"
        )

    try:
        return Session.model_validate(data)
    except ValidationError as e:
        raise SessionFormatError(f"session file has an invalid shape: {e.error_count()} error(s)") from e


def _legacy_kind(agent: dict[str, Any]) -> str:
    name = str(agent.get("name") or "")
    if agent.get("id") == "final_draft":
        return AgentKind.CHIEF_EDITOR.value
    if "架构师" in name or "Architect" in name:
        return AgentKind.ARCHITECT.value
    if "视觉" in name or "Visuals" in name:
        return AgentKind.VISUALS.value
    return AgentKind.CONTENT.value


def _upgrade_legacy(data: dict[str, Any]) -> dict[str, Any]:
    """Map a browser-app save onto version 1."""

    upgraded = dict(data)
    upgraded["format_version"] = SESSION_FORMAT_VERSION
    agents = []
    for agent in data.get("agents") or []:
        if isinstance(agent, dict) and "kind" not in agent:
            agent = {**agent, "kind": _legacy_kind(agent)}
        agents.append(agent)
    upgraded["agents"] = agents
    logger.info("Upgraded legacy session", extra={"agents": len(agents)})
    return upgraded
