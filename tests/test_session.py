"""Tests for session save/load."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from thesisforge.errors import SessionFormatError
from thesisforge.models.agent import AgentKind, AgentStatus
from thesisforge.models.outline import Section
from thesisforge.orchestrator.runner import default_agents
from thesisforge.orchestrator.state import Phase
from thesisforge.session import (
    SESSION_FORMAT_VERSION,
    Session,
    load_session,
    parse_session,
    save_session,
    save_session_in,
)

LEGACY_SAVE = {
    "timestamp": "2025-01-01T12:00:00.000Z",
    "input": {"topic": "边缘计算下的模型压缩", "field": "计算机", "specificFocus": "量化"},
    "agents": [
        {"id": "1", "name": "架构师 (Architect)", "role": "结构搭建", "description": "", "systemPrompt": "p",
         "status": "completed", "wordCount": 120},
        {"id": "2", "name": "内容策划 (Planner)", "role": "正文填充", "description": "", "systemPrompt": "p",
         "status": "completed"},
        {"id": "3", "name": "视觉/数据专家 (Visuals)", "role": "图表植入", "description": "", "systemPrompt": "p",
         "status": "waiting"},
        {"id": "final_draft", "name": "总编审", "role": "终稿", "description": "", "systemPrompt": "",
         "status": "waiting"},
    ],
    "thesisStructure": [
        {"id": "c1", "title": "# 第一章 绪论", "level": 1, "content": "正文"},
    ],
    "docHistory": {"1": "# 第一章 绪论"},
    "logs": [{"time": "12:00:00", "message": "工作流已启动。", "type": "info"}],
    "currentAgentIndex": 1,
    "isPaused": True,
}


def test_save_and_load_round_trip(user_input, tmp_path: Path) -> None:
    session = Session(input=user_input, agents=default_agents(), phase=Phase.PAUSED_FOR_REVIEW)
    session.outline.root.append(Section(id="c1", title="# 第一章 绪论", level=1, content="正文"))

    path = save_session(session, tmp_path / "s.json")
    loaded = load_session(path)

    assert json.loads(path.read_text(encoding="utf-8"))["format_version"] == SESSION_FORMAT_VERSION
    assert loaded.outline == session.outline
    assert loaded.agents == session.agents
    assert loaded.phase == Phase.PAUSED_FOR_REVIEW


def test_save_into_directory_generates_name(user_input, tmp_path: Path) -> None:
    """It should create a missing directory and put a generated file inside it."""

    target = tmp_path / "sessions"
    path = save_session_in(Session(input=user_input), target)
    assert target.is_dir()
    assert path.parent == target
    assert path.name.startswith("thesis_forge_save_")
    assert path.suffix == ".json"


def test_legacy_browser_save_is_upgraded() -> None:
    session = parse_session(json.dumps(LEGACY_SAVE, ensure_ascii=False))

    assert session.format_version == SESSION_FORMAT_VERSION
    assert session.input.specific_focus == "量化"
    assert [a.kind for a in session.agents] == [
        AgentKind.ARCHITECT,
        AgentKind.CONTENT,
        AgentKind.VISUALS,
        AgentKind.CHIEF_EDITOR,
    ]
    assert session.agents[0].word_count == 120
    assert session.agents[2].status == AgentStatus.WAITING
    assert session.outline[0].content == "正文"
    assert session.current_agent_index == 1
    assert session.is_paused
    assert session.phase is None


def test_unknown_version_is_rejected() -> None:
    with pytest.raises(SessionFormatError, match="format_version"):
        parse_session(json.dumps({"format_version": 2, "input": {"topic": "t"}}))


def test_unversioned_non_legacy_document_is_rejected() -> None:
    with pytest.raises(SessionFormatError):
        parse_session(json.dumps({"topic": "t"}))


@pytest.mark.parametrize("text", ["not json", "[1, 2, 3]"])
def test_garbage_is_rejected(text: str) -> None:
    with pytest.raises(SessionFormatError):
        parse_session(text)


def test_invalid_shape_is_rejected() -> None:
    with pytest.raises(SessionFormatError, match="invalid shape"):
        parse_session(json.dumps({"format_version": 1, "input": {"field": "no topic"}}))
