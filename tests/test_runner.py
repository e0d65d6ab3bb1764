"""Tests for the checkpointed drafting workflow."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest
from conftest import ScriptedLLM, fill_all

from thesisforge.errors import InvalidTransitionError, UnauthorizedError
from thesisforge.events import ContentType, RunEvent
from thesisforge.models.agent import AgentStatus
from thesisforge.models.outline import UserInput
from thesisforge.orchestrator.runner import ThesisWorkflow, default_agents, restore_state
from thesisforge.orchestrator.state import Phase
from thesisforge.session import Session, load_session, save_session

OUTLINE_JSON = json.dumps(
    {
        "sections": [
            {"id": "c1", "title": "# 第一章 绪论", "level": 1},
            {"id": "c1_1", "title": "## 1.1 研究背景", "level": 2},
            {"id": "ref", "title": "# 参考文献", "level": 1},
        ]
    },
    ensure_ascii=False,
)


def _workflow(user_input: UserInput, llm: ScriptedLLM, events: list[RunEvent] | None = None) -> ThesisWorkflow:
    on_event = events.append if events is not None else None
    return ThesisWorkflow.new(user_input, llm, on_event=on_event)


def test_start_runs_architect_and_pauses(user_input) -> None:
    events: list[RunEvent] = []
    llm = ScriptedLLM(script=[OUTLINE_JSON])
    wf = _workflow(user_input, llm, events)

    outline = wf.start()

    assert [s.id for s in outline] == ["c1", "c1_1", "ref"]
    assert wf.state.phase == Phase.PAUSED_FOR_REVIEW
    assert wf.session.is_paused
    assert wf.session.current_agent_index == 0
    assert wf.session.agents[0].status == AgentStatus.COMPLETED
    assert wf.session.agents[1].status == AgentStatus.WAITING
    assert "第一章 绪论" in wf.session.doc_history["1"]
    assert wf.session.agents[0].word_count > 0
    assert [e.content_type for e in events] == [
        ContentType.WORKFLOW_STARTED,
        ContentType.AGENT_STARTED,
        ContentType.OUTLINE_BUILT,
        ContentType.AGENT_COMPLETED,
        ContentType.PAUSED_FOR_REVIEW,
    ]
    assert [e.seq for e in events] == [1, 2, 3, 4, 5]


def test_full_chain_step_by_step(user_input) -> None:
    events: list[RunEvent] = []
    llm = ScriptedLLM(script=[OUTLINE_JSON], default=fill_all())
    wf = _workflow(user_input, llm, events)

    wf.start()
    assert wf.continue_() is True
    assert wf.session.outline.get("c1_1").content == "生成内容 c1_1"
    assert wf.continue_() is True
    assert wf.session.outline.get("c1_1").visuals == "生成内容 c1_1"
    assert wf.session.outline.get("ref").visuals is None
    # Chief editor: nothing left to repair
    assert wf.continue_() is True
    assert wf.continue_() is False

    assert len(llm.calls) == 4
    assert wf.state.phase == Phase.DONE
    assert wf.session.current_agent_index == -1
    assert all(a.status == AgentStatus.COMPLETED for a in wf.session.agents)
    assert set(wf.session.doc_history) == {"1", "2", "3", "final_draft"}
    assert events[-1].content_type == ContentType.WORKFLOW_DONE


def test_run_all_produces_markdown(user_input) -> None:
    llm = ScriptedLLM(script=[OUTLINE_JSON], default=fill_all())
    wf = _workflow(user_input, llm)

    wf.run_all()

    md = wf.markdown()
    assert md.startswith("# 边缘计算下的模型压缩\n")
    assert "## 目录 (Table of Contents)" in md
    assert "生成内容 c1_1" in md


def test_run_stream_yields_every_event(user_input) -> None:
    forwarded: list[RunEvent] = []
    llm = ScriptedLLM(script=[OUTLINE_JSON], default=fill_all())
    wf = _workflow(user_input, llm, forwarded)

    streamed = list(wf.run_stream())

    assert streamed == forwarded
    assert streamed[0].content_type == ContentType.WORKFLOW_STARTED
    assert streamed[-1].content_type == ContentType.WORKFLOW_DONE
    assert [e.seq for e in streamed] == list(range(1, len(streamed) + 1))
    assert wf.state.phase == Phase.DONE


def test_closing_run_stream_stops_before_next_agent(user_input) -> None:
    """It should make no further model calls once the consumer closes the stream."""

    llm = ScriptedLLM(script=[OUTLINE_JSON], default=fill_all())
    wf = _workflow(user_input, llm)
    stream = wf.run_stream()

    assert next(stream).content_type == ContentType.WORKFLOW_STARTED
    assert llm.calls == []

    for ev in stream:
        if ev.content_type == ContentType.PAUSED_FOR_REVIEW:
            break
    stream.close()

    assert len(llm.calls) == 1
    assert wf.state.phase == Phase.PAUSED_FOR_REVIEW
    assert wf.session.agents[1].status == AgentStatus.WAITING


def test_run_stream_yields_failure_then_raises(user_input) -> None:
    llm = ScriptedLLM(script=[UnauthorizedError("401 Unauthorized. Check API key.", status_code=401)])
    wf = _workflow(user_input, llm)
    seen: list[ContentType] = []

    with pytest.raises(UnauthorizedError):
        for ev in wf.run_stream():
            seen.append(ev.content_type)

    assert seen[-1] == ContentType.AGENT_FAILED
    assert wf.state.phase == Phase.FAILED


def test_failure_leaves_failed_state_and_retry_recovers(user_input) -> None:
    events: list[RunEvent] = []
    llm = ScriptedLLM(script=[UnauthorizedError("401 Unauthorized. Check API key.", status_code=401), OUTLINE_JSON])
    wf = _workflow(user_input, llm, events)

    with pytest.raises(UnauthorizedError):
        wf.start()

    assert wf.state.phase == Phase.FAILED
    assert wf.session.phase == Phase.FAILED
    assert wf.session.agents[0].status == AgentStatus.ERROR
    assert wf.session.logs[-1].type == "error"
    assert events[-1].content_type == ContentType.AGENT_FAILED
    assert events[-1].metadata["error_type"] == "UnauthorizedError"

    with pytest.raises(InvalidTransitionError):
        wf.continue_()

    wf.retry()
    assert wf.state.phase == Phase.PAUSED_FOR_REVIEW
    assert wf.session.agents[0].status == AgentStatus.COMPLETED


def test_regenerate_and_delete_at_checkpoint(user_input) -> None:
    llm = ScriptedLLM(script=[OUTLINE_JSON, json.dumps({"c1_1": "1.1 新的研究背景"}, ensure_ascii=False)])
    wf = _workflow(user_input, llm)
    wf.start()

    wf.regenerate_selected(["c1_1"], "标题更具体一些")
    assert wf.session.outline.get("c1_1").title == "## 1.1 新的研究背景"
    assert "标题更具体一些" in llm.calls[1].user_prompt

    wf.delete_selected(["ref"])
    assert [s.id for s in wf.session.outline] == ["c1", "c1_1"]
    assert wf.state.is_paused


def test_review_actions_rejected_outside_checkpoint(user_input) -> None:
    wf = _workflow(user_input, ScriptedLLM())

    with pytest.raises(InvalidTransitionError):
        wf.regenerate_selected(["c1"])
    with pytest.raises(InvalidTransitionError):
        wf.delete_selected(["c1"])
    with pytest.raises(InvalidTransitionError):
        wf.continue_()


def test_start_requires_topic() -> None:
    wf = ThesisWorkflow.new(UserInput(topic="   "), ScriptedLLM())
    with pytest.raises(ValueError):
        wf.start()


def test_session_resumes_in_another_workflow(user_input, tmp_path: Path) -> None:
    llm = ScriptedLLM(script=[OUTLINE_JSON], default=fill_all())
    first = _workflow(user_input, llm)
    first.start()
    path = save_session(first.session, tmp_path / "run.json")

    resumed = ThesisWorkflow(load_session(path), llm)

    assert resumed.state.phase == Phase.PAUSED_FOR_REVIEW
    assert resumed.state.step_index == 0
    assert resumed.continue_() is True
    assert resumed.session.current_agent_index == 1
    assert resumed.session.outline.get("c1_1").content == "生成内容 c1_1"


def test_restore_state_mid_step_becomes_failed(user_input) -> None:
    session = Session(input=user_input, agents=default_agents(), current_agent_index=2, phase=Phase.RUNNING_AGENT)
    state = restore_state(session)
    assert state.phase == Phase.FAILED
    assert state.step_index == 2


def test_restore_state_without_phase(user_input) -> None:
    paused = Session(input=user_input, agents=default_agents(), current_agent_index=1, is_paused=True)
    assert restore_state(paused).phase == Phase.PAUSED_FOR_REVIEW

    idle = Session(input=user_input, agents=default_agents())
    assert restore_state(idle).phase == Phase.IDLE

    done_agents = default_agents()
    for a in done_agents:
        a.status = AgentStatus.COMPLETED
    assert restore_state(Session(input=user_input, agents=done_agents)).phase == Phase.DONE


def test_async_variants(user_input) -> None:
    llm = ScriptedLLM(script=[OUTLINE_JSON], default=fill_all())
    wf = _workflow(user_input, llm)

    async def drive() -> bool:
        await wf.start_async()
        return await wf.continue_async()

    assert asyncio.run(drive()) is True
    assert wf.session.current_agent_index == 1
