"""Tests for the HTTP API."""

from __future__ import annotations

import json

from conftest import ScriptedLLM, fill_all
from fastapi.testclient import TestClient

from thesisforge.api.app import create_app
from thesisforge.errors import UnauthorizedError
from thesisforge.orchestrator.runner import default_agents
from thesisforge.session import Session

OUTLINE_JSON = (
    '{"sections": [{"id": "c1", "title": "# 第一章 绪论", "level": 1}, '
    '{"id": "c1_1", "title": "## 1.1 背景", "level": 2}]}'
)


def _client(settings, llm: ScriptedLLM) -> TestClient:
    return TestClient(create_app(settings, llm))


def _parse_frame(chunk: str) -> dict[str, str]:
    fields = {}
    for line in chunk.splitlines():
        key, _, value = line.partition(": ")
        fields[key] = value
    return fields


def _new_session(user_input) -> dict:
    return Session(input=user_input, agents=default_agents()).model_dump(mode="json")


def test_health(settings) -> None:
    resp = _client(settings, ScriptedLLM()).get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_outline(settings) -> None:
    client = _client(settings, ScriptedLLM(script=[OUTLINE_JSON]))

    resp = client.post("/outline", json={"input": {"topic": "边缘计算下的模型压缩"}})

    assert resp.status_code == 200
    assert [s["id"] for s in resp.json()["sections"]] == ["c1", "c1_1"]


def test_outline_failure_maps_to_422(settings) -> None:
    client = _client(settings, ScriptedLLM(script=["no json"]))

    resp = client.post("/outline", json={"input": {"topic": "t"}})

    assert resp.status_code == 422
    assert resp.json()["error"] == "StructureGenerationFailedError"


def test_step_through_checkpoints(settings, user_input) -> None:
    client = _client(settings, ScriptedLLM(script=[OUTLINE_JSON], default=fill_all()))

    first = client.post("/sessions/step", json={"session": _new_session(user_input)})
    assert first.status_code == 200
    session = first.json()
    assert session["phase"] == "paused_for_review"
    assert session["current_agent_index"] == 0

    second = client.post("/sessions/step", json={"session": session})
    assert second.status_code == 200
    assert second.json()["current_agent_index"] == 1
    assert second.json()["outline"][1]["content"] == "生成内容 c1_1"


def test_gateway_error_maps_to_status(settings, user_input) -> None:
    llm = ScriptedLLM(script=[UnauthorizedError("401 Unauthorized. Check API key.", status_code=401)])
    client = _client(settings, llm)

    resp = client.post("/sessions/step", json={"session": _new_session(user_input)})

    assert resp.status_code == 401
    assert resp.json() == {"error": "UnauthorizedError", "detail": "401 Unauthorized. Check API key."}


def test_review_actions(settings, user_input) -> None:
    llm = ScriptedLLM(script=[OUTLINE_JSON, '{"c1_1": "1.1 研究背景与意义"}'])
    client = _client(settings, llm)
    session = client.post("/sessions/step", json={"session": _new_session(user_input)}).json()

    regenerated = client.post(
        "/sessions/regenerate",
        json={"session": session, "section_ids": ["c1_1"], "instruction": "更具体"},
    )
    assert regenerated.status_code == 200
    assert regenerated.json()["outline"][1]["title"] == "## 1.1 研究背景与意义"

    deleted = client.post("/sessions/delete", json={"session": regenerated.json(), "section_ids": ["c1_1"]})
    assert [s["id"] for s in deleted.json()["outline"]] == ["c1"]

    rendered = client.post("/sessions/render", json={"session": deleted.json()})
    assert rendered.json()["markdown"].startswith("# 边缘计算下的模型压缩\n")


def test_review_outside_checkpoint_is_conflict(settings, user_input) -> None:
    resp = _client(settings, ScriptedLLM()).post(
        "/sessions/delete", json={"session": _new_session(user_input), "section_ids": ["c1"]}
    )
    assert resp.status_code == 409


def test_unsupported_session_version(settings, user_input) -> None:
    session = _new_session(user_input)
    session["format_version"] = 99

    resp = _client(settings, ScriptedLLM()).post("/sessions/step", json={"session": session})

    assert resp.status_code == 400
    assert resp.json()["error"] == "SessionFormatError"


def test_advisor_reply(settings) -> None:
    client = _client(settings, ScriptedLLM(script=["再说说数据集？"]))

    resp = client.post("/advisor/reply", json={"history": [{"role": "user", "content": "我想写模型压缩"}]})

    assert resp.status_code == 200
    assert resp.json() == {"text": "再说说数据集？", "finished": False, "data": None}


def test_run_stream_emits_events_then_session(settings) -> None:
    client = _client(settings, ScriptedLLM(script=[OUTLINE_JSON], default=fill_all()))

    resp = client.post("/runs/stream", json={"input": {"topic": "边缘计算下的模型压缩"}})

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")
    frames = [_parse_frame(c) for c in resp.text.split("\n\n") if c]
    names = [f["event"] for f in frames]
    assert names[0] == "workflow_started"
    assert names[-2:] == ["workflow_done", "session"]
    assert "agent_failed" not in names
    assert json.loads(frames[0]["data"])["seq"] == 1
    final = json.loads(frames[-1]["data"])
    assert final["session"]["phase"] == "done"


def test_run_stream_requires_topic(settings) -> None:
    resp = _client(settings, ScriptedLLM()).post("/runs/stream", json={"input": {"topic": " "}})
    assert resp.status_code == 400


def test_run_stream_reports_failure_then_session(settings) -> None:
    llm = ScriptedLLM(script=[UnauthorizedError("401 Unauthorized. Check API key.", status_code=401)])

    resp = _client(settings, llm).post("/runs/stream", json={"input": {"topic": "边缘计算下的模型压缩"}})

    assert resp.status_code == 200
    frames = [_parse_frame(c) for c in resp.text.split("\n\n") if c]
    assert [f["event"] for f in frames][-2:] == ["agent_failed", "session"]
    assert json.loads(frames[-1]["data"])["session"]["phase"] == "failed"
    assert len(llm.calls) == 1
