"""Shared fixtures: a scripted stand-in for the LLM gateway and small outlines."""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import pytest

from thesisforge.config import Settings
from thesisforge.llm.client import ApiConfig, ChatMessage
from thesisforge.models.outline import Outline, Section, UserInput

_ID_RE = re.compile(r'- ID: "([^"]+)"')

Responder = Callable[[str, str], str]


def ids_in_prompt(prompt: str) -> list[str]:
    """Section ids listed in a batch prompt."""

    return _ID_RE.findall(prompt)


def fill_all(text: str = "生成内容") -> Responder:
    """Responder that answers every requested id with `text`."""

    def respond(system_prompt: str, user_prompt: str) -> str:
        return json.dumps({sid: f"{text} {sid}" for sid in ids_in_prompt(user_prompt)}, ensure_ascii=False)

    return respond


@dataclass
class RecordedCall:
    system_prompt: str
    user_prompt: str
    config: ApiConfig | None
    json_mode: bool


@dataclass
class ScriptedLLM:
    """Replays scripted answers in order.

    Each script item is a string (returned), an exception (raised), or a responder called
    with `(system_prompt, user_prompt)`. When the script runs out, `default` answers.
    """

    script: list[str | Exception | Responder] = field(default_factory=list)
    default: Responder | None = None
    calls: list[RecordedCall] = field(default_factory=list)

    def call(
        self,
        system_prompt: str,
        user_prompt: str,
        config: ApiConfig | None = None,
        *,
        json_mode: bool = True,
        temperature: float | None = None,
    ) -> str:
        self.calls.append(RecordedCall(system_prompt, user_prompt, config, json_mode))
        if self.script:
            item = self.script.pop(0)
        elif self.default is not None:
            item = self.default
        else:
            raise AssertionError(f"unexpected LLM call #{len(self.calls)}")

        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(system_prompt, user_prompt)
        return item

    def complete(
        self,
        messages: Sequence[ChatMessage],
        config: ApiConfig | None = None,
        *,
        json_mode: bool = False,
        temperature: float | None = None,
    ) -> str:
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        last = next((m.content for m in reversed(messages) if m.role != "system"), "")
        return self.call(system, last, config, json_mode=json_mode, temperature=temperature)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        use_custom_api=False,
        custom_base_url=None,
        custom_api_key=None,
        gemini_api_key="test-key",
        gemini_model="gemini-test",
        gemini_base_url="https://gemini.test/v1beta",
        llm_timeout_s=5.0,
        sessions_dir=tmp_path / "sessions",
    )


@pytest.fixture
def user_input() -> UserInput:
    return UserInput(topic="边缘计算下的模型压缩", field="计算机科学", specific_focus="量化与剪枝")


def make_outline(*rows: tuple[str, str, int]) -> Outline:
    return Outline([Section(id=sid, title=title, level=level) for sid, title, level in rows])


@pytest.fixture
def small_outline() -> Outline:
    return make_outline(
        ("c1", "# 第一章 绪论", 1),
        ("c1_1", "## 1.1 研究背景", 2),
        ("c1_2", "## 1.2 研究现状", 2),
        ("c2", "# 第二章 方法与实验", 1),
        ("c2_1", "## 2.1 量化方法", 2),
        ("c2_2", "## 2.2 实验结果", 2),
        ("ref", "# 参考文献", 1),
    )
