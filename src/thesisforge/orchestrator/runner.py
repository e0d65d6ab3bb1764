"""Drafting workflow runner.

Runs the agent chain one agent at a time and pauses after each one for human review. All
state that must survive a pause lives in the :class:`~thesisforge.session.Session`, so a run
can be saved at any checkpoint and resumed later, possibly in another process.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable, Generator, Iterator, Sequence
from datetime import datetime, timezone

from thesisforge.agents.architect import ArchitectAgent
from thesisforge.agents.batch import ChapteredBatchGenerator
from thesisforge.agents.chief_editor import GapRepairPass
from thesisforge.events import ContentType, EventType, RunEvent
from thesisforge.llm.client import ApiConfig, LLMClient
from thesisforge.logging import get_logger, run_context
from thesisforge.models.agent import AgentDescriptor, AgentKind, AgentStatus
from thesisforge.models.outline import Outline, UserInput
from thesisforge.orchestrator.state import WORKING_PHASES, Phase, WorkflowState
from thesisforge.prompts import (
    ARCHITECT_SYSTEM_PROMPT,
    CHIEF_EDITOR_SYSTEM_PROMPT,
    CONTENT_SYSTEM_PROMPT,
    VISUALS_SYSTEM_PROMPT,
)
from thesisforge.render.markdown import render_thesis_markdown
from thesisforge.session import LogEntry, LogType, Session
from thesisforge.utils.text import count_words

logger = get_logger(__name__)

EventCallback = Callable[[RunEvent], None]


def default_agents() -> list[AgentDescriptor]:
    """The standard four-agent chain."""

    return [
        AgentDescriptor(
            id="1",
            name="架构师 (Architect)",
            role="结构搭建",
            description="生成高逻辑性的论文骨架 JSON。严格遵循“一章一方法一实验”的闭环原则。",
            kind=AgentKind.ARCHITECT,
            system_prompt=ARCHITECT_SYSTEM_PROMPT,
        ),
        AgentDescriptor(
            id="2",
            name="内容策划 (Planner)",
            role="正文填充",
            description="按章批量生成学术正文（专注于纯文本、公式推导，不含图表）。",
            kind=AgentKind.CONTENT,
            system_prompt=CONTENT_SYSTEM_PROMPT,
        ),
        AgentDescriptor(
            id="3",
            name="视觉/数据专家 (Visuals)",
            role="图表植入",
            description="生成 Markdown 表格源码与详细的图表分析描述 (第一章至总结前)。",
            kind=AgentKind.VISUALS,
            system_prompt=VISUALS_SYSTEM_PROMPT,
        ),
        AgentDescriptor(
            id="final_draft",
            name="总编审 (Chief Editor)",
            role="终稿渲染与查漏",
            description="检查全文完整性。若发现缺失的正文或图表，将自动进行补充生成，最后渲染终稿。",
            kind=AgentKind.CHIEF_EDITOR,
            system_prompt=CHIEF_EDITOR_SYSTEM_PROMPT,
        ),
    ]


def restore_state(session: Session) -> WorkflowState:
    """Rebuild the state machine from a saved session.

    A session saved mid-step cannot be resumed mid-step; it comes back as FAILED so the same
    agent can be retried.
    """

    state = WorkflowState(total_steps=len(session.agents))
    index = session.current_agent_index
    phase = session.phase

    if phase is None:
        if index < 0:
            done = bool(session.agents) and all(a.status == AgentStatus.COMPLETED for a in session.agents)
            phase = Phase.DONE if done else Phase.IDLE
        elif session.is_paused:
            phase = Phase.PAUSED_FOR_REVIEW
        else:
            phase = Phase.FAILED

    if phase in WORKING_PHASES:
        phase = Phase.FAILED

    state.phase = phase
    state.step_index = index if phase not in (Phase.IDLE, Phase.DONE) else -1
    return state


def _new_run_id() -> str:
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return f"{ts}_{uuid.uuid4().hex[:8]}"


class ThesisWorkflow:
    """Linear agent chain with a checkpoint after every agent."""

    def __init__(
        self,
        session: Session,
        llm: LLMClient,
        *,
        api_config: ApiConfig | None = None,
        on_event: EventCallback | None = None,
        run_id: str | None = None,
    ) -> None:
        self.session = session
        self.run_id = run_id or _new_run_id()
        self._state = restore_state(session)
        self._on_event = on_event
        self._seq = 0

        self._architect = ArchitectAgent(llm, api_config)
        self._generator = ChapteredBatchGenerator(llm, api_config)
        self._repair = GapRepairPass(self._generator)

    @classmethod
    def new(
        cls,
        user_input: UserInput,
        llm: LLMClient,
        *,
        agents: Sequence[AgentDescriptor] | None = None,
        api_config: ApiConfig | None = None,
        on_event: EventCallback | None = None,
    ) -> ThesisWorkflow:
        session = Session(input=user_input, agents=list(agents) if agents is not None else default_agents())
        return cls(session, llm, api_config=api_config, on_event=on_event)

    @property
    def state(self) -> WorkflowState:
        return self._state

    @property
    def current_agent(self) -> AgentDescriptor | None:
        index = self._state.step_index
        if 0 <= index < len(self.session.agents):
            return self.session.agents[index]
        return None

    # -------- Events and logs --------

    def _emit(
        self,
        event_type: EventType,
        content_type: ContentType,
        data: str | dict | list | None = None,
        *,
        metadata: dict[str, str | int | float | bool | None] | None = None,
    ) -> RunEvent:
        self._seq += 1
        ev = RunEvent(
            run_id=self.run_id,
            seq=self._seq,
            event_type=event_type,
            content_type=content_type,
            data=data,
            metadata=dict(metadata or {}),
        )
        if self._on_event is not None:
            self._on_event(ev)
        return ev

    def _log(self, message: str, type_: LogType = "info") -> None:
        time = datetime.now().strftime("%H:%M:%S")
        self.session.logs.append(LogEntry(time=time, message=message, type=type_))
        if type_ == "error":
            logger.error(message)
        else:
            logger.info(message)

    def _sync_session(self) -> None:
        self.session.phase = self._state.phase
        self.session.is_paused = self._state.is_paused
        self.session.current_agent_index = (
            self._state.step_index if self._state.phase not in (Phase.IDLE, Phase.DONE) else -1
        )

    # -------- Workflow --------

    def start(self) -> Outline:
        """Reset the run and execute the first agent."""

        self._begin()
        return self.run_step(0)

    def _begin(self) -> None:
        if not self.session.input.topic.strip():
            raise ValueError("a topic is required to start the workflow")
        if not self.session.agents:
            raise ValueError("the agent chain is empty")

        self._state.reset(total_steps=len(self.session.agents))
        self.session.logs = []
        self.session.doc_history = {}
        self.session.outline = Outline()
        for agent in self.session.agents:
            agent.status = AgentStatus.WAITING
            agent.word_count = 0
        self._sync_session()

        self._log("工作流已启动。Agent 队列初始化完成。")
        self._emit(
            EventType.SYSTEM,
            ContentType.WORKFLOW_STARTED,
            data={"topic": self.session.input.topic, "agents": [a.name for a in self.session.agents]},
        )

    def run_step(self, index: int) -> Outline:
        """Execute agent `index` and pause for review.

        Raises:
            InvalidTransitionError: The agent may not run from the current phase.
            ThesisForgeError: The agent failed; the run is left in FAILED.
        """

        agent = self.session.agents[index]
        self._state.begin_agent(index, agent.kind)
        agent.status = AgentStatus.WORKING
        self._sync_session()

        with run_context(run_id=self.run_id, step=f"agent:{agent.id}"):
            self._log(f"正在启动: {agent.name}...")
            self._emit(
                EventType.SYSTEM,
                ContentType.AGENT_STARTED,
                data={"agent_id": agent.id, "name": agent.name},
                metadata={"index": index, "kind": agent.kind.value},
            )

            try:
                outline = self._execute(agent, self.session.outline)
            except Exception as e:
                agent.status = AgentStatus.ERROR
                self._state.fail(str(e))
                self._sync_session()
                self._log(f"错误: {agent.name} 执行失败 - {e}", "error")
                self._emit(
                    EventType.ERROR,
                    ContentType.AGENT_FAILED,
                    data=str(e),
                    metadata={"agent_id": agent.id, "error_type": type(e).__name__},
                )
                raise

            self.session.outline = outline
            markdown = render_thesis_markdown(outline, self.session.input.topic)
            self.session.doc_history[agent.id] = markdown
            words = count_words(markdown)
            agent.status = AgentStatus.COMPLETED
            agent.word_count = words
            self._state.agent_completed()
            self._sync_session()

            self._log(f"{agent.name} 执行完成 (字数: {words})。", "success")
            self._emit(
                EventType.LLM,
                ContentType.AGENT_COMPLETED,
                data={"agent_id": agent.id, "word_count": words, "sections": len(outline)},
            )
            self._log("工作流已暂停。满意请继续，否则选中部分内容进行重写。")
            self._emit(EventType.SYSTEM, ContentType.PAUSED_FOR_REVIEW, data={"step_index": index})
        return outline

    def _execute(self, agent: AgentDescriptor, outline: Outline) -> Outline:
        context = self.session.input
        if agent.kind == AgentKind.ARCHITECT:
            built = self._architect.build_outline(context, agent.system_prompt or None)
            self._emit(EventType.LLM, ContentType.OUTLINE_BUILT, data={"sections": len(built)})
            return built
        if agent.kind == AgentKind.CHIEF_EDITOR:
            return self._repair.run(outline, context)
        mode = "visuals" if agent.kind == AgentKind.VISUALS else "content"
        return self._generator.run_pass(outline, context, agent.system_prompt, mode, label=agent.name)

    def continue_(self) -> bool:
        """Leave the checkpoint: run the next agent, or finish.

        Returns:
            True if another agent ran, False if the workflow is done.
        """

        self._state.require_review()
        next_index = self._state.next_index
        if next_index >= len(self.session.agents):
            self._state.finish()
            self._sync_session()
            self._log("所有 Agent 执行完毕。工作流结束。", "success")
            self._emit(EventType.SYSTEM, ContentType.WORKFLOW_DONE, data={"sections": len(self.session.outline)})
            return False
        self.run_step(next_index)
        return True

    def retry(self) -> Outline:
        """Re-run the agent that failed."""

        return self.run_step(self._state.step_index)

    def run_all(self) -> Outline:
        """Run every agent back to back, without stopping at checkpoints."""

        self.start()
        while self.continue_():
            pass
        return self.session.outline

    def run_stream(self) -> Iterator[RunEvent]:
        """Run every agent back to back and yield events after each step.

        Closing the iterator stops the run before the next agent starts. Events still reach
        `on_event` as they happen.

        Raises:
            ThesisForgeError: An agent failed; its events have been yielded first.
        """

        pending: list[RunEvent] = []
        forward = self._on_event

        def collect(ev: RunEvent) -> None:
            pending.append(ev)
            if forward is not None:
                forward(ev)

        def drain() -> Iterator[RunEvent]:
            while pending:
                yield pending.pop(0)

        def step(action: Callable[[], object]) -> Generator[RunEvent, None, object]:
            try:
                result = action()
            except Exception:
                yield from drain()
                raise
            yield from drain()
            return result

        self._on_event = collect
        try:
            self._begin()
            yield from drain()
            yield from step(lambda: self.run_step(0))
            while (yield from step(self.continue_)):
                pass
        finally:
            self._on_event = forward

    # -------- Checkpoint review --------

    def regenerate_selected(self, section_ids: Sequence[str], instruction: str | None = None) -> Outline:
        self._state.require_review()
        if not section_ids:
            raise ValueError("select at least one section to regenerate")
        agent = self.current_agent
        if agent is None:
            raise ValueError("no agent has run yet")

        self._log(f"正在重写 {len(section_ids)} 个选中部分 (使用 {agent.name})...")
        with run_context(run_id=self.run_id, step=f"regenerate:{agent.id}"):
            try:
                outline = self._generator.regenerate_sections(
                    self.session.outline, section_ids, agent, self.session.input, instruction
                )
            except Exception as e:
                self._log(f"重写失败: {e}", "error")
                raise
        self.session.outline = outline
        self._log("重写完成。", "success")
        self._emit(
            EventType.LLM,
            ContentType.SECTIONS_REGENERATED,
            data={"ids": list(section_ids), "agent_id": agent.id},
        )
        return outline

    def delete_selected(self, section_ids: Sequence[str]) -> Outline:
        self._state.require_review()
        if not section_ids:
            return self.session.outline
        self.session.outline = self.session.outline.without(section_ids)
        self._log(f"已删除 {len(section_ids)} 个章节。")
        self._emit(EventType.SYSTEM, ContentType.SECTIONS_DELETED, data={"ids": list(section_ids)})
        return self.session.outline

    def markdown(self) -> str:
        return render_thesis_markdown(self.session.outline, self.session.input.topic)

    # -------- Async variants --------

    async def start_async(self) -> Outline:
        """Async variant of :meth:`start`; the blocking calls run in a worker thread."""

        return await asyncio.to_thread(self.start)

    async def continue_async(self) -> bool:
        return await asyncio.to_thread(self.continue_)

    async def regenerate_selected_async(self, section_ids: Sequence[str], instruction: str | None = None) -> Outline:
        return await asyncio.to_thread(self.regenerate_selected, section_ids, instruction)
