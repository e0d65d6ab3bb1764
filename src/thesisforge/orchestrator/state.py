"""Workflow state machine.

Progression through the agent chain is an explicit finite-state machine, independent of any
UI. Illegal moves raise :class:`InvalidTransitionError` instead of silently corrupting the
step pointer.

    IDLE -> BUILDING_OUTLINE | RUNNING_AGENT(i) | REPAIRING -> PAUSED_FOR_REVIEW(i)
    PAUSED_FOR_REVIEW(i) -> next agent | DONE
    any working phase -> FAILED -> retry of the same agent
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from thesisforge.errors import InvalidTransitionError
from thesisforge.models.agent import AgentKind


class Phase(str, Enum):
    IDLE = "idle"
    BUILDING_OUTLINE = "building_outline"
    RUNNING_AGENT = "running_agent"
    PAUSED_FOR_REVIEW = "paused_for_review"
    REPAIRING = "repairing"
    DONE = "done"
    FAILED = "failed"


WORKING_PHASES = frozenset({Phase.BUILDING_OUTLINE, Phase.RUNNING_AGENT, Phase.REPAIRING})


def _phase_for(kind: AgentKind) -> Phase:
    if kind == AgentKind.ARCHITECT:
        return Phase.BUILDING_OUTLINE
    if kind == AgentKind.CHIEF_EDITOR:
        return Phase.REPAIRING
    return Phase.RUNNING_AGENT


@dataclass
class WorkflowState:
    total_steps: int
    phase: Phase = Phase.IDLE
    step_index: int = -1
    error: str | None = None

    @property
    def is_working(self) -> bool:
        return self.phase in WORKING_PHASES

    @property
    def is_paused(self) -> bool:
        return self.phase == Phase.PAUSED_FOR_REVIEW

    @property
    def next_index(self) -> int:
        return self.step_index + 1

    def reset(self, total_steps: int | None = None) -> None:
        if self.is_working:
            raise InvalidTransitionError(f"cannot reset while {self.phase.value}")
        if total_steps is not None:
            self.total_steps = total_steps
        self.phase = Phase.IDLE
        self.step_index = -1
        self.error = None

    def begin_agent(self, index: int, kind: AgentKind) -> None:
        """Enter the working phase for agent `index`.

        Allowed: the first agent from IDLE, the next agent from a checkpoint, or a retry of
        the agent that failed.
        """

        if not 0 <= index < self.total_steps:
            raise InvalidTransitionError(f"agent index {index} out of range (0..{self.total_steps - 1})")

        if self.phase == Phase.IDLE:
            allowed = index == 0
        elif self.phase == Phase.PAUSED_FOR_REVIEW:
            allowed = index == self.step_index + 1
        elif self.phase == Phase.FAILED:
            allowed = index == self.step_index
        else:
            allowed = False

        if not allowed:
            raise InvalidTransitionError(
                f"cannot start agent {index} from {self.phase.value} (current step {self.step_index})"
            )

        self.phase = _phase_for(kind)
        self.step_index = index
        self.error = None

    def agent_completed(self) -> None:
        if not self.is_working:
            raise InvalidTransitionError(f"no agent is running (phase {self.phase.value})")
        self.phase = Phase.PAUSED_FOR_REVIEW

    def fail(self, error: str) -> None:
        if not self.is_working:
            raise InvalidTransitionError(f"no agent is running (phase {self.phase.value})")
        self.phase = Phase.FAILED
        self.error = error

    def finish(self) -> None:
        if self.phase != Phase.PAUSED_FOR_REVIEW or self.next_index < self.total_steps:
            raise InvalidTransitionError(
                f"cannot finish from {self.phase.value} with {self.total_steps - self.next_index} agents left"
            )
        self.phase = Phase.DONE

    def require_review(self) -> None:
        if self.phase != Phase.PAUSED_FOR_REVIEW:
            raise InvalidTransitionError(f"sections can only be edited at a checkpoint (phase {self.phase.value})")

    def snapshot(self) -> dict[str, str | int | None]:
        return {
            "phase": self.phase.value,
            "step_index": self.step_index,
            "total_steps": self.total_steps,
            "error": self.error,
        }
