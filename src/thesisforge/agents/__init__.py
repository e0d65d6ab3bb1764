"""Agents."""

from __future__ import annotations

from thesisforge.agents.advisor import AdvisorAgent, AdvisorReply
from thesisforge.agents.architect import ArchitectAgent
from thesisforge.agents.batch import ChapteredBatchGenerator
from thesisforge.agents.chief_editor import GapRepairPass
from thesisforge.agents.prompt_engineer import PromptEngineerAgent

__all__ = [
    "AdvisorAgent",
    "AdvisorReply",
    "ArchitectAgent",
    "ChapteredBatchGenerator",
    "GapRepairPass",
    "PromptEngineerAgent",
]
