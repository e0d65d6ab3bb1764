from __future__ import annotations

from thesisforge.prompts.advisor import ADVISOR_SYSTEM_PROMPT
from thesisforge.prompts.agents import (
    ARCHITECT_SYSTEM_PROMPT,
    CHIEF_EDITOR_SYSTEM_PROMPT,
    CONTENT_SYSTEM_PROMPT,
    FIXER_CONTENT_SYSTEM_PROMPT,
    FIXER_VISUALS_SYSTEM_PROMPT,
    PROMPT_ENGINEER_SYSTEM_PROMPT,
    VISUALS_SYSTEM_PROMPT,
)

__all__ = [
    "ADVISOR_SYSTEM_PROMPT",
    "ARCHITECT_SYSTEM_PROMPT",
    "CHIEF_EDITOR_SYSTEM_PROMPT",
    "CONTENT_SYSTEM_PROMPT",
    "FIXER_CONTENT_SYSTEM_PROMPT",
    "FIXER_VISUALS_SYSTEM_PROMPT",
    "PROMPT_ENGINEER_SYSTEM_PROMPT",
    "VISUALS_SYSTEM_PROMPT",
]
