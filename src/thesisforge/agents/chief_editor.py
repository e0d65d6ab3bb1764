"""Gap-repair pass run by the final agent.

Only chapters that are *completely* empty for the target field are regenerated. A chapter
with any filled section is left alone, so hand-approved partial edits from earlier
checkpoints survive.
"""

from __future__ import annotations

from thesisforge.agents.batch import ChapteredBatchGenerator
from thesisforge.logging import get_logger
from thesisforge.models.outline import FillMode, Outline, UserInput
from thesisforge.prompts import FIXER_CONTENT_SYSTEM_PROMPT, FIXER_VISUALS_SYSTEM_PROMPT

logger = get_logger(__name__)

_FIXER_PROMPTS: dict[str, str] = {
    "content": FIXER_CONTENT_SYSTEM_PROMPT,
    "visuals": FIXER_VISUALS_SYSTEM_PROMPT,
}


class GapRepairPass:
    """Check-and-fix over a finished outline."""

    def __init__(self, generator: ChapteredBatchGenerator) -> None:
        self._generator = generator

    def repair_missing(self, outline: Outline, mode: FillMode, context: UserInput) -> Outline:
        return self._generator.run_pass(
            outline,
            context,
            _FIXER_PROMPTS[mode],
            mode,
            only_missing=True,
            label=f"chief_editor:{mode}_fix",
        )

    def run(self, outline: Outline, context: UserInput) -> Outline:
        """Content repair, then visuals repair on the result."""

        logger.info("Chief editor running checks", extra={"sections": len(outline)})
        repaired = self.repair_missing(outline, "content", context)
        return self.repair_missing(repaired, "visuals", context)
