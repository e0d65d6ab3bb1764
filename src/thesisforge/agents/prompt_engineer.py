"""Draft a system prompt for a user-defined agent."""

from __future__ import annotations

from thesisforge.agents.base import BaseAgent
from thesisforge.errors import GatewayError
from thesisforge.logging import get_logger
from thesisforge.prompts import PROMPT_ENGINEER_SYSTEM_PROMPT

logger = get_logger(__name__)

FALLBACK_PROMPT = "Prompt generation failed."


class PromptEngineerAgent(BaseAgent):
    def generate_agent_prompt(self, name: str, description: str) -> str:
        """Return a Chinese Role-Principles-Strategy-Steps prompt, or a fallback text."""

        prompt = "\n".join(
            [
                "### Role",
                "You are a Prompt Engineer (提示词工程师).",
                "",
                "### Task",
                f'Create a System Prompt for an AI Agent named "{name}".',
                f"Description: {description}",
                "",
                "### Requirements",
                '1. Use the "Role-Principles-Strategy-Steps" structure.',
                "2. The output prompt must be in **Chinese**.",
                "3. Force JSON output.",
                "4. Include a Few-Shot example.",
            ]
        )
        try:
            return self._llm.call(PROMPT_ENGINEER_SYSTEM_PROMPT, prompt, self._api_config, json_mode=False)
        except GatewayError:
            logger.exception("Agent prompt generation failed", extra={"agent_name": name})
            return FALLBACK_PROMPT
