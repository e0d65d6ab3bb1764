"""Supervisor-style chat that helps the student pin down topic and method.

The conversation ends when the model appends a JSON block with `title` and `refinedContext`;
that block becomes the input for the drafting chain.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from thesisforge.agents.base import BaseAgent
from thesisforge.errors import AdvisorUnavailableError, GatewayError
from thesisforge.llm.client import ChatMessage, LLMClient
from thesisforge.logging import get_logger
from thesisforge.models.outline import UserInput
from thesisforge.prompts import ADVISOR_SYSTEM_PROMPT
from thesisforge.utils.json_extract import ParseSuccess, extract_structured

logger = get_logger(__name__)

_JSON_FENCE_RE = re.compile(r"```json.*?```", re.DOTALL | re.IGNORECASE)


@dataclass(frozen=True)
class AdvisorReply:
    text: str
    finished: bool
    data: dict[str, Any] | None = None

    def to_user_input(self) -> UserInput | None:
        """Turn the final summary into drafting input."""

        if not self.data:
            return None
        return UserInput(
            topic=str(self.data.get("title") or ""),
            field=str(self.data.get("field") or ""),
            specific_focus=str(self.data.get("refinedContext") or ""),
        )


class AdvisorAgent(BaseAgent):
    def reply(self, history: Sequence[Mapping[str, str]]) -> AdvisorReply:
        """Continue the conversation.

        Args:
            history: Prior turns as `{"role": "user"|"assistant", "content": ...}` dicts,
                ending with the student's latest message.

        Raises:
            AdvisorUnavailableError: The backend failed.
        """

        messages = [ChatMessage(role="system", content=ADVISOR_SYSTEM_PROMPT)]
        messages.extend(LLMClient.format_messages(history))

        try:
            text = self._llm.complete(messages, self._api_config, json_mode=False)
        except GatewayError as e:
            logger.error("Advisor call failed", extra={"error": str(e)})
            raise AdvisorUnavailableError("Advisor is offline. Check API settings.") from e

        result = extract_structured(text)
        if (
            isinstance(result, ParseSuccess)
            and isinstance(result.value, dict)
            and result.value.get("title")
            and result.value.get("refinedContext")
        ):
            logger.info("Advisor finished", extra={"title": result.value.get("title")})
            return AdvisorReply(text=_JSON_FENCE_RE.sub("", text).strip(), finished=True, data=result.value)

        return AdvisorReply(text=text, finished=False)
