"""Base agent interfaces."""

from __future__ import annotations

from thesisforge.llm.client import ApiConfig, LLMClient


class BaseAgent:
    """Base class for ThesisForge agents.

    `api_config` selects the backend for every call the agent makes; `None` means the one
    derived from settings.
    """

    def __init__(self, llm: LLMClient, api_config: ApiConfig | None = None) -> None:
        self._llm = llm
        self._api_config = api_config
