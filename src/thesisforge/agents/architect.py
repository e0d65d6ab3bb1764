"""Architect agent.

Turns topic / field / focus into a flat, ordered list of sections with stable ids.
"""

from __future__ import annotations

import re
from typing import Any

from thesisforge.agents.base import BaseAgent
from thesisforge.errors import MalformedOutputError, StructureGenerationFailedError
from thesisforge.logging import get_logger
from thesisforge.models.outline import Outline, Section, UserInput
from thesisforge.prompts import ARCHITECT_SYSTEM_PROMPT
from thesisforge.utils.json_extract import parse_structured

logger = get_logger(__name__)

_HEADING_MARKS_RE = re.compile(r"^(#+)")


class ArchitectAgent(BaseAgent):
    """Outline builder."""

    def build_outline(self, user_input: UserInput, system_prompt: str | None = None) -> Outline:
        """Ask the model for an outline and validate its shape.

        Raises:
            StructureGenerationFailedError: No non-empty section list could be extracted.
            GatewayError: Propagated as-is.
        """

        prompt = self._build_prompt(user_input)
        raw = self._llm.call(system_prompt or ARCHITECT_SYSTEM_PROMPT, prompt, self._api_config, json_mode=True)

        try:
            parsed = parse_structured(raw)
        except MalformedOutputError as e:
            logger.error("Architect output was not valid JSON", extra={"raw_preview": raw[:200]})
            raise StructureGenerationFailedError(
                "Architect failed to generate structure. Model output was not valid JSON."
            ) from e

        items = _find_section_items(parsed)
        sections = _normalize_sections(items)
        if not sections:
            logger.error("Architect output had no sections", extra={"raw_preview": raw[:200]})
            raise StructureGenerationFailedError("Architect failed to generate structure. No sections found.")

        logger.info("Outline built", extra={"sections": len(sections)})
        return Outline(sections)

    @staticmethod
    def _build_prompt(user_input: UserInput) -> str:
        return "\n".join(
            [
                "### 输入数据",
                f"- 领域: {user_input.field}",
                f"- 主题: {user_input.topic}",
                f"- 侧重点 (Context): {user_input.specific_focus}",
                "",
                "### 任务步骤",
                "1. 分析主题和侧重点。",
                "2. 设计一套标准的硕士论文结构（通常 5-7 章）。",
                "3. **重点检查**：确保第 3 章及之后的创新点章节，每一章都包含完整的“理论+实验”。不要创建独立的“实验章”。",
                "4. 为每一节生成唯一的 ID。",
                "5. 返回 JSON 数据。",
            ]
        )


def _looks_like_section(item: Any) -> bool:
    return isinstance(item, dict) and bool(item.get("title") or item.get("id"))


def _find_section_items(parsed: Any) -> list[Any]:
    """Accept a bare list, `{"sections": [...]}`, or the first list of section-like objects."""

    if isinstance(parsed, list):
        return parsed
    if not isinstance(parsed, dict):
        return []
    sections = parsed.get("sections")
    if isinstance(sections, list):
        return sections
    for value in parsed.values():
        if isinstance(value, list) and value and _looks_like_section(value[0]):
            return value
    return []


def _normalize_sections(items: list[Any]) -> list[Section]:
    sections: list[Section] = []
    seen: set[str] = set()
    for index, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            continue
        title = str(item.get("title") or "").strip()
        if not title:
            continue

        section_id = str(item.get("id") or f"s_{index}").strip() or f"s_{index}"
        if section_id in seen:
            n = 2
            while f"{section_id}_{n}" in seen:
                n += 1
            section_id = f"{section_id}_{n}"
        seen.add(section_id)

        sections.append(Section(id=section_id, title=title, level=_level_of(item.get("level"), title)))
    return sections


def _level_of(raw: Any, title: str) -> int:
    try:
        level = int(raw)
    except (TypeError, ValueError):
        level = 0
    if level >= 1:
        return level
    m = _HEADING_MARKS_RE.match(title)
    return len(m.group(1)) if m else 1
