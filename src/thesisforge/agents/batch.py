"""Chaptered batch generation.

Text is requested one chapter at a time: every section of the chapter goes into a single
prompt and the model answers with a JSON object mapping section id to text. A chapter is big
enough to keep the narrative coherent and small enough that one bad answer only costs that
chapter.

When the answer cannot be parsed, the chapter is split into three sub-batches that are tried
once each. Sub-batches that still fail are logged and left unfilled. Gateway errors are never
retried here; they abort the whole pass.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from thesisforge.agents.base import BaseAgent
from thesisforge.errors import MalformedOutputError, RegenerationFailedError
from thesisforge.llm.client import ApiConfig, LLMClient
from thesisforge.logging import get_logger
from thesisforge.models.agent import AgentDescriptor, AgentKind
from thesisforge.models.outline import FillMode, Outline, Section, UserInput
from thesisforge.prompts import FIXER_CONTENT_SYSTEM_PROMPT
from thesisforge.utils.json_extract import SNIPPET_CHARS, parse_structured
from thesisforge.utils.text import ensure_heading_marker, strip_leading_heading

logger = get_logger(__name__)

# Structural parts of a thesis that never get tables or figures
VISUALS_SKIP_KEYWORDS: tuple[str, ...] = (
    "摘要",
    "abstract",
    "致谢",
    "acknowledgement",
    "参考",
    "reference",
    "附录",
    "appendix",
    "目录",
    "table of contents",
    "总结",
    "conclusion",
    "展望",
    "outlook",
)

DEFAULT_SPLIT_PARTS = 3


def is_visuals_exempt(title: str) -> bool:
    lowered = title.lower()
    return any(k in lowered for k in VISUALS_SKIP_KEYWORDS)


def split_batches(sections: Sequence[Section], parts: int = DEFAULT_SPLIT_PARTS) -> list[list[Section]]:
    """Split into at most `parts` contiguous, roughly equal batches."""

    if not sections:
        return []
    size = math.ceil(len(sections) / parts)
    return [list(sections[i : i + size]) for i in range(0, len(sections), size)]


def _structure_list(sections: Sequence[Section]) -> str:
    return "\n".join(f'- ID: "{s.id}" Title: "{s.title}" (Level {s.level})' for s in sections)


class ChapteredBatchGenerator(BaseAgent):
    """Fill `content` or `visuals` for whole chapters in one call each."""

    def __init__(
        self,
        llm: LLMClient,
        api_config: ApiConfig | None = None,
        *,
        split_parts: int = DEFAULT_SPLIT_PARTS,
    ) -> None:
        super().__init__(llm, api_config)
        self._split_parts = split_parts

    # -------- Whole passes --------

    def run_pass(
        self,
        outline: Outline,
        context: UserInput,
        system_prompt: str,
        mode: FillMode,
        *,
        only_missing: bool = False,
        label: str = "",
    ) -> Outline:
        """Process every chapter sequentially on a copy of `outline`.

        Args:
            only_missing: Regenerate a chapter only if none of its members, root included,
                has the target field. Partially filled chapters are left as they are.
            label: Name used in log records.

        Returns:
            The updated copy. The input outline is never modified.
        """

        updated = outline.copy_deep()
        for chapter in updated.chapters():
            if mode == "visuals" and is_visuals_exempt(chapter.title):
                logger.info("Skipping visuals for structural chapter", extra={"chapter": chapter.title})
                continue

            sections = chapter.sections
            if only_missing:
                if not all(s.is_missing(mode) for s in chapter.members):
                    logger.info(
                        "Chapter not completely empty; leaving it untouched",
                        extra={"chapter": chapter.title, "mode": mode},
                    )
                    continue
                logger.info("Chapter completely empty; regenerating", extra={"chapter": chapter.title, "mode": mode})

            logger.info(
                "Processing chapter",
                extra={"chapter": chapter.title, "agent": label, "items": len(sections), "mode": mode},
            )
            self.fill_chapter(sections, chapter.title, context, system_prompt, mode)
        return updated

    def fill_chapter(
        self,
        sections: Sequence[Section],
        chapter_title: str,
        context: UserInput,
        system_prompt: str,
        mode: FillMode,
    ) -> dict[str, str]:
        """Generate text for every section of one chapter and write it in place.

        Returns:
            The id -> text pairs that were written.

        Raises:
            GatewayError: Propagated from the first failing call.
        """

        targets = list(sections)
        if mode == "visuals":
            targets = [s for s in targets if not is_visuals_exempt(s.title)]
        if not targets:
            return {}

        try:
            return self._process_batch(targets, chapter_title, context, system_prompt, mode)
        except MalformedOutputError as e:
            logger.warning(
                "Malformed chapter output; retrying in split batches",
                extra={"chapter": chapter_title, "parts": self._split_parts, "reason": e.reason},
            )

        applied: dict[str, str] = {}
        for batch in split_batches(targets, self._split_parts):
            try:
                applied.update(self._process_batch(batch, chapter_title, context, system_prompt, mode))
            except MalformedOutputError as e:
                logger.error(
                    "Sub-batch still malformed; leaving sections unfilled",
                    extra={"chapter": chapter_title, "ids": [s.id for s in batch], "reason": e.reason},
                )
        return applied

    # -------- Checkpoint regeneration --------

    def regenerate_sections(
        self,
        outline: Outline,
        section_ids: Sequence[str],
        agent: AgentDescriptor,
        context: UserInput,
        instruction: str | None = None,
    ) -> Outline:
        """Rewrite a hand-picked set of sections with the acting agent.

        Architect agents get replacement titles back; visuals agents get visuals; every other
        agent gets body text.

        Raises:
            RegenerationFailedError: The answer could not be parsed.
            GatewayError: Propagated as-is.
        """

        updated = outline.copy_deep()
        targets = updated.select(section_ids)
        if not targets:
            return updated

        if agent.kind == AgentKind.ARCHITECT:
            mode = "title"
        elif agent.kind == AgentKind.VISUALS:
            mode = "visuals"
            targets = [s for s in targets if not is_visuals_exempt(s.title)]
            if not targets:
                return updated
        else:
            mode = "content"

        system_prompt = agent.system_prompt
        if agent.kind == AgentKind.CHIEF_EDITOR or not system_prompt.strip():
            system_prompt = FIXER_CONTENT_SYSTEM_PROMPT

        prompt = self._build_regenerate_prompt(targets, context, mode, instruction)
        raw = self._llm.call(system_prompt, prompt, self._api_config, json_mode=True)
        try:
            values = _as_mapping(parse_structured(raw), raw)
        except MalformedOutputError as e:
            logger.error("Regeneration failed", extra={"ids": [s.id for s in targets], "reason": e.reason})
            raise RegenerationFailedError(f"Regeneration failed: {e}") from e

        by_id = {s.id: s for s in targets}
        for key, value in values.items():
            section = by_id.get(key)
            if section is None or not isinstance(value, str):
                continue
            if mode == "title":
                section.title = ensure_heading_marker(value.strip(), section.level)
            elif mode == "visuals":
                section.visuals = value
            else:
                section.content = strip_leading_heading(value)

        logger.info("Sections regenerated", extra={"agent": agent.name, "ids": [s.id for s in targets]})
        return updated

    # -------- Internals --------

    def _process_batch(
        self,
        batch: Sequence[Section],
        chapter_title: str,
        context: UserInput,
        system_prompt: str,
        mode: FillMode,
    ) -> dict[str, str]:
        prompt = self._build_prompt(batch, chapter_title, context, mode)
        raw = self._llm.call(system_prompt, prompt, self._api_config, json_mode=True)
        values = _as_mapping(parse_structured(raw), raw)

        by_id = {s.id: s for s in batch}
        applied: dict[str, str] = {}
        for key, value in values.items():
            section = by_id.get(key)
            if section is None:
                logger.debug("Ignoring unknown section id", extra={"section_id": key})
                continue
            if not isinstance(value, str):
                continue
            if mode == "visuals":
                section.visuals = value
            else:
                value = strip_leading_heading(value)
                section.content = value
            applied[key] = value
        return applied

    @staticmethod
    def _build_prompt(batch: Sequence[Section], chapter_title: str, context: UserInput, mode: FillMode) -> str:
        if mode == "visuals":
            requirements = (
                "- **仅生成图表与描述**: 仅输出 Markdown 表格、数据矩阵或图表占位符 (e.g. > [图 x.x] ...)。\n"
                "- **包含描述**: 每个图表后必须跟一段对图表的简要分析或描述。\n"
                "- **严禁生成普通正文**: 不要重复生成章节的常规正文文本。\n"
                "- **严禁生成标题**: 不要包含章节标题。"
            )
            first_step = "为每个小节设计图表占位符或数据表。"
        else:
            requirements = (
                "- 每个ID的内容尽量详实，包含理论推导或实验数据。\n"
                "- 使用 Markdown 格式。\n"
                "- **数学公式**: 必须使用 LaTeX 格式。行内公式使用 $...$，独立公式使用 $$...$$。\n"
                "- **纯文本**: 严禁生成 Markdown 表格或图表占位符。专注于文字叙述。\n"
                '- **禁止重复标题**: 内容中不要包含章节标题本身 (e.g., 不要写 "# 1.1 Intro")，直接写正文。'
            )
            first_step = "为每个小节撰写连贯的学术正文(不带标题)。"

        lines = [
            "### 上下文",
            f"主题: {context.topic}",
            f"领域: {context.field}",
            f"侧重点: {context.specific_focus}",
            "",
            "### 目标章节",
            f"**{chapter_title}**",
            "包含以下小节:",
            _structure_list(batch),
            "",
            "### 任务要求",
            "请一次性为上述**所有**小节ID生成内容。",
            "",
            "### 约束与格式",
            '1. **JSON 输出**: 必须返回 JSON 对象: { "ID": "Markdown内容..." }',
            "2. **转义规则**: JSON 字符串内容必须正确转义双引号和换行符。",
            "3. **内容要求**:",
            requirements,
            "",
            "### 思考与执行",
            f"1. {first_step}",
            "2. 确保所有ID都有对应的内容。",
            "3. 返回 JSON。",
        ]
        return "\n".join(lines)

    @staticmethod
    def _build_regenerate_prompt(
        batch: Sequence[Section],
        context: UserInput,
        mode: str,
        instruction: str | None,
    ) -> str:
        if instruction and instruction.strip():
            feedback = f'用户对这部分内容/结构提出了修改意见: "{instruction.strip()}"。\n请严格根据此意见进行修改。'
        else:
            feedback = "用户觉得这部分不满意，请重新生成优化。"

        if mode == "title":
            mode_rules = (
                "3. **架构师模式 (Structure Refinement)**:\n"
                "   - 你的任务是**修改章节标题**或**调整结构**。\n"
                "   - 返回的 JSON Value 应该是**新的标题字符串** (New Title)。\n"
                "   - 如果需要，你可以微调标题的层级标记 (如 ## 3.1)。\n"
                "   - 严禁生成正文内容。只返回标题。"
            )
        elif mode == "visuals":
            mode_rules = (
                "3. **视觉专家模式**:\n"
                "   - **仅生成图表与描述**: 仅输出 Markdown 表格或图表说明。严禁生成正文或标题。\n"
                "   - **包含描述**: 每个图表后必须跟一段对图表的简要分析或描述。"
            )
        else:
            mode_rules = (
                "3. **内容撰写模式**:\n"
                "   - 内容必须详实，深度优化。\n"
                "   - 使用 Markdown 格式。\n"
                "   - **数学公式**: 必须使用 LaTeX 格式。行内公式使用 $...$，独立公式使用 $$...$$。\n"
                "   - **纯文本**: 严禁生成 Markdown 表格或图表占位符。专注于文字叙述。\n"
                "   - **禁止重复标题**: 内容中不要包含章节标题本身，直接写正文。"
            )

        lines = [
            "### 任务类型: 内容重写 / 优化",
            "### 上下文",
            f"主题: {context.topic}",
            f"领域: {context.field}",
            f"侧重点: {context.specific_focus}",
            "",
            "### 目标小节",
            _structure_list(batch),
            "",
            "### 用户具体指令 (User Feedback)",
            feedback,
            "",
            "### 任务要求",
            "请一次性为上述**所有**小节ID生成内容。",
            "",
            "### 约束与格式",
            '1. **JSON 输出**: 必须返回 JSON 对象: { "ID": "Value..." }',
            "2. **转义规则**: JSON 字符串内容必须正确转义双引号和换行符。",
            mode_rules,
            "",
            "### 思考与执行",
            "1. 根据用户指令和模式类型生成 JSON。",
            "2. 确保所有ID都有对应的结果。",
            "3. 返回 JSON。",
        ]
        return "\n".join(lines)


def _as_mapping(value: object, raw: str) -> dict:
    if not isinstance(value, dict):
        raise MalformedOutputError(
            "expected a JSON object keyed by section id", snippet=(raw or "")[:SNIPPET_CHARS]
        )
    return value
