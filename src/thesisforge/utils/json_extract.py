"""Best-effort extraction of JSON from free-form LLM output.

Models wrap JSON in prose, in one or several markdown fences, or get cut off mid-answer. The
strategies below run from cheap and exact to destructive:

    1. the whole text as JSON;
    2. fenced code blocks, last block first (commentary usually precedes the final answer);
    3. an opened but never closed fence, trimmed back to the last ``}``;
    4. the span from the first ``{``/``[`` to the last matching ``}``/``]``;
    5. that span after a lightweight newline/backslash repair.

The repair runs last because it can corrupt valid text, e.g. LaTeX inside JSON strings.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

from thesisforge.errors import MalformedOutputError
from thesisforge.logging import get_logger

logger = get_logger(__name__)

SNIPPET_CHARS = 100

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_OPEN_FENCE_RE = re.compile(r"```(?:json)?\s*(.*)", re.DOTALL | re.IGNORECASE)


@dataclass(frozen=True)
class ParseSuccess:
    value: Any
    strategy: str


@dataclass(frozen=True)
class ParseFailure:
    reason: str
    snippet: str


ParseResult = ParseSuccess | ParseFailure


def _try_loads(text: str) -> tuple[bool, Any]:
    try:
        return True, json.loads(text)
    except (ValueError, RecursionError):
        return False, None


def _repair(candidate: str) -> str:
    """Collapse raw control whitespace and normalise backslash escaping."""

    repaired = re.sub(r"[\n\r\t]", " ", candidate)
    repaired = repaired.replace("\\", "\\\\")
    repaired = repaired.replace('\\\\"', '\\"')
    repaired = repaired.replace("\\\\n", "\\n")
    return repaired


def _outer_span(text: str) -> str | None:
    first_brace = text.find("{")
    first_bracket = text.find("[")

    if first_brace != -1 and (first_bracket == -1 or first_brace < first_bracket):
        start, end = first_brace, text.rfind("}")
    elif first_bracket != -1:
        start, end = first_bracket, text.rfind("]")
    else:
        return None

    if end == -1 or end < start:
        return None
    return text[start : end + 1]


def extract_structured(text: str | None) -> ParseResult:
    """Extract a JSON value from model output.

    Returns:
        ParseSuccess with the decoded value and the name of the strategy that worked, or
        ParseFailure with a short prefix of the input for diagnostics.
    """

    if not text or not text.strip():
        return ParseFailure(reason="empty model output", snippet="")

    ok, value = _try_loads(text)
    if ok:
        return ParseSuccess(value=value, strategy="direct")

    cleaned = text.strip()

    blocks = _FENCE_RE.findall(cleaned)
    for block in reversed(blocks):
        ok, value = _try_loads(block)
        if ok:
            return ParseSuccess(value=value, strategy="fenced")

    if not blocks:
        m = _OPEN_FENCE_RE.search(cleaned)
        if m:
            body = m.group(1).strip()
            last_brace = body.rfind("}")
            if last_brace != -1:
                ok, value = _try_loads(body[: last_brace + 1])
                if ok:
                    return ParseSuccess(value=value, strategy="unclosed_fence")
            ok, value = _try_loads(body)
            if ok:
                return ParseSuccess(value=value, strategy="unclosed_fence")

    candidate = _outer_span(cleaned)
    if candidate is not None:
        ok, value = _try_loads(candidate)
        if ok:
            return ParseSuccess(value=value, strategy="outer_span")

        ok, value = _try_loads(_repair(candidate))
        if ok:
            logger.debug("extract_structured: parsed after repair")
            return ParseSuccess(value=value, strategy="repaired")

    return ParseFailure(reason="no parseable JSON in model output", snippet=text[:SNIPPET_CHARS])


def parse_structured(text: str | None) -> Any:
    """Like :func:`extract_structured` but raise on failure.

    Raises:
        MalformedOutputError: No strategy produced valid JSON.
    """

    result = extract_structured(text)
    if isinstance(result, ParseFailure):
        raise MalformedOutputError(result.reason, snippet=result.snippet)
    return result.value
