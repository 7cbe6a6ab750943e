"""
Two-stage parsing of provider responses.

Stage 1 (StrictJSONParse): ``json.loads`` on the raw text, accepting a JSON
object or array.

Stage 2 (RepairJSONParse): a fixed, ordered set of text transformations
applied before a second strict parse:
    1. strip Markdown code fences
    2. slice the outermost JSON object/array span
    3. drop trailing commas before a closing bracket
    4. quote bare object keys

Nothing else is repaired; content that still fails raises JSONParseError.
"""

import json
import re
from collections.abc import Callable
from typing import Any

import structlog

from resilience_layer.batching.exceptions import JSONParseError

logger = structlog.get_logger(__name__)

_CODE_FENCE = re.compile(r"```(?:json|JSON)?\s*(.*?)\s*```", re.DOTALL)
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_BARE_KEY = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_\-]*)(\s*:)")


class StrictJSONParse:
    """Stage 1: strict JSON, object or array."""

    def parse(self, content: str) -> Any:
        if not content or not content.strip():
            raise JSONParseError(
                "Provider response content is empty or whitespace-only",
                raw_content=content,
                parse_error="Empty content",
            )

        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as e:
            raise JSONParseError(
                f"Failed to parse provider response as JSON: {e.msg}",
                raw_content=content,
                parse_error=f"{e.msg} at line {e.lineno} col {e.colno}",
            ) from e

        if not isinstance(parsed, (dict, list)):
            raise JSONParseError(
                f"Provider response is not a JSON object or array (got {type(parsed).__name__})",
                raw_content=content,
                parse_error=f"Expected dict or list, got {type(parsed).__name__}",
            )
        return parsed


def strip_code_fences(text: str) -> str:
    match = _CODE_FENCE.search(text)
    return match.group(1) if match else text


def slice_outermost_json(text: str) -> str:
    """Keep the span from the first opening bracket to its last matching closer."""
    starts = [index for index in (text.find("{"), text.find("[")) if index != -1]
    if not starts:
        return text

    start = min(starts)
    closer = "}" if text[start] == "{" else "]"
    end = text.rfind(closer)
    if end <= start:
        return text
    return text[start : end + 1]


def drop_trailing_commas(text: str) -> str:
    return _TRAILING_COMMA.sub(r"\1", text)


def quote_bare_keys(text: str) -> str:
    return _BARE_KEY.sub(r'\1"\2"\3', text)


REPAIR_TRANSFORMS: tuple[Callable[[str], str], ...] = (
    strip_code_fences,
    slice_outermost_json,
    drop_trailing_commas,
    quote_bare_keys,
)


class RepairJSONParse:
    """Stage 2: apply REPAIR_TRANSFORMS in order, then parse strictly."""

    def __init__(self, strict: StrictJSONParse | None = None):
        self.strict = strict or StrictJSONParse()

    def repair(self, content: str) -> str:
        repaired = content
        for transform in REPAIR_TRANSFORMS:
            repaired = transform(repaired)
        return repaired.strip()

    def parse(self, content: str) -> Any:
        return self.strict.parse(self.repair(content or ""))


_STRICT = StrictJSONParse()
_REPAIR = RepairJSONParse(_STRICT)


def parse_llm_json(content: str) -> Any:
    """
    Parse a provider response with strict-then-repair semantics.

    Raises:
        JSONParseError: Both stages failed (carries the repair stage's error)
    """
    try:
        return _STRICT.parse(content)
    except JSONParseError as strict_error:
        logger.debug("Strict parse failed, attempting repair", error=strict_error.message)

    parsed = _REPAIR.parse(content)
    logger.info("Provider response parsed after repair")
    return parsed
