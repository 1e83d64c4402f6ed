# This project was developed with assistance from AI tools.
"""Lenient JSON parsing for LLM output.

Models wrap JSON in code fences, add commentary around it, and emit
JavaScript-ish objects (bare keys, trailing commas, unquoted dates). This
module finds the object in the response and repairs the common mistakes
before handing it to ``json.loads``.
"""

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_PREVIEW_CHARS = 300

# Matches ```json ... ``` or ``` ... ``` fences that LLMs often wrap around JSON.
_FENCE_RE = re.compile(r"^```(?:json)?\s*\n?(.*?)\n?\s*```$", re.DOTALL)

_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_BARE_KEY_RE = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)\s*:")
_BARE_DATE_RE = re.compile(r":\s*(\d{4}-\d{2}(?:-\d{2})?)(?=\s*[,}\]])")
_BARE_VALUE_RE = re.compile(r":\s*([A-Za-z][A-Za-z0-9 _\-]*?)\s*(?=[,}\]])")

_JSON_LITERALS = {"true", "false", "null"}


class JsonRepairError(ValueError):
    """No parseable JSON object in the model output."""

    kind = "json_parse"


def _strip_json_fences(text: str) -> str:
    """Remove markdown code fences wrapping JSON output."""
    stripped = text.strip()
    m = _FENCE_RE.match(stripped)
    if m:
        return m.group(1).strip()
    return stripped.replace("```json", "").replace("```", "").strip()


def _object_span(text: str) -> str | None:
    """Substring from the first ``{`` to the last ``}``."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start : end + 1]


def _quote_bare_value(match: re.Match) -> str:
    value = match.group(1)
    if value.lower() in _JSON_LITERALS:
        return f": {value.lower()}"
    return f': "{value}"'


def repair_json_text(text: str) -> str:
    """Apply the textual repairs. Exposed for tests."""
    fixed = _TRAILING_COMMA_RE.sub(r"\1", text)
    fixed = _BARE_KEY_RE.sub(r'\1"\2":', fixed)
    fixed = _BARE_DATE_RE.sub(r': "\1"', fixed)
    fixed = _BARE_VALUE_RE.sub(_quote_bare_value, fixed)
    return fixed


def parse_llm_json(raw: str | None) -> dict[str, Any]:
    """Parse the JSON object in an LLM response, repairing it if needed.

    Raises:
        JsonRepairError: no object found, or it is still invalid after repair.
    """
    if not raw or not isinstance(raw, str):
        raise JsonRepairError("empty model output")

    cleaned = _strip_json_fences(raw.replace("\r", ""))
    candidate = _object_span(cleaned)
    if candidate is None:
        logger.error("No JSON object in model output: %s", cleaned[:_PREVIEW_CHARS])
        raise JsonRepairError("no JSON object in model output")

    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        try:
            parsed = json.loads(repair_json_text(candidate))
        except json.JSONDecodeError as exc:
            logger.error(
                "JSON repair failed (%s): %s",
                exc.msg,
                candidate[:_PREVIEW_CHARS],
            )
            raise JsonRepairError(f"invalid JSON after repair: {exc.msg}") from exc

    if not isinstance(parsed, dict):
        raise JsonRepairError("model output is not a JSON object")
    return parsed
