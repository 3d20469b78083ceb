from __future__ import annotations

import json
import logging
import math
import re
import reprlib
from collections.abc import Callable
from typing import Any

from ..models.field_result import CleanedRow, FieldResult

"""Model output → structured field results.

The model is asked for a bare JSON array but in practice answers with any of:

(a) a bare JSON array
(b) the array inside a ```json fenced block
(c) free analysis text (possibly inside <analysis>...</analysis>) then the array
(d) almost-JSON: smart quotes, unquoted keys, single quotes, trailing commas

Stages: locate the array → strip control chars → normalize quotes → strict
parse → REPAIR_RULES in order → reparse. Entries that cannot be coerced into
a FieldResult are dropped; only a failure to recover the array fails the row.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ParseError",
    "REPAIR_RULES",
    "parse_response",
    "parse_field_results",
    "extract_json_block",
    "extract_analysis",
    "normalize_confidence",
    "normalize_value",
    "strip_control_chars",
    "normalize_quotes",
    "quote_bare_keys",
    "replace_stray_apostrophes",
    "drop_trailing_commas",
]


class ParseError(ValueError):
    """Raised when no JSON array can be recovered from the model output."""


_FENCE = re.compile(r"```[ \t]*(?:json|JSON)?[ \t]*\n?(.*?)```", re.DOTALL)
_ANALYSIS_TAG = re.compile(r"<analysis>(.*?)</analysis>", re.DOTALL | re.IGNORECASE)
_CONTROL = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_BARE_KEY = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)(\s*:)")
_TRAILING_COMMA = re.compile(r",\s*([\]}])")
_OPEN_APOSTROPHE = re.compile(r"(?<=[\[{,:])(\s*)'")
_CLOSE_APOSTROPHE = re.compile(r"'(\s*)(?=[,:}\]])")

_QUOTE_MAP = str.maketrans({
    "“": '"',
    "”": '"',
    "„": '"',
    "«": '"',
    "»": '"',
    "‘": "'",
    "’": "'",
})


def strip_control_chars(text: str) -> str:
    return _CONTROL.sub("", text)


def normalize_quotes(text: str) -> str:
    return text.translate(_QUOTE_MAP)


def _outside_strings(text: str, rewrite: Callable[[str], str]) -> str:
    """Apply ``rewrite`` to the text between double-quoted strings only."""
    parts: list[str] = []
    start = 0
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                parts.append(text[start:i + 1])
                start = i + 1
                in_string = False
        elif ch == '"':
            parts.append(rewrite(text[start:i]))
            start = i
            in_string = True
    tail = text[start:]
    parts.append(tail if in_string else rewrite(tail))
    return "".join(parts)


def quote_bare_keys(text: str) -> str:
    """{field: "x"} -> {"field": "x"}; string contents are left alone."""
    return _outside_strings(text, lambda chunk: _BARE_KEY.sub(r'\1"\2"\3', chunk))


def replace_stray_apostrophes(text: str) -> str:
    """Turn single quotes used as string delimiters into double quotes.

    Only quotes adjacent to JSON punctuation are touched, so apostrophes inside
    words ("d'agence") and inside double-quoted strings survive.
    """
    def rewrite(chunk: str) -> str:
        chunk = _OPEN_APOSTROPHE.sub(r'\1"', chunk)
        return _CLOSE_APOSTROPHE.sub(r'"\1', chunk)

    return _outside_strings(text, rewrite)


def drop_trailing_commas(text: str) -> str:
    return _outside_strings(text, lambda chunk: _TRAILING_COMMA.sub(r"\1", chunk))


# Applied in order after the strict parse failed.
REPAIR_RULES: tuple[Callable[[str], str], ...] = (
    quote_bare_keys,
    replace_stray_apostrophes,
    drop_trailing_commas,
)


def _array_end(text: str, start: int) -> int | None:
    # Bracket matching that ignores brackets inside double-quoted strings
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
            if depth == 0:
                return i + 1
    return None


def _last_balanced_array(text: str) -> tuple[int, int] | None:
    """Span of the last top-level, bracket-balanced [...] in ``text``."""
    last = None
    pos = text.find("[")
    while pos != -1:
        end = _array_end(text, pos)
        if end is None:
            pos = text.find("[", pos + 1)
            continue
        last = (pos, end)
        pos = text.find("[", end)
    return last


def extract_json_block(text: str) -> tuple[str, int] | None:
    """Locate the JSON array in the model output.

    Returns:
        (array_text, start_offset) where start_offset is where the enclosing
        block (fence or array) begins in ``text``; None when nothing array-like exists
    """
    fences = [m for m in _FENCE.finditer(text) if "[" in m.group(1)]
    if fences:
        last = fences[-1]
        inner = last.group(1)
        span = _last_balanced_array(inner)
        if span is not None:
            return inner[span[0]:span[1]], last.start()
    span = _last_balanced_array(text)
    if span is None:
        return None
    return text[span[0]:span[1]], span[0]


def extract_analysis(text: str, block_start: int | None) -> str:
    """Rationale emitted before the JSON block (tag content wins)."""
    tagged = _ANALYSIS_TAG.search(text)
    if tagged:
        return tagged.group(1).strip()
    if not block_start:
        return ""
    preceding = text[:block_start]
    preceding = re.sub(r"```[A-Za-z]*\s*$", "", preceding)
    return preceding.strip()


def _decode(text: str) -> Any:
    """json.loads, with decoder limits (nesting depth, integer digits) reported as ParseError."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        raise
    except RecursionError as e:
        raise ParseError("JSON nesting too deep") from e
    except ValueError as e:
        raise ParseError(f"unparsable JSON value: {e}") from e


def _loads(candidate: str) -> Any:
    try:
        return _decode(candidate)
    except json.JSONDecodeError:
        pass
    repaired = candidate
    for rule in REPAIR_RULES:
        repaired = rule(repaired)
    try:
        return _decode(repaired)
    except json.JSONDecodeError as e:
        raise ParseError(f"invalid JSON after repair: {e.msg} (line {e.lineno} col {e.colno})") from e


def normalize_confidence(value: Any) -> float:
    """Coerce a confidence into [0, 1].

    0.42 -> 0.42, 42 -> 0.42, "42%" -> 0.42, "1.0" -> 1.0, None/"abc" -> 0.0
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return 0.0
    elif isinstance(value, str):
        text = value.strip().replace(",", ".")
        percent = text.endswith("%")
        if percent:
            text = text[:-1].strip()
        try:
            number = float(text)
        except ValueError:
            return 0.0
        if percent:
            number /= 100
    else:
        return 0.0
    if not math.isfinite(number):
        return 0.0
    if number > 1:
        number /= 100
    return min(1.0, max(0.0, number))


_UNCOERCIBLE = object()


def normalize_value(value: Any) -> Any:
    """None / "null" -> None, str kept, numbers stringified, anything else rejected."""
    if value is None:
        return None
    if isinstance(value, str):
        return None if value.strip().lower() == "null" else value
    if isinstance(value, bool):
        return _UNCOERCIBLE
    if isinstance(value, (int, float)):
        return str(value)
    return _UNCOERCIBLE


def _to_field_result(entry: Any) -> FieldResult | None:
    if not isinstance(entry, dict):
        return None
    field = entry.get("field")
    if not isinstance(field, str) or not field.strip():
        return None
    value = normalize_value(entry.get("value"))
    if value is _UNCOERCIBLE:
        return None
    notes = entry.get("notes")
    if notes is None:
        notes = ""
    elif not isinstance(notes, str):
        notes = str(notes)
    return FieldResult(
        field=field.strip(),
        value=value,
        confidence=normalize_confidence(entry.get("confidence")),
        notes=notes,
    )


def parse_field_results(raw_text: str) -> tuple[list[FieldResult], str]:
    """Extract field results and analysis text.

    Raises:
        ParseError: no array found, or the array cannot be parsed even after repair
    """
    if not raw_text or not raw_text.strip():
        raise ParseError("empty model response")
    text = normalize_quotes(strip_control_chars(raw_text))
    located = extract_json_block(text)
    if located is None:
        raise ParseError("no JSON array found in model response")
    candidate, block_start = located
    data = _loads(candidate)
    if not isinstance(data, list):
        raise ParseError(f"expected a JSON array, got {type(data).__name__}")

    results: list[FieldResult] = []
    for entry in data:
        item = _to_field_result(entry)
        if item is None:
            logger.debug("dropping malformed field entry: %s", reprlib.repr(entry))
            continue
        results.append(item)
    return results, extract_analysis(text, block_start)


def parse_response(raw_text: str) -> CleanedRow:
    """Parse one model answer into a CleanedRow (never raises)."""
    try:
        results, analysis = parse_field_results(raw_text)
    except ParseError as e:
        return CleanedRow(success=False, cleaned_data=None, analysis="", error=str(e))
    return CleanedRow(success=True, cleaned_data=results, analysis=analysis)
