from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from types import MappingProxyType

from .fields import CANONICAL_FIELDS, canonical_field, normalize_header_key

"""Prompt construction for one contact row.

build_context() turns a raw row into {normalized_header_key: cell} and
build_prompt() renders the instruction block sent to the completion endpoint:
the JSON context, the per-field normalization rules and the output contract.
"""

__all__ = [
    "FIELD_RULES",
    "OUTPUT_CONTRACT",
    "build_context",
    "build_prompt",
    "recognized_fields",
]

# Normalization policy the model is asked to apply, one rule per canonical field.
FIELD_RULES = MappingProxyType({
    "civility": (
        'Infer "Madame"/"Monsieur" from first name gender cues, job-title cues '
        '("Directrice" → Madame), cross-checked against email/full name; '
        "always resolves to one of the two values."
    ),
    "firstname": (
        "Capitalize first letter, lower rest, trim whitespace; if blank, "
        "reconstruct from full name or email local-part."
    ),
    "lastname": (
        "Same casing rule; if blank or equal to the first name, reconstruct "
        "from full name."
    ),
    "fullname": (
        'Must equal "Firstname Lastname"; reconstruct from parts or email if blank.'
    ),
    "jobtitle": (
        "Title-case each word; preserve acronyms DSI/PDG/DRH/RSSI; strip "
        "parenthetical content and anything after `/`."
    ),
    "email": (
        "Lower-case, strip whitespace, must match a standard local@domain.tld "
        "pattern; invalid → null."
    ),
    "organization": (
        'Title-case words, preserve legal-form acronyms (SA, SARL, SAS), '
        'standardize "&"/"et".'
    ),
    "phonenumber": (
        "Strip non-digits; valid iff exactly 10 digits; format as five "
        "space-separated digit pairs; otherwise null."
    ),
})

OUTPUT_CONTRACT = (
    "Respond with only a JSON array of {field, value, confidence, notes} records, "
    "one per recognized field, no surrounding prose."
)


def build_context(row: Sequence[str], headers: Sequence[str]) -> dict[str, str]:
    """Zip normalized header keys with the row's cells (missing cells → "")."""
    context: dict[str, str] = {}
    for i, header in enumerate(headers):
        context[normalize_header_key(header)] = row[i] if i < len(row) else ""
    return context


def recognized_fields(keys: Sequence[str]) -> list[str]:
    """Canonical fields present among the given header/context keys, in rule order."""
    present = {canonical_field(k) for k in keys}
    return [f for f in CANONICAL_FIELDS if f in present]


def build_prompt(context: Mapping[str, str]) -> str:
    """Render the instruction block for one row context."""
    fields = recognized_fields(list(context.keys()))
    rules = "\n".join(
        f"{i}. {name}: {FIELD_RULES[name]}" for i, name in enumerate(FIELD_RULES, start=1)
    )
    lines = [
        "OBJECTIVE: Clean and normalize this contact record using the whole row as context.",
        "",
        "INPUT (JSON):",
        json.dumps(dict(context), ensure_ascii=False, indent=2),
        "",
        "RULES PER FIELD:",
        rules,
        "",
        f"RECOGNIZED FIELDS: {', '.join(fields) if fields else 'none'}",
        "",
        "Each record: field = canonical field name, value = cleaned string or null, "
        "confidence = number between 0 and 1, notes = short explanation of the change.",
        "",
        f"OUTPUT: {OUTPUT_CONTRACT}",
    ]
    return "\n".join(lines)
