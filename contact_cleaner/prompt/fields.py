from __future__ import annotations

import re
import unicodedata
from types import MappingProxyType

"""Header label → canonical field key mapping.

The source files use French, accent-bearing header labels. Every lookup goes
through ``canonical_field`` so that a display label ("Prénom"), its context
key ("prenom") and the canonical key ("firstname") all resolve the same way.
"""

__all__ = [
    "FIELD_MAPPING",
    "CANONICAL_FIELDS",
    "normalize_header_key",
    "canonical_field",
]

FIELD_MAPPING = MappingProxyType({
    "civilité": "civility",
    "prénom": "firstname",
    "nom": "lastname",
    "nom complet": "fullname",
    "fonction": "jobtitle",
    "e-mail": "email",
    "organisation": "organization",
    "numéro de téléphone": "phonenumber",
})

CANONICAL_FIELDS = tuple(FIELD_MAPPING.values())

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_header_key(header: str) -> str:
    """Lower-case, strip accents and collapse non-alphanumerics to ``_``.

    >>> normalize_header_key("Numéro de téléphone")
    'numero_de_telephone'
    """
    decomposed = unicodedata.normalize("NFKD", header.strip().lower())
    ascii_only = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _NON_ALNUM.sub("_", ascii_only).strip("_")


# context key (accent stripped) -> canonical
_KEY_MAPPING = {normalize_header_key(label): key for label, key in FIELD_MAPPING.items()}


def canonical_field(name: str) -> str:
    """Resolve a display label, context key or canonical key to the canonical key.

    Unknown names are returned lower-cased and trimmed.
    """
    lowered = name.strip().lower()
    if lowered in FIELD_MAPPING:
        return FIELD_MAPPING[lowered]
    if lowered in CANONICAL_FIELDS:
        return lowered
    return _KEY_MAPPING.get(normalize_header_key(lowered), lowered)
