from __future__ import annotations

from ..models.field_result import FieldResult

"""Confidence-based highlighting of cleaned cells.

Display classes follow the thresholds of the review table:
>=90% → confidence-100, >=85% → confidence-90, >=50% → confidence-85,
>=25% → confidence-50, below (or not a number) → confidence-25.
"""

__all__ = [
    "ERROR_CLASS",
    "confidence_class",
    "cell_class",
    "is_modified",
    "describe_field",
]

ERROR_CLASS = "confidence-error"


def confidence_class(confidence: object) -> str:
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        return "confidence-25"
    percent = confidence * 100
    if percent >= 90:
        return "confidence-100"
    if percent >= 85:
        return "confidence-90"
    if percent >= 50:
        return "confidence-85"
    if percent >= 25:
        return "confidence-50"
    return "confidence-25"


def cell_class(field_result: FieldResult | None, success: bool = True) -> str:
    """Class for one rendered cell; missing fields and error rows get the error class."""
    if field_result is None or not success:
        return ERROR_CLASS
    return confidence_class(field_result.confidence)


def is_modified(original: str | None, field_result: FieldResult) -> bool:
    return (original or "") != (field_result.value or "")


def describe_field(field_result: FieldResult) -> str:
    """Detail block for one field (value, confidence, cleaning notes)."""
    return "\n".join([
        f"# Détails du champ {field_result.field}",
        "",
        "## Valeur",
        "-" if field_result.value is None else field_result.value,
        "",
        "## Confiance",
        f"{field_result.confidence * 100:.1f}%",
        "",
        "## Notes de nettoyage",
        field_result.notes,
    ])
