from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..prompt.fields import canonical_field

"""Cleaning outcome models: FieldResult, CleanedRow and the per-row RowState.

A CleanedRow is produced for every raw CSV row, in the same position as the
source row. Failed rows keep their slot and carry an echo of the original
cells (confidence 0) so that downstream rendering/export stays aligned.
"""

__all__ = [
    "FieldResult",
    "CleanedRow",
    "RowState",
    "PROCESSING_ERROR_NOTE",
]

PROCESSING_ERROR_NOTE = "processing error"


class RowState(Enum):
    """Lifecycle of one row inside the cleaning pass.

    State transitions: pending → prompting → awaiting_completion → parsing → (success | failed)
    """
    PENDING = "pending"
    PROMPTING = "prompting"
    AWAITING_COMPLETION = "awaiting_completion"
    PARSING = "parsing"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class FieldResult:
    """One normalized field as returned by the model.

    ``value is None`` means the model could not normalize the field, which is
    not the same thing as an empty string.
    """
    field: str  # canonical key (firstname, email, ...) or display label
    value: str | None
    confidence: float  # always within [0, 1]
    notes: str = ""

    @property
    def canonical(self) -> str:
        return canonical_field(self.field)

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "value": self.value,
            "confidence": self.confidence,
            "notes": self.notes,
        }


@dataclass
class CleanedRow:
    """Outcome of cleaning a single raw row.

    Attributes:
        success: True when the model output was parsed into field results
        cleaned_data: Field results (success) or the echo of the original cells (failure)
        analysis: Free-text rationale emitted by the model before its JSON answer
        error: Failure message, None on success
    """
    success: bool
    cleaned_data: list[FieldResult] | None = None
    analysis: str = ""
    error: str | None = None

    @classmethod
    def failure(cls, error: str, headers: list[str] | None = None, row: list[str] | None = None) -> CleanedRow:
        """Build an error row echoing every original header/cell pair at confidence 0."""
        echo: list[FieldResult] | None = None
        if headers is not None:
            cells = list(row or [])
            echo = [
                FieldResult(
                    field=header,
                    value=cells[i] if i < len(cells) else "",
                    confidence=0.0,
                    notes=PROCESSING_ERROR_NOTE,
                )
                for i, header in enumerate(headers)
            ]
        return cls(success=False, cleaned_data=echo, analysis="", error=error)

    def get(self, field: str) -> FieldResult | None:
        """Return the first FieldResult whose canonical field matches ``field``."""
        if not self.cleaned_data:
            return None
        wanted = canonical_field(field)
        for item in self.cleaned_data:
            if item.canonical == wanted:
                return item
        return None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success, "analysis": self.analysis}
        if self.cleaned_data is not None:
            data["cleanedData"] = [item.to_dict() for item in self.cleaned_data]
        if self.error is not None:
            data["error"] = self.error
        return data
