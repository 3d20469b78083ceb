from __future__ import annotations

from dataclasses import dataclass, field

from .field_result import CleanedRow, RowState

"""CleaningSession: the in-memory state of one cleaning run.

Replaces a process-wide mutable state object. The orchestrator owns the
session exclusively while it cleans; afterwards the deduplication step may
replace ``cleaned_rows`` with a filtered copy.
"""

__all__ = [
    "CleaningSession",
]


@dataclass
class CleaningSession:
    headers: list[str] = field(default_factory=list)
    rows: list[list[str]] = field(default_factory=list)
    cleaned_rows: list[CleanedRow] = field(default_factory=list)
    row_states: list[RowState] = field(default_factory=list)

    def load(self, headers: list[str], rows: list[list[str]]) -> None:
        """Replace the table and discard every result of a previous run."""
        self.headers = list(headers)
        self.rows = [list(r) for r in rows]
        self.reset_results()

    def reset_results(self) -> None:
        self.cleaned_rows = []
        self.row_states = [RowState.PENDING] * len(self.rows)

    @property
    def total_rows(self) -> int:
        return len(self.rows)

    @property
    def progress(self) -> float:
        if not self.rows:
            return 1.0
        return len(self.cleaned_rows) / len(self.rows)
