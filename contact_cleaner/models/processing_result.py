from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

"""Aggregated result of one cleaning pass.

Holds the counters needed for the SUMMARY line and the CLI exit code.
"""

__all__ = [
    "CleaningResult",
]


@dataclass(frozen=True)
class CleaningResult:
    """Aggregated metrics for a cleaning run."""
    total_rows: int  # rows in the input table
    processed_rows: int  # rows that reached SUCCESS or FAILED
    success_rows: int
    failed_rows: int
    aborted: bool  # True when the run stopped before the last row
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    throughput_rows_per_sec: float

    @property
    def progress(self) -> float:
        """Fraction of the table that was processed (1.0 for an empty table)."""
        if self.total_rows == 0:
            return 1.0
        return self.processed_rows / self.total_rows
