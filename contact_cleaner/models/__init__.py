"""Domain models for the contact cleaning pipeline.

FieldResult / CleanedRow describe what the model returned for each row,
CleaningSession holds the in-memory table and results of one run, and
CleaningResult / ErrorRecord feed the SUMMARY line and the error log.
"""

from .error_record import ErrorRecord
from .field_result import PROCESSING_ERROR_NOTE, CleanedRow, FieldResult, RowState
from .processing_result import CleaningResult
from .session import CleaningSession

__all__ = [
    # Cleaning outcome
    "FieldResult",
    "CleanedRow",
    "RowState",
    "PROCESSING_ERROR_NOTE",
    # Run state & metrics
    "CleaningSession",
    "CleaningResult",
    "ErrorRecord",
]
