from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from datetime import UTC, datetime

import requests

from ..completion.client import AuthError, CompletionAborted, CompletionClient, CompletionError, HttpError
from ..completion.response_parser import parse_response
from ..csv_table.reader import validate_structure
from ..logging.error_log import ErrorLogBuffer
from ..models.error_record import ErrorRecord
from ..models.field_result import CleanedRow, RowState
from ..models.processing_result import CleaningResult
from ..models.session import CleaningSession
from ..prompt.builder import build_context, build_prompt
from .progress import ProgressTracker

"""Row cleaning orchestration.

For every raw row, in order and one at a time:

    pending → prompting → awaiting_completion → parsing → (success | failed)

Network, auth and parse failures are row-scoped: the row becomes an error
row echoing its original cells and the loop moves on. The only run-level
failures are a missing credential (AuthError) and an unusable session
(ProcessingError). An abort request stops the loop between rows or while a
stream is being read; the in-flight row is discarded so ``cleaned_rows``
always holds a prefix of the table.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ProcessingError",
    "RowCleaner",
    "ProgressCallback",
]

ProgressCallback = Callable[[float, int, CleanedRow], None]
StateCallback = Callable[[RowState], None]


class ProcessingError(Exception):
    """Fatal orchestration error (nothing was cleaned)."""


def _error_type(exc: Exception) -> str:
    if isinstance(exc, HttpError):
        return "HTTP_ERROR"
    if isinstance(exc, AuthError):
        return "AUTH_ERROR"
    return "COMPLETION_ERROR"


class RowCleaner:
    """Drives prompt → completion → parse for each row of a session.

    Args:
        client: Completion client used for every row
        credential: Bearer token sent with each request
        error_log: Buffer receiving one record per failed row
        on_progress: Called after each row with (fraction, row_index, cleaned_row)
        file_name: Input name used in error records
    """

    def __init__(
        self,
        client: CompletionClient,
        credential: str | None,
        *,
        error_log: ErrorLogBuffer | None = None,
        on_progress: ProgressCallback | None = None,
        file_name: str = "<input>",
    ) -> None:
        self._client = client
        self._credential = credential
        self._error_log = error_log if error_log is not None else ErrorLogBuffer()
        self._on_progress = on_progress
        self._file_name = file_name

    @property
    def error_log(self) -> ErrorLogBuffer:
        return self._error_log

    def clean_row(
        self,
        row: Sequence[str],
        headers: Sequence[str],
        *,
        should_stop: Callable[[], bool] | None = None,
        on_state: StateCallback | None = None,
    ) -> CleanedRow:
        """Clean a single row. CompletionAborted propagates, other failures become error rows."""
        cleaned, _ = self._clean_row(row, headers, should_stop, on_state)
        return cleaned

    def _clean_row(
        self,
        row: Sequence[str],
        headers: Sequence[str],
        should_stop: Callable[[], bool] | None,
        on_state: StateCallback | None,
    ) -> tuple[CleanedRow, str | None]:
        def transition(state: RowState) -> None:
            if on_state is not None:
                on_state(state)

        transition(RowState.PROMPTING)
        prompt = build_prompt(build_context(row, headers))

        transition(RowState.AWAITING_COMPLETION)
        try:
            raw_text = self._client.complete(prompt, self._credential, should_stop=should_stop)
        except CompletionAborted:
            raise
        except CompletionError as e:
            transition(RowState.FAILED)
            return CleanedRow.failure(str(e), list(headers), list(row)), _error_type(e)
        except requests.RequestException as e:
            transition(RowState.FAILED)
            return CleanedRow.failure(f"request failed: {e}", list(headers), list(row)), "COMPLETION_ERROR"

        transition(RowState.PARSING)
        parsed = parse_response(raw_text)
        if not parsed.success:
            transition(RowState.FAILED)
            return CleanedRow.failure(parsed.error or "unparsable model response", list(headers), list(row)), "PARSE_ERROR"

        transition(RowState.SUCCESS)
        return parsed, None

    def clean(self, session: CleaningSession, cancel_event: threading.Event | None = None) -> CleaningResult:
        """Clean every row of ``session`` sequentially.

        Results are appended to ``session.cleaned_rows`` (reset first), one per
        row and in input order.

        Raises:
            ProcessingError: session has no headers or is not rectangular
            AuthError: no credential configured
        """
        if not session.headers:
            raise ProcessingError("no table loaded")
        if not validate_structure(session.headers, session.rows):
            raise ProcessingError("table rows do not match the header width")
        if not self._credential:
            self._error_log.append(
                ErrorRecord.create(self._file_name, -1, "AUTH_ERROR", "missing bearer credential")
            )
            self._flush_error_log()
            raise AuthError("missing bearer credential")

        session.reset_results()
        total = session.total_rows
        start_time = datetime.now(UTC)
        success_count = 0
        failed_count = 0
        aborted = False
        should_stop = cancel_event.is_set if cancel_event is not None else None

        logger.info("cleaning %d rows (%d columns)", total, len(session.headers))

        with ProgressTracker(total, description="Cleaning rows") as progress:
            for index, row in enumerate(session.rows):
                if cancel_event is not None and cancel_event.is_set():
                    aborted = True
                    break
                progress.start_row(index)

                def on_state(state: RowState, i: int = index) -> None:
                    session.row_states[i] = state

                try:
                    cleaned, error_type = self._clean_row(row, session.headers, should_stop, on_state)
                except CompletionAborted:
                    session.row_states[index] = RowState.PENDING
                    aborted = True
                    break

                session.cleaned_rows.append(cleaned)
                if cleaned.success:
                    success_count += 1
                    logger.debug(
                        "row %d/%d cleaned fields=%d",
                        index + 1,
                        total,
                        len(cleaned.cleaned_data or []),
                    )
                else:
                    failed_count += 1
                    logger.warning("row %d/%d failed: %s", index + 1, total, cleaned.error)
                    self._error_log.append(
                        ErrorRecord.create(
                            self._file_name,
                            index + 1,
                            error_type or "PROCESSING_ERROR",
                            cleaned.error or "",
                        )
                    )

                progress.set_postfix(success=success_count, failed=failed_count)
                progress.finish_row(success=cleaned.success)
                if self._on_progress is not None:
                    self._on_progress(len(session.cleaned_rows) / total, index, cleaned)

        if aborted:
            logger.warning("cleaning aborted after %d/%d rows", len(session.cleaned_rows), total)

        self._flush_error_log()

        end_time = datetime.now(UTC)
        elapsed_seconds = (end_time - start_time).total_seconds()
        processed = success_count + failed_count
        throughput = processed / elapsed_seconds if elapsed_seconds > 0 else 0.0

        return CleaningResult(
            total_rows=total,
            processed_rows=processed,
            success_rows=success_count,
            failed_rows=failed_count,
            aborted=aborted,
            start_time=start_time,
            end_time=end_time,
            elapsed_seconds=elapsed_seconds,
            throughput_rows_per_sec=throughput,
        )

    def _flush_error_log(self) -> None:
        try:
            path = self._error_log.flush()
        except OSError as e:
            logger.warning("could not write error log: %s", e)
            return
        if path is not None:
            logger.info("error log written: %s", path)
