from __future__ import annotations

from collections.abc import Sequence

from ..models.field_result import CleanedRow
from ..models.processing_result import CleaningResult
from .highlight import cell_class, is_modified

"""SUMMARY line and per-row report rendering.

SUMMARY format:
SUMMARY rows={processed}/{total} success={success} failed={failed}
aborted={true|false} elapsed_sec={elapsed} throughput_rps={throughput}
"""

__all__ = [
    "format_number",
    "render_summary_line",
    "render_row_line",
]


def format_number(value: float) -> str:
    """Integers without decimals, tiny values without scientific notation."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(round(value, 3))


def render_summary_line(result: CleaningResult) -> str:
    """Render the SUMMARY line for a cleaning run.

    Examples:
        >>> from datetime import datetime, timezone
        >>> start = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
        >>> end = datetime(2024, 1, 1, 10, 0, 2, tzinfo=timezone.utc)
        >>> result = CleaningResult(
        ...     total_rows=5, processed_rows=5, success_rows=4, failed_rows=1,
        ...     aborted=False, start_time=start, end_time=end,
        ...     elapsed_seconds=2.0, throughput_rows_per_sec=2.5,
        ... )
        >>> render_summary_line(result)
        'SUMMARY rows=5/5 success=4 failed=1 aborted=false elapsed_sec=2 throughput_rps=2.5'
    """
    return (
        f"SUMMARY rows={result.processed_rows}/{result.total_rows} "
        f"success={result.success_rows} "
        f"failed={result.failed_rows} "
        f"aborted={'true' if result.aborted else 'false'} "
        f"elapsed_sec={format_number(result.elapsed_seconds)} "
        f"throughput_rps={format_number(result.throughput_rows_per_sec)}"
    )


def render_row_line(
    index: int,
    cleaned: CleanedRow,
    headers: Sequence[str],
    original: Sequence[str] | None = None,
) -> str:
    """One report line per row: each header with its cleaned value and display class.

    Modified cells are flagged with ``*``.
    """
    status = "ok" if cleaned.success else "error"
    cells = []
    for i, header in enumerate(headers):
        item = cleaned.get(header)
        css = cell_class(item, cleaned.success)
        value = "-" if item is None or item.value is None else item.value
        mark = ""
        if item is not None and original is not None and i < len(original) and is_modified(original[i], item):
            mark = "*"
        cells.append(f"{header}={value}{mark} [{css}]")
    line = f"row={index + 1} status={status} " + " | ".join(cells)
    if cleaned.error:
        line += f" error={cleaned.error}"
    return line
