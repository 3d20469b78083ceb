from __future__ import annotations

import csv
from collections.abc import Sequence
from pathlib import Path

import pandas as pd

from ..models.field_result import CleanedRow

"""CSV export of cleaned rows.

Columns follow the original header order; each header is resolved to its
canonical field to find the matching FieldResult. Every value is quoted, the
separator is ';' and files are written as UTF-8 with a BOM.
"""

__all__ = [
    "EXPORT_SEPARATOR",
    "build_export_frame",
    "render_export",
    "export_csv",
]

EXPORT_SEPARATOR = ";"
BOM = "\ufeff"


def _cell_value(cleaned: CleanedRow, header: str) -> str:
    item = cleaned.get(header)
    if item is None or item.value is None:
        return ""
    return item.value


def build_export_frame(headers: Sequence[str], cleaned_rows: Sequence[CleanedRow]) -> pd.DataFrame:
    records = [[_cell_value(row, h) for h in headers] for row in cleaned_rows]
    return pd.DataFrame(records, columns=list(headers), dtype=str)


def render_export(headers: Sequence[str], cleaned_rows: Sequence[CleanedRow]) -> str:
    """Render the export as text, BOM included."""
    frame = build_export_frame(headers, cleaned_rows)
    body = frame.to_csv(
        index=False,
        sep=EXPORT_SEPARATOR,
        quoting=csv.QUOTE_ALL,
        lineterminator="\n",
    )
    return BOM + body


def export_csv(path: Path, headers: Sequence[str], cleaned_rows: Sequence[CleanedRow]) -> Path:
    """Write the export file and return its path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    frame = build_export_frame(headers, cleaned_rows)
    frame.to_csv(
        path,
        index=False,
        sep=EXPORT_SEPARATOR,
        quoting=csv.QUOTE_ALL,
        lineterminator="\n",
        encoding="utf-8-sig",
    )
    return path
