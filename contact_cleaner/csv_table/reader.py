from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

import pandas as pd

"""CSV reader for contact files.

- First non-empty line is the header, following non-blank lines are data rows.
- Separator: ';' when the header line contains one, ',' otherwise.
- Every row must have exactly as many cells as the header; a single bad row
  rejects the whole file.

``parse_csv`` / ``validate_structure`` are pure and never raise. The file
gate ``read_csv_file`` is the caller side and raises ValidationError.
"""

__all__ = [
    "ValidationError",
    "CsvTable",
    "sanitize_content",
    "detect_separator",
    "parse_csv",
    "validate_structure",
    "read_csv_file",
    "DEFAULT_MAX_FILE_BYTES",
    "DEFAULT_ALLOWED_EXTENSIONS",
    "ERROR_MESSAGES",
]

DEFAULT_MAX_FILE_BYTES = 5 * 1024 * 1024  # 5MB
DEFAULT_ALLOWED_EXTENSIONS = (".csv",)

ERROR_MESSAGES = {
    "invalid_type": "Format de fichier invalide. Veuillez sélectionner un fichier CSV.",
    "too_large": "Fichier trop volumineux. La taille maximum est de 5MB.",
    "no_file": "Aucun fichier sélectionné.",
    "parse_error": "Erreur lors de la lecture du fichier CSV.",
    "bad_structure": "Le fichier CSV semble mal formaté",
}

_ANGLE_BRACKETS = re.compile(r"[<>]")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F-\x9F]")


class ValidationError(Exception):
    """Raised when an input file is rejected (type, size or structure)."""


@dataclass
class CsvTable:
    headers: list[str]
    rows: list[list[str]] = field(default_factory=list)
    separator: str = ","

    def is_valid(self) -> bool:
        return validate_structure(self.headers, self.rows)

    def to_frame(self) -> pd.DataFrame:
        """DataFrame view of the table (valid tables only)."""
        return pd.DataFrame(self.rows, columns=self.headers)


def sanitize_content(text: str) -> str:
    """Strip angle brackets and control characters, then trim."""
    text = _ANGLE_BRACKETS.sub("", text)
    text = _CONTROL_CHARS.sub("", text)
    return text.strip()


def detect_separator(header_line: str) -> str:
    return ";" if ";" in header_line else ","


def _clean_cell(cell: str) -> str:
    # Trim, then drop one level of surrounding quotes (our own exports quote every cell)
    cell = cell.strip()
    if len(cell) >= 2 and cell[0] == '"' and cell[-1] == '"':
        cell = cell[1:-1].replace('""', '"').strip()
    return cell


def parse_csv(text: str) -> CsvTable:
    """Parse raw CSV text into headers + rows.

    Steps:
    1. Sanitize the content
    2. Split on newlines, detect separator from the header line
    3. Split header and each non-blank line, trimming every cell
    """
    content = sanitize_content(text)
    if not content:
        return CsvTable(headers=[], rows=[])
    lines = content.split("\n")
    separator = detect_separator(lines[0])
    headers = [_clean_cell(h) for h in lines[0].split(separator)]
    rows = [
        [_clean_cell(cell) for cell in line.split(separator)]
        for line in lines[1:]
        if line.strip() != ""
    ]
    return CsvTable(headers=headers, rows=rows, separator=separator)


def validate_structure(headers: list[str], rows: Iterable[list[str]]) -> bool:
    """True when headers are present and every row matches the header width."""
    if not headers:
        return False
    width = len(headers)
    return all(len(row) == width for row in rows)


def read_csv_file(
    path: Path,
    max_bytes: int = DEFAULT_MAX_FILE_BYTES,
    allowed_extensions: Iterable[str] = DEFAULT_ALLOWED_EXTENSIONS,
) -> CsvTable:
    """Read, parse and validate a CSV file.

    Parameters
    ----------
    path: input file
    max_bytes: size limit, checked before reading
    allowed_extensions: lower-case suffixes accepted (e.g. ['.csv'])

    Raises
    ------
    ValidationError: file missing, too large, wrong type, undecodable or mis-shaped
    """
    if not path.exists() or not path.is_file():
        raise ValidationError(ERROR_MESSAGES["no_file"])
    allowed = {ext.lower() for ext in allowed_extensions}
    if path.suffix.lower() not in allowed:
        raise ValidationError(ERROR_MESSAGES["invalid_type"])
    if path.stat().st_size > max_bytes:
        raise ValidationError(ERROR_MESSAGES["too_large"])
    try:
        # utf-8-sig drops the BOM our own exports carry
        text = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise ValidationError(f"{ERROR_MESSAGES['parse_error']} ({e})") from e

    table = parse_csv(text)
    if not table.is_valid():
        raise ValidationError(ERROR_MESSAGES["bad_structure"])
    return table
