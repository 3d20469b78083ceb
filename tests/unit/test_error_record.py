from __future__ import annotations

import json
import re

import pytest

from contact_cleaner.models.error_record import ErrorRecord


def test_create_stamps_utc_with_z_suffix() -> None:
    record = ErrorRecord.create("contacts.csv", 2, "HTTP_ERROR", "API error: 500")

    assert record.timestamp.endswith("Z")
    assert re.match(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}", record.timestamp)
    assert record.row == 2


def test_to_json_line_has_exact_keys() -> None:
    record = ErrorRecord("2024-01-01T00:00:00Z", "contacts.csv", -1, "AUTH_ERROR", "clé absente")

    line = record.to_json_line()

    assert "\n" not in line
    assert "clé absente" in line
    assert json.loads(line) == {
        "timestamp": "2024-01-01T00:00:00Z",
        "file": "contacts.csv",
        "row": -1,
        "error_type": "AUTH_ERROR",
        "message": "clé absente",
    }


def test_record_is_frozen() -> None:
    record = ErrorRecord.create("a.csv", 1, "PARSE_ERROR", "x")
    with pytest.raises(AttributeError):
        record.row = 2  # type: ignore[misc]
