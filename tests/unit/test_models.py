from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from contact_cleaner.models import (
    PROCESSING_ERROR_NOTE,
    CleanedRow,
    CleaningResult,
    CleaningSession,
    FieldResult,
    RowState,
)


def test_field_result_is_frozen() -> None:
    item = FieldResult("email", "a@b.fr", 0.9)
    with pytest.raises(AttributeError):
        item.value = "x"  # type: ignore[misc]


def test_field_result_canonical_and_dict() -> None:
    item = FieldResult("Numéro de téléphone", None, 0.0)

    assert item.canonical == "phonenumber"
    assert item.to_dict() == {
        "field": "Numéro de téléphone",
        "value": None,
        "confidence": 0.0,
        "notes": "",
    }


def test_cleaned_row_get_resolves_labels() -> None:
    row = CleanedRow(
        success=True,
        cleaned_data=[FieldResult("firstname", "Jean", 0.9), FieldResult("E-mail", "j@d.fr", 0.8)],
    )

    assert row.get("Prénom").value == "Jean"
    assert row.get("email").value == "j@d.fr"
    assert row.get("Nom") is None
    assert CleanedRow(success=False).get("Prénom") is None


def test_failure_echoes_every_cell() -> None:
    row = CleanedRow.failure("API error: 500", ["Prénom", "Nom", "E-mail"], ["jean", "dupont"])

    assert row.success is False
    assert row.error == "API error: 500"
    assert [(f.field, f.value) for f in row.cleaned_data] == [
        ("Prénom", "jean"),
        ("Nom", "dupont"),
        ("E-mail", ""),
    ]
    assert {f.confidence for f in row.cleaned_data} == {0.0}
    assert {f.notes for f in row.cleaned_data} == {PROCESSING_ERROR_NOTE}


def test_failure_without_headers_has_no_data() -> None:
    assert CleanedRow.failure("boom").cleaned_data is None


def test_cleaned_row_to_dict() -> None:
    ok = CleanedRow(success=True, cleaned_data=[FieldResult("email", "a@b.fr", 1.0)], analysis="fine")
    bad = CleanedRow(success=False, error="no JSON array found in model response")

    assert ok.to_dict() == {
        "success": True,
        "analysis": "fine",
        "cleanedData": [{"field": "email", "value": "a@b.fr", "confidence": 1.0, "notes": ""}],
    }
    assert bad.to_dict() == {
        "success": False,
        "analysis": "",
        "error": "no JSON array found in model response",
    }


def test_session_load_resets_results() -> None:
    session = CleaningSession()
    session.load(["Prénom"], [["jean"], ["marie"]])
    session.cleaned_rows.append(CleanedRow(success=True, cleaned_data=[]))

    assert session.total_rows == 2
    assert session.progress == 0.5

    session.load(["Nom"], [["curie"]])

    assert session.headers == ["Nom"]
    assert session.cleaned_rows == []
    assert session.row_states == [RowState.PENDING]


def test_empty_session_progress() -> None:
    assert CleaningSession().progress == 1.0


def test_cleaning_result_progress() -> None:
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    result = CleaningResult(
        total_rows=4,
        processed_rows=1,
        success_rows=1,
        failed_rows=0,
        aborted=True,
        start_time=start,
        end_time=start + timedelta(seconds=1),
        elapsed_seconds=1.0,
        throughput_rows_per_sec=1.0,
    )

    assert result.progress == 0.25
