from __future__ import annotations

import json
import re
from pathlib import Path

from contact_cleaner.logging.error_log import ErrorLogBuffer
from contact_cleaner.models.error_record import ErrorRecord


def test_flush_without_records_writes_nothing(tmp_path: Path) -> None:
    buf = ErrorLogBuffer(tmp_path / "logs")

    assert buf.flush() is None
    assert not (tmp_path / "logs").exists()


def test_flush_writes_json_lines(tmp_path: Path) -> None:
    buf = ErrorLogBuffer(tmp_path / "logs")
    buf.append(ErrorRecord.create("contacts.csv", 3, "HTTP_ERROR", "API error: 500"))
    buf.append(ErrorRecord.create("contacts.csv", 4, "PARSE_ERROR", "no JSON array found"))
    assert len(buf) == 2

    path = buf.flush()

    assert path is not None
    assert re.fullmatch(r"errors-\d{8}-\d{6}\.log", path.name)
    lines = [json.loads(l) for l in path.read_text(encoding="utf-8").splitlines()]
    assert [l["row"] for l in lines] == [3, 4]
    assert len(buf) == 0
    assert buf.records == []


def test_second_flush_appends_to_same_file(tmp_path: Path) -> None:
    buf = ErrorLogBuffer(tmp_path / "logs")
    buf.append(ErrorRecord.create("a.csv", 1, "HTTP_ERROR", "x"))
    first = buf.flush()
    buf.append(ErrorRecord.create("a.csv", 2, "HTTP_ERROR", "y"))
    second = buf.flush()

    assert first == second
    assert len(second.read_text(encoding="utf-8").splitlines()) == 2


def test_default_directory_is_relative_logs(temp_workdir: Path) -> None:
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("a.csv", -1, "AUTH_ERROR", "missing bearer credential"))

    path = buf.flush()

    assert path.resolve().parent == (temp_workdir / "logs").resolve()
