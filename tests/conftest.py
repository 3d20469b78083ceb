# Shared pytest fixtures
from __future__ import annotations

import json
import tempfile
from collections.abc import Callable
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from contact_cleaner.completion.client import CompletionClient
from contact_cleaner.logging.init import reset_logging


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """completion:
  base_url: https://api.example.test/v1
  assistant_id: asst_test
  temperature: 1
  timeout_seconds: 30
input:
  max_file_bytes: 5242880
  allowed_extensions: [".csv"]
credential_env: CLEANER_API_TOKEN
logs_directory: ./logs
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "cleaner.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def sample_csv_text() -> str:
    return (
        "Civilité;Prénom;Nom;E-mail;Numéro de téléphone\n"
        ";jean;dupont;JEAN@Test.FR;06.12.34.56.78\n"
        ";marie;curie;marie.curie@labo.fr;0102030405\n"
    )


@pytest.fixture()
def sample_csv(temp_workdir: Path, sample_csv_text: str) -> Path:
    f = temp_workdir / "data" / "contacts.csv"
    f.write_text(sample_csv_text, encoding="utf-8")
    return f


def _sse_lines(*chunks: str, done: bool = True) -> list[str]:
    lines = [
        "data: " + json.dumps({"choices": [{"delta": {"content": c}}]}, ensure_ascii=False)
        for c in chunks
    ]
    if done:
        lines.append("data: [DONE]")
    return lines


@pytest.fixture()
def sse_lines() -> Callable[..., list[str]]:
    """Encode text chunks as streamed ``data:`` delta lines."""
    return _sse_lines


@pytest.fixture()
def model_answer() -> Callable[[list[dict]], str]:
    return lambda fields: json.dumps(fields, ensure_ascii=False)


@pytest.fixture()
def make_stream_response() -> Callable[..., MagicMock]:
    """Factory for a mocked streaming ``requests.Response``."""
    def _make(lines: list[str] | None = None, status: int = 200, body: dict | None = None) -> MagicMock:
        response = MagicMock()
        response.status_code = status
        response.ok = 200 <= status < 300
        response.iter_lines.return_value = iter(lines or [])
        if body is None:
            response.json.side_effect = ValueError("no json body")
        else:
            response.json.return_value = body
        return response
    return _make


@pytest.fixture()
def mock_session() -> MagicMock:
    return MagicMock()


@pytest.fixture()
def client(mock_session: MagicMock) -> CompletionClient:
    return CompletionClient(
        base_url="https://api.example.test/v1",
        assistant_id="asst_test",
        temperature=1.0,
        timeout_seconds=5,
        session=mock_session,
    )


class ScriptedClient:
    """Stands in for CompletionClient: returns/raises scripted outcomes in order."""

    def __init__(self, outcomes: list[object]) -> None:
        self.outcomes = list(outcomes)
        self.prompts: list[str] = []

    def complete(self, prompt, credential, should_stop=None):
        self.prompts.append(prompt)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return outcome(should_stop)
        return outcome


@pytest.fixture()
def scripted_client() -> type[ScriptedClient]:
    return ScriptedClient


@pytest.fixture(autouse=True)
def _reset_app_logger():
    yield
    reset_logging()
