from __future__ import annotations

import json

import pytest

from contact_cleaner.completion.response_parser import (
    REPAIR_RULES,
    drop_trailing_commas,
    normalize_quotes,
    quote_bare_keys,
    replace_stray_apostrophes,
    strip_control_chars,
)

# Malformed answers seen from the model, each paired with its parsed form.
CORPUS = [
    (
        '[{field: "email", value: "a@b.fr", confidence: 0.9, notes: ""}]',
        [{"field": "email", "value": "a@b.fr", "confidence": 0.9, "notes": ""}],
    ),
    (
        '[{"field": "nom", "value": "Curie", "confidence": 1,},]',
        [{"field": "nom", "value": "Curie", "confidence": 1}],
    ),
    (
        "[{'field': 'prenom', 'value': 'Marie', 'confidence': 0.5}]",
        [{"field": "prenom", "value": "Marie", "confidence": 0.5}],
    ),
    (
        "[{field: 'fonction', value: 'DRH', confidence: '80%',\n}]",
        [{"field": "fonction", "value": "DRH", "confidence": "80%"}],
    ),
    (
        '[{"field":"jobtitle","value":"DSI","confidence":0.9,"notes":"changed, reason: acronym"},]',
        [{"field": "jobtitle", "value": "DSI", "confidence": 0.9, "notes": "changed, reason: acronym"}],
    ),
    (
        '[{"field": "nom", "value": "Dupont", "notes": "corrigé, avant: dupont",}]',
        [{"field": "nom", "value": "Dupont", "notes": "corrigé, avant: dupont"}],
    ),
    (
        '[{field: "fonction", value: "chef d\'équipe, \'RH\'", confidence: 0.7}]',
        [{"field": "fonction", "value": "chef d'équipe, 'RH'", "confidence": 0.7}],
    ),
]


def _repair(text: str) -> str:
    for rule in REPAIR_RULES:
        text = rule(text)
    return text


@pytest.mark.parametrize("raw,expected", CORPUS)
def test_repair_corpus(raw: str, expected: list) -> None:
    with pytest.raises(json.JSONDecodeError):
        json.loads(raw)
    assert json.loads(_repair(raw)) == expected


def test_strip_control_chars_keeps_whitespace() -> None:
    assert strip_control_chars("a\x00b\tc\nd\r\x1f") == "ab\tc\nd\r"


def test_normalize_quotes() -> None:
    assert normalize_quotes("“x” „y“ «z» ‘w’") == '"x" "y" "z" \'w\''


def test_quote_bare_keys() -> None:
    assert quote_bare_keys('{field: "x", value: 1}') == '{"field": "x", "value": 1}'
    assert quote_bare_keys('{"field": "x"}') == '{"field": "x"}'


def test_replace_stray_apostrophes_keeps_inner_apostrophes() -> None:
    assert replace_stray_apostrophes("{'a': 'b'}") == '{"a": "b"}'
    assert replace_stray_apostrophes('{"notes": "d\'agence"}') == '{"notes": "d\'agence"}'


def test_drop_trailing_commas() -> None:
    assert drop_trailing_commas("[1, 2, ]") == "[1, 2]"
    assert drop_trailing_commas('{"a": 1,\n}') == '{"a": 1}'


def test_rules_leave_string_contents_alone() -> None:
    assert quote_bare_keys('{"notes": "a, b: c"}') == '{"notes": "a, b: c"}'
    assert quote_bare_keys('{notes: "x, y: z"}') == '{"notes": "x, y: z"}'
    assert replace_stray_apostrophes('{"notes": "vu, \'RH\'"}') == '{"notes": "vu, \'RH\'"}'
    assert drop_trailing_commas('["a,]", 1,]') == '["a,]", 1]'


def test_escaped_quote_does_not_end_string() -> None:
    raw = '{"notes": "dit \\"oui, b: c\\"",}'
    assert drop_trailing_commas(quote_bare_keys(raw)) == '{"notes": "dit \\"oui, b: c\\""}'
