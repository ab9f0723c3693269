"""Parsing of the characteristics analysis response."""

from __future__ import annotations

import pytest

from app.services.response_contract import AnalysisParseError, MusicCharacteristics


def test_parses_fenced_json_with_extra_keys():
    payload = """```json
    {"tempo": "96 BPM", "key": "A minor", "mood": "Melancholic", "genre": ["lo-fi", "jazz"],
     "instruments": ["piano"]}
    ```"""

    characteristics = MusicCharacteristics.from_json(payload)

    assert characteristics.key == "A minor"
    assert characteristics.genre == "lo-fi, jazz"
    assert characteristics.bpm == 96.0
    assert characteristics.model_dump()["instruments"] == ["piano"]
    assert not characteristics.is_empty


def test_numeric_tempo_is_kept():
    characteristics = MusicCharacteristics.from_json('{"tempo": 128, "mood": "upbeat"}')

    assert characteristics.bpm == 128.0
    assert characteristics.mood == "upbeat"


@pytest.mark.parametrize("payload", ["", None, "   ", "no json here", "[1, 2, 3]", "{broken"])
def test_malformed_payloads_raise_parse_error(payload):
    with pytest.raises(AnalysisParseError):
        MusicCharacteristics.from_json(payload)


def test_empty_object_is_empty_characteristics():
    characteristics = MusicCharacteristics.from_json("{}")

    assert characteristics.is_empty
    assert characteristics.bpm is None
