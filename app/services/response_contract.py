"""Pydantic models for validating LLM JSON responses.

The characteristics analysis asks the model for a flat JSON object. Anything
else (prose, empty text, a JSON array) is reported as ``AnalysisParseError``
so the orchestrator can fall back to empty characteristics.
"""

from __future__ import annotations

import json
from typing import Any, Optional, Union

from pydantic import BaseModel, ValidationError, field_validator


class AnalysisParseError(RuntimeError):
    """Raised when the characteristics response cannot be validated."""


class MusicCharacteristics(BaseModel):
    tempo: Optional[Union[float, str]] = None
    key: Optional[str] = None
    mood: Optional[str] = None
    genre: Optional[str] = None

    model_config = {"populate_by_name": True, "extra": "allow"}

    @field_validator("key", "mood", "genre", mode="before")
    @classmethod
    def flatten_text(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            value = ", ".join(str(item) for item in value if item)
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("tempo", mode="before")
    @classmethod
    def normalize_tempo(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @property
    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)

    @property
    def bpm(self) -> float | None:
        """Numeric tempo when one can be read out of the response."""

        if isinstance(self.tempo, (int, float)):
            return float(self.tempo)
        if isinstance(self.tempo, str):
            digits = "".join(ch if ch.isdigit() or ch == "." else " " for ch in self.tempo)
            for token in digits.split():
                try:
                    return float(token)
                except ValueError:
                    continue
        return None

    @classmethod
    def from_json(cls, payload: str | None) -> "MusicCharacteristics":
        cleaned = _clean_json_payload(payload or "")
        if not cleaned:
            raise AnalysisParseError("Analysis response was empty.")
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as exc:
            raise AnalysisParseError(f"Analysis response is not JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise AnalysisParseError("Analysis response must be a JSON object.")
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise AnalysisParseError(str(exc)) from exc


def _clean_json_payload(payload: str) -> str:
    """Strip Markdown code blocks and find the first/last brace to extract JSON."""
    if not payload:
        return ""

    cleaned = payload.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]

    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]

    cleaned = cleaned.strip()

    start = cleaned.find("{")
    end = cleaned.rfind("}")

    if start != -1 and end != -1 and end > start:
        cleaned = cleaned[start : end + 1]

    return cleaned


__all__ = ["AnalysisParseError", "MusicCharacteristics"]
