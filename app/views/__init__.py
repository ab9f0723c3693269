"""Pydantic schemas used as views in the MVC architecture."""

from .common import ErrorResponse
from .tracks import GenerateTrackRequest, TrackResponse

__all__ = [
    "ErrorResponse",
    "GenerateTrackRequest",
    "TrackResponse",
]
