"""Pydantic schemas for track endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TrackResponse(BaseModel):
    id: int
    name: str
    file_path: str
    is_generated: bool
    duration: str
    waveform_data: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class GenerateTrackRequest(BaseModel):
    id: int = Field(..., ge=1, description="Identifier of the source track")
