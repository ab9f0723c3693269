from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class TrackCreate(BaseModel):
    """Fields supplied when storing a new track"""
    name: str
    file_path: str
    is_generated: bool = False
    duration: str = "0:00"
    waveform_data: Optional[str] = None

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class Track(TrackCreate):
    """Domain model for Track entity"""
    id: int
    created_at: datetime
