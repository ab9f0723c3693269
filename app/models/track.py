"""Uploaded and generated audio tracks."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text

from .base import Base


class Track(Base):
    """Persisted track; ``file_path`` is relative to the uploads root."""

    __tablename__ = "tracks"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(512), nullable=False)
    file_path = Column(String(1024), nullable=False)
    is_generated = Column(Boolean, nullable=False, default=False)
    waveform_data = Column(Text, nullable=True)
    duration = Column(String(16), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)


__all__ = ["Track"]
