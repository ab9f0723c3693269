"""Process-local track storage used when no database is configured."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from app.application.interfaces import TrackRepositoryInterface
from app.domain.models import Track, TrackCreate


class InMemoryTrackRepository(TrackRepositoryInterface):
    """Dictionary-backed repository; ids start at 1 and are never reused.

    Tracks are listed in insertion order.
    """

    def __init__(self) -> None:
        self._tracks: Dict[int, Track] = {}
        self._next_id = 1

    async def create(self, track: TrackCreate) -> Track:
        stored = Track(
            **track.model_dump(),
            id=self._next_id,
            created_at=datetime.utcnow(),
        )
        self._tracks[stored.id] = stored
        self._next_id += 1
        return stored

    async def get(self, track_id: int) -> Optional[Track]:
        return self._tracks.get(track_id)

    async def list_all(self) -> List[Track]:
        return list(self._tracks.values())

    async def delete(self, track_id: int) -> bool:
        return self._tracks.pop(track_id, None) is not None
