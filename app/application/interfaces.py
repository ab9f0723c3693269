from abc import ABC, abstractmethod
from typing import List, Optional

from app.domain.models import Track, TrackCreate


class TrackRepositoryInterface(ABC):
    """Persistence contract for uploaded and generated tracks"""

    @abstractmethod
    async def create(self, track: TrackCreate) -> Track:
        """Store the track, assigning its id and creation timestamp."""

    @abstractmethod
    async def get(self, track_id: int) -> Optional[Track]:
        ...

    @abstractmethod
    async def list_all(self) -> List[Track]:
        ...

    @abstractmethod
    async def delete(self, track_id: int) -> bool:
        """Remove the track; False when it did not exist."""
