from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.application.interfaces import TrackRepositoryInterface
from app.domain.models import Track, TrackCreate
from app.models.track import Track as TrackEntity


class SQLAlchemyTrackRepository(TrackRepositoryInterface):
    """SQLAlchemy implementation of the track repository"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create(self, track: TrackCreate) -> Track:
        async with self.session_factory() as session:
            db_track = TrackEntity(
                name=track.name,
                file_path=track.file_path,
                is_generated=track.is_generated,
                duration=track.duration,
                waveform_data=track.waveform_data,
            )
            session.add(db_track)
            await session.commit()
            await session.refresh(db_track)
            return Track.model_validate(db_track)

    async def get(self, track_id: int) -> Optional[Track]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(TrackEntity).where(TrackEntity.id == track_id)
            )
            db_track = result.scalar_one_or_none()
            return Track.model_validate(db_track) if db_track else None

    async def list_all(self) -> List[Track]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(TrackEntity).order_by(TrackEntity.id)
            )
            return [Track.model_validate(row) for row in result.scalars().all()]

    async def delete(self, track_id: int) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(
                select(TrackEntity).where(TrackEntity.id == track_id)
            )
            db_track = result.scalar_one_or_none()
            if db_track is None:
                return False
            await session.delete(db_track)
            await session.commit()
            return True
