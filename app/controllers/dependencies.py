"""Common FastAPI dependencies reused across controllers."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated

from fastapi import Depends, HTTPException, status

from app.application.interfaces import TrackRepositoryInterface
from app.config.settings import settings
from app.infrastructure.persistence.memory import InMemoryTrackRepository
from app.services import (
    GenerationConfigError,
    GenerationOrchestrator,
    LocalAudioProcessor,
    create_generation_orchestrator,
    ensure_remote_configured,
)


@lru_cache(maxsize=1)
def _memory_repository() -> InMemoryTrackRepository:
    return InMemoryTrackRepository()


def get_track_repository() -> TrackRepositoryInterface:
    """Return the repository for the configured storage backend."""

    if settings.storage_backend == "database":
        from app.database import SessionFactory
        from app.infrastructure.persistence.repositories_sqlalchemy import (
            SQLAlchemyTrackRepository,
        )

        return SQLAlchemyTrackRepository(SessionFactory)
    return _memory_repository()


def get_uploads_dir() -> Path:
    uploads_dir = Path(settings.uploads.directory)
    uploads_dir.mkdir(parents=True, exist_ok=True)
    return uploads_dir


@lru_cache(maxsize=1)
def get_audio_processor() -> LocalAudioProcessor:
    """Processor used for duration probing outside of generation."""

    return LocalAudioProcessor(Path(settings.uploads.directory))


@lru_cache(maxsize=1)
def get_generation_orchestrator() -> GenerationOrchestrator:
    """Build the orchestrator once, on first use, from the current settings."""

    return create_generation_orchestrator(settings)


def require_remote_credentials() -> None:
    """Reject generation up front when no remote credential is configured."""

    try:
        ensure_remote_configured(settings)
    except GenerationConfigError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                "AI service credentials are not configured. Please configure "
                "the API key to use music generation."
            ),
        ) from None


TrackRepositoryDep = Annotated[TrackRepositoryInterface, Depends(get_track_repository)]
UploadsDirDep = Annotated[Path, Depends(get_uploads_dir)]
AudioProcessorDep = Annotated[LocalAudioProcessor, Depends(get_audio_processor)]
OrchestratorDep = Annotated[GenerationOrchestrator, Depends(get_generation_orchestrator)]


__all__ = [
    "AudioProcessorDep",
    "OrchestratorDep",
    "TrackRepositoryDep",
    "UploadsDirDep",
    "get_audio_processor",
    "get_generation_orchestrator",
    "get_track_repository",
    "get_uploads_dir",
    "require_remote_credentials",
]
