"""Generation stage (Stage 02) of the track pipeline."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from fastapi import HTTPException, status

from app.application.interfaces import TrackRepositoryInterface
from app.domain.models import Track, TrackCreate
from app.services import (
    GeneratedTrack,
    GenerationOrchestrator,
    ProcessingError,
    SourceNotFoundError,
)

logger = logging.getLogger("app.services.generation")

GENERATED_NAME_PREFIX = "AI Generated - "
_GENERATION_FAILED = (
    "Failed to generate music. Please try again later or contact support "
    "if the issue persists."
)


def resolve_source_path(track: Track, uploads_dir: Path) -> Path:
    """Locate the backing file of ``track``; 404 if it has gone missing."""

    source_path = uploads_dir / track.file_path
    if not source_path.is_file():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Source audio file not found",
        )
    return source_path


async def generate_variants(
    orchestrator: GenerationOrchestrator,
    source_path: Path,
) -> list[GeneratedTrack]:
    """Run the orchestrator and surface FastAPI-friendly errors."""

    try:
        return await orchestrator.generate(source_path)
    except SourceNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Source audio file not found",
        ) from exc
    except ProcessingError as exc:
        logger.error("Music generation failed for %s: %s", source_path.name, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_GENERATION_FAILED,
        ) from exc


async def persist_generated_tracks(
    repository: TrackRepositoryInterface,
    source: Track,
    generated: Sequence[GeneratedTrack],
) -> list[Track]:
    """Store each variant as a generated track named after its source.

    All-or-nothing: if any record fails to store, the records already created
    and every variant file are removed before a 500 is raised.
    """

    label_variants = len(generated) > 1
    stored: list[Track] = []
    try:
        for variant in generated:
            name = f"{GENERATED_NAME_PREFIX}{source.name}"
            if label_variants:
                name = f"{name} ({variant.preset})"
            stored.append(
                await repository.create(
                    TrackCreate(
                        name=name,
                        file_path=variant.file_path.name,
                        is_generated=True,
                        duration=variant.duration,
                    )
                )
            )
    except Exception as exc:
        logger.error(
            "Storing generated tracks for source id=%s failed after %s of %s: %s",
            source.id,
            len(stored),
            len(generated),
            exc,
        )
        await _rollback(repository, stored, generated)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_GENERATION_FAILED,
        ) from exc
    return stored


async def _rollback(
    repository: TrackRepositoryInterface,
    stored: Sequence[Track],
    generated: Sequence[GeneratedTrack],
) -> None:
    for track in stored:
        try:
            await repository.delete(track.id)
        except Exception as exc:
            logger.warning("Could not remove generated track id=%s: %s", track.id, exc)
    for variant in generated:
        try:
            variant.file_path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove %s: %s", variant.file_path, exc)


__all__ = [
    "GENERATED_NAME_PREFIX",
    "generate_variants",
    "persist_generated_tracks",
    "resolve_source_path",
]
