"""Track upload, browsing and AI generation endpoints.

``POST /api/tracks/generate`` runs the track pipeline:

1. Credential check (400 when the remote AI key is missing entirely).
2. Source lookup (404 for an unknown track or a missing backing file).
3. Orchestrated generation (remote analysis with local fallback).
4. Persistence of every variant as a new generated track.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status

from app.config.settings import settings
from app.controllers.dependencies import (
    AudioProcessorDep,
    OrchestratorDep,
    TrackRepositoryDep,
    UploadsDirDep,
    require_remote_credentials,
)
from app.domain.models import TrackCreate
from app.pipelines.tracks import (
    generate_variants,
    persist_generated_tracks,
    resolve_source_path,
    store_upload,
)
from app.views import ErrorResponse, GenerateTrackRequest, TrackResponse

router = APIRouter(prefix="/api/tracks", tags=["tracks"])

logger = logging.getLogger(__name__)

_AUDIO_FILE_UPLOAD = File(...)
_NOT_FOUND = {404: {"model": ErrorResponse}}


@router.post("/upload", response_model=TrackResponse)
async def upload_track(
    repository: TrackRepositoryDep,
    uploads_dir: UploadsDirDep,
    processor: AudioProcessorDep,
    file: UploadFile = _AUDIO_FILE_UPLOAD,
) -> TrackResponse:
    """Store an MP3, WAV or OGG upload and register it as a track."""

    stored = await store_upload(file, uploads_dir, max_bytes=settings.uploads.max_bytes)
    duration = await processor.probe_duration(stored.path)
    track = await repository.create(
        TrackCreate(
            name=stored.original_name,
            file_path=stored.file_name,
            is_generated=False,
            duration=duration,
        )
    )
    logger.info("Stored upload id=%s file=%s size=%s", track.id, stored.file_name, stored.size)
    return TrackResponse.model_validate(track)


@router.get("", response_model=List[TrackResponse])
async def list_tracks(repository: TrackRepositoryDep) -> List[TrackResponse]:
    tracks = await repository.list_all()
    return [TrackResponse.model_validate(track) for track in tracks]


@router.get("/{track_id}", response_model=TrackResponse, responses=_NOT_FOUND)
async def get_track(track_id: int, repository: TrackRepositoryDep) -> TrackResponse:
    track = await repository.get(track_id)
    if track is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Track not found")
    return TrackResponse.model_validate(track)


@router.delete(
    "/{track_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses=_NOT_FOUND,
)
async def delete_track(
    track_id: int,
    repository: TrackRepositoryDep,
    uploads_dir: UploadsDirDep,
) -> Response:
    """Delete the track record and its backing file."""

    track = await repository.get(track_id)
    if track is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Track not found")

    await repository.delete(track_id)
    backing_file = uploads_dir / track.file_path
    try:
        backing_file.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Could not remove %s: %s", backing_file, exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/generate",
    response_model=List[TrackResponse],
    dependencies=[Depends(require_remote_credentials)],
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}, **_NOT_FOUND},
)
async def generate_track(
    payload: GenerateTrackRequest,
    repository: TrackRepositoryDep,
    uploads_dir: UploadsDirDep,
    orchestrator: OrchestratorDep,
) -> List[TrackResponse]:
    """Generate AI variants of a stored track and return the new tracks."""

    source = await repository.get(payload.id)
    if source is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Source track not found")

    source_path = resolve_source_path(source, uploads_dir)
    generated = await generate_variants(orchestrator, source_path)
    stored = await persist_generated_tracks(repository, source, generated)

    logger.info(
        "Generated %s track(s) from source id=%s: %s",
        len(stored),
        source.id,
        [track.id for track in stored],
    )
    return [TrackResponse.model_validate(track) for track in stored]


__all__ = ["router"]
