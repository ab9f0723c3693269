"""Upload ingestion helpers (Stage 01 of the track pipeline)."""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Final
from uuid import uuid4

from fastapi import HTTPException, UploadFile, status

_ALLOWED_CONTENT_TYPES: Final[dict[str, str]] = {
    "audio/mpeg": ".mp3",
    "audio/mp3": ".mp3",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/wave": ".wav",
    "audio/ogg": ".ogg",
}
_CHUNK_SIZE: Final[int] = 1024 * 1024


@dataclass(frozen=True)
class StoredUpload:
    """An accepted upload written to disk."""

    original_name: str
    file_name: str
    path: Path
    size: int


def resolve_content_type(audio_file: UploadFile) -> str:
    """Accept MP3/WAV/OGG uploads, guessing from the filename when no type is sent."""

    content_type = audio_file.content_type
    if (not content_type or content_type == "application/octet-stream") and audio_file.filename:
        guessed_type, _ = mimetypes.guess_type(audio_file.filename)
        content_type = guessed_type or content_type

    if content_type not in _ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file type. Only MP3, WAV, and OGG files are allowed.",
        )
    return content_type


async def store_upload(
    audio_file: UploadFile,
    uploads_dir: Path,
    *,
    max_bytes: int,
) -> StoredUpload:
    """Stream the upload to ``uploads_dir`` under a generated unique name.

    Rejects empty files and anything larger than ``max_bytes``; a rejected
    upload leaves nothing behind on disk.
    """

    content_type = resolve_content_type(audio_file)
    original_name = audio_file.filename or "upload"
    extension = Path(original_name).suffix.lower() or _ALLOWED_CONTENT_TYPES[content_type]

    uploads_dir.mkdir(parents=True, exist_ok=True)
    file_name = f"{uuid4().hex}{extension}"
    target = uploads_dir / file_name

    size = 0
    try:
        with target.open("wb") as output:
            while chunk := await audio_file.read(_CHUNK_SIZE):
                size += len(chunk)
                if size > max_bytes:
                    raise HTTPException(
                        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                        detail=f"File exceeds the {max_bytes // (1024 * 1024)} MB upload limit.",
                    )
                output.write(chunk)
    except Exception:
        target.unlink(missing_ok=True)
        raise
    finally:
        await audio_file.close()

    if size == 0:
        target.unlink(missing_ok=True)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Uploaded audio file is empty",
        )

    return StoredUpload(
        original_name=original_name,
        file_name=file_name,
        path=target,
        size=size,
    )


__all__ = ["StoredUpload", "resolve_content_type", "store_upload"]
