"""Amazon Transcribe integration helpers using Streaming API."""

from __future__ import annotations

import os
import asyncio
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from fastapi.concurrency import run_in_threadpool
from amazon_transcribe.client import TranscribeStreamingClient
from amazon_transcribe.handlers import TranscriptResultStreamHandler
from amazon_transcribe.model import TranscriptEvent

from app.config.settings import TranscribeConfig, settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TranscriptionResult:
    """Text approximation of an audio file."""

    transcript: str
    language_code: str | None = None


class TranscriptionError(RuntimeError):
    """Raised when Amazon Transcribe fails to process audio successfully."""


class TranscribeService:
    """High-level facade for streaming audio files to Amazon Transcribe."""

    def __init__(
        self,
        region: str,
        config: TranscribeConfig | None = None,
        *,
        media_encoding: str = "pcm",
    ) -> None:
        self._region = region
        self._config = config or settings.transcribe
        self._media_sample_rate_hz = self._config.media_sample_rate_hz
        self._media_encoding = media_encoding

        # The streaming SDK resolves credentials from the environment
        if settings.aws.access_key:
            os.environ["AWS_ACCESS_KEY_ID"] = settings.aws.access_key
        if settings.aws.secret_key:
            os.environ["AWS_SECRET_ACCESS_KEY"] = settings.aws.secret_key

        self._client = TranscribeStreamingClient(region=region)

    async def transcribe_file(self, source_path: Path) -> TranscriptionResult:
        """Stream the opening seconds of ``source_path`` and return the transcript."""

        try:
            pcm_data = await run_in_threadpool(self._convert_to_pcm_sync, source_path)
        except TranscriptionError:
            raise
        except OSError as exc:
            raise TranscriptionError(f"Could not read {source_path}: {exc}") from exc

        if not pcm_data:
            raise TranscriptionError("Audio conversion produced no samples.")

        try:
            stream = await self._client.start_stream_transcription(
                language_code=self._config.language_code,
                media_sample_rate_hz=self._media_sample_rate_hz,
                media_encoding=self._media_encoding,
            )
        except Exception as exc:
            raise TranscriptionError(f"Could not open transcription stream: {exc}") from exc

        handler = _SimpleTranscriptHandler(stream.output_stream)

        async def write_chunks():
            chunk_size = 8192
            bytes_per_sec = self._media_sample_rate_hz * 2  # 16-bit = 2 bytes
            sleep_time = chunk_size / bytes_per_sec if self._config.realtime_pacing else 0

            logger.info(
                "Starting stream. Total bytes: %s. Chunk size: %s. Sleep: %.4fs",
                len(pcm_data),
                chunk_size,
                sleep_time,
            )

            for i in range(0, len(pcm_data), chunk_size):
                chunk = pcm_data[i : i + chunk_size]
                await stream.input_stream.send_audio_event(audio_chunk=chunk)
                await asyncio.sleep(sleep_time)

            await stream.input_stream.end_stream()

        try:
            await asyncio.gather(write_chunks(), handler.handle_events())
        except Exception as exc:
            logger.error("Streaming loop failed: %s", exc)
            raise TranscriptionError(f"Streaming transcription failed: {exc}") from exc

        logger.info("Transcription complete. Length: %s", len(handler.transcript))
        return TranscriptionResult(
            transcript=handler.transcript.strip(),
            language_code=self._config.language_code,
        )

    def _convert_to_pcm_sync(self, source_path: Path) -> bytes:
        """Pipe the file into ffmpeg and decode the first ``max_seconds`` to mono s16le PCM."""

        try:
            with open(source_path, "rb") as audio_stream:
                process = subprocess.run(
                    [
                        "ffmpeg",
                        "-v", "error",
                        "-i", "pipe:0",
                        "-t", str(self._config.max_seconds),
                        "-f", "s16le",
                        "-ac", "1",
                        "-ar", str(self._media_sample_rate_hz),
                        "pipe:1",
                    ],
                    stdin=audio_stream,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    check=True,
                )
        except subprocess.CalledProcessError as exc:
            error_msg = exc.stderr.decode("utf-8", errors="replace") if exc.stderr else "No stderr"
            logger.error("ffmpeg failed. stderr: %s", error_msg)
            raise TranscriptionError(f"ffmpeg failed to convert audio to PCM: {error_msg}") from exc

        if not process.stdout:
            logger.warning(
                "ffmpeg produced empty output. stderr: %s",
                process.stderr.decode("utf-8", errors="replace"),
            )
        return process.stdout


class _SimpleTranscriptHandler(TranscriptResultStreamHandler):
    def __init__(self, transcript_result_stream):
        super().__init__(transcript_result_stream)
        self.transcript = ""

    async def handle_transcript_event(self, transcript_event: TranscriptEvent):
        results = transcript_event.transcript.results
        for result in results:
            if not result.is_partial:
                for alt in result.alternatives:
                    self.transcript += alt.transcript + " "


__all__ = ["TranscribeService", "TranscriptionError", "TranscriptionResult"]
