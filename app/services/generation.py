"""Similar-track generation orchestration.

The remote path (availability probe, transcription, characteristics analysis)
is best effort: every failure there degrades to local processing. Output is
always produced by ``LocalAudioProcessor``; only a missing source or a failed
filter pipeline reaches the caller as an error.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from pathlib import Path
from typing import Awaitable, Callable, Protocol

from app.config.settings import Settings, settings
from app.services.audio_processor import GeneratedTrack, LocalAudioProcessor, ProcessingError
from app.services.llm_client import BedrockLlmClient, LlmInvocationError
from app.services.response_contract import AnalysisParseError, MusicCharacteristics
from app.services.retry import RetryPolicy, retry_async
from app.services.transcribe import TranscribeService, TranscriptionResult
from app.telemetry import (
    increment_remote_failure,
    increment_transcription_retry,
    observe_generation,
)

logger = logging.getLogger(__name__)

ANALYSIS_SYSTEM_PROMPT = (
    "You are a music analysis expert. Analyze the transcription of an audio "
    "track and describe its musical characteristics. Respond with a single "
    'JSON object using the keys "tempo" (beats per minute), "key", "mood" '
    'and "genre", and nothing else.'
)


class SourceNotFoundError(RuntimeError):
    """Raised when the source audio is missing or unreadable."""


class GenerationConfigError(RuntimeError):
    """Raised when the remote AI credential is not configured at all."""


class Transcriber(Protocol):
    async def transcribe_file(self, source_path: Path) -> TranscriptionResult: ...


class AnalysisClient(Protocol):
    async def ping(self) -> None: ...

    async def invoke(self, *, system_prompt: str, user_prompt: str) -> str | None: ...


class VariantProcessor(Protocol):
    async def process(
        self,
        source_path: Path,
        variant_count: int = 1,
        *,
        characteristics: MusicCharacteristics | None = None,
    ) -> list[GeneratedTrack]: ...


class GenerationOrchestrator:
    """Run the remote analysis when possible, then produce local variants."""

    def __init__(
        self,
        processor: VariantProcessor,
        *,
        llm_client: AnalysisClient | None = None,
        transcriber: Transcriber | None = None,
        retry_policy: RetryPolicy | None = None,
        variant_count: int = 1,
        fallback_transcript: str = "instrumental music with melody and rhythm",
        apply_characteristics: bool = False,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if variant_count < 1:
            raise ValueError("variant_count must be at least 1")
        self._processor = processor
        self._llm = llm_client
        self._transcriber = transcriber
        self._retry_policy = retry_policy or RetryPolicy()
        self._variant_count = variant_count
        self._fallback_transcript = fallback_transcript
        self._apply_characteristics = apply_characteristics
        self._sleep = sleep

    async def generate(self, source_path: Path) -> list[GeneratedTrack]:
        """Produce one or more variants of ``source_path``.

        Raises ``SourceNotFoundError`` before doing any work when the file is
        missing, and ``ProcessingError`` when local processing fails.
        """

        source_path = Path(source_path)
        if not source_path.is_file() or not os.access(source_path, os.R_OK):
            raise SourceNotFoundError(f"Source audio {source_path.name} was not found.")

        started = time.perf_counter()
        characteristics: MusicCharacteristics | None = None
        try:
            characteristics = await self._analyze_remotely(source_path)
        except Exception as exc:
            increment_remote_failure("pipeline")
            logger.warning(
                "Remote analysis failed for %s; continuing locally: %s",
                source_path.name,
                exc,
            )

        path = "remote" if characteristics is not None else "local"
        try:
            tracks = await self._processor.process(
                source_path,
                self._variant_count,
                characteristics=characteristics if self._apply_characteristics else None,
            )
        except ProcessingError:
            observe_generation(path, "failed", time.perf_counter() - started)
            logger.exception("Local processing failed for %s", source_path.name)
            raise

        observe_generation(path, "succeeded", time.perf_counter() - started)
        logger.info(
            "Generation finished source=%s path=%s variants=%s",
            source_path.name,
            path,
            len(tracks),
        )
        return tracks

    async def _analyze_remotely(self, source_path: Path) -> MusicCharacteristics | None:
        """Return characteristics, or None when the remote service is unavailable."""

        if self._llm is None:
            logger.info("No remote AI client configured; using local processing only")
            return None

        try:
            await self._llm.ping()
        except LlmInvocationError as exc:
            increment_remote_failure("availability")
            logger.warning("Remote AI unavailable, skipping analysis: %s", exc)
            return None

        transcript = await self._transcribe_with_retry(source_path)
        characteristics = await self._analyze(transcript)
        logger.info(
            "Characteristics for %s: %s",
            source_path.name,
            characteristics.model_dump(exclude_none=True) or "{}",
        )
        return characteristics

    async def _transcribe_with_retry(self, source_path: Path) -> str:
        if self._transcriber is None:
            return self._fallback_transcript

        transcriber = self._transcriber
        try:
            result = await retry_async(
                lambda: transcriber.transcribe_file(source_path),
                self._retry_policy,
                sleep=self._sleep,
                on_retry=lambda *_: increment_transcription_retry(),
            )
        except Exception as exc:
            increment_remote_failure("transcription")
            logger.warning(
                "Transcription failed after %s attempt(s); using placeholder: %s",
                self._retry_policy.max_attempts,
                exc,
            )
            return self._fallback_transcript

        text = (result.transcript or "").strip()
        if not text:
            logger.info("Empty transcript for %s; using placeholder", source_path.name)
            return self._fallback_transcript
        return text

    async def _analyze(self, transcript: str) -> MusicCharacteristics:
        raw_response = await self._llm.invoke(
            system_prompt=ANALYSIS_SYSTEM_PROMPT,
            user_prompt=transcript,
        )
        try:
            return MusicCharacteristics.from_json(raw_response)
        except AnalysisParseError as exc:
            increment_remote_failure("analysis")
            logger.warning("Ignoring malformed analysis response: %s", exc)
            return MusicCharacteristics()


def ensure_remote_configured(config: Settings = settings) -> None:
    """Raise ``GenerationConfigError`` when no remote credential is set at all."""

    if not config.remote_credentials_configured:
        raise GenerationConfigError("Remote AI credentials are not configured.")


def create_generation_orchestrator(config: Settings = settings) -> GenerationOrchestrator:
    """Build an orchestrator with real AWS clients and the configured processor."""

    generation = config.generation
    processor = LocalAudioProcessor(
        Path(config.uploads.directory),
        policy=generation.variant_policy,
        random_seed=generation.random_seed,
        concurrent=generation.concurrent_variants,
    )

    llm_client: BedrockLlmClient | None = None
    transcriber: TranscribeService | None = None
    if config.remote_credentials_configured:
        llm_client = BedrockLlmClient(config.bedrock)
        transcriber = TranscribeService(config.aws.region, config.transcribe)

    variant_count = generation.variant_count
    if generation.variant_policy == "randomized":
        variant_count = 1

    return GenerationOrchestrator(
        processor,
        llm_client=llm_client,
        transcriber=transcriber,
        retry_policy=RetryPolicy.from_config(generation),
        variant_count=variant_count,
        fallback_transcript=generation.fallback_transcript,
        apply_characteristics=generation.apply_characteristics,
    )


__all__ = [
    "ANALYSIS_SYSTEM_PROMPT",
    "GenerationConfigError",
    "GenerationOrchestrator",
    "SourceNotFoundError",
    "create_generation_orchestrator",
    "ensure_remote_configured",
]
