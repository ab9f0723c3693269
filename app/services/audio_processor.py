"""Local ffmpeg-based variant generation.

Each variant is a tempo / resample / echo transform of the source file. The
presets are fixed so the same source always yields the same set of outputs;
the ``randomized`` policy reproduces the older single-variant behaviour and
can be seeded for tests.
"""

from __future__ import annotations

import asyncio
import logging
import random
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Literal, Optional, Sequence
from uuid import uuid4

from fastapi.concurrency import run_in_threadpool

from app.services.response_contract import MusicCharacteristics

logger = logging.getLogger(__name__)

CommandRunner = Callable[..., subprocess.CompletedProcess]
VariantPolicy = Literal["presets", "randomized"]

_DEFAULT_SAMPLE_RATE = 44100
_SUPPORTED_EXTENSIONS = {".mp3", ".wav", ".ogg"}
_SLOW_MOODS = {"calm", "sad", "melancholic", "mellow", "relaxed", "ambient", "dreamy", "chill"}
_FAST_MOODS = {"energetic", "upbeat", "happy", "aggressive", "intense", "excited", "danceable"}


class ProcessingError(RuntimeError):
    """Raised when the ffmpeg filter pipeline fails for any variant."""


@dataclass(frozen=True)
class EchoSettings:
    in_gain: float
    out_gain: float
    delay_ms: int
    decay: float

    def to_filter(self) -> str:
        return f"aecho={self.in_gain}:{self.out_gain}:{self.delay_ms}:{self.decay}"


@dataclass(frozen=True)
class FilterPreset:
    """One named variant: tempo factor, resample-rate factor, echo."""

    name: str
    tempo: float
    rate: float
    echo: EchoSettings

    def filter_chain(self, sample_rate: int) -> str:
        shifted_rate = int(round(sample_rate * self.rate))
        return ",".join(
            [
                f"atempo={self.tempo}",
                f"asetrate={shifted_rate}",
                f"aresample={sample_rate}",
                self.echo.to_filter(),
            ]
        )


SLOW_REVERB = FilterPreset(
    "slow-reverb", tempo=0.8, rate=0.89, echo=EchoSettings(0.8, 0.88, 60, 0.4)
)
FAST_BRIGHT = FilterPreset(
    "fast-bright", tempo=1.2, rate=1.1, echo=EchoSettings(0.6, 0.68, 40, 0.4)
)
NEUTRAL_ECHO = FilterPreset(
    "neutral-echo", tempo=1.0, rate=0.95, echo=EchoSettings(0.9, 0.98, 80, 0.4)
)

PRESETS: tuple[FilterPreset, ...] = (SLOW_REVERB, FAST_BRIGHT, NEUTRAL_ECHO)

_RANDOM_ECHO = EchoSettings(0.8, 0.88, 60, 0.4)


@dataclass(frozen=True)
class GeneratedTrack:
    """Output file written by the processor."""

    file_path: Path
    duration: str
    preset: str


def format_duration(seconds: float) -> str:
    """Render seconds as ``m:ss``."""

    total = max(0, int(round(seconds)))
    minutes, secs = divmod(total, 60)
    return f"{minutes}:{secs:02d}"


def rank_presets(
    presets: Sequence[FilterPreset],
    characteristics: MusicCharacteristics | None,
) -> list[FilterPreset]:
    """Reorder presets so the one closest to the analysed feel comes first."""

    ordered = list(presets)
    if characteristics is None or characteristics.is_empty:
        return ordered

    mood = (characteristics.mood or "").lower()
    bpm = characteristics.bpm
    prefers_slow = any(word in mood for word in _SLOW_MOODS) or (bpm is not None and bpm < 90)
    prefers_fast = any(word in mood for word in _FAST_MOODS) or (bpm is not None and bpm > 120)

    if prefers_slow and not prefers_fast:
        lead = SLOW_REVERB.name
    elif prefers_fast and not prefers_slow:
        lead = FAST_BRIGHT.name
    else:
        return ordered

    ordered.sort(key=lambda preset: preset.name != lead)
    return ordered


class LocalAudioProcessor:
    """Apply filter presets to a source file and write one output per variant."""

    def __init__(
        self,
        output_dir: Path,
        *,
        policy: VariantPolicy = "presets",
        presets: Sequence[FilterPreset] = PRESETS,
        random_seed: Optional[int] = None,
        concurrent: bool = False,
        runner: CommandRunner | None = None,
    ) -> None:
        self._output_dir = Path(output_dir)
        self._policy = policy
        self._presets = tuple(presets)
        self._rng = random.Random(random_seed)
        self._concurrent = concurrent
        self._run = runner or subprocess.run

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    async def process(
        self,
        source_path: Path,
        variant_count: int = 1,
        *,
        characteristics: MusicCharacteristics | None = None,
    ) -> list[GeneratedTrack]:
        """Write ``variant_count`` transformed copies of ``source_path``.

        All-or-nothing: if any variant fails, files written by this call are
        removed and ``ProcessingError`` is raised.
        """

        source_path = Path(source_path)
        if variant_count < 1:
            raise ValueError("variant_count must be at least 1")
        if self._policy == "presets" and variant_count > len(self._presets):
            raise ValueError(
                f"variant_count must be at most {len(self._presets)} for the preset policy"
            )
        if not source_path.is_file():
            raise ProcessingError(f"Source audio {source_path.name} is not readable.")

        self._output_dir.mkdir(parents=True, exist_ok=True)
        presets = self._select_presets(variant_count, characteristics)
        sample_rate = await run_in_threadpool(self._probe_sample_rate, source_path)

        batch_id = uuid4().hex
        extension = source_path.suffix.lower()
        if extension not in _SUPPORTED_EXTENSIONS:
            extension = ".mp3"
        targets = [
            self._output_dir / f"generated_{batch_id}_{index + 1}{extension}"
            for index in range(len(presets))
        ]

        try:
            if self._concurrent:
                results = await self._render_concurrently(source_path, presets, targets, sample_rate)
            else:
                results = []
                for preset, target in zip(presets, targets):
                    results.append(
                        await run_in_threadpool(
                            self._render_variant, source_path, target, preset, sample_rate
                        )
                    )
        except Exception as exc:
            self._discard(targets)
            if isinstance(exc, ProcessingError):
                raise
            raise ProcessingError(f"Variant processing failed: {exc}") from exc

        logger.info(
            "Generated %s variant(s) from %s: %s",
            len(results),
            source_path.name,
            ", ".join(f"{track.file_path.name}[{track.preset}]" for track in results),
        )
        return list(results)

    async def probe_duration(self, path: Path) -> str:
        """Duration of an encoded file as ``m:ss``; ``0:00`` if it cannot be read."""

        seconds = await run_in_threadpool(self._probe_seconds, Path(path))
        return format_duration(seconds) if seconds is not None else "0:00"

    async def _render_concurrently(
        self,
        source_path: Path,
        presets: Sequence[FilterPreset],
        targets: Sequence[Path],
        sample_rate: int,
    ) -> list[GeneratedTrack]:
        # Every job must finish before cleanup can run safely.
        outcomes = await asyncio.gather(
            *(
                run_in_threadpool(self._render_variant, source_path, target, preset, sample_rate)
                for preset, target in zip(presets, targets)
            ),
            return_exceptions=True,
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        return list(outcomes)

    def _select_presets(
        self,
        variant_count: int,
        characteristics: MusicCharacteristics | None,
    ) -> list[FilterPreset]:
        if self._policy == "randomized":
            return [self._random_preset(index) for index in range(variant_count)]
        return rank_presets(self._presets, characteristics)[:variant_count]

    def _random_preset(self, index: int) -> FilterPreset:
        tempo = round(self._rng.uniform(0.8, 1.2), 3)
        rate = round(self._rng.uniform(0.89, 1.11), 3)
        return FilterPreset(f"random-{index + 1}", tempo=tempo, rate=rate, echo=_RANDOM_ECHO)

    def _render_variant(
        self,
        source_path: Path,
        target: Path,
        preset: FilterPreset,
        sample_rate: int,
    ) -> GeneratedTrack:
        cmd = [
            "ffmpeg",
            "-y",
            "-hide_banner",
            "-loglevel",
            "error",
            "-i",
            str(source_path),
            "-af",
            preset.filter_chain(sample_rate),
            str(target),
        ]
        try:
            self._run(cmd, check=True, capture_output=True, text=True)
        except subprocess.CalledProcessError as exc:
            logger.error("ffmpeg failed for preset %s: %s", preset.name, exc.stderr)
            raise ProcessingError(f"ffmpeg failed for preset {preset.name}") from exc
        except OSError as exc:
            raise ProcessingError(f"Could not run ffmpeg: {exc}") from exc

        if not target.is_file():
            raise ProcessingError(f"ffmpeg produced no output for preset {preset.name}")

        seconds = self._probe_seconds(target)
        duration = format_duration(seconds) if seconds is not None else "0:00"
        return GeneratedTrack(file_path=target, duration=duration, preset=preset.name)

    def _probe_sample_rate(self, path: Path) -> int:
        cmd = [
            "ffprobe",
            "-v",
            "error",
            "-select_streams",
            "a:0",
            "-show_entries",
            "stream=sample_rate",
            "-of",
            "default=noprint_wrappers=1:nokey=1",
            str(path),
        ]
        try:
            result = self._run(cmd, check=True, capture_output=True, text=True)
            return int(result.stdout.strip())
        except (subprocess.CalledProcessError, OSError, ValueError) as exc:
            logger.warning(
                "Could not probe sample rate of %s (%s); assuming %s Hz",
                path.name,
                exc,
                _DEFAULT_SAMPLE_RATE,
            )
            return _DEFAULT_SAMPLE_RATE

    def _probe_seconds(self, path: Path) -> float | None:
        cmd = [
            "ffprobe",
            "-v",
            "error",
            "-show_entries",
            "format=duration",
            "-of",
            "default=noprint_wrappers=1:nokey=1",
            str(path),
        ]
        try:
            result = self._run(cmd, check=True, capture_output=True, text=True)
            return float(result.stdout.strip())
        except (subprocess.CalledProcessError, OSError, ValueError) as exc:
            logger.warning("Could not probe duration of %s: %s", path.name, exc)
            return None

    @staticmethod
    def _discard(paths: Sequence[Path]) -> None:
        for path in paths:
            try:
                path.unlink(missing_ok=True)
            except OSError:
                logger.warning("Could not remove partial output %s", path)


__all__ = [
    "EchoSettings",
    "FilterPreset",
    "GeneratedTrack",
    "LocalAudioProcessor",
    "PRESETS",
    "ProcessingError",
    "format_duration",
    "rank_presets",
]
