"""Shared fixtures: fake ffmpeg/ffprobe runner and fake remote AI clients."""

from __future__ import annotations

import os
import subprocess
import sys
import tempfile
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

# Keep logs and uploads created at import time out of the working tree.
_SCRATCH = Path(tempfile.mkdtemp(prefix="soundalike-tests-"))
os.environ.setdefault("LOG_FILE", str(_SCRATCH / "logs" / "app.log"))
os.environ.setdefault("GENERATION_LOG_FILE", str(_SCRATCH / "logs" / "generation.log"))
os.environ.setdefault("UPLOAD_DIRECTORY", str(_SCRATCH / "uploads"))
os.environ.setdefault("STORAGE_BACKEND", "memory")

from app.services import LlmInvocationError, TranscriptionError, TranscriptionResult  # noqa: E402


class FakeMediaTools:
    """Stand-in for ``subprocess.run`` that understands our ffmpeg/ffprobe calls."""

    def __init__(
        self,
        *,
        sample_rate: str = "44100",
        duration: str = "75.0",
        fail_when: str | None = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.duration = duration
        self.fail_when = fail_when
        self.renders: list[list[str]] = []
        self.probes: list[list[str]] = []

    def __call__(self, cmd, check=False, capture_output=False, text=False, **kwargs):
        if cmd[0] == "ffprobe":
            self.probes.append(list(cmd))
            if "stream=sample_rate" in cmd:
                return subprocess.CompletedProcess(cmd, 0, stdout=f"{self.sample_rate}\n", stderr="")
            return subprocess.CompletedProcess(cmd, 0, stdout=f"{self.duration}\n", stderr="")

        self.renders.append(list(cmd))
        if self.fail_when is not None and self.fail_when in cmd[cmd.index("-af") + 1]:
            raise subprocess.CalledProcessError(1, cmd, output="", stderr="encoder exploded")
        Path(cmd[-1]).write_bytes(b"rendered-" + cmd[-1].encode())
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    def filter_chains(self) -> list[str]:
        return [cmd[cmd.index("-af") + 1] for cmd in self.renders]


class FakeLlm:
    """Records calls; ``ping_error`` simulates an unreachable service."""

    def __init__(self, response: str | None = None, *, ping_error: Exception | None = None,
                 invoke_error: Exception | None = None) -> None:
        self.response = response
        self.ping_error = ping_error
        self.invoke_error = invoke_error
        self.ping_calls = 0
        self.prompts: list[str] = []

    async def ping(self) -> None:
        self.ping_calls += 1
        if self.ping_error is not None:
            raise self.ping_error

    async def invoke(self, *, system_prompt: str, user_prompt: str) -> str | None:
        self.prompts.append(user_prompt)
        if self.invoke_error is not None:
            raise self.invoke_error
        return self.response


class FakeTranscriber:
    """Fails ``failures`` times, then returns ``transcript``."""

    def __init__(self, transcript: str = "la la la", *, failures: int = 0) -> None:
        self.transcript = transcript
        self.failures = failures
        self.calls = 0

    async def transcribe_file(self, source_path: Path) -> TranscriptionResult:
        self.calls += 1
        if self.calls <= self.failures:
            raise TranscriptionError(f"attempt {self.calls} failed")
        return TranscriptionResult(transcript=self.transcript)


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def media_tools() -> FakeMediaTools:
    return FakeMediaTools()


@pytest.fixture
def source_file(tmp_path: Path) -> Path:
    source = tmp_path / "input.mp3"
    source.write_bytes(b"ID3" + b"\x00" * 128)
    return source


@pytest.fixture
def unavailable_llm() -> FakeLlm:
    return FakeLlm(ping_error=LlmInvocationError("network down"))


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()
