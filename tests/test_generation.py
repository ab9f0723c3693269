"""GenerationOrchestrator behaviour with fake remote clients."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from app.config.settings import AwsConfig, BedrockConfig, settings
from app.services import (
    GeneratedTrack,
    GenerationConfigError,
    GenerationOrchestrator,
    LlmInvocationError,
    LocalAudioProcessor,
    ProcessingError,
    RetryPolicy,
    SourceNotFoundError,
    ensure_remote_configured,
)
from app.services.generation import ANALYSIS_SYSTEM_PROMPT
from app.services.response_contract import MusicCharacteristics
from conftest import FakeLlm, FakeMediaTools, FakeTranscriber

GOOD_ANALYSIS = '{"tempo": 72, "key": "D minor", "mood": "calm", "genre": "ambient"}'


class StubProcessor:
    """Returns one fake track per requested variant and records its inputs."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple[Path, int, MusicCharacteristics | None]] = []

    async def process(self, source_path, variant_count=1, *, characteristics=None):
        self.calls.append((source_path, variant_count, characteristics))
        if self.error is not None:
            raise self.error
        return [
            GeneratedTrack(
                file_path=source_path.with_name(f"generated_{index}.mp3"),
                duration="0:42",
                preset=f"preset-{index}",
            )
            for index in range(variant_count)
        ]


def _orchestrator(processor, *, llm=None, transcriber=None, sleep=None, **kwargs):
    return GenerationOrchestrator(
        processor,
        llm_client=llm,
        transcriber=transcriber,
        retry_policy=RetryPolicy(max_attempts=3, initial_delay=1.0, backoff_multiplier=2.0),
        sleep=sleep or (lambda delay: asyncio.sleep(0)),
        **kwargs,
    )


def test_unavailable_remote_short_circuits_to_local(source_file, unavailable_llm):
    transcriber = FakeTranscriber()
    processor = StubProcessor()

    tracks = asyncio.run(
        _orchestrator(processor, llm=unavailable_llm, transcriber=transcriber, variant_count=3)
        .generate(source_file)
    )

    assert len(tracks) == 3
    assert unavailable_llm.ping_calls == 1
    assert transcriber.calls == 0
    assert unavailable_llm.prompts == []
    assert processor.calls == [(source_file, 3, None)]


def test_no_remote_client_uses_local_processing(source_file):
    processor = StubProcessor()

    tracks = asyncio.run(_orchestrator(processor).generate(source_file))

    assert len(tracks) == 1
    assert len(processor.calls) == 1


def test_happy_path_transcribes_then_analyses(source_file):
    llm = FakeLlm(GOOD_ANALYSIS)
    transcriber = FakeTranscriber("soft humming over piano")
    processor = StubProcessor()

    tracks = asyncio.run(
        _orchestrator(processor, llm=llm, transcriber=transcriber).generate(source_file)
    )

    assert len(tracks) == 1
    assert transcriber.calls == 1
    assert llm.prompts == ["soft humming over piano"]
    # Analysis is diagnostic unless explicitly wired in.
    assert processor.calls[0][2] is None


def test_transcription_retries_with_backoff_then_uses_placeholder(source_file, recording_sleep):
    llm = FakeLlm(GOOD_ANALYSIS)
    transcriber = FakeTranscriber(failures=99)
    processor = StubProcessor()

    tracks = asyncio.run(
        _orchestrator(
            processor,
            llm=llm,
            transcriber=transcriber,
            sleep=recording_sleep,
            fallback_transcript="instrumental music with melody and rhythm",
        ).generate(source_file)
    )

    assert transcriber.calls == 3
    assert recording_sleep.delays == [1.0, 2.0, 4.0]
    assert llm.prompts == ["instrumental music with melody and rhythm"]
    assert len(tracks) == 1


def test_transcription_recovers_on_second_attempt(source_file, recording_sleep):
    llm = FakeLlm(GOOD_ANALYSIS)
    transcriber = FakeTranscriber("drums", failures=1)

    asyncio.run(
        _orchestrator(StubProcessor(), llm=llm, transcriber=transcriber, sleep=recording_sleep)
        .generate(source_file)
    )

    assert transcriber.calls == 2
    assert recording_sleep.delays == [1.0]
    assert llm.prompts == ["drums"]


def test_empty_transcript_is_replaced_by_placeholder(source_file):
    llm = FakeLlm(GOOD_ANALYSIS)

    asyncio.run(
        _orchestrator(StubProcessor(), llm=llm, transcriber=FakeTranscriber("   "))
        .generate(source_file)
    )

    assert llm.prompts == ["instrumental music with melody and rhythm"]


@pytest.mark.parametrize("response", ["", None, "Sure! It's a jazzy tune.", "[]"])
def test_malformed_analysis_does_not_abort(source_file, response):
    llm = FakeLlm(response)
    processor = StubProcessor()

    tracks = asyncio.run(
        _orchestrator(
            processor, llm=llm, transcriber=FakeTranscriber(), apply_characteristics=True
        ).generate(source_file)
    )

    assert len(tracks) == 1
    characteristics = processor.calls[0][2]
    assert characteristics is not None and characteristics.is_empty


def test_analysis_invocation_error_falls_back(source_file):
    llm = FakeLlm(invoke_error=LlmInvocationError("throttled"))
    processor = StubProcessor()

    tracks = asyncio.run(
        _orchestrator(
            processor, llm=llm, transcriber=FakeTranscriber(), apply_characteristics=True
        ).generate(source_file)
    )

    assert len(tracks) == 1
    assert processor.calls[0][2] is None


def test_unexpected_ping_error_falls_back(source_file):
    llm = FakeLlm(ping_error=RuntimeError("boom"))
    transcriber = FakeTranscriber()

    tracks = asyncio.run(
        _orchestrator(StubProcessor(), llm=llm, transcriber=transcriber).generate(source_file)
    )

    assert len(tracks) == 1
    assert transcriber.calls == 0


def test_characteristics_are_forwarded_when_enabled(source_file):
    processor = StubProcessor()

    asyncio.run(
        _orchestrator(
            processor,
            llm=FakeLlm(GOOD_ANALYSIS),
            transcriber=FakeTranscriber(),
            apply_characteristics=True,
        ).generate(source_file)
    )

    characteristics = processor.calls[0][2]
    assert characteristics.mood == "calm"
    assert characteristics.bpm == 72.0


def test_missing_source_raises_before_any_work(tmp_path):
    llm = FakeLlm(GOOD_ANALYSIS)
    processor = StubProcessor()

    with pytest.raises(SourceNotFoundError):
        asyncio.run(_orchestrator(processor, llm=llm).generate(tmp_path / "missing.mp3"))

    assert llm.ping_calls == 0
    assert processor.calls == []


def test_processing_failure_propagates(source_file, unavailable_llm):
    processor = StubProcessor(error=ProcessingError("encoder failure"))

    with pytest.raises(ProcessingError):
        asyncio.run(_orchestrator(processor, llm=unavailable_llm).generate(source_file))


def test_end_to_end_with_remote_unavailable(tmp_path, source_file, unavailable_llm):
    out_dir = tmp_path / "uploads"
    processor = LocalAudioProcessor(out_dir, runner=FakeMediaTools())

    tracks = asyncio.run(
        _orchestrator(processor, llm=unavailable_llm, variant_count=3).generate(source_file)
    )

    paths = [track.file_path for track in tracks]
    assert 1 <= len(paths) <= 3
    assert len(set(paths)) == len(paths)
    assert all(path.name != "input.mp3" for path in paths)
    assert all(path.is_file() for path in paths)


def test_end_to_end_missing_source_writes_nothing(tmp_path, unavailable_llm):
    out_dir = tmp_path / "uploads"
    tools = FakeMediaTools()
    processor = LocalAudioProcessor(out_dir, runner=tools)

    with pytest.raises(SourceNotFoundError):
        asyncio.run(
            _orchestrator(processor, llm=unavailable_llm, variant_count=3)
            .generate(tmp_path / "input.mp3")
        )

    assert tools.renders == []
    assert not out_dir.exists() or list(out_dir.iterdir()) == []


def test_variant_count_must_be_positive(tmp_path):
    with pytest.raises(ValueError):
        GenerationOrchestrator(StubProcessor(), variant_count=0)


def test_analysis_prompt_requests_json_keys():
    for key in ("tempo", "key", "mood", "genre"):
        assert f'"{key}"' in ANALYSIS_SYSTEM_PROMPT


def test_ensure_remote_configured_requires_a_credential():
    unconfigured = settings.model_copy(
        update={
            "aws": AwsConfig.model_construct(access_key=None, secret_key=None, region="us-east-1"),
            "bedrock": BedrockConfig.model_construct(api_key=None),
        }
    )
    with_key_pair = settings.model_copy(
        update={
            "aws": AwsConfig.model_construct(access_key="AKIA", secret_key="s", region="us-east-1"),
            "bedrock": BedrockConfig.model_construct(api_key=None),
        }
    )

    with pytest.raises(GenerationConfigError):
        ensure_remote_configured(unconfigured)
    ensure_remote_configured(with_key_pair)
