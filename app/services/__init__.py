"""Service layer helpers for generation and external integrations."""

from .audio_processor import (
    GeneratedTrack,
    LocalAudioProcessor,
    ProcessingError,
)
from .generation import (
    GenerationConfigError,
    GenerationOrchestrator,
    SourceNotFoundError,
    create_generation_orchestrator,
    ensure_remote_configured,
)
from .llm_client import BedrockLlmClient, LlmInvocationError
from .response_contract import AnalysisParseError, MusicCharacteristics
from .retry import RetryPolicy, retry_async
from .transcribe import (
    TranscribeService,
    TranscriptionError,
    TranscriptionResult,
)

__all__ = [
    "AnalysisParseError",
    "BedrockLlmClient",
    "GeneratedTrack",
    "GenerationConfigError",
    "GenerationOrchestrator",
    "LlmInvocationError",
    "LocalAudioProcessor",
    "MusicCharacteristics",
    "ProcessingError",
    "RetryPolicy",
    "SourceNotFoundError",
    "TranscribeService",
    "TranscriptionError",
    "TranscriptionResult",
    "create_generation_orchestrator",
    "ensure_remote_configured",
    "retry_async",
]
