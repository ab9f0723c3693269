"""Bedrock client error mapping with stubbed boto clients."""

from __future__ import annotations

import asyncio

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from app.services import BedrockLlmClient, LlmInvocationError


def _access_denied(operation: str) -> ClientError:
    return ClientError(
        {"Error": {"Code": "AccessDeniedException", "Message": "no model access"}},
        operation,
    )


class StubControl:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.requests: list[str] = []

    def get_foundation_model(self, *, modelIdentifier: str):
        self.requests.append(modelIdentifier)
        if self.error is not None:
            raise self.error
        return {"modelDetails": {"modelId": modelIdentifier}}


class StubRuntime:
    def __init__(self, texts=("",), error: Exception | None = None) -> None:
        self.texts = texts
        self.error = error
        self.calls: list[dict] = []

    def converse(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return {
            "output": {
                "message": {"content": [{"text": text} for text in self.texts]}
            }
        }


def test_ping_checks_configured_model():
    control = StubControl()
    client = BedrockLlmClient(control_client=control)

    asyncio.run(client.ping())

    assert control.requests == [client.model_id]


@pytest.mark.parametrize(
    "error",
    [
        _access_denied("GetFoundationModel"),
        EndpointConnectionError(endpoint_url="https://bedrock.us-east-1.amazonaws.com"),
    ],
)
def test_ping_maps_botocore_failures(error):
    client = BedrockLlmClient(control_client=StubControl(error))

    with pytest.raises(LlmInvocationError):
        asyncio.run(client.ping())


def test_ping_without_control_client_is_unavailable():
    client = BedrockLlmClient(runtime_client=StubRuntime())

    with pytest.raises(LlmInvocationError):
        asyncio.run(client.ping())


def test_invoke_joins_text_blocks():
    runtime = StubRuntime(texts=('{"tempo": 90,', ' "mood": "calm"}'))
    client = BedrockLlmClient(runtime_client=runtime)

    result = asyncio.run(client.invoke(system_prompt="analyse", user_prompt="humming"))

    assert result == '{"tempo": 90,\n "mood": "calm"}'
    assert runtime.calls[0]["system"] == [{"text": "analyse"}]
    assert runtime.calls[0]["messages"][0]["content"] == [{"text": "humming"}]


def test_invoke_maps_client_error():
    client = BedrockLlmClient(runtime_client=StubRuntime(error=_access_denied("Converse")))

    with pytest.raises(LlmInvocationError):
        asyncio.run(client.invoke(system_prompt="s", user_prompt="u"))


def test_invoke_empty_output_is_none():
    client = BedrockLlmClient(runtime_client=StubRuntime(texts=()))

    assert asyncio.run(client.invoke(system_prompt="s", user_prompt="u")) is None
