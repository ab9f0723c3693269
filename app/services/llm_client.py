"""Thin Bedrock client wrapper for characteristics analysis."""

from __future__ import annotations

import base64
import logging
from typing import Any, Optional

from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool

from app.config.settings import BedrockConfig, settings
from app.services.aws import create_boto3_client

logger = logging.getLogger(__name__)


class LlmInvocationError(RuntimeError):
    """Raised when a Bedrock call fails or the service is unreachable."""


def _decode_bedrock_api_key(secret_value: Optional[str]) -> tuple[str, str] | None:
    """Decode the BEDROCK_API_KEY secret into access/secret key components."""

    if not secret_value:
        return None

    try:
        decoded_bytes = base64.b64decode(secret_value.strip())
    except ValueError:
        decoded_bytes = secret_value.encode("utf-8", "ignore")

    filtered = "".join(chr(b) for b in decoded_bytes if 31 < b < 127)
    if ":" not in filtered:
        return None
    access_key, secret_key = filtered.split(":", 1)
    return access_key, secret_key


class BedrockLlmClient:
    """Invoke Amazon Bedrock models with standard configuration.

    ``runtime_client`` serves ``converse``; ``control_client`` serves the
    availability probe. Both may be injected; otherwise they are built from
    ``config`` and the shared AWS credentials.
    """

    def __init__(
        self,
        config: BedrockConfig | None = None,
        *,
        runtime_client: Any | None = None,
        control_client: Any | None = None,
    ) -> None:
        self._config = config or settings.bedrock
        self._model_id = self._config.model_id

        if runtime_client is not None or control_client is not None:
            self._runtime = runtime_client
            self._control = control_client
            return

        api_key_tuple = None
        if self._config.api_key:
            api_key_tuple = _decode_bedrock_api_key(
                self._config.api_key.get_secret_value()
            )
        credentials = {
            "region_name": self._config.region,
            "aws_access_key_id": api_key_tuple[0] if api_key_tuple else None,
            "aws_secret_access_key": api_key_tuple[1] if api_key_tuple else None,
        }

        try:
            self._runtime = create_boto3_client("bedrock-runtime", **credentials)
            self._control = create_boto3_client("bedrock", **credentials)
        except BotoCoreError as exc:  # pragma: no cover - configuration issue
            logger.warning("Could not initialise Bedrock clients: %s", exc)
            self._runtime = None
            self._control = None

    @property
    def model_id(self) -> str:
        return self._model_id

    async def ping(self) -> None:
        """Cheap control-plane call confirming reachability and credentials.

        Raises ``LlmInvocationError`` for botocore failures (network, auth,
        quota, missing model access) and when no client is configured.
        """

        if self._control is None:
            raise LlmInvocationError("Bedrock client is not configured.")

        try:
            await run_in_threadpool(
                self._control.get_foundation_model,
                modelIdentifier=self._model_id,
            )
        except (BotoCoreError, ClientError) as exc:
            raise LlmInvocationError(f"Bedrock is unavailable: {exc}") from exc

    async def invoke(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
        top_p: float | None = None,
        model_id: str | None = None,
    ) -> str | None:
        """Run a Bedrock `converse` call and return the aggregate text output."""

        target_model_id = model_id or self._model_id
        if not self._runtime or not target_model_id:
            return None

        inference_cfg = {
            "maxTokens": max_tokens or self._config.max_tokens,
            "temperature": (
                temperature
                if temperature is not None
                else self._config.temperature
            ),
            "topP": top_p if top_p is not None else self._config.top_p,
        }

        def _call() -> str:
            response = self._runtime.converse(
                modelId=target_model_id,
                system=[{"text": system_prompt}],
                messages=[{"role": "user", "content": [{"text": user_prompt}]}],
                inferenceConfig=inference_cfg,
            )
            content_blocks = (
                response.get("output", {})
                .get("message", {})
                .get("content", [])
            )
            texts = [block.get("text", "") for block in content_blocks if block.get("text")]
            return "\n".join(texts).strip()

        try:
            result = await run_in_threadpool(_call)
        except (BotoCoreError, ClientError) as exc:
            raise LlmInvocationError(str(exc)) from exc

        return result or None


__all__ = ["BedrockLlmClient", "LlmInvocationError"]
