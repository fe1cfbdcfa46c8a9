"""
Azure OpenAI inference client.

Sends the whole conversation in one chat completion request and returns the
reply as a list of content blocks. No streaming, no retries.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

import structlog
from openai import AsyncAzureOpenAI, OpenAIError

from cachebridge.conversation.models import Turn
from cachebridge.exceptions import InferenceError

logger = structlog.get_logger(__name__)

DEFAULT_API_VERSION = "2024-10-01-preview"
DEFAULT_MAX_OUTPUT_TOKENS = 10000
COGNITIVE_SERVICES_SCOPE = "https://cognitiveservices.azure.com/.default"


@dataclass
class InferenceConfig:
    """Azure OpenAI settings."""
    endpoint: str = ""
    model_id: str = ""
    api_version: str = DEFAULT_API_VERSION
    api_key: str = ""
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS


@dataclass(frozen=True)
class InferenceResponse:
    """Model reply as content blocks."""
    content_blocks: List[Dict[str, Any]] = field(default_factory=list)


class InferenceService(Protocol):
    """Single-turn completion over a full conversation."""

    async def invoke(
        self,
        turns: Sequence[Turn],
        system_message: Optional[str],
        model_id: str,
        max_output_tokens: int,
    ) -> InferenceResponse: ...

    async def close(self) -> None: ...


def build_messages(turns: Sequence[Turn], system_message: Optional[str]) -> List[Mapping[str, Any]]:
    """Translate turns to chat completion messages, system prompt first."""
    messages: List[Mapping[str, Any]] = []
    if system_message:
        messages.append({"role": "system", "content": system_message})
    for turn in turns:
        messages.append(turn.to_dict())
    return messages


class AzureOpenAIInference:
    """
    Chat completions against an Azure OpenAI deployment.

    Authenticates with the API key when configured, otherwise with
    DefaultAzureCredential bearer tokens.
    """

    def __init__(self, config: InferenceConfig, client: Optional[AsyncAzureOpenAI] = None):
        if not config.endpoint and client is None:
            raise ValueError("AzureOpenAIInference requires an endpoint")
        self.config = config
        self._credential = None
        self._client = client

    def _get_client(self) -> AsyncAzureOpenAI:
        if self._client is None:
            if self.config.api_key:
                self._client = AsyncAzureOpenAI(
                    azure_endpoint=self.config.endpoint,
                    api_version=self.config.api_version,
                    api_key=self.config.api_key,
                )
            else:
                from azure.identity.aio import DefaultAzureCredential, get_bearer_token_provider

                self._credential = DefaultAzureCredential()
                self._client = AsyncAzureOpenAI(
                    azure_endpoint=self.config.endpoint,
                    api_version=self.config.api_version,
                    azure_ad_token_provider=get_bearer_token_provider(
                        self._credential, COGNITIVE_SERVICES_SCOPE
                    ),
                )
            logger.info(
                "Azure OpenAI client created",
                endpoint=self.config.endpoint[:30] + "..." if self.config.endpoint else None,
                api_version=self.config.api_version
            )
        return self._client

    async def invoke(
        self,
        turns: Sequence[Turn],
        system_message: Optional[str],
        model_id: str,
        max_output_tokens: int,
    ) -> InferenceResponse:
        """
        Run one completion.

        Args:
            turns: Full conversation, oldest first, ending with the new user turn
            system_message: Optional instructions placed before the turns
            model_id: Azure OpenAI deployment name
            max_output_tokens: Generation budget

        Raises:
            InferenceError: Transport, protocol or backend failure
        """
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=model_id,
                messages=build_messages(turns, system_message),
                max_tokens=max_output_tokens,
            )
        except OpenAIError as e:
            logger.error("Inference request failed", model_id=model_id, error=str(e))
            raise InferenceError(f"Inference request failed: {e}") from e

        try:
            text = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise InferenceError("Malformed inference response") from e
        if text is None:
            raise InferenceError("Inference response has no content")

        logger.debug("Inference completed", model_id=model_id, turns=len(turns))
        return InferenceResponse(content_blocks=[{"type": "text", "text": text}])

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
        if self._credential is not None:
            await self._credential.close()
            self._credential = None
