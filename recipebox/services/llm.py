"""Text and vision generation providers used for recipe extraction."""

import base64
import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import anthropic
import httpx

from recipebox.config import Settings, get_settings
from recipebox.errors import ProviderError

logger = logging.getLogger(__name__)


@dataclass
class ImageInput:
    """An image passed to a vision-capable provider."""

    data: bytes
    media_type: str  # e.g. "image/jpeg"

    @property
    def base64(self) -> str:
        return base64.standard_b64encode(self.data).decode("utf-8")


class GenerationProvider(Protocol):
    """Black-box completion capability: prompt (+ images) in, text out."""

    async def generate(
        self,
        prompt: str,
        images: list[ImageInput] | None = None,
        json_schema: dict[str, Any] | None = None,
        temperature: float = 0.3,
        max_tokens: int = 4096,
    ) -> str: ...


def _with_schema(prompt: str, json_schema: dict[str, Any] | None) -> str:
    if not json_schema:
        return prompt
    return (
        f"{prompt}\n\nRespond ONLY with JSON matching this JSON schema:\n"
        f"{json.dumps(json_schema, ensure_ascii=False)}"
    )


class AnthropicProvider:
    """Provider backed by Claude (text and vision)."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.api_key = self.settings.anthropic_api_key
        self.model = self.settings.anthropic_model
        self._client: anthropic.AsyncAnthropic | None = None

    @property
    def is_configured(self) -> bool:
        """Check if the Anthropic API is configured."""
        return bool(self.api_key)

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(
                api_key=self.api_key,
                timeout=self.settings.provider_timeout_seconds,
                max_retries=0,
            )
        return self._client

    async def generate(
        self,
        prompt: str,
        images: list[ImageInput] | None = None,
        json_schema: dict[str, Any] | None = None,
        temperature: float = 0.3,
        max_tokens: int = 4096,
    ) -> str:
        """Generate a completion, optionally looking at images."""
        if not self.is_configured:
            raise ProviderError("Anthropic API not configured")

        content: list[dict[str, Any]] = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": image.media_type,
                    "data": image.base64,
                },
            }
            for image in images or []
        ]
        content.append({"type": "text", "text": _with_schema(prompt, json_schema)})

        try:
            message = await self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=[{"role": "user", "content": content}],
            )
        except anthropic.APITimeoutError as e:
            raise ProviderError(f"Anthropic request timed out: {e}", timed_out=True) from e
        except anthropic.APIError as e:
            logger.error(f"Anthropic API error: {e}")
            raise ProviderError(f"Anthropic API error: {e}") from e

        if message.stop_reason == "max_tokens":
            logger.warning(f"Anthropic response hit max_tokens ({max_tokens}); output is truncated")

        return "".join(block.text for block in message.content if block.type == "text")


class OllamaProvider:
    """Provider backed by a local Ollama server."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.base_url = self.settings.ollama_base_url
        self.model = self.settings.llm_model
        self.timeout = self.settings.provider_timeout_seconds

    async def generate(
        self,
        prompt: str,
        images: list[ImageInput] | None = None,
        json_schema: dict[str, Any] | None = None,
        temperature: float = 0.3,
        max_tokens: int = 4096,
    ) -> str:
        """Generate a response from the LLM."""
        message: dict[str, Any] = {"role": "user", "content": _with_schema(prompt, json_schema)}
        if images:
            message["images"] = [image.base64 for image in images]

        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [message],
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
            },
        }
        if json_schema:
            payload["format"] = json_schema

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(f"{self.base_url}/api/chat", json=payload)
                response.raise_for_status()
                data = response.json()
                return data["message"]["content"]
        except httpx.TimeoutException as e:
            raise ProviderError(f"Ollama request timed out: {e}", timed_out=True) from e
        except httpx.HTTPError as e:
            logger.error(f"HTTP error calling Ollama: {e}")
            raise ProviderError(f"HTTP error calling Ollama: {e}") from e

    async def health_check(self) -> bool:
        """Check if Ollama is available and the model is loaded."""
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.get(f"{self.base_url}/api/tags")
                response.raise_for_status()
                data = response.json()
                models = [m["name"] for m in data.get("models", [])]
                return self.model in models or any(self.model in m for m in models)
        except httpx.HTTPError:
            return False


def get_generation_provider(settings: Settings | None = None) -> GenerationProvider:
    """Build the provider selected by configuration."""
    settings = settings or get_settings()
    if settings.llm_provider == "ollama":
        return OllamaProvider(settings)
    return AnthropicProvider(settings)
