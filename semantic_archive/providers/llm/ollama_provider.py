"""Ollama LLM provider adapter.

Wraps a local Ollama server via its OpenAI-compatible API endpoint.
Uses the ``openai`` client library pointed at the Ollama base URL.

Each pipeline stage runs a different local model (the classifier and the
checker share one, command generation uses a code-tuned model), so the
model is chosen per call; the provider's default is the classifier model.

Setup: install Ollama, ``ollama pull`` the models named in Settings, then
point SEMANTIC_ARCHIVE_OLLAMA_BASE_URL at the server if it is not local.
"""

from __future__ import annotations

from typing import Any

# httpx is used only for validate_credentials() to check if Ollama is running.
import httpx
import openai

from semantic_archive.config.settings import Settings
from semantic_archive.interfaces.llm_provider import ILLMProvider
from semantic_archive.utils.errors import LLMError
from semantic_archive.utils.logging import get_logger

logger = get_logger(__name__)


class OllamaLLMProvider(ILLMProvider):
    """LLM provider backed by a local Ollama server.

    Ollama exposes an OpenAI-compatible ``/v1`` API, so this adapter reuses
    the ``openai.AsyncOpenAI`` client pointed at the local URL.  When a
    JSON schema is supplied it is sent as a ``json_schema`` response format,
    which Ollama turns into grammar-constrained decoding.
    """

    def __init__(self, settings: Settings, client: openai.AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._base_url = settings.ollama_base_url
        # Ollama ignores the API key, but the openai SDK requires one.
        self._client = client or openai.AsyncOpenAI(
            base_url=f"{self._base_url.rstrip('/')}/v1",
            api_key="ollama",
        )
        self._default_model = settings.classifier_model

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: str | None = None,
        json_schema: dict[str, Any] | None = None,
        temperature: float = 0.0,
        max_tokens: int = 4000,
    ) -> str:
        """Generate a completion via Ollama's OpenAI-compatible API."""
        model_name = model or self._default_model
        request: dict[str, Any] = {
            "model": model_name,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_schema is not None:
            request["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": "response", "schema": json_schema},
            }

        try:
            response = await self._client.chat.completions.create(**request)
        except openai.APIError as exc:
            raise LLMError(
                message=f"Ollama API error ({model_name}): {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LLMError(
                message=f"Ollama returned empty response ({model_name})",
                provider_name=self.get_provider_name(),
            )
        logger.debug(
            "ollama_completion",
            model=model_name,
            structured=json_schema is not None,
            chars=len(content),
        )
        return content

    def is_available(self) -> bool:
        """Return ``True`` if the Ollama base URL is configured."""
        return bool(self._base_url)

    async def validate_credentials(self) -> bool:
        """Try listing models from the Ollama server.

        The native ``/api/tags`` endpoint lists installed models without
        running inference.
        """
        if not self.is_available():
            return False
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.get(f"{self._base_url.rstrip('/')}/api/tags")
                return response.status_code == 200
        except httpx.HTTPError:
            return False

    def get_provider_name(self) -> str:
        return "ollama"
