"""Unit tests for the Ollama LLM and embedding provider adapters.

The ``openai.AsyncOpenAI`` client is replaced by an AsyncMock injected
through the constructor; no server is contacted.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from semantic_archive.config.settings import Settings
from semantic_archive.providers.embedding.ollama_embedding_provider import (
    OllamaEmbeddingProvider,
)
from semantic_archive.providers.llm.ollama_provider import OllamaLLMProvider
from semantic_archive.utils.errors import EmbeddingError, LLMError


def _connection_error() -> openai.APIConnectionError:
    return openai.APIConnectionError(request=httpx.Request("POST", "http://127.0.0.1:11434/v1"))


def _chat_response(content: str | None) -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    return response


# ======================================================================
# OllamaLLMProvider
# ======================================================================


class TestOllamaLLMProvider:
    @pytest.mark.asyncio
    async def test_complete_with_schema(self, settings: Settings) -> None:
        client = AsyncMock()
        client.chat.completions.create = AsyncMock(return_value=_chat_response('{"a": 1}'))
        provider = OllamaLLMProvider(settings, client=client)

        result = await provider.complete(
            "system", "user", model="qwen3-coder:latest", json_schema={"type": "object"}
        )

        assert result == '{"a": 1}'
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "qwen3-coder:latest"
        assert kwargs["temperature"] == 0.0
        assert kwargs["messages"][0] == {"role": "system", "content": "system"}
        assert kwargs["response_format"] == {
            "type": "json_schema",
            "json_schema": {"name": "response", "schema": {"type": "object"}},
        }

    @pytest.mark.asyncio
    async def test_default_model_and_no_schema(self, settings: Settings) -> None:
        client = AsyncMock()
        client.chat.completions.create = AsyncMock(return_value=_chat_response("plain"))
        provider = OllamaLLMProvider(settings, client=client)

        await provider.complete("system", "user")

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == settings.classifier_model
        assert "response_format" not in kwargs

    @pytest.mark.asyncio
    async def test_api_error_becomes_llm_error(self, settings: Settings) -> None:
        client = AsyncMock()
        client.chat.completions.create = AsyncMock(side_effect=_connection_error())
        provider = OllamaLLMProvider(settings, client=client)

        with pytest.raises(LLMError) as exc_info:
            await provider.complete("system", "user")
        assert exc_info.value.provider_name == "ollama"

    @pytest.mark.asyncio
    async def test_empty_response_raises(self, settings: Settings) -> None:
        client = AsyncMock()
        client.chat.completions.create = AsyncMock(return_value=_chat_response(""))
        provider = OllamaLLMProvider(settings, client=client)
        with pytest.raises(LLMError, match="empty"):
            await provider.complete("system", "user")

    def test_client_points_at_v1(self, settings: Settings) -> None:
        with patch(
            "semantic_archive.providers.llm.ollama_provider.openai.AsyncOpenAI"
        ) as client_cls:
            OllamaLLMProvider(settings)
        client_cls.assert_called_once_with(
            base_url="http://127.0.0.1:11434/v1", api_key="ollama"
        )

    @pytest.mark.asyncio
    async def test_validate_credentials_unreachable(self, settings: Settings) -> None:
        provider = OllamaLLMProvider(settings, client=AsyncMock())
        with patch(
            "semantic_archive.providers.llm.ollama_provider.httpx.AsyncClient.get",
            new=AsyncMock(side_effect=httpx.ConnectError("refused")),
        ):
            assert await provider.validate_credentials() is False

    def test_provider_name(self, settings: Settings) -> None:
        provider = OllamaLLMProvider(settings, client=AsyncMock())
        assert provider.get_provider_name() == "ollama"
        assert provider.is_available() is True


# ======================================================================
# OllamaEmbeddingProvider
# ======================================================================


def _embedding_response(vectors: list[list[float]]) -> MagicMock:
    response = MagicMock()
    response.data = [MagicMock(embedding=vector) for vector in vectors]
    return response


class TestOllamaEmbeddingProvider:
    @pytest.mark.asyncio
    async def test_embed_single(self, settings: Settings) -> None:
        client = AsyncMock()
        client.embeddings.create = AsyncMock(
            return_value=_embedding_response([[0.1, 0.2, 0.3, 0.4]])
        )
        provider = OllamaEmbeddingProvider(settings, client=client)

        vector = await provider.embed_single("redis")

        assert vector == [0.1, 0.2, 0.3, 0.4]
        client.embeddings.create.assert_awaited_once_with(
            input=["redis"], model=settings.embedding_model
        )

    @pytest.mark.asyncio
    async def test_batches_large_inputs(self, settings: Settings) -> None:
        client = AsyncMock()
        client.embeddings.create = AsyncMock(
            side_effect=lambda input, model: _embedding_response([[0.0]] * len(input))
        )
        provider = OllamaEmbeddingProvider(settings, client=client)

        vectors = await provider.embed([f"t{i}" for i in range(600)])

        assert len(vectors) == 600
        assert client.embeddings.create.await_count == 2

    @pytest.mark.asyncio
    async def test_empty_input(self, settings: Settings) -> None:
        client = AsyncMock()
        provider = OllamaEmbeddingProvider(settings, client=client)
        assert await provider.embed([]) == []
        client.embeddings.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_count_mismatch_raises(self, settings: Settings) -> None:
        client = AsyncMock()
        client.embeddings.create = AsyncMock(return_value=_embedding_response([]))
        provider = OllamaEmbeddingProvider(settings, client=client)
        with pytest.raises(EmbeddingError):
            await provider.embed(["redis"])

    @pytest.mark.asyncio
    async def test_api_error_becomes_embedding_error(self, settings: Settings) -> None:
        client = AsyncMock()
        client.embeddings.create = AsyncMock(side_effect=_connection_error())
        provider = OllamaEmbeddingProvider(settings, client=client)
        with pytest.raises(EmbeddingError):
            await provider.embed_single("redis")

    def test_dimension(self, settings: Settings) -> None:
        provider = OllamaEmbeddingProvider(settings, client=AsyncMock())
        assert provider.get_dimension() == settings.embedding_dim
        assert provider.get_provider_name() == "ollama-embedding"
