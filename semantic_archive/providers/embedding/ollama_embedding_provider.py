"""Ollama embedding provider adapter.

Wraps the Ollama OpenAI-compatible endpoint to implement
:class:`IEmbeddingProvider`.  The default model is ``qwen3-embedding:8b``
(4096 dimensions); the graph store rejects vectors of any other size, so
changing the model means changing ``embedding_dim`` and re-initialising the
database.
"""

from __future__ import annotations

import openai

from semantic_archive.config.settings import Settings
from semantic_archive.interfaces.embedding_provider import IEmbeddingProvider
from semantic_archive.utils.errors import EmbeddingError
from semantic_archive.utils.logging import get_logger

logger = get_logger(__name__)

_OLLAMA_BATCH_LIMIT = 512


class OllamaEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by a model served via Ollama.

    Handles automatic batching for inputs exceeding 512 texts per call.
    """

    def __init__(self, settings: Settings, client: openai.AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._base_url = settings.ollama_base_url
        self._client = client or openai.AsyncOpenAI(
            base_url=f"{self._base_url.rstrip('/')}/v1",
            api_key="ollama",  # Ollama doesn't require a real key
        )
        self._model = settings.embedding_model
        self._dimension = settings.embedding_dim

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Automatically splits into batches of 512 for the Ollama backend.
        """
        if not texts:
            return []

        try:
            all_embeddings: list[list[float]] = []
            for start in range(0, len(texts), _OLLAMA_BATCH_LIMIT):
                batch = texts[start : start + _OLLAMA_BATCH_LIMIT]
                response = await self._client.embeddings.create(
                    input=batch,
                    model=self._model,
                )
                all_embeddings.extend(item.embedding for item in response.data)
                logger.debug(
                    "ollama_embedding_batch",
                    model=self._model,
                    batch_size=len(batch),
                )
        except openai.APIError as exc:
            raise EmbeddingError(
                message=f"Ollama embedding API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if len(all_embeddings) != len(texts):
            raise EmbeddingError(
                message=f"Expected {len(texts)} embeddings, got {len(all_embeddings)}",
                provider_name=self.get_provider_name(),
            )
        return all_embeddings

    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "ollama-embedding"
