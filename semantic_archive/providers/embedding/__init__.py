"""Embedding provider adapters."""

from semantic_archive.providers.embedding.ollama_embedding_provider import (
    OllamaEmbeddingProvider,
)

__all__ = ["OllamaEmbeddingProvider"]
