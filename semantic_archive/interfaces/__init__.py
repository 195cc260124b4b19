"""Abstract interfaces for external services.

Every collaborator that touches the outside world (model server, embedding
model, converters on PATH, the database, the archive on disk) is reached
through one of these ABCs.  Concrete implementations live under
``semantic_archive.providers`` and are wired together in
``semantic_archive.main``.

CONCRETE PROVIDER MAP:
    Interface                  →  Concrete implementation (in providers/)
    ─────────────────────────────────────────────────────────────────────
    ILLMProvider               →  OllamaLLMProvider
    IEmbeddingProvider         →  OllamaEmbeddingProvider
    ITextExtractor             →  SubprocessTextExtractor
    IGraphStore                →  SQLiteGraphStore
    IArchiver                  →  ZipArchiver
"""

from semantic_archive.interfaces.archiver import IArchiver
from semantic_archive.interfaces.embedding_provider import IEmbeddingProvider
from semantic_archive.interfaces.graph_store import GraphTransaction, IGraphStore
from semantic_archive.interfaces.llm_provider import ILLMProvider
from semantic_archive.interfaces.text_extractor import ITextExtractor

__all__ = [
    "GraphTransaction",
    "IArchiver",
    "IEmbeddingProvider",
    "IGraphStore",
    "ILLMProvider",
    "ITextExtractor",
]
