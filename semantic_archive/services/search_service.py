"""Hybrid retrieval over ingested documents.

Two independent rankings are fused with Reciprocal Rank Fusion:

- **semantic**: documents ordered by cosine distance between their summary
  embedding and the embedded query;
- **lexical**: documents whose summary or type contains every query term,
  ordered by full-text relevance (bm25).

Each ranking contributes ``1 / (k + rank)`` for every document it returns
(rank is 1-based, ``k`` defaults to 60).  Scores from both rankings are
summed, so a document found by both outranks one found by only one at a
comparable position.  RRF uses ranks only; the raw distance and bm25
values are never compared with each other.
"""

from __future__ import annotations

from dataclasses import dataclass

from semantic_archive.interfaces.embedding_provider import IEmbeddingProvider
from semantic_archive.interfaces.graph_store import IGraphStore
from semantic_archive.models.graph import Neighbor
from semantic_archive.models.search import MatchType, SearchResult
from semantic_archive.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_RRF_K = 60


@dataclass(frozen=True)
class FusedCandidate:
    """One document's position in each ranking and its fused score."""

    document_id: str
    score: float
    vector_rank: int | None = None
    lexical_rank: int | None = None

    @property
    def match_type(self) -> MatchType:
        if self.vector_rank is not None and self.lexical_rank is not None:
            return MatchType.BOTH
        if self.vector_rank is not None:
            return MatchType.SEMANTIC
        return MatchType.LEXICAL


def _ranks(ids: list[str]) -> dict[str, int]:
    ranks: dict[str, int] = {}
    for position, doc_id in enumerate(ids, start=1):
        # First occurrence wins if a ranking repeats an id.
        ranks.setdefault(doc_id, position)
    return ranks


def reciprocal_rank_fusion(
    vector_ids: list[str],
    lexical_ids: list[str],
    k: int = DEFAULT_RRF_K,
) -> list[FusedCandidate]:
    """Fuse two best-first id rankings.

    Parameters
    ----------
    vector_ids:
        Document ids from the semantic ranking, best first.
    lexical_ids:
        Document ids from the lexical ranking, best first.
    k:
        RRF damping constant.

    Returns
    -------
    list[FusedCandidate]
        Every id from either ranking, sorted by fused score descending and
        then by document id.
    """
    vector_ranks = _ranks(vector_ids)
    lexical_ranks = _ranks(lexical_ids)

    fused: list[FusedCandidate] = []
    for doc_id in vector_ranks.keys() | lexical_ranks.keys():
        v_rank = vector_ranks.get(doc_id)
        l_rank = lexical_ranks.get(doc_id)
        score = 0.0
        if v_rank is not None:
            score += 1.0 / (k + v_rank)
        if l_rank is not None:
            score += 1.0 / (k + l_rank)
        fused.append(
            FusedCandidate(
                document_id=doc_id,
                score=score,
                vector_rank=v_rank,
                lexical_rank=l_rank,
            )
        )

    fused.sort(key=lambda c: (-c.score, c.document_id))
    return fused


class HybridSearchService:
    """Query-side entry point: hybrid document search and one-hop lookups."""

    def __init__(
        self,
        graph_store: IGraphStore,
        embedding_provider: IEmbeddingProvider,
        candidates: int = 50,
        rrf_k: int = DEFAULT_RRF_K,
    ) -> None:
        self._store = graph_store
        self._embedder = embedding_provider
        self._candidates = candidates
        self._rrf_k = rrf_k

    async def search(self, query_text: str, limit: int = 5) -> list[SearchResult]:
        """Return the top *limit* documents for *query_text*.

        A blank query returns an empty list without calling the embedder.

        Raises
        ------
        ValueError
            If *limit* is less than 1.
        semantic_archive.utils.errors.EmbeddingError
            If the query cannot be embedded.
        """
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")
        query = query_text.strip()
        if not query:
            return []

        query_vector = await self._embedder.embed_single(query)
        vector_ids = await self._store.vector_candidates(query_vector, self._candidates)
        lexical_ids = await self._store.lexical_candidates(query, self._candidates)

        fused = reciprocal_rank_fusion(vector_ids, lexical_ids, self._rrf_k)
        documents = await self._store.get_documents([c.document_id for c in fused])

        # Trim after hydration so documents deleted since candidate retrieval
        # are replaced by the next-ranked ones.
        results: list[SearchResult] = []
        for candidate in fused:
            if len(results) == limit:
                break
            document = documents.get(candidate.document_id)
            if document is None:
                continue
            results.append(
                SearchResult(
                    document_id=candidate.document_id,
                    content=document.content or "",
                    metadata=document.metadata,
                    score=candidate.score,
                    match_type=candidate.match_type,
                    vector_rank=candidate.vector_rank,
                    lexical_rank=candidate.lexical_rank,
                )
            )

        logger.info(
            "search_complete",
            query=query,
            vector_candidates=len(vector_ids),
            lexical_candidates=len(lexical_ids),
            results=len(results),
        )
        return results

    async def relationships(self, entity_id: str) -> list[Neighbor]:
        """Return every edge touching *entity_id*, outgoing first."""
        neighbors = await self._store.neighbors(entity_id)
        logger.debug("relationships_lookup", entity_id=entity_id, edges=len(neighbors))
        return neighbors
