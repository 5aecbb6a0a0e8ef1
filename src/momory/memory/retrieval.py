"""Similarity ranking of memories and summary chunks."""

from typing import Optional, Sequence

import structlog

from momory.errors import DimensionMismatchError, Result
from momory.memory.schemas import (
    MemoryRecord,
    RetrievedContext,
    ScoredChunk,
    ScoredMemory,
    SummaryChunk,
)
from momory.memory.store import MemoryStore
from momory.memory.vector import cosine_similarity
from momory.telemetry.logger import get_logger


def rank_memories(
    query_embedding: Sequence[float], records: Sequence[MemoryRecord]
) -> list[ScoredMemory]:
    """Score every record against the query, most similar first.

    Ties break by newer ``created_at``.

    Raises:
        DimensionMismatchError: If the query and a record differ in length
    """
    scored = [
        ScoredMemory(record=r, similarity=cosine_similarity(query_embedding, r.embedding))
        for r in records
    ]
    scored.sort(key=lambda s: (s.similarity, s.record.created_at), reverse=True)
    return scored


def rank_chunks(
    query_embedding: Sequence[float], chunks: Sequence[SummaryChunk]
) -> list[ScoredChunk]:
    """Score every summary chunk against the query, most similar first."""
    scored = [
        ScoredChunk(chunk=c, similarity=cosine_similarity(query_embedding, c.embedding))
        for c in chunks
    ]
    scored.sort(key=lambda s: (s.similarity, s.chunk.created_at), reverse=True)
    return scored


class MemoryRetriever:
    """Returns the top-K memories and summary chunks for a query embedding.

    Records and chunks are ranked independently. Every returned record has
    its access metadata updated.

    Example:
        retriever = MemoryRetriever(store, top_k=10, min_relevance=0.65)
        result = await retriever.retrieve(query_embedding)
        for scored in result.value.memories:
            print(f"{scored.similarity:.2f}: {scored.record.content}")
    """

    def __init__(
        self,
        store: MemoryStore,
        top_k: int = 10,
        min_relevance: float = 0.65,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ) -> None:
        """Initialize the retriever.

        Args:
            store: Memory store backend
            top_k: Maximum memories and, separately, maximum chunks returned
            min_relevance: Minimum similarity for a result to be returned
            logger: Logger to use
        """
        self.store = store
        self.top_k = top_k
        self.min_relevance = min_relevance
        self.logger = logger or get_logger(__name__)

    async def retrieve(self, query_embedding: Sequence[float]) -> Result[RetrievedContext]:
        """Rank and filter memories and summary chunks.

        Args:
            query_embedding: Embedding of the current query

        Returns:
            Result with the retrieved context (empty for an empty store), or a
            dimension-mismatch or persistence failure
        """
        records_result = await self.store.get_all()
        if not records_result.ok:
            return Result.failure(records_result.error)  # type: ignore[arg-type]

        chunks_result = await self.store.get_all_chunks()
        if not chunks_result.ok:
            return Result.failure(chunks_result.error)  # type: ignore[arg-type]

        try:
            memories = rank_memories(query_embedding, records_result.value or [])
            chunks = rank_chunks(query_embedding, chunks_result.value or [])
        except DimensionMismatchError as e:
            self.logger.error(
                "Query embedding does not match stored dimensionality",
                expected=e.right,
                actual=e.left,
            )
            return Result.failure(e)

        context = RetrievedContext(
            memories=self._select(memories),
            summary_chunks=self._select(chunks),
        )

        for scored in context.memories:
            touched = await self.store.touch(scored.record.id)
            if not touched.ok:
                self.logger.warning("Access update skipped", record_id=scored.record.id)
                continue
            if not touched.value:
                continue
            refreshed = await self.store.get_by_id(scored.record.id)
            if refreshed.ok and refreshed.value is not None:
                scored.record = refreshed.value

        self.logger.debug(
            "Retrieved context",
            memories=len(context.memories),
            summary_chunks=len(context.summary_chunks),
            top_similarity=round(memories[0].similarity, 4) if memories else None,
        )
        return Result.success(context)

    def _select(self, ranked: list) -> list:
        relevant = [s for s in ranked if s.similarity >= self.min_relevance]
        return relevant[: self.top_k]
