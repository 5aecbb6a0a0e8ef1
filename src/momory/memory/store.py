"""Persistent CRUD for memory records, summaries and summary chunks."""

import json
import uuid
from datetime import datetime
from typing import Any, Callable, Iterable, Optional

import structlog

from momory.errors import (
    DimensionMismatchError,
    MomoryError,
    PersistenceError,
    Result,
)
from momory.llm.base import Embedder, embed_text
from momory.memory.chunker import ChunkOptions, chunk_text
from momory.memory.rowstore import RowStore
from momory.memory.schemas import (
    MemoryCandidate,
    MemoryRecord,
    SummaryChunk,
    SummaryRecord,
    to_timestamp,
)
from momory.telemetry.logger import get_logger

MEMORY_COLUMNS = (
    "id", "type", "content", "embedding", "created_at", "last_accessed",
    "access_count", "relevance_score", "tags", "source", "decayed_at", "summary_id",
)
SUMMARY_COLUMNS = ("id", "time_window", "start_date", "end_date", "memory_count", "created_at")
CHUNK_COLUMNS = (
    "id", "summary_id", "content", "embedding", "start_offset", "end_offset", "created_at",
)


def _insert_sql(table: str, columns: tuple[str, ...]) -> str:
    placeholders = ", ".join("?" * len(columns))
    return f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"


INSERT_MEMORY = _insert_sql("memories", MEMORY_COLUMNS)
INSERT_SUMMARY = _insert_sql("summaries", SUMMARY_COLUMNS)
INSERT_CHUNK = _insert_sql("summary_chunks", CHUNK_COLUMNS)


class MemoryStore:
    """Durable storage for memory records and compressed summaries.

    Every operation returns a ``Result``; nothing raises for collaborator or
    row-store failures. Embeddings are always computed before any row is
    written, so a failed embedding never leaves a partial record or a summary
    with a truncated chunk set.

    Example:
        store = MemoryStore(SQLiteRowStore(":memory:"), embedder)
        result = await store.save(candidate, source="conv-42")
        if result.ok:
            print(result.value.id)
    """

    def __init__(
        self,
        rows: RowStore,
        embedder: Embedder,
        chunk_options: Optional[ChunkOptions] = None,
        clock: Callable[[], datetime] = datetime.now,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ) -> None:
        """Initialize the store.

        Args:
            rows: Row-store collaborator
            embedder: Embedding collaborator
            chunk_options: How summary text is split into chunks
            clock: Source of "now"
            logger: Logger to use (defaults to this module's logger)
        """
        self.rows = rows
        self.embedder = embedder
        self.chunk_options = chunk_options or ChunkOptions()
        self.clock = clock
        self.logger = logger or get_logger(__name__)
        self._dimension: Optional[int] = None

    # === Memory records ===

    async def save(
        self,
        candidate: MemoryCandidate,
        source: str = "conversation",
        embedding: Optional[list[float]] = None,
    ) -> Result[MemoryRecord]:
        """Embed and persist a candidate.

        Args:
            candidate: Candidate to store
            source: Provenance string
            embedding: Precomputed embedding of ``candidate.content``

        Returns:
            Result with the stored record, or an embedding, dimension or
            persistence failure
        """
        try:
            if embedding is None:
                embedding = await embed_text(self.embedder, candidate.content)
            self._check_dimension(embedding)
        except MomoryError as e:
            self.logger.warning("Memory not saved", error=str(e), kind=e.kind.value)
            return Result.failure(e)

        now = self.clock()
        record = MemoryRecord(
            id=str(uuid.uuid4()),
            type=candidate.type,
            content=candidate.content,
            embedding=embedding,
            created_at=now,
            last_accessed_at=now,
            access_count=0,
            relevance_score=candidate.confidence,
            tags=list(candidate.tags),
            source=source,
        )

        row = record.to_row()
        try:
            self.rows.execute(INSERT_MEMORY, [row[c] for c in MEMORY_COLUMNS])
        except PersistenceError as e:
            self.logger.error("Failed to save memory", error=str(e))
            return Result.failure(e)

        self._dimension = len(embedding)
        self.logger.info(
            "Memory saved",
            record_id=record.id,
            type=record.type.value,
            content_length=len(record.content),
        )
        return Result.success(record)

    async def get_all(self) -> Result[list[MemoryRecord]]:
        """All records, newest first."""
        return self._query_records(
            "SELECT * FROM memories ORDER BY created_at DESC, rowid DESC"
        )

    async def get_by_id(self, record_id: str) -> Result[Optional[MemoryRecord]]:
        """A record by id, or ``None`` when absent."""
        try:
            row = self.rows.query_one("SELECT * FROM memories WHERE id = ?", (record_id,))
        except PersistenceError as e:
            self.logger.error("Failed to get memory by id", record_id=record_id, error=str(e))
            return Result.failure(e)
        return Result.success(MemoryRecord.from_row(row) if row else None)

    async def get_older_than(self, timestamp: datetime) -> Result[list[MemoryRecord]]:
        """Records created before ``timestamp``, oldest first."""
        return self._query_records(
            "SELECT * FROM memories WHERE created_at < ? ORDER BY created_at ASC, rowid ASC",
            (to_timestamp(timestamp),),
        )

    async def get_unsummarized_older_than(
        self, timestamp: datetime, limit: int
    ) -> Result[list[MemoryRecord]]:
        """Records not yet in any summary created before ``timestamp``, oldest first."""
        return self._query_records(
            """
            SELECT * FROM memories
            WHERE created_at < ? AND summary_id IS NULL
            ORDER BY created_at ASC, rowid ASC
            LIMIT ?
            """,
            (to_timestamp(timestamp), limit),
        )

    async def get_summarized(self) -> Result[list[MemoryRecord]]:
        """Records already represented in a persisted summary, oldest first."""
        return self._query_records(
            "SELECT * FROM memories WHERE summary_id IS NOT NULL ORDER BY created_at ASC"
        )

    async def count(self) -> Result[int]:
        """Number of stored records."""
        try:
            row = self.rows.query_one("SELECT COUNT(*) AS count FROM memories")
        except PersistenceError as e:
            self.logger.error("Failed to count memories", error=str(e))
            return Result.failure(e)
        return Result.success(row["count"] if row else 0)

    async def touch(self, record_id: str) -> Result[bool]:
        """Record an access.

        Missing ids are not an error: the record may have been pruned
        concurrently.

        Returns:
            Result with True if a record was updated
        """
        try:
            updated = self.rows.execute(
                """
                UPDATE memories
                SET last_accessed = ?, access_count = access_count + 1
                WHERE id = ?
                """,
                (to_timestamp(self.clock()), record_id),
            )
        except PersistenceError as e:
            self.logger.warning("Failed to update memory access", record_id=record_id, error=str(e))
            return Result.failure(e)
        return Result.success(updated > 0)

    async def delete(self, record_id: str) -> Result[bool]:
        """Delete a record by id."""
        result = await self.delete_many([record_id])
        if not result.ok:
            return Result.failure(result.error)  # type: ignore[arg-type]
        return Result.success(bool(result.value))

    async def delete_many(self, record_ids: Iterable[str]) -> Result[int]:
        """Delete records in one transaction.

        Returns:
            Result with the number of records deleted
        """
        ids = list(record_ids)
        deleted = 0
        try:
            with self.rows.transaction():
                for record_id in ids:
                    deleted += self.rows.execute("DELETE FROM memories WHERE id = ?", (record_id,))
        except PersistenceError as e:
            self.logger.error("Failed to delete memories", count=len(ids), error=str(e))
            return Result.failure(e)

        if deleted:
            self.logger.debug("Memories deleted", count=deleted)
        self._reset_dimension_if_empty()
        return Result.success(deleted)

    async def apply_decay(self, records: Iterable[MemoryRecord]) -> Result[int]:
        """Rewrite relevance scores and decay marks in one transaction.

        Only ``relevance_score`` and ``decayed_at`` are written; access
        metadata updated concurrently is left alone.
        """
        updated = 0
        try:
            with self.rows.transaction():
                for record in records:
                    updated += self.rows.execute(
                        "UPDATE memories SET relevance_score = ?, decayed_at = ? WHERE id = ?",
                        (
                            record.relevance_score,
                            to_timestamp(record.decayed_at or record.created_at),
                            record.id,
                        ),
                    )
        except PersistenceError as e:
            self.logger.error("Failed to apply decay", error=str(e))
            return Result.failure(e)
        return Result.success(updated)

    async def mark_summarized(self, record_ids: Iterable[str], summary_id: str) -> Result[int]:
        """Record that ``summary_id`` represents the given records."""
        updated = 0
        try:
            with self.rows.transaction():
                for record_id in record_ids:
                    updated += self.rows.execute(
                        "UPDATE memories SET summary_id = ? WHERE id = ?",
                        (summary_id, record_id),
                    )
        except PersistenceError as e:
            self.logger.error("Failed to mark memories summarized", summary_id=summary_id, error=str(e))
            return Result.failure(e)
        return Result.success(updated)

    # === Summaries ===

    async def save_summary(
        self,
        summary: SummaryRecord,
        full_text: str,
        source_ids: Iterable[str] = (),
    ) -> Result[SummaryRecord]:
        """Persist a summary as chunks, all or nothing.

        Every chunk is embedded first. Only when all embeddings succeed are
        the summary, its chunks and the ``summary_id`` marks on the source
        records written, in a single transaction. A failure leaves the store
        untouched and the attempt can be retried in full.

        Args:
            summary: Summary metadata
            full_text: Summary text to chunk and embed
            source_ids: Records this summary represents

        Returns:
            Result with the summary, or an embedding/persistence failure
        """
        pieces = chunk_text(full_text, self.chunk_options)
        chunks: list[SummaryChunk] = []

        try:
            for piece in pieces:
                embedding = await embed_text(self.embedder, piece.text)
                self._check_dimension(embedding)
                # An empty store has no dimension yet; the first chunk sets it
                if chunks and len(embedding) != len(chunks[0].embedding):
                    raise DimensionMismatchError(len(chunks[0].embedding), len(embedding))
                chunks.append(SummaryChunk(
                    id=str(uuid.uuid4()),
                    summary_id=summary.id,
                    content=piece.text,
                    embedding=embedding,
                    start_offset=piece.start_offset,
                    end_offset=piece.end_offset,
                    created_at=summary.created_at,
                ))
        except MomoryError as e:
            self.logger.error(
                "Summary not saved: chunk embedding failed",
                summary_id=summary.id,
                chunks_embedded=len(chunks),
                chunk_count=len(pieces),
                error=str(e),
            )
            return Result.failure(e)

        summary_row = summary.to_row()
        try:
            with self.rows.transaction():
                self.rows.execute(INSERT_SUMMARY, [summary_row[c] for c in SUMMARY_COLUMNS])
                for chunk in chunks:
                    chunk_row = chunk.to_row()
                    self.rows.execute(INSERT_CHUNK, [chunk_row[c] for c in CHUNK_COLUMNS])
                for record_id in source_ids:
                    self.rows.execute(
                        "UPDATE memories SET summary_id = ? WHERE id = ?",
                        (summary.id, record_id),
                    )
        except PersistenceError as e:
            self.logger.error("Failed to save summary", summary_id=summary.id, error=str(e))
            return Result.failure(e)

        if chunks:
            self._dimension = len(chunks[0].embedding)

        self.logger.info(
            "Summary saved",
            summary_id=summary.id,
            time_window=summary.time_window.value,
            source_record_count=summary.source_record_count,
            chunk_count=len(chunks),
        )
        return Result.success(summary)

    async def get_latest_summary(self) -> Result[Optional[SummaryRecord]]:
        """The most recently created summary, or ``None``."""
        try:
            row = self.rows.query_one(
                "SELECT * FROM summaries ORDER BY created_at DESC, rowid DESC LIMIT 1"
            )
        except PersistenceError as e:
            self.logger.error("Failed to get latest summary", error=str(e))
            return Result.failure(e)
        return Result.success(SummaryRecord.from_row(row) if row else None)

    async def get_summaries(self) -> Result[list[SummaryRecord]]:
        """All summaries, newest first."""
        try:
            rows = self.rows.query("SELECT * FROM summaries ORDER BY created_at DESC, rowid DESC")
        except PersistenceError as e:
            self.logger.error("Failed to list summaries", error=str(e))
            return Result.failure(e)
        return Result.success([SummaryRecord.from_row(r) for r in rows])

    async def get_chunks(self, summary_id: str) -> Result[list[SummaryChunk]]:
        """Chunks of one summary, ordered by start offset."""
        return self._query_chunks(
            "SELECT * FROM summary_chunks WHERE summary_id = ? ORDER BY start_offset ASC",
            (summary_id,),
        )

    async def get_all_chunks(self) -> Result[list[SummaryChunk]]:
        """Chunks of every summary."""
        return self._query_chunks(
            "SELECT * FROM summary_chunks ORDER BY created_at DESC, summary_id, start_offset"
        )

    async def delete_summary(self, summary_id: str) -> Result[bool]:
        """Delete a summary together with its chunks."""
        try:
            with self.rows.transaction():
                self.rows.execute("DELETE FROM summary_chunks WHERE summary_id = ?", (summary_id,))
                deleted = self.rows.execute("DELETE FROM summaries WHERE id = ?", (summary_id,))
        except PersistenceError as e:
            self.logger.error("Failed to delete summary", summary_id=summary_id, error=str(e))
            return Result.failure(e)
        return Result.success(deleted > 0)

    async def get_stats(self) -> Result[dict[str, Any]]:
        """Row counts per table."""
        try:
            row = self.rows.query_one(
                """
                SELECT
                    (SELECT COUNT(*) FROM memories) AS memories,
                    (SELECT COUNT(*) FROM memories WHERE summary_id IS NOT NULL) AS summarized,
                    (SELECT COUNT(*) FROM summaries) AS summaries,
                    (SELECT COUNT(*) FROM summary_chunks) AS chunks
                """
            )
        except PersistenceError as e:
            return Result.failure(e)
        return Result.success(dict(row or {}))

    # === Helpers ===

    def _query_records(self, statement: str, params: tuple = ()) -> Result[list[MemoryRecord]]:
        try:
            rows = self.rows.query(statement, params)
        except PersistenceError as e:
            self.logger.error("Failed to load memories", error=str(e))
            return Result.failure(e)

        records = [MemoryRecord.from_row(r) for r in rows]
        self.logger.debug("Loaded memories", count=len(records))
        return Result.success(records)

    def _query_chunks(self, statement: str, params: tuple = ()) -> Result[list[SummaryChunk]]:
        try:
            rows = self.rows.query(statement, params)
        except PersistenceError as e:
            self.logger.error("Failed to load summary chunks", error=str(e))
            return Result.failure(e)
        return Result.success([SummaryChunk.from_row(r) for r in rows])

    def _check_dimension(self, embedding: list[float]) -> None:
        """Reject vectors whose length differs from the store's dimensionality.

        Raises:
            DimensionMismatchError: On a length mismatch
            PersistenceError: If the dimensionality cannot be read
        """
        if self._dimension is None:
            row = self.rows.query_one(
                """
                SELECT embedding FROM memories
                UNION ALL
                SELECT embedding FROM summary_chunks
                LIMIT 1
                """
            )
            if row is None:
                return
            self._dimension = len(json.loads(row["embedding"]))

        if len(embedding) != self._dimension:
            raise DimensionMismatchError(self._dimension, len(embedding))

    def _reset_dimension_if_empty(self) -> None:
        # An emptied store has no dimensionality until the next write
        try:
            row = self.rows.query_one(
                "SELECT (SELECT COUNT(*) FROM memories) + (SELECT COUNT(*) FROM summary_chunks) AS n"
            )
        except PersistenceError as e:
            self.logger.debug("Could not recount rows", error=str(e))
            return
        if row and row["n"] == 0:
            self._dimension = None
