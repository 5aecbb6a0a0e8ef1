"""Unified memory manager."""

import asyncio
from datetime import datetime
from typing import Any, Callable, Optional

import structlog

from momory.config.schemas import MomoryConfig
from momory.errors import (
    DimensionMismatchError,
    EmbeddingError,
    GenerationError,
    Result,
    SaveOutcome,
    SaveStatus,
)
from momory.llm.base import Embedder, TextGenerator, embed_text, generate_text
from momory.memory.chunker import ChunkOptions
from momory.memory.context import AssembledContext, ContextAssembler
from momory.memory.dedup import Deduplicator
from momory.memory.extraction import MemoryExtractor
from momory.memory.lifecycle import LifecycleManager, MaintenanceReport
from momory.memory.retrieval import MemoryRetriever
from momory.memory.rowstore import RowStore, SQLiteRowStore
from momory.memory.schemas import MemoryCandidate, RetrievedContext
from momory.memory.session import SessionStore
from momory.memory.store import MemoryStore
from momory.telemetry.logger import get_logger, log_context


class MemoryManager:
    """Unified interface for all memory operations.

    Wires the store, deduplication, retrieval, lifecycle, context assembly,
    extraction and the session window around one embedding and one
    generation collaborator.

    Within one interaction the order is fixed: retrieve, generate, extract,
    persist. Maintenance runs in the background every
    ``rates.maintenance_every`` interactions and never blocks a turn.

    Example:
        manager = MemoryManager(embedder, generator, config)

        # Answer with memory
        result = await manager.respond("What language do I like for data work?")

        # Or drive the steps yourself
        prompt = await manager.build_context(message)
        reply = await my_llm(prompt)
        await manager.ingest_interaction(message, reply)
        manager.record_interaction()
    """

    def __init__(
        self,
        embedder: Embedder,
        generator: TextGenerator,
        config: Optional[MomoryConfig] = None,
        rows: Optional[RowStore] = None,
        clock: Callable[[], datetime] = datetime.now,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ) -> None:
        """Initialize memory manager.

        Args:
            embedder: Embedding collaborator
            generator: Generation collaborator
            config: Engine configuration (defaults to built-in values)
            rows: Row store (defaults to SQLite at ``storage.db_path``)
            clock: Source of "now"
            logger: Logger shared by every component
        """
        self.config = config or MomoryConfig()
        self.logger = logger or get_logger(__name__)
        self.embedder = embedder
        self.generator = generator

        thresholds = self.config.thresholds
        budgets = self.config.budgets

        self.rows = rows or SQLiteRowStore(self.config.storage.db_path)
        self.store = MemoryStore(
            self.rows,
            embedder,
            chunk_options=ChunkOptions(
                target_size=budgets.chunk_target_chars,
                boundary_window=budgets.chunk_boundary_chars,
            ),
            clock=clock,
            logger=self.logger,
        )
        self.dedup = Deduplicator(thresholds.duplicate_similarity, logger=self.logger)
        self.retriever = MemoryRetriever(
            self.store,
            top_k=budgets.top_k,
            min_relevance=thresholds.min_relevance,
            logger=self.logger,
        )
        self.lifecycle = LifecycleManager(
            self.store, generator, self.config, clock=clock, logger=self.logger
        )
        self.assembler = ContextAssembler(
            budget_tokens=budgets.context_tokens,
            chars_per_token=budgets.chars_per_token,
            max_turns=budgets.recent_turns,
            logger=self.logger,
        )
        self.extractor = MemoryExtractor(generator, logger=self.logger)
        self.session = SessionStore(clock=clock)

        self._write_lock = asyncio.Lock()
        self._interactions = 0

        self.logger.info(
            "MemoryManager initialized",
            session_id=self.session.session_id,
            top_k=budgets.top_k,
            context_tokens=budgets.context_tokens,
        )

    @classmethod
    def from_config(cls, config: MomoryConfig) -> "MemoryManager":
        """Build a manager backed by Ollama and SQLite."""
        from momory.llm.ollama import OllamaEmbedder, OllamaGenerator

        return cls(
            embedder=OllamaEmbedder.from_config(config.llm),
            generator=OllamaGenerator.from_config(config.llm),
            config=config,
        )

    @property
    def interaction_count(self) -> int:
        return self._interactions

    # === Read path ===

    async def recall(self, query: str) -> Result[RetrievedContext]:
        """Retrieve the memories and summary chunks relevant to ``query``."""
        try:
            query_embedding = await embed_text(self.embedder, query)
        except EmbeddingError as e:
            self.logger.warning("Query embedding failed", error=str(e))
            return Result.failure(e)
        return await self.retriever.retrieve(query_embedding)

    async def assemble_context(self, query: str) -> AssembledContext:
        """Build the budgeted prompt block for ``query``.

        A failed retrieval degrades to a context without memories.
        """
        retrieved = await self.recall(query)
        if not retrieved.ok:
            self.logger.warning(
                "Retrieval failed; answering without memory",
                kind=retrieved.kind.value if retrieved.kind else None,
            )

        turns = self.session.get_recent(self.config.budgets.recent_turns)
        return self.assembler.assemble(
            query,
            retrieved.value if retrieved.ok else RetrievedContext(),
            turns,
        )

    async def build_context(self, query: str) -> str:
        """Prompt text for ``query``."""
        return (await self.assemble_context(query)).text

    # === Write path ===

    async def remember(
        self, candidate: MemoryCandidate, source: str = "conversation"
    ) -> SaveOutcome:
        """Deduplicate and persist one candidate.

        The exact-text gate runs before any embedding is computed; the
        semantic gate reuses the embedding that is then stored.

        Returns:
            Saved, duplicate (with the matched record) or failed
        """
        async with self._write_lock:
            existing = await self.store.get_all()
            if not existing.ok:
                return SaveOutcome.failed(existing.error)  # type: ignore[arg-type]
            records = existing.value or []

            match = self.dedup.find_exact(candidate.content, records)
            if match is None:
                try:
                    embedding = await embed_text(self.embedder, candidate.content)
                    match = self.dedup.find_semantic(embedding, records)
                except (EmbeddingError, DimensionMismatchError) as e:
                    self.logger.warning("Memory not saved", error=str(e), kind=e.kind.value)
                    return SaveOutcome.failed(e)

            if match is not None:
                self.logger.info(
                    "Duplicate memory skipped",
                    record_id=match.record.id,
                    similarity=round(match.similarity, 4),
                    match_reason=match.reason.value,
                )
                return SaveOutcome.duplicate(match.record, match.similarity, match.reason.value)

            saved = await self.store.save(candidate, source=source, embedding=embedding)
            if not saved.ok:
                return SaveOutcome.failed(saved.error)  # type: ignore[arg-type]
            return SaveOutcome.saved(saved.value)  # type: ignore[arg-type]

    async def ingest_interaction(
        self,
        user_message: str,
        assistant_response: str,
        source: str = "conversation",
    ) -> list[SaveOutcome]:
        """Record an exchange and persist the memories extracted from it.

        Failures are logged and never raised; the turn always completes.

        Returns:
            One outcome per extracted candidate
        """
        self.session.add_exchange(user_message, assistant_response)

        extracted = await self.extractor.extract(user_message, assistant_response)
        if not extracted.ok:
            return []

        outcomes = []
        for candidate in extracted.value or []:
            outcome = await self.remember(candidate, source=source)
            if outcome.status == SaveStatus.FAILED:
                self.logger.error(
                    "Failed to persist extracted memory",
                    kind=outcome.kind.value if outcome.kind else None,
                    error=str(outcome.error),
                )
            outcomes.append(outcome)

        self.logger.debug(
            "Interaction ingested",
            extracted=len(outcomes),
            saved=sum(1 for o in outcomes if o.status == SaveStatus.SAVED),
        )
        return outcomes

    def record_interaction(self) -> Optional[asyncio.Task[MaintenanceReport]]:
        """Count an interaction; start background maintenance when one is due.

        Must be called from a running event loop.

        Returns:
            The maintenance task, if one was started or is in flight
        """
        self._interactions += 1
        if self._interactions % self.config.rates.maintenance_every != 0:
            return None

        self.logger.debug("Scheduling maintenance", interactions=self._interactions)
        return self.lifecycle.schedule()

    async def respond(self, user_message: str, source: str = "conversation") -> Result[str]:
        """Answer one message with memory: retrieve, generate, extract, persist.

        Returns:
            Result with the assistant's reply, or a generation failure
        """
        with log_context(session_id=self.session.session_id, interaction=self._interactions + 1):
            prompt = await self.build_context(user_message)
            try:
                reply = await generate_text(self.generator, prompt)
            except GenerationError as e:
                self.logger.error("Response generation failed", error=str(e))
                return Result.failure(e)

            await self.ingest_interaction(user_message, reply, source=source)
            self.record_interaction()
        return Result.success(reply)

    # === Maintenance ===

    async def run_maintenance(self) -> MaintenanceReport:
        """Run a maintenance pass now and wait for it."""
        return await self.lifecycle.run_maintenance()

    async def get_stats(self) -> dict[str, Any]:
        """Store counts plus session and interaction counters."""
        stats = await self.store.get_stats()
        result: dict[str, Any] = dict(stats.value or {}) if stats.ok else {}
        result.update(
            session_id=self.session.session_id,
            session_turns=self.session.turn_count,
            interactions=self._interactions,
            maintenance_running=self.lifecycle.is_running,
        )
        return result

    async def close(self) -> None:
        """Stop background maintenance and release the row store."""
        await self.lifecycle.shutdown()
        self.rows.close()
        self.logger.info("MemoryManager closed", session_id=self.session.session_id)
