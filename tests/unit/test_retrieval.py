"""Tests for similarity retrieval."""

import uuid
from datetime import datetime, timedelta

import pytest

from momory.errors import ErrorKind
from momory.memory.retrieval import MemoryRetriever, rank_memories
from momory.memory.schemas import (
    MemoryCandidate,
    MemoryRecord,
    MemoryType,
    SummaryRecord,
    TimeWindow,
)
from momory.memory.store import MemoryStore


def record(record_id: str, embedding: list[float], created_at: datetime) -> MemoryRecord:
    return MemoryRecord(
        id=record_id,
        type=MemoryType.FACT,
        content=record_id,
        embedding=embedding,
        created_at=created_at,
        last_accessed_at=created_at,
    )


async def save(store: MemoryStore, content: str, memory_type: MemoryType = MemoryType.FACT):
    result = await store.save(MemoryCandidate(type=memory_type, content=content))
    assert result.ok
    return result.value


class TestRankMemories:
    """Tests for the ranking primitive."""

    def test_orders_by_similarity(self) -> None:
        now = datetime(2026, 1, 1)
        ranked = rank_memories(
            [1.0, 0.0],
            [
                record("low", [0.0, 1.0], now),
                record("high", [1.0, 0.0], now),
                record("mid", [1.0, 1.0], now),
            ],
        )
        assert [s.record.id for s in ranked] == ["high", "mid", "low"]
        assert ranked[0].similarity == pytest.approx(1.0)

    def test_ties_break_by_recency(self) -> None:
        now = datetime(2026, 1, 1)
        ranked = rank_memories(
            [1.0, 0.0],
            [
                record("older", [2.0, 0.0], now),
                record("newer", [1.0, 0.0], now + timedelta(hours=1)),
            ],
        )
        assert [s.record.id for s in ranked] == ["newer", "older"]

    def test_empty(self) -> None:
        assert rank_memories([1.0], []) == []


class TestMemoryRetriever:
    """Tests for MemoryRetriever."""

    @pytest.mark.asyncio
    async def test_empty_store_returns_empty_result(self, store: MemoryStore, embedder) -> None:
        result = await MemoryRetriever(store).retrieve(await embedder.embed("anything"))

        assert result.ok
        assert result.value.is_empty

    @pytest.mark.asyncio
    async def test_paraphrase_is_retrieved(self, store: MemoryStore, embedder) -> None:
        await save(store, "User prefers Python for data tasks", MemoryType.PREFERENCE)
        await save(store, "Project deadline is March 15")
        await save(store, "The office plants need watering on Fridays")

        query = await embedder.embed("what language does the user like for data work")
        result = await MemoryRetriever(store).retrieve(query)

        top = result.value.memories[:3]
        assert top[0].record.content == "User prefers Python for data tasks"
        assert top[0].similarity >= 0.65

    @pytest.mark.asyncio
    async def test_filters_below_min_relevance(self, store: MemoryStore, embedder) -> None:
        await save(store, "Project deadline is March 15")

        query = await embedder.embed("favourite pizza topping")
        result = await MemoryRetriever(store, min_relevance=0.65).retrieve(query)

        assert result.ok
        assert result.value.memories == []

    @pytest.mark.asyncio
    async def test_limits_to_top_k(self, store: MemoryStore, embedder, clock) -> None:
        for i in range(5):
            await save(store, f"deadline reminder {i}")
            clock.advance(minutes=1)

        query = await embedder.embed("deadline reminder")
        result = await MemoryRetriever(store, top_k=2, min_relevance=0.1).retrieve(query)

        assert len(result.value.memories) == 2

    @pytest.mark.asyncio
    async def test_returned_records_are_touched(self, store: MemoryStore, embedder, clock) -> None:
        hit = await save(store, "Project deadline is March 15")
        miss = await save(store, "Office plants need water")
        clock.advance(hours=1)

        query = await embedder.embed("project deadline march")
        await MemoryRetriever(store).retrieve(query)

        assert (await store.get_by_id(hit.id)).value.access_count == 1
        assert (await store.get_by_id(hit.id)).value.last_accessed_at == clock()
        assert (await store.get_by_id(miss.id)).value.access_count == 0

    @pytest.mark.asyncio
    async def test_returned_records_reflect_access(
        self, store: MemoryStore, embedder, clock
    ) -> None:
        hit = await save(store, "Project deadline is March 15")
        clock.advance(hours=1)

        query = await embedder.embed("project deadline march")
        result = await MemoryRetriever(store).retrieve(query)

        returned = result.value.memories[0].record
        assert returned.id == hit.id
        assert returned.access_count == 1
        assert returned.last_accessed_at == clock()
        assert returned == (await store.get_by_id(hit.id)).value

    @pytest.mark.asyncio
    async def test_dimension_mismatch_is_failure(self, store: MemoryStore) -> None:
        await save(store, "Project deadline is March 15")

        result = await MemoryRetriever(store).retrieve([1.0, 0.0, 0.0])

        assert not result.ok
        assert result.kind == ErrorKind.DIMENSION_MISMATCH

    @pytest.mark.asyncio
    async def test_summary_chunks_ranked_independently(
        self, store: MemoryStore, embedder, clock
    ) -> None:
        await save(store, "Office plants need water")
        summary = SummaryRecord(
            id=str(uuid.uuid4()),
            time_window=TimeWindow.MONTHLY,
            start_date=clock() - timedelta(days=60),
            end_date=clock() - timedelta(days=31),
            source_record_count=40,
            created_at=clock(),
        )
        await store.save_summary(summary, "Project deadline moved to March 15 after review.")

        query = await embedder.embed("project deadline march review")
        result = await MemoryRetriever(store).retrieve(query)

        assert result.value.memories == []
        assert len(result.value.summary_chunks) == 1
        assert result.value.summary_chunks[0].chunk.summary_id == summary.id
