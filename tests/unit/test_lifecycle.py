"""Tests for decay, summarization and pruning."""

import asyncio
import uuid
from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from momory.config.schemas import MomoryConfig
from momory.errors import ErrorKind
from momory.memory.lifecycle import (
    LifecycleManager,
    decay_record,
    select_time_window,
)
from momory.memory.schemas import (
    MemoryCandidate,
    MemoryRecord,
    MemoryType,
    SummaryRecord,
    TimeWindow,
)
from momory.memory.store import MemoryStore

T0 = datetime(2026, 1, 1, 12, 0, 0)


def fresh_record(score: float = 1.0) -> MemoryRecord:
    return MemoryRecord(
        id="r1",
        type=MemoryType.FACT,
        content="Project deadline is March 15",
        embedding=[1.0, 0.0],
        created_at=T0,
        last_accessed_at=T0,
        relevance_score=score,
    )


async def fill(store: MemoryStore, clock, count: int) -> list[MemoryRecord]:
    """Save ``count`` distinct records one minute apart."""
    saved = []
    for i in range(count):
        result = await store.save(
            MemoryCandidate(type=MemoryType.FACT, content=f"Fact number {i} about topic {i}")
        )
        saved.append(result.value)
        clock.advance(minutes=1)
    return saved


class CancellingGenerator:
    """Requests cancellation while the summary is being generated."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.lifecycle = None

    async def generate(self, prompt: str) -> str:
        self.lifecycle.cancel()
        return self.text


class TestDecayRecord:
    """Tests for the decay function."""

    def test_fresh_record_untouched(self) -> None:
        record = fresh_record()
        assert decay_record(record, T0 + timedelta(days=6)) is record

    def test_one_period_past_fresh(self) -> None:
        now = T0 + timedelta(days=14)
        decayed = decay_record(fresh_record(), now)

        assert decayed.relevance_score == pytest.approx(0.95)
        assert decayed.decayed_at == now

    def test_input_not_mutated(self) -> None:
        record = fresh_record()
        decay_record(record, T0 + timedelta(days=30))

        assert record.relevance_score == 1.0
        assert record.decayed_at == T0

    def test_same_time_is_idempotent(self) -> None:
        now = T0 + timedelta(days=20)
        once = decay_record(fresh_record(), now)
        twice = decay_record(once, now)

        assert twice is once

    def test_split_intervals_equal_one_interval(self) -> None:
        split = decay_record(
            decay_record(fresh_record(), T0 + timedelta(days=10)),
            T0 + timedelta(days=35),
        )
        whole = decay_record(fresh_record(), T0 + timedelta(days=35))

        assert split.relevance_score == pytest.approx(whole.relevance_score)

    def test_recent_access_restarts_fresh_period(self) -> None:
        accessed = replace(fresh_record(), last_accessed_at=T0 + timedelta(days=20))
        assert decay_record(accessed, T0 + timedelta(days=25)) is accessed

    def test_score_never_negative_and_non_increasing(self) -> None:
        record = fresh_record(score=0.3)
        previous = record.relevance_score
        for days in (8, 8, 15, 60, 365, 365):
            record = decay_record(record, T0 + timedelta(days=days), decay_rate=0.5)
            assert 0.0 <= record.relevance_score <= previous
            previous = record.relevance_score

    def test_full_rate_floors_at_zero(self) -> None:
        decayed = decay_record(fresh_record(), T0 + timedelta(days=30), decay_rate=1.0)
        assert decayed.relevance_score == 0.0


class TestSelectTimeWindow:
    def test_windows(self) -> None:
        assert select_time_window(T0, T0 + timedelta(hours=20)) == TimeWindow.DAILY
        assert select_time_window(T0, T0 + timedelta(days=3)) == TimeWindow.WEEKLY
        assert select_time_window(T0, T0 + timedelta(days=20)) == TimeWindow.MONTHLY


class TestLifecycleManager:
    """Tests for LifecycleManager phases."""

    @pytest.fixture
    def lifecycle(self, store: MemoryStore, generator, clock) -> LifecycleManager:
        return LifecycleManager(store, generator, MomoryConfig(), clock=clock)

    @pytest.mark.asyncio
    async def test_decay_phase_is_idempotent(self, lifecycle, store, clock) -> None:
        saved = (await fill(store, clock, 1))[0]
        clock.advance(days=14)

        assert (await lifecycle.decay()).value == 1
        first = (await store.get_by_id(saved.id)).value.relevance_score

        assert (await lifecycle.decay()).value == 0
        assert (await store.get_by_id(saved.id)).value.relevance_score == first
        assert first < 1.0

    @pytest.mark.asyncio
    async def test_no_summary_below_count_threshold(
        self, lifecycle, store, generator, clock
    ) -> None:
        await fill(store, clock, 5)
        clock.advance(days=40)

        result = await lifecycle.summarize_old_memories()

        assert result.ok
        assert result.value is None
        assert generator.prompts == []

    @pytest.mark.asyncio
    async def test_summarize_then_prune(
        self, lifecycle, store, generator, clock, make_summary_text
    ) -> None:
        saved = await fill(store, clock, 120)
        clock.advance(days=31)
        generator.responses = [make_summary_text(10)]

        summary = (await lifecycle.summarize_old_memories()).value

        assert summary.source_record_count == 100
        assert summary.time_window == TimeWindow.DAILY
        assert summary.start_date == saved[0].created_at
        assert summary.end_date > saved[99].created_at
        assert "MEMORIES TO SUMMARIZE (100 memories)" in generator.prompts[0]
        assert len((await store.get_summaries()).value) == 1

        # Still present until pruning runs
        assert (await store.count()).value == 120

        assert (await lifecycle.prune()).value == 100

        remaining = (await store.get_all()).value
        assert len(remaining) == 20
        assert {r.id for r in remaining} == {r.id for r in saved[100:]}

    @pytest.mark.asyncio
    async def test_generation_failure_leaves_sources(
        self, lifecycle, store, generator, clock
    ) -> None:
        await fill(store, clock, 105)
        clock.advance(days=31)
        generator.fail = True

        result = await lifecycle.summarize_old_memories()

        assert not result.ok
        assert result.kind == ErrorKind.GENERATION
        assert (await store.get_summarized()).value == []
        assert (await lifecycle.prune()).value == 0
        assert (await store.count()).value == 105

    @pytest.mark.asyncio
    async def test_embedding_failure_leaves_sources(
        self, lifecycle, store, embedder, generator, clock, make_summary_text
    ) -> None:
        await fill(store, clock, 101)
        clock.advance(days=31)
        generator.responses = [make_summary_text(10)]
        embedder.fail = True

        result = await lifecycle.summarize_old_memories()

        assert result.kind == ErrorKind.EMBEDDING
        assert (await store.get_summaries()).value == []
        assert (await store.get_summarized()).value == []

    @pytest.mark.asyncio
    async def test_prune_skips_unsummarized_zero_score(self, lifecycle, store, clock) -> None:
        saved = (await fill(store, clock, 1))[0]
        await store.apply_decay([replace(saved, relevance_score=0.0)])
        clock.advance(days=90)

        assert (await lifecycle.prune()).value == 0
        assert (await store.get_by_id(saved.id)).value is not None

    @pytest.mark.asyncio
    async def test_prune_summarized_low_score(self, lifecycle, store, clock) -> None:
        low, healthy = await fill(store, clock, 2)
        summary = SummaryRecord(
            id=str(uuid.uuid4()),
            time_window=TimeWindow.DAILY,
            start_date=low.created_at,
            end_date=healthy.created_at + timedelta(microseconds=1),
            source_record_count=2,
            created_at=clock(),
        )
        await store.save_summary(summary, "Two facts.", [low.id, healthy.id])
        await store.apply_decay([replace(low, relevance_score=0.05)])

        assert (await lifecycle.prune()).value == 1
        assert (await store.get_by_id(low.id)).value is None
        assert (await store.get_by_id(healthy.id)).value is not None


class TestMaintenance:
    """Tests for full maintenance passes."""

    @pytest.fixture
    def lifecycle(self, store: MemoryStore, generator, clock) -> LifecycleManager:
        return LifecycleManager(store, generator, MomoryConfig(), clock=clock)

    @pytest.mark.asyncio
    async def test_run_maintenance_report(
        self, lifecycle, store, generator, clock, make_summary_text
    ) -> None:
        await fill(store, clock, 120)
        clock.advance(days=31)
        generator.default = make_summary_text(10)

        report = await lifecycle.run_maintenance()

        assert report.ok
        assert report.decayed == 120
        assert report.summaries_created == 1
        assert report.summarized_records == 100
        assert report.pruned == 100
        assert (await store.count()).value == 20

    @pytest.mark.asyncio
    async def test_failed_phase_does_not_stop_pass(self, lifecycle, store, generator, clock) -> None:
        await fill(store, clock, 101)
        clock.advance(days=31)
        generator.fail = True

        report = await lifecycle.run_maintenance()

        assert not report.ok
        assert [e.kind for e in report.errors] == [ErrorKind.GENERATION]
        assert report.decayed == 101
        assert report.pruned == 0

    @pytest.mark.asyncio
    async def test_overlapping_runs_are_serialized(
        self, lifecycle, store, generator, clock, make_summary_text
    ) -> None:
        await fill(store, clock, 120)
        clock.advance(days=31)
        generator.default = make_summary_text(10)

        first, second = await asyncio.gather(
            lifecycle.run_maintenance(), lifecycle.run_maintenance()
        )

        assert first.summaries_created + second.summaries_created == 1
        assert len((await store.get_summaries()).value) == 1
        assert (await store.count()).value == 20

    @pytest.mark.asyncio
    async def test_cancel_stops_before_prune(
        self, store, clock, make_summary_text
    ) -> None:
        generator = CancellingGenerator(make_summary_text(10))
        lifecycle = LifecycleManager(store, generator, MomoryConfig(), clock=clock)
        generator.lifecycle = lifecycle
        await fill(store, clock, 120)
        clock.advance(days=31)

        report = await lifecycle.run_maintenance()

        assert report.cancelled
        assert report.summaries_created == 1
        assert report.pruned == 0
        assert (await store.count()).value == 120
        assert len((await store.get_summarized()).value) == 100

    @pytest.mark.asyncio
    async def test_cancel_when_idle_is_noop(self, lifecycle) -> None:
        lifecycle.cancel()
        report = await lifecycle.run_maintenance()
        assert not report.cancelled

    @pytest.mark.asyncio
    async def test_schedule_runs_in_background(self, lifecycle, store, clock) -> None:
        await fill(store, clock, 1)
        clock.advance(days=14)

        task = lifecycle.schedule()
        assert lifecycle.schedule() is task

        report = await lifecycle.wait()
        assert report is task.result()
        assert report.decayed == 1

    @pytest.mark.asyncio
    async def test_phases_run_after_cancelled_pass(
        self, store, clock, make_summary_text
    ) -> None:
        generator = CancellingGenerator(make_summary_text(10))
        lifecycle = LifecycleManager(store, generator, MomoryConfig(), clock=clock)
        generator.lifecycle = lifecycle
        await fill(store, clock, 120)
        clock.advance(days=31)

        assert (await lifecycle.run_maintenance()).cancelled

        pruned = await lifecycle.prune()
        assert pruned.ok
        assert pruned.value == 100
        assert (await lifecycle.decay()).ok

    @pytest.mark.asyncio
    async def test_shutdown_cancels_scheduled_pass(
        self, lifecycle, store, generator, clock, make_summary_text
    ) -> None:
        await fill(store, clock, 105)
        clock.advance(days=31)
        generator.default = make_summary_text(10)

        task = lifecycle.schedule()
        await lifecycle.shutdown()

        report = task.result()
        assert report.cancelled
        assert report.decayed == 0
        assert generator.prompts == []
        assert (await store.get_summaries()).value == []
        assert (await store.count()).value == 105

        # The request does not outlive the skipped pass
        assert not (await lifecycle.run_maintenance()).cancelled

    @pytest.mark.asyncio
    async def test_cancel_before_scheduled_pass_starts(self, lifecycle, store, clock) -> None:
        await fill(store, clock, 1)
        clock.advance(days=14)

        lifecycle.schedule()
        lifecycle.cancel()
        report = await lifecycle.wait()

        assert report.cancelled
        assert report.decayed == 0

        rescheduled = await lifecycle.schedule()
        assert not rescheduled.cancelled
        assert rescheduled.decayed == 1

    @pytest.mark.asyncio
    async def test_wait_without_task(self, lifecycle) -> None:
        assert await lifecycle.wait() is None
