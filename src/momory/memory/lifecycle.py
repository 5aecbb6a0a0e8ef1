"""Memory lifecycle: decay, summarization and pruning.

A record's lifecycle state is derived at maintenance time, never stored:

- fresh: accessed within ``decay_after_days``; left alone
- decaying: relevance shrinks by ``decay_rate`` per ``decay_period_days``
- summarizable: older than the retention window while the store holds more
  than ``summarize_count`` records
- prunable: represented in a persisted summary and either below the score
  floor or older than the retention window

Maintenance always runs decay, then summarization, then pruning.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog

from momory.config.schemas import MomoryConfig
from momory.errors import GenerationError, MaintenanceCancelled, MomoryError, Result
from momory.llm.base import TextGenerator, generate_text
from momory.memory.prompts import build_summarization_prompt
from momory.memory.schemas import MemoryRecord, SummaryRecord, TimeWindow
from momory.memory.store import MemoryStore
from momory.telemetry.logger import get_logger


def decay_record(
    record: MemoryRecord,
    now: datetime,
    decay_rate: float = 0.05,
    decay_period: timedelta = timedelta(days=7),
    fresh_period: timedelta = timedelta(days=7),
) -> MemoryRecord:
    """Apply decay for the time elapsed since the record was last decayed.

    Decay is keyed on elapsed time: it starts from the later of the last
    decay mark and the end of the record's fresh period, and compounds, so
    decaying twice over two halves of an interval equals decaying once over
    the whole interval. A second call with the same ``now`` changes nothing.

    Args:
        record: Record to decay (not modified)
        now: Current time
        decay_rate: Fraction of relevance lost per ``decay_period``
        decay_period: Period over which ``decay_rate`` applies
        fresh_period: Time after the last access before decay starts

    Returns:
        A new record with updated score and decay mark, or ``record`` itself
        if no decay is due
    """
    anchor = max(record.decayed_at or record.created_at, record.last_accessed_at + fresh_period)
    if now <= anchor:
        return record

    periods = (now - anchor) / decay_period
    score = max(0.0, record.relevance_score * (1.0 - decay_rate) ** periods)
    return replace(record, relevance_score=score, decayed_at=now)


def select_time_window(start: datetime, end: datetime) -> TimeWindow:
    """Smallest window that covers the span of a summarized batch."""
    span = end - start
    if span <= timedelta(days=1):
        return TimeWindow.DAILY
    if span <= timedelta(days=7):
        return TimeWindow.WEEKLY
    return TimeWindow.MONTHLY


@dataclass
class MaintenanceReport:
    """What one maintenance pass did.

    Attributes:
        decayed: Records whose score was reduced
        summaries_created: Summaries persisted
        summarized_records: Source records covered by new summaries
        pruned: Records deleted
        errors: Failures the pass survived
        cancelled: Whether the pass was stopped early
        duration_ms: Wall time of the pass
    """

    decayed: int = 0
    summaries_created: int = 0
    summarized_records: int = 0
    pruned: int = 0
    errors: list[MomoryError] = field(default_factory=list)
    cancelled: bool = False
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.errors and not self.cancelled


class LifecycleManager:
    """Runs decay, summarization and pruning over the memory store.

    Only one pass runs at a time. A pass can be cancelled; it stops after
    the record or phase in progress and leaves the store consistent.

    Example:
        lifecycle = LifecycleManager(store, generator, config)
        report = await lifecycle.run_maintenance()
        print(report.pruned)
    """

    def __init__(
        self,
        store: MemoryStore,
        generator: TextGenerator,
        config: Optional[MomoryConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ) -> None:
        """Initialize the lifecycle manager.

        Args:
            store: Memory store
            generator: Generation collaborator used for summaries
            config: Thresholds, budgets and rates
            clock: Source of "now"
            logger: Logger to use
        """
        self.store = store
        self.generator = generator
        self.config = config or MomoryConfig()
        self.clock = clock
        self.logger = logger or get_logger(__name__)
        self._lock = asyncio.Lock()
        self._cancel_requested = False
        self._task: Optional[asyncio.Task[MaintenanceReport]] = None

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    @property
    def retention_cutoff(self) -> datetime:
        return self.clock() - timedelta(days=self.config.thresholds.retention_days)

    # === Phases ===

    async def decay(self) -> Result[int]:
        """Decay every record for the time elapsed since its last decay.

        Returns:
            Result with the number of records whose score changed
        """
        records_result = await self.store.get_all()
        if not records_result.ok:
            return Result.failure(records_result.error)  # type: ignore[arg-type]

        now = self.clock()
        rates = self.config.rates
        decay_period = timedelta(days=rates.decay_period_days)
        fresh_period = timedelta(days=self.config.thresholds.decay_after_days)

        updated: list[MemoryRecord] = []
        cancelled = False
        for record in records_result.value or []:
            if self._cancel_requested:
                cancelled = True
                break
            decayed = decay_record(record, now, rates.decay_rate, decay_period, fresh_period)
            if decayed is not record:
                updated.append(decayed)

        # Records decayed before a cancellation are still written
        if updated:
            write = await self.store.apply_decay(updated)
            if not write.ok:
                return write

        self.logger.debug("Decay applied", updated=len(updated), cancelled=cancelled)
        if cancelled:
            return Result.failure(MaintenanceCancelled("Cancelled during decay"))
        return Result.success(len(updated))

    async def summarize_old_memories(self) -> Result[Optional[SummaryRecord]]:
        """Compress the oldest batch of records beyond the retention window.

        Runs only when the store holds more than ``summarize_count`` records.
        Source records are marked as summarized in the same transaction that
        persists the summary; a failed attempt leaves them untouched.

        Returns:
            Result with the new summary, ``None`` when nothing was due, or a
            generation, embedding or persistence failure
        """
        count_result = await self.store.count()
        if not count_result.ok:
            return Result.failure(count_result.error)  # type: ignore[arg-type]

        thresholds = self.config.thresholds
        if (count_result.value or 0) <= thresholds.summarize_count:
            return Result.success(None)

        candidates_result = await self.store.get_unsummarized_older_than(
            self.retention_cutoff, self.config.budgets.summarize_batch
        )
        if not candidates_result.ok:
            return Result.failure(candidates_result.error)  # type: ignore[arg-type]

        batch = candidates_result.value or []
        if not batch:
            self.logger.debug("No records old enough to summarize", count=count_result.value)
            return Result.success(None)

        prompt = build_summarization_prompt([r.content for r in batch])
        try:
            text = await generate_text(self.generator, prompt)
        except GenerationError as e:
            self.logger.error("Summary generation failed", batch_size=len(batch), error=str(e))
            return Result.failure(e)

        if not text.strip():
            error = GenerationError("Summary generation returned no text")
            self.logger.error("Summary generation failed", batch_size=len(batch), error=str(error))
            return Result.failure(error)

        start = batch[0].created_at
        newest = batch[-1].created_at
        summary = SummaryRecord(
            id=str(uuid.uuid4()),
            time_window=select_time_window(start, newest),
            start_date=start,
            end_date=newest + timedelta(microseconds=1),
            source_record_count=len(batch),
            created_at=self.clock(),
        )
        return await self.store.save_summary(summary, text, [r.id for r in batch])

    async def prune(self) -> Result[int]:
        """Delete summarized records that are stale or below the score floor.

        Records not yet represented in a summary are never deleted.

        Returns:
            Result with the number of records deleted
        """
        summarized = await self.store.get_summarized()
        if not summarized.ok:
            return Result.failure(summarized.error)  # type: ignore[arg-type]

        cutoff = self.retention_cutoff
        floor = self.config.thresholds.prune_floor
        pruned = 0

        for record in summarized.value or []:
            if self._cancel_requested:
                self.logger.info("Prune cancelled", pruned=pruned)
                return Result.failure(MaintenanceCancelled("Cancelled during prune"))
            if not self.is_prunable(record, cutoff, floor):
                continue
            deleted = await self.store.delete(record.id)
            if not deleted.ok:
                return Result.failure(deleted.error)  # type: ignore[arg-type]
            if deleted.value:
                pruned += 1

        if pruned:
            self.logger.info("Memories pruned", count=pruned)
        return Result.success(pruned)

    @staticmethod
    def is_prunable(record: MemoryRecord, cutoff: datetime, floor: float) -> bool:
        if not record.is_summarized:
            return False
        return record.relevance_score < floor or record.created_at < cutoff

    # === Maintenance ===

    async def run_maintenance(self) -> MaintenanceReport:
        """Run decay, summarization and pruning in that order.

        A failure in one phase is recorded and the remaining phases still
        run. Concurrent calls wait for the pass in progress. A cancellation
        requested before the pass acquires the lock skips every phase.
        """
        async with self._lock:
            started = time.perf_counter()
            report = MaintenanceReport()
            try:
                if self._cancel_requested:
                    report.cancelled = True
                else:
                    await self._run_phases(report)
            finally:
                # A scheduled pass still waiting on the lock keeps the request
                if self._task is None or self._task.done() or self._task is asyncio.current_task():
                    self._cancel_requested = False

            report.duration_ms = (time.perf_counter() - started) * 1000
            self.logger.info(
                "Maintenance finished",
                decayed=report.decayed,
                summaries_created=report.summaries_created,
                pruned=report.pruned,
                errors=len(report.errors),
                cancelled=report.cancelled,
                duration_ms=round(report.duration_ms, 2),
            )
            return report

    async def _run_phases(self, report: MaintenanceReport) -> None:
        decayed = await self.decay()
        if not self._absorb(report, decayed, "decay"):
            report.decayed = decayed.value or 0

        if not report.cancelled:
            summarized = await self.summarize_old_memories()
            if not self._absorb(report, summarized, "summarize") and summarized.value:
                report.summaries_created = 1
                report.summarized_records = summarized.value.source_record_count

        if not report.cancelled and not self._cancel_requested:
            pruned = await self.prune()
            if not self._absorb(report, pruned, "prune"):
                report.pruned = pruned.value or 0
        elif self._cancel_requested:
            report.cancelled = True

    def schedule(self) -> asyncio.Task[MaintenanceReport]:
        """Start a maintenance pass in the background.

        Returns the pass already in flight, if any. Must be called from a
        running event loop.
        """
        if self._task is not None and not self._task.done():
            return self._task

        self._task = asyncio.get_running_loop().create_task(self.run_maintenance())
        self._task.add_done_callback(self._on_task_done)
        return self._task

    def cancel(self) -> None:
        """Ask the running or scheduled pass to stop after the current record.

        Does nothing when no pass is running or scheduled.
        """
        pending = self._task is not None and not self._task.done()
        if self.is_running or pending:
            self._cancel_requested = True
            self.logger.info("Maintenance cancellation requested", started=self.is_running)

    async def wait(self) -> Optional[MaintenanceReport]:
        """Wait for the background pass, if any."""
        if self._task is None:
            return None
        return await self._task

    async def shutdown(self) -> None:
        """Cancel and wait for any background pass."""
        self.cancel()
        if self._task is not None and not self._task.done():
            await self._task

    def _absorb(self, report: MaintenanceReport, result: Result, phase: str) -> bool:
        """Record a failed phase in the report. Returns True if it failed."""
        if result.ok:
            return False
        if isinstance(result.error, MaintenanceCancelled):
            report.cancelled = True
        else:
            self.logger.warning("Maintenance phase failed", phase=phase, error=str(result.error))
            report.errors.append(result.error)  # type: ignore[arg-type]
        return True

    def _on_task_done(self, task: asyncio.Task[MaintenanceReport]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.error("Background maintenance crashed", error=str(error))
