"""Duplicate detection for memory candidates."""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence

import structlog

from momory.memory.schemas import MemoryRecord
from momory.memory.vector import cosine_similarity
from momory.telemetry.logger import get_logger


class MatchReason(str, Enum):
    """Which gate flagged a duplicate."""

    EXACT = "exact"
    SEMANTIC = "semantic"


@dataclass
class DuplicateMatch:
    """An existing record that a candidate restates.

    Attributes:
        record: The matched record
        similarity: Cosine similarity (1.0 for exact matches)
        reason: Gate that matched
    """

    record: MemoryRecord
    similarity: float
    reason: MatchReason


def normalize_content(content: str) -> str:
    """Key used by the exact-match gate."""
    return content.strip().lower()


class Deduplicator:
    """Decides whether a candidate restates an existing record.

    The exact text gate runs first and needs no embedding. The semantic gate
    is a full scan over the live record set.

    Example:
        dedup = Deduplicator(threshold=0.9)
        match = dedup.find_exact(candidate.content, records)
        if match is None:
            match = dedup.find_semantic(embedding, records)
    """

    def __init__(
        self,
        threshold: float = 0.90,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ) -> None:
        if not 0.0 <= threshold <= 1.0:
            raise ValueError("threshold must be within [0, 1]")
        self.threshold = threshold
        self.logger = logger or get_logger(__name__)

    def find_exact(
        self, content: str, records: Iterable[MemoryRecord]
    ) -> Optional[DuplicateMatch]:
        """Case-insensitive, whitespace-trimmed exact content match."""
        key = normalize_content(content)
        for record in records:
            if normalize_content(record.content) == key:
                self.logger.debug("Exact duplicate found", record_id=record.id)
                return DuplicateMatch(record=record, similarity=1.0, reason=MatchReason.EXACT)
        return None

    def find_semantic(
        self, embedding: Sequence[float], records: Iterable[MemoryRecord]
    ) -> Optional[DuplicateMatch]:
        """Most similar record at or above the threshold.

        Raises:
            DimensionMismatchError: If a stored embedding differs in length
        """
        best: Optional[DuplicateMatch] = None
        for record in records:
            similarity = cosine_similarity(embedding, record.embedding)
            if similarity < self.threshold:
                continue
            if best is None or similarity > best.similarity:
                best = DuplicateMatch(
                    record=record, similarity=similarity, reason=MatchReason.SEMANTIC
                )

        if best is not None:
            self.logger.debug(
                "Semantic duplicate found",
                record_id=best.record.id,
                similarity=round(best.similarity, 4),
            )
        return best

    def check(
        self,
        content: str,
        embedding: Sequence[float],
        records: Sequence[MemoryRecord],
    ) -> Optional[DuplicateMatch]:
        """Run both gates in order."""
        return self.find_exact(content, records) or self.find_semantic(embedding, records)
