"""Memory record schemas and types."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


def to_timestamp(value: datetime) -> str:
    """Serialize a datetime so that lexical order matches time order."""
    return value.isoformat(timespec="microseconds")


def from_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value)


class MemoryType(str, Enum):
    """Kinds of memory record."""

    FACT = "fact"
    DECISION = "decision"
    PREFERENCE = "preference"
    OBSERVATION = "observation"


class TimeWindow(str, Enum):
    """Span covered by a summary."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class MemoryCandidate(BaseModel):
    """A memory proposed by extraction, not yet deduplicated or stored."""

    type: MemoryType = Field(description="Memory kind")
    content: str = Field(min_length=1, description="Single, clear statement")
    confidence: float = Field(default=1.0, ge=0.0, le=1.0, description="Extraction confidence")
    tags: list[str] = Field(default_factory=list, description="Free-form labels")

    @field_validator("content")
    @classmethod
    def strip_content(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("content must not be blank")
        return v

    @field_validator("tags")
    @classmethod
    def unique_tags(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(v))


@dataclass
class MemoryRecord:
    """An atomic unit of persisted knowledge.

    Attributes:
        id: Unique identifier, immutable
        type: Memory kind, fixed at creation
        content: Natural-language statement, never edited in place
        embedding: Vector computed once from content
        created_at: Creation timestamp
        last_accessed_at: Last time retrieval surfaced this record
        access_count: Number of times retrieval surfaced this record
        relevance_score: Value in [0, 1], reduced by decay
        tags: Free-form labels
        source: Provenance (conversation id or import tag)
        decayed_at: Time up to which decay has been applied
        summary_id: Summary that represents this record, if any
    """

    id: str
    type: MemoryType
    content: str
    embedding: list[float]
    created_at: datetime
    last_accessed_at: datetime
    access_count: int = 0
    relevance_score: float = 1.0
    tags: list[str] = field(default_factory=list)
    source: str = "conversation"
    decayed_at: Optional[datetime] = None
    summary_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.decayed_at is None:
            self.decayed_at = self.created_at

    @property
    def is_summarized(self) -> bool:
        return self.summary_id is not None

    def to_row(self) -> dict[str, Any]:
        """Convert to a ``memories`` table row."""
        return {
            "id": self.id,
            "type": self.type.value,
            "content": self.content,
            "embedding": json.dumps(self.embedding),
            "created_at": to_timestamp(self.created_at),
            "last_accessed": to_timestamp(self.last_accessed_at),
            "access_count": self.access_count,
            "relevance_score": self.relevance_score,
            "tags": json.dumps(self.tags),
            "source": self.source,
            "decayed_at": to_timestamp(self.decayed_at or self.created_at),
            "summary_id": self.summary_id,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "MemoryRecord":
        """Create from a ``memories`` table row."""
        return cls(
            id=row["id"],
            type=MemoryType(row["type"]),
            content=row["content"],
            embedding=json.loads(row["embedding"]),
            created_at=from_timestamp(row["created_at"]),
            last_accessed_at=from_timestamp(row["last_accessed"]),
            access_count=row["access_count"],
            relevance_score=row["relevance_score"],
            tags=json.loads(row["tags"]),
            source=row["source"],
            decayed_at=from_timestamp(row["decayed_at"]),
            summary_id=row["summary_id"],
        )


@dataclass
class SummaryRecord:
    """Metadata for a compressed time window.

    The summary text itself lives only in its chunks.

    Attributes:
        id: Unique identifier
        time_window: daily, weekly or monthly
        start_date: Inclusive start of the covered interval
        end_date: Exclusive end of the covered interval
        source_record_count: Number of records compressed
        created_at: Creation timestamp
    """

    id: str
    time_window: TimeWindow
    start_date: datetime
    end_date: datetime
    source_record_count: int
    created_at: datetime

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "time_window": self.time_window.value,
            "start_date": to_timestamp(self.start_date),
            "end_date": to_timestamp(self.end_date),
            "memory_count": self.source_record_count,
            "created_at": to_timestamp(self.created_at),
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "SummaryRecord":
        return cls(
            id=row["id"],
            time_window=TimeWindow(row["time_window"]),
            start_date=from_timestamp(row["start_date"]),
            end_date=from_timestamp(row["end_date"]),
            source_record_count=row["memory_count"],
            created_at=from_timestamp(row["created_at"]),
        )


@dataclass
class SummaryChunk:
    """A retrievable slice of a summary's text.

    Offsets are for provenance only; chunks are never reassembled.
    """

    id: str
    summary_id: str
    content: str
    embedding: list[float]
    start_offset: int
    end_offset: int
    created_at: datetime

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "summary_id": self.summary_id,
            "content": self.content,
            "embedding": json.dumps(self.embedding),
            "start_offset": self.start_offset,
            "end_offset": self.end_offset,
            "created_at": to_timestamp(self.created_at),
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "SummaryChunk":
        return cls(
            id=row["id"],
            summary_id=row["summary_id"],
            content=row["content"],
            embedding=json.loads(row["embedding"]),
            start_offset=row["start_offset"],
            end_offset=row["end_offset"],
            created_at=from_timestamp(row["created_at"]),
        )


@dataclass
class ConversationTurn:
    """A single conversation turn.

    Attributes:
        role: "user" or "assistant"
        content: Turn text
        timestamp: When the turn occurred
    """

    role: str
    content: str
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class ScoredMemory:
    """A memory record ranked against a query."""

    record: MemoryRecord
    similarity: float


@dataclass
class ScoredChunk:
    """A summary chunk ranked against a query."""

    chunk: SummaryChunk
    similarity: float


@dataclass
class RetrievedContext:
    """Top-ranked memories and summary chunks for one query."""

    memories: list[ScoredMemory] = field(default_factory=list)
    summary_chunks: list[ScoredChunk] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.memories and not self.summary_chunks
