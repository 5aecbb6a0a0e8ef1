"""Error taxonomy and explicit outcome types.

Leaf primitives and collaborators raise the exceptions defined here. Core
operations catch them at their boundary and hand back a ``Result`` (or a
``SaveOutcome`` for candidate ingestion) so callers decide per call whether a
failure is recoverable.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Generic, Optional, TypeVar

if TYPE_CHECKING:
    from momory.memory.schemas import MemoryRecord

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Kinds of failure a core operation can report."""

    EMBEDDING = "embedding"
    GENERATION = "generation"
    PERSISTENCE = "persistence"
    DIMENSION_MISMATCH = "dimension_mismatch"
    CANCELLED = "cancelled"


class MomoryError(Exception):
    """Base class for memory engine errors."""

    kind: ErrorKind = ErrorKind.PERSISTENCE


class EmbeddingError(MomoryError):
    """The embedding collaborator failed to vectorize text."""

    kind = ErrorKind.EMBEDDING


class GenerationError(MomoryError):
    """The generation collaborator failed to produce text."""

    kind = ErrorKind.GENERATION


class PersistenceError(MomoryError):
    """A row-store read or write failed."""

    kind = ErrorKind.PERSISTENCE


class DimensionMismatchError(MomoryError, ValueError):
    """Two vectors of unequal length were compared."""

    kind = ErrorKind.DIMENSION_MISMATCH

    def __init__(self, left: int, right: int) -> None:
        super().__init__(f"Vector dimensions differ: {left} != {right}")
        self.left = left
        self.right = right


class MaintenanceCancelled(MomoryError):
    """A maintenance pass was stopped between records."""

    kind = ErrorKind.CANCELLED


@dataclass
class Result(Generic[T]):
    """Success-with-value or failure-with-error.

    Attributes:
        ok: Whether the operation succeeded
        value: The value if successful
        error: The error if failed
    """

    ok: bool
    value: Optional[T] = None
    error: Optional[MomoryError] = None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        """Create a successful result."""
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: MomoryError) -> "Result[T]":
        """Create a failed result."""
        return cls(ok=False, error=error)

    @property
    def kind(self) -> Optional[ErrorKind]:
        """Error kind of a failed result."""
        return self.error.kind if self.error else None

    def unwrap(self) -> T:
        """Return the value or raise the carried error.

        Raises:
            ValueError: If a failed result carries no error
        """
        if not self.ok:
            if self.error is None:
                raise ValueError("Failed result carries no error")
            raise self.error
        return self.value  # type: ignore[return-value]


class SaveStatus(str, Enum):
    """Outcome of ingesting a memory candidate."""

    SAVED = "saved"
    DUPLICATE = "duplicate"
    FAILED = "failed"


@dataclass
class SaveOutcome:
    """Three-way outcome of ``remember``.

    A duplicate is an expected result, not a fault: it carries the record it
    matched instead of an error.

    Attributes:
        status: Saved, duplicate or failed
        record: The persisted record (saved) or the matched record (duplicate)
        similarity: Similarity to the matched record (duplicate only)
        match_reason: "exact" or "semantic" (duplicate only)
        error: The failure (failed only)
    """

    status: SaveStatus
    record: Optional["MemoryRecord"] = None
    similarity: Optional[float] = None
    match_reason: Optional[str] = None
    error: Optional[MomoryError] = None

    @classmethod
    def saved(cls, record: "MemoryRecord") -> "SaveOutcome":
        return cls(status=SaveStatus.SAVED, record=record)

    @classmethod
    def duplicate(
        cls, record: "MemoryRecord", similarity: float, match_reason: str
    ) -> "SaveOutcome":
        return cls(
            status=SaveStatus.DUPLICATE,
            record=record,
            similarity=similarity,
            match_reason=match_reason,
        )

    @classmethod
    def failed(cls, error: MomoryError) -> "SaveOutcome":
        return cls(status=SaveStatus.FAILED, error=error)

    @property
    def kind(self) -> Optional[ErrorKind]:
        """Error kind of a failed outcome."""
        return self.error.kind if self.error else None
