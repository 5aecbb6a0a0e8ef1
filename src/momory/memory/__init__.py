"""Memory retrieval and lifecycle.

Components:
    - schemas: Memory record, summary and chunk types
    - vector: Cosine similarity
    - rowstore: Row-store interface and SQLite backend
    - store: Persistent CRUD for records, summaries and chunks
    - chunker: Gap-free splitting of summary text
    - dedup: Exact and semantic duplicate detection
    - retrieval: Top-K similarity ranking
    - lifecycle: Decay, summarization and pruning
    - context: Budgeted prompt assembly
    - extraction: Memory candidates from an exchange
    - session: Recent conversation turns
    - manager: Unified memory interface
"""

from momory.memory.chunker import ChunkOptions, TextChunk, chunk_text
from momory.memory.context import AssembledContext, ContextAssembler, estimate_tokens
from momory.memory.dedup import Deduplicator, DuplicateMatch, MatchReason
from momory.memory.extraction import MemoryExtractor, parse_extraction_response
from momory.memory.lifecycle import LifecycleManager, MaintenanceReport, decay_record
from momory.memory.manager import MemoryManager
from momory.memory.retrieval import MemoryRetriever, rank_chunks, rank_memories
from momory.memory.rowstore import RowStore, SQLiteRowStore
from momory.memory.schemas import (
    ConversationTurn,
    MemoryCandidate,
    MemoryRecord,
    MemoryType,
    RetrievedContext,
    ScoredChunk,
    ScoredMemory,
    SummaryChunk,
    SummaryRecord,
    TimeWindow,
)
from momory.memory.session import SessionConfig, SessionStore
from momory.memory.store import MemoryStore
from momory.memory.vector import cosine_similarity

__all__ = [
    # Manager
    "MemoryManager",
    # Schemas
    "MemoryType",
    "TimeWindow",
    "MemoryCandidate",
    "MemoryRecord",
    "SummaryRecord",
    "SummaryChunk",
    "ConversationTurn",
    "ScoredMemory",
    "ScoredChunk",
    "RetrievedContext",
    # Storage
    "RowStore",
    "SQLiteRowStore",
    "MemoryStore",
    # Processing
    "cosine_similarity",
    "ChunkOptions",
    "TextChunk",
    "chunk_text",
    "Deduplicator",
    "DuplicateMatch",
    "MatchReason",
    "MemoryRetriever",
    "rank_memories",
    "rank_chunks",
    "LifecycleManager",
    "MaintenanceReport",
    "decay_record",
    "ContextAssembler",
    "AssembledContext",
    "estimate_tokens",
    "MemoryExtractor",
    "parse_extraction_response",
    # Session
    "SessionStore",
    "SessionConfig",
]
