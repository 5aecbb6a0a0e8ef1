"""Pytest configuration and fixtures."""

import re
import zlib
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Generator, Optional

import pytest

from momory.config.schemas import MomoryConfig
from momory.memory.rowstore import SQLiteRowStore
from momory.memory.store import MemoryStore

EMBEDDING_DIM = 1024

STOPWORDS = {
    "a", "an", "and", "are", "be", "do", "does", "for", "i", "in", "is", "it",
    "me", "my", "of", "on", "that", "the", "this", "to", "was", "what", "with",
}

# Words mapped onto a shared concept so paraphrases embed close together
CONCEPTS = {
    "language": "programming",
    "languages": "programming",
    "python": "programming",
    "like": "preference",
    "likes": "preference",
    "prefer": "preference",
    "prefers": "preference",
    "work": "task",
    "tasks": "task",
}


class FakeEmbedder:
    """Deterministic bag-of-concepts embedder.

    Each non-stopword token is mapped to a concept and hashed into one
    dimension, so texts sharing concepts have high cosine similarity.
    """

    def __init__(self, dimension: int = EMBEDDING_DIM) -> None:
        self.dimension = dimension
        self.calls: list[str] = []
        self.fail = False
        self.fail_after: Optional[int] = None

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail:
            raise RuntimeError("embedding service unavailable")
        if self.fail_after is not None and len(self.calls) > self.fail_after:
            raise RuntimeError("embedding service unavailable")
        return embed_concepts(text, self.dimension)


def embed_concepts(text: str, dimension: int = EMBEDDING_DIM) -> list[float]:
    vector = [0.0] * dimension
    for token in re.findall(r"[a-z0-9]+", text.lower()):
        if token in STOPWORDS:
            continue
        concept = CONCEPTS.get(token, token)
        vector[zlib.crc32(concept.encode()) % dimension] += 1.0
    return vector


class ScriptedGenerator:
    """Generator that returns queued responses, then a default."""

    def __init__(self, default: str = "OK") -> None:
        self.default = default
        self.responses: list[str] = []
        self.prompts: list[str] = []
        self.fail = False

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.fail:
            raise RuntimeError("generation service unavailable")
        if self.responses:
            return self.responses.pop(0)
        return self.default


class FakeClock:
    """Controllable replacement for ``datetime.now``."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, 12, 0, 0)) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def test_config() -> MomoryConfig:
    """Create a test configuration."""
    return MomoryConfig()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def generator() -> ScriptedGenerator:
    return ScriptedGenerator()


@pytest.fixture
def rows(tmp_path: Path) -> Generator[SQLiteRowStore, None, None]:
    """Create a fresh SQLite row store in a temp directory."""
    row_store = SQLiteRowStore(tmp_path / "memory.db")
    yield row_store
    row_store.close()


@pytest.fixture
def store(rows: SQLiteRowStore, embedder: FakeEmbedder, clock: FakeClock) -> MemoryStore:
    return MemoryStore(rows, embedder, clock=clock)


@pytest.fixture
def make_summary_text() -> Callable[[int], str]:
    """Build multi-paragraph summary text of roughly ``paragraphs * 120`` chars."""

    def build(paragraphs: int) -> str:
        return "\n\n".join(
            f"Topic {i}: the user discussed project milestone {i} and agreed on "
            f"follow-up actions. Decisions were recorded for review later."
            for i in range(paragraphs)
        )

    return build
