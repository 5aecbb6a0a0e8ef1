"""Split long text into contiguous, gap-free chunks for embedding."""

import re
from dataclasses import dataclass

PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
SENTENCE_END = re.compile(r"[.!?][\"')\]]*\s+")
WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class ChunkOptions:
    """Chunking configuration.

    Attributes:
        target_size: Maximum characters per chunk
        boundary_window: How far before the target a chunk may end when a
            paragraph, sentence or word boundary is found there
    """

    target_size: int = 800
    boundary_window: int = 200

    def __post_init__(self) -> None:
        if self.target_size <= 0:
            raise ValueError("target_size must be positive")
        if self.boundary_window < 0:
            raise ValueError("boundary_window must not be negative")


@dataclass(frozen=True)
class TextChunk:
    """A slice of the input text and its [start, end) offsets."""

    text: str
    start_offset: int
    end_offset: int


def chunk_text(text: str, options: ChunkOptions = ChunkOptions()) -> list[TextChunk]:
    """Split text into chunks that concatenate back to exactly ``text``.

    Each chunk ends at the last paragraph break inside the boundary window,
    else the last sentence end, else the last whitespace run, else exactly at
    the target size. Text no longer than the target yields a single chunk.

    Args:
        text: Text to split
        options: Chunking configuration

    Returns:
        Chunks ordered by offset; chunk i ends where chunk i+1 starts
    """
    chunks: list[TextChunk] = []
    position = 0

    while len(text) - position > options.target_size:
        cut = _find_cut(text, position, options)
        chunks.append(TextChunk(text[position:cut], position, cut))
        position = cut

    chunks.append(TextChunk(text[position:], position, len(text)))
    return chunks


def _find_cut(text: str, position: int, options: ChunkOptions) -> int:
    """Pick the end offset of the chunk starting at ``position``."""
    hard_end = position + options.target_size
    window_start = max(position + 1, hard_end - options.boundary_window)
    window = text[window_start:hard_end]

    for pattern in (PARAGRAPH_BREAK, SENTENCE_END, WHITESPACE):
        last = None
        for match in pattern.finditer(window):
            last = match
        if last is not None:
            # Break after the separator so the next chunk starts on content
            return window_start + last.end()

    return hard_end
