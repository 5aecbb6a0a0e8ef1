"""Assemble retrieved memories and recent turns into one budgeted prompt block.

Token counts are estimated as ``ceil(characters / chars_per_token)``; no
tokenizer is involved. A block is within budget exactly when its length is at
most ``budget_tokens * chars_per_token`` characters, so the assembler works in
characters throughout.
"""

import math
from dataclasses import dataclass, field
from typing import Optional, Sequence

import structlog

from momory.memory.prompts import (
    NO_MEMORIES,
    SECTION_SEPARATOR,
    SYSTEM_PROMPT,
    format_conversation_history,
    format_memories,
    format_query,
    format_summary_chunks,
)
from momory.memory.schemas import ConversationTurn, RetrievedContext
from momory.telemetry.logger import get_logger

TRUNCATION_MARKER = "[... {count} characters truncated ...]"

# Lowest priority first
TRUNCATION_ORDER = ("conversation", "summary_chunks", "memories")


def estimate_tokens(text: str, chars_per_token: int = 4) -> int:
    """Length-based token estimate."""
    return math.ceil(len(text) / chars_per_token)


def truncate_middle(text: str, max_chars: int, head_ratio: float = 0.7) -> str:
    """Cut characters from the middle of ``text`` so it fits ``max_chars``.

    The removed span is replaced with a marker stating how many characters
    were dropped. The result is never longer than ``max_chars``.
    """
    if len(text) <= max_chars:
        return text
    if max_chars <= 0:
        return ""

    # Marker length is bounded by the one for removing the whole text
    reserved = len(_marker(len(text)))
    keep = max_chars - reserved
    if keep <= 0:
        return _marker(len(text)).strip()[:max_chars]

    head = int(keep * head_ratio)
    tail = keep - head
    return text[:head] + _marker(len(text) - keep) + text[len(text) - tail:]


def _marker(count: int) -> str:
    return "\n" + TRUNCATION_MARKER.format(count=count) + "\n"


@dataclass
class AssembledContext:
    """Output of the assembler.

    Attributes:
        text: The prompt block handed to the generation layer
        estimated_tokens: Token estimate of ``text``
        truncated: Sections that were cut, in the order they were cut
    """

    text: str
    estimated_tokens: int
    truncated: list[str] = field(default_factory=list)


class ContextAssembler:
    """Merges a retrieval result and recent turns under a token budget.

    Section order is fixed: system framing, memories, summary chunks,
    recent conversation, current query. Over budget, the conversation is cut
    from the middle first, then summary chunks, then memories. The system
    framing and the query are only touched by the final whole-block cut.

    Example:
        assembler = ContextAssembler(budget_tokens=8192)
        context = assembler.assemble("what do I like?", retrieved, turns)
        response = await generator.generate(context.text)
    """

    def __init__(
        self,
        budget_tokens: int = 8192,
        chars_per_token: int = 4,
        max_turns: Optional[int] = None,
        system_prompt: str = SYSTEM_PROMPT,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ) -> None:
        if budget_tokens <= 0:
            raise ValueError("budget_tokens must be positive")
        if chars_per_token <= 0:
            raise ValueError("chars_per_token must be positive")
        self.budget_tokens = budget_tokens
        self.chars_per_token = chars_per_token
        self.max_turns = max_turns
        self.system_prompt = system_prompt
        self.logger = logger or get_logger(__name__)

    @property
    def max_chars(self) -> int:
        return self.budget_tokens * self.chars_per_token

    def estimate_tokens(self, text: str) -> int:
        return estimate_tokens(text, self.chars_per_token)

    def assemble(
        self,
        query: str,
        retrieved: Optional[RetrievedContext] = None,
        turns: Sequence[ConversationTurn] = (),
    ) -> AssembledContext:
        """Build the prompt block for one query.

        Args:
            query: Current user message
            retrieved: Retrieval result (``None`` is treated as empty)
            turns: Recent turns, oldest first

        Returns:
            Assembled context whose estimated size is within budget
        """
        retrieved = retrieved or RetrievedContext()
        if self.max_turns is not None:
            turns = list(turns)[-self.max_turns:] if self.max_turns > 0 else []

        sections: dict[str, str] = {
            "system": self.system_prompt,
            "memories": format_memories(retrieved.memories),
            "summary_chunks": format_summary_chunks(retrieved.summary_chunks),
            "conversation": format_conversation_history(turns),
            "query": format_query(query),
        }
        if retrieved.is_empty:
            sections["memories"] = NO_MEMORIES

        truncated: list[str] = []
        text = self._join(sections)

        for name in TRUNCATION_ORDER:
            if len(text) <= self.max_chars:
                break
            if not sections[name]:
                continue
            section = sections[name]
            allowed = len(section) - (len(text) - self.max_chars)
            # A section is never cut below its own marker
            floor = len(_marker(len(section)).strip())
            shortened = truncate_middle(section, max(allowed, floor))
            if shortened != section:
                sections[name] = shortened
                truncated.append(name)
                text = self._join(sections)

        if len(text) > self.max_chars:
            text = truncate_middle(text, self.max_chars)
            truncated.append("all")

        if truncated:
            self.logger.info(
                "Context truncated to fit budget",
                sections=truncated,
                budget_tokens=self.budget_tokens,
            )

        return AssembledContext(
            text=text,
            estimated_tokens=self.estimate_tokens(text),
            truncated=truncated,
        )

    def build(
        self,
        query: str,
        retrieved: Optional[RetrievedContext] = None,
        turns: Sequence[ConversationTurn] = (),
    ) -> str:
        """Assemble and return only the prompt text."""
        return self.assemble(query, retrieved, turns).text

    @staticmethod
    def _join(sections: dict[str, str]) -> str:
        return SECTION_SEPARATOR.join(s for s in sections.values() if s)
