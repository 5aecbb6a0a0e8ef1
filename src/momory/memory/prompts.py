"""Prompt templates and section formatting."""

from typing import Sequence

from momory.memory.schemas import ConversationTurn, ScoredChunk, ScoredMemory

SECTION_SEPARATOR = "\n\n---\n\n"

NO_MEMORIES = "No relevant memories found."

# System framing placed first in every assembled context
SYSTEM_PROMPT = """You are Momory, an assistant with persistent external memory.

## Capabilities

- You remember facts, preferences, and decisions across sessions
- You receive only the memories relevant to the current message
- You reason with both retrieved context and current input

## Response Guidelines

1. Use retrieved memories naturally in your response
2. Acknowledge when you are recalling past information
3. If memories conflict, prefer recent over old
4. If no relevant memory exists, say so
5. Be concise and helpful"""


MEMORY_EXTRACTION_PROMPT = """Analyze the following interaction and extract structured memories.

USER INPUT: {user_message}
ASSISTANT RESPONSE: {assistant_response}

## Extraction Rules

1. Only extract objectively valuable information
2. Skip greetings, confirmations and trivial acknowledgments
3. Prefer atomic facts over long narratives
4. Tag each memory with a type: fact, decision, preference, observation

## Output Format (JSON)

{{
  "memories": [
    {{
      "type": "fact|decision|preference|observation",
      "content": "Single, clear statement",
      "confidence": 0.0-1.0,
      "tags": ["tag1", "tag2"]
    }}
  ],
  "reasoning": "Brief explanation of extraction decisions"
}}

## Examples

GOOD: "User prefers Python for data tasks"
BAD: "User said they like Python"
GOOD: "Project deadline is March 15, 2026"
BAD: "We talked about deadlines"

Respond with JSON only."""


SUMMARIZATION_PROMPT = """Summarize the following memories into a concise overview.

MEMORIES TO SUMMARIZE ({count} memories):
{memories}

## Summarization Rules

1. Organize by topic (programming, preferences, work, etc.)
2. Preserve all critical facts, dates, and decisions
3. Remove redundant information
4. Use clear, atomic statements
5. Separate topics with blank lines

Output only the summary text."""


def format_memories(memories: Sequence[ScoredMemory]) -> str:
    """Render ranked memories as a numbered section."""
    if not memories:
        return ""
    lines = [
        f"{i}. [{m.record.type.value}] {m.record.content} (relevance: {m.similarity:.2f})"
        for i, m in enumerate(memories, 1)
    ]
    return "RELEVANT MEMORIES:\n" + "\n".join(lines)


def format_summary_chunks(chunks: Sequence[ScoredChunk]) -> str:
    """Render ranked summary chunks as a numbered section."""
    if not chunks:
        return ""
    entries = [
        f"{i}. {c.chunk.content.strip()} (relevance: {c.similarity:.2f})"
        for i, c in enumerate(chunks, 1)
    ]
    return "HISTORICAL CONTEXT (Summaries):\n" + "\n\n".join(entries)


def format_conversation_history(turns: Sequence[ConversationTurn]) -> str:
    """Render turns as ``ROLE: content`` lines, oldest first."""
    if not turns:
        return ""
    formatted = "\n\n".join(f"{t.role.upper()}: {t.content}" for t in turns)
    return "RECENT CONVERSATION:\n" + formatted


def format_query(query: str) -> str:
    return f"USER: {query}"


def build_memory_extraction_prompt(user_message: str, assistant_response: str) -> str:
    """Build the prompt asking for memories worth keeping from one exchange."""
    return MEMORY_EXTRACTION_PROMPT.format(
        user_message=user_message,
        assistant_response=assistant_response,
    )


def build_summarization_prompt(contents: Sequence[str]) -> str:
    """Build the prompt that condenses a batch of memory contents.

    Args:
        contents: Memory contents, oldest first

    Returns:
        Prompt string
    """
    numbered = "\n".join(f"{i}. {c}" for i, c in enumerate(contents, 1))
    return SUMMARIZATION_PROMPT.format(count=len(contents), memories=numbered)
