"""Tests for memory extraction."""

import json

import pytest

from momory.errors import ErrorKind
from momory.memory.extraction import MemoryExtractor, parse_extraction_response
from momory.memory.schemas import MemoryType


def payload(*memories: dict) -> str:
    return json.dumps({"memories": list(memories), "reasoning": "kept the durable facts"})


class TestParseExtractionResponse:
    """Tests for response parsing."""

    def test_plain_json(self) -> None:
        candidates = parse_extraction_response(
            payload({"type": "fact", "content": "Project deadline is March 15", "tags": ["work"]})
        )

        assert len(candidates) == 1
        assert candidates[0].type == MemoryType.FACT
        assert candidates[0].tags == ["work"]
        assert candidates[0].confidence == 1.0

    def test_fenced_json(self) -> None:
        content = "```json\n" + payload({"type": "decision", "content": "Use SQLite"}) + "\n```"

        candidates = parse_extraction_response(content)

        assert [c.content for c in candidates] == ["Use SQLite"]

    def test_json_wrapped_in_prose(self) -> None:
        content = (
            "Here are the memories I found:\n"
            + payload({"type": "preference", "content": "User prefers dark mode"})
            + "\nLet me know if you need more."
        )

        candidates = parse_extraction_response(content)

        assert candidates[0].type == MemoryType.PREFERENCE

    def test_invalid_items_skipped(self) -> None:
        content = payload(
            {"type": "fact", "content": "Valid statement"},
            {"type": "rumour", "content": "Unknown type"},
            {"type": "fact", "content": "   "},
            {"type": "fact", "content": "Bad confidence", "confidence": 3},
            "not an object",
        )

        candidates = parse_extraction_response(content)

        assert [c.content for c in candidates] == ["Valid statement"]

    @pytest.mark.parametrize(
        "content",
        ["", "no json here", "[1, 2, 3]", '{"memories": "nope"}', "{broken"],
    )
    def test_unparseable_yields_nothing(self, content: str) -> None:
        assert parse_extraction_response(content) == []

    def test_empty_memories_list(self) -> None:
        assert parse_extraction_response(payload()) == []


class TestMemoryExtractor:
    """Tests for MemoryExtractor."""

    @pytest.mark.asyncio
    async def test_prompt_contains_exchange(self, generator) -> None:
        generator.responses = [payload({"type": "fact", "content": "Deadline is March 15"})]

        result = await MemoryExtractor(generator).extract("When is it due?", "March 15.")

        assert result.ok
        assert result.value[0].content == "Deadline is March 15"
        assert "USER INPUT: When is it due?" in generator.prompts[0]
        assert "ASSISTANT RESPONSE: March 15." in generator.prompts[0]

    @pytest.mark.asyncio
    async def test_garbage_response_is_empty_success(self, generator) -> None:
        generator.responses = ["I could not find anything."]

        result = await MemoryExtractor(generator).extract("hi", "hello")

        assert result.ok
        assert result.value == []

    @pytest.mark.asyncio
    async def test_generator_failure(self, generator) -> None:
        generator.fail = True

        result = await MemoryExtractor(generator).extract("hi", "hello")

        assert not result.ok
        assert result.kind == ErrorKind.GENERATION
