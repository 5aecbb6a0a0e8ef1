"""Memory extraction from a completed interaction."""

import json
import re
from typing import Any, Optional

import structlog
from pydantic import ValidationError

from momory.errors import GenerationError, Result
from momory.llm.base import TextGenerator, generate_text
from momory.memory.prompts import build_memory_extraction_prompt
from momory.memory.schemas import MemoryCandidate
from momory.telemetry.logger import get_logger

CODE_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


def parse_extraction_response(
    content: str,
    logger: Optional[structlog.stdlib.BoundLogger] = None,
) -> list[MemoryCandidate]:
    """Parse a ``{"memories": [...]}`` response into candidates.

    Tolerates markdown code fences and prose around the JSON object. Items
    that fail validation are skipped.

    Args:
        content: Raw generator output
        logger: Logger for skipped items

    Returns:
        Valid candidates, empty when the response cannot be parsed
    """
    log = logger or get_logger(__name__)
    data = _load_json_object(content)
    if data is None:
        log.warning("Extraction response is not valid JSON", response_length=len(content))
        return []

    items = data.get("memories")
    if not isinstance(items, list):
        log.warning("Extraction response missing 'memories' list")
        return []

    candidates = []
    for item in items:
        if not isinstance(item, dict):
            log.warning("Skipping invalid memory item", item=repr(item)[:200])
            continue
        try:
            candidates.append(MemoryCandidate.model_validate(item))
        except ValidationError as e:
            log.warning("Skipping invalid memory item", errors=e.error_count())

    if data.get("reasoning"):
        log.debug("Extraction reasoning", reasoning=str(data["reasoning"])[:500])
    return candidates


def _load_json_object(content: str) -> Optional[dict[str, Any]]:
    text = content.strip()
    fenced = CODE_FENCE.search(text)
    if fenced:
        text = fenced.group(1).strip()

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        # Fall back to the outermost braces
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            return None
        try:
            data = json.loads(text[start : end + 1])
        except json.JSONDecodeError:
            return None

    return data if isinstance(data, dict) else None


class MemoryExtractor:
    """Asks the generation collaborator which facts in an exchange are worth keeping.

    Example:
        extractor = MemoryExtractor(generator)
        result = await extractor.extract(user_message, assistant_response)
        for candidate in result.value or []:
            print(candidate.type, candidate.content)
    """

    def __init__(
        self,
        generator: TextGenerator,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ) -> None:
        self.generator = generator
        self.logger = logger or get_logger(__name__)

    async def extract(
        self, user_message: str, assistant_response: str
    ) -> Result[list[MemoryCandidate]]:
        """Extract memory candidates from one exchange.

        Args:
            user_message: What the user said
            assistant_response: What the assistant answered

        Returns:
            Result with candidates (possibly empty), or a generation failure
        """
        prompt = build_memory_extraction_prompt(user_message, assistant_response)
        try:
            response = await generate_text(self.generator, prompt)
        except GenerationError as e:
            self.logger.warning("Memory extraction failed", error=str(e))
            return Result.failure(e)

        candidates = parse_extraction_response(response, self.logger)
        self.logger.debug("Memories extracted", count=len(candidates))
        return Result.success(candidates)
