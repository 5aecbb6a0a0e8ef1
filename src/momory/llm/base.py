"""Collaborator interfaces for embedding and text generation."""

from typing import Protocol, runtime_checkable

from momory.errors import EmbeddingError, GenerationError


@runtime_checkable
class Embedder(Protocol):
    """Turns text into a fixed-dimension vector."""

    async def embed(self, text: str) -> list[float]:
        """Embed text.

        Raises:
            EmbeddingError: On provider failure
        """
        ...


@runtime_checkable
class TextGenerator(Protocol):
    """Produces text for a prompt."""

    async def generate(self, prompt: str) -> str:
        """Generate a completion.

        Raises:
            GenerationError: On provider failure
        """
        ...


async def embed_text(embedder: Embedder, text: str) -> list[float]:
    """Call the embedder once, normalising any failure to ``EmbeddingError``.

    No retry happens here; retry policy belongs to the embedder.
    """
    try:
        vector = await embedder.embed(text)
    except EmbeddingError:
        raise
    except Exception as e:
        raise EmbeddingError(f"Embedding failed: {e}") from e

    if not vector:
        raise EmbeddingError("Embedding provider returned an empty vector")
    return [float(x) for x in vector]


async def generate_text(generator: TextGenerator, prompt: str) -> str:
    """Call the generator once, normalising any failure to ``GenerationError``."""
    try:
        return await generator.generate(prompt)
    except GenerationError:
        raise
    except Exception as e:
        raise GenerationError(f"Generation failed: {e}") from e
