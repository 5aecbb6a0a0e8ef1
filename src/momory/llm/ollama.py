"""Ollama embedding and generation collaborators over HTTP."""

import os
from typing import Any, Optional

import httpx

from momory.config.schemas import LLMConfig
from momory.errors import EmbeddingError, GenerationError
from momory.telemetry.logger import get_logger

logger = get_logger(__name__)


class _OllamaBase:
    """Shared HTTP client handling."""

    def __init__(
        self,
        model: str,
        base_url: Optional[str] = None,
        timeout: float = 120.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize the client.

        Args:
            model: Model to use
            base_url: Ollama server URL. Uses OLLAMA_HOST env var or defaults to localhost.
            timeout: Request timeout in seconds
            client: Preconfigured HTTP client (its base URL must point at Ollama)
        """
        self._model = model
        self._base_url = (
            base_url
            or os.environ.get("OLLAMA_HOST")
            or "http://localhost:11434"
        ).rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
        )

    @property
    def model(self) -> str:
        return self._model

    async def is_available(self) -> bool:
        """Check if Ollama server is available."""
        try:
            response = await self._client.get("/api/tags")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    async def close(self) -> None:
        """Close the HTTP client if this object created it."""
        if self._owns_client:
            await self._client.aclose()

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        response = await self._client.post(path, json=payload)
        response.raise_for_status()
        return response.json()


class OllamaEmbedder(_OllamaBase):
    """Embedding collaborator backed by ``POST /api/embeddings``.

    Example:
        embedder = OllamaEmbedder(model="nomic-embed-text")
        vector = await embedder.embed("User prefers Python")
    """

    def __init__(
        self,
        model: str = "nomic-embed-text",
        base_url: Optional[str] = None,
        timeout: float = 120.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(model, base_url, timeout, client)
        logger.info("Ollama embedder initialized", model=model, base_url=self._base_url)

    @classmethod
    def from_config(cls, config: LLMConfig) -> "OllamaEmbedder":
        return cls(
            model=config.embedding_model,
            base_url=config.base_url,
            timeout=config.timeout_seconds,
        )

    async def embed(self, text: str) -> list[float]:
        """Embed text.

        Raises:
            EmbeddingError: On HTTP failure or a malformed response
        """
        try:
            data = await self._post("/api/embeddings", {"model": self._model, "prompt": text})
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Ollama embedding error", model=self._model, error=str(e))
            raise EmbeddingError(f"Ollama embedding request failed: {e}") from e

        embedding = data.get("embedding")
        if not isinstance(embedding, list) or not embedding:
            raise EmbeddingError("Ollama returned no embedding")
        return [float(x) for x in embedding]


class OllamaGenerator(_OllamaBase):
    """Generation collaborator backed by ``POST /api/generate``.

    Example:
        generator = OllamaGenerator(model="llama3.2")
        text = await generator.generate("Summarize: ...")
    """

    def __init__(
        self,
        model: str = "llama3.2",
        base_url: Optional[str] = None,
        timeout: float = 120.0,
        client: Optional[httpx.AsyncClient] = None,
        temperature: float = 0.2,
        keep_alive: str = "5m",
    ) -> None:
        super().__init__(model, base_url, timeout, client)
        self._temperature = temperature
        self._keep_alive = keep_alive
        logger.info("Ollama generator initialized", model=model, base_url=self._base_url)

    @classmethod
    def from_config(cls, config: LLMConfig) -> "OllamaGenerator":
        return cls(
            model=config.model,
            base_url=config.base_url,
            timeout=config.timeout_seconds,
        )

    async def generate(self, prompt: str) -> str:
        """Generate a completion.

        Raises:
            GenerationError: On HTTP failure or a malformed response
        """
        payload: dict[str, Any] = {
            "model": self._model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": self._temperature},
            "keep_alive": self._keep_alive,
        }

        logger.debug("Invoking Ollama generate", model=self._model, prompt_length=len(prompt))

        try:
            data = await self._post("/api/generate", payload)
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Ollama API error", model=self._model, error=str(e))
            raise GenerationError(f"Ollama generate request failed: {e}") from e

        text = data.get("response")
        if not isinstance(text, str):
            raise GenerationError("Ollama returned no response text")
        return text
