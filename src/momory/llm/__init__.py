"""Embedding and generation collaborators."""

from momory.llm.base import Embedder, TextGenerator, embed_text, generate_text
from momory.llm.ollama import OllamaEmbedder, OllamaGenerator

__all__ = [
    "Embedder",
    "TextGenerator",
    "embed_text",
    "generate_text",
    "OllamaEmbedder",
    "OllamaGenerator",
]
