"""Configuration schemas using Pydantic for validation."""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ThresholdConfig(BaseModel):
    """Similarity, count and age thresholds."""

    duplicate_similarity: float = Field(
        default=0.90,
        ge=0.0,
        le=1.0,
        description="Cosine similarity at or above which a candidate is a duplicate",
    )
    min_relevance: float = Field(
        default=0.65,
        ge=-1.0,
        le=1.0,
        description="Minimum cosine similarity for a retrieval hit",
    )
    summarize_count: int = Field(
        default=100,
        ge=0,
        description="Summarization runs once the store holds more records than this",
    )
    prune_floor: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Summarized records scoring below this are deleted",
    )
    decay_after_days: float = Field(
        default=7.0,
        ge=0.0,
        description="Days since last access before a record starts decaying",
    )
    retention_days: float = Field(
        default=30.0,
        ge=0.0,
        description="Records older than this are eligible for summarization",
    )


class BudgetConfig(BaseModel):
    """Size budgets for retrieval, context assembly and chunking."""

    top_k: int = Field(
        default=10,
        gt=0,
        description="Maximum memories and summary chunks returned by retrieval",
    )
    context_tokens: int = Field(
        default=8192,
        gt=0,
        description="Token budget of the assembled context block",
    )
    chars_per_token: int = Field(
        default=4,
        gt=0,
        description="Characters per token used by the size estimate",
    )
    recent_turns: int = Field(
        default=10,
        ge=0,
        description="Conversation turns included in the context block",
    )
    summarize_batch: int = Field(
        default=100,
        gt=0,
        description="Maximum records compressed into one summary",
    )
    chunk_target_chars: int = Field(
        default=800,
        gt=0,
        description="Target size of a summary chunk in characters",
    )
    chunk_boundary_chars: int = Field(
        default=200,
        ge=0,
        description="How far back from the target a chunk may end to hit a boundary",
    )


class RateConfig(BaseModel):
    """Decay and maintenance rates."""

    decay_rate: float = Field(
        default=0.05,
        ge=0.0,
        le=1.0,
        description="Fraction of relevance lost per decay period",
    )
    decay_period_days: float = Field(
        default=7.0,
        gt=0.0,
        description="Length of one decay period in days",
    )
    maintenance_every: int = Field(
        default=10,
        gt=0,
        description="Interactions between background maintenance runs",
    )


class StorageConfig(BaseModel):
    """Row store configuration."""

    db_path: Path = Field(
        default=Path("~/.momory/memory.db"),
        description="Path to the SQLite database",
    )


class LLMConfig(BaseModel):
    """Embedding and generation provider configuration."""

    base_url: str = Field(
        default="http://localhost:11434",
        description="Ollama server URL",
    )
    model: str = Field(
        default="llama3.2",
        description="Model used for generation",
    )
    embedding_model: str = Field(
        default="nomic-embed-text",
        description="Model used for embeddings",
    )
    timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Timeout for provider calls",
    )


class MomoryConfig(BaseModel):
    """Root configuration for the memory engine."""

    thresholds: ThresholdConfig = Field(
        default_factory=ThresholdConfig,
        description="Similarity, count and age thresholds",
    )
    budgets: BudgetConfig = Field(
        default_factory=BudgetConfig,
        description="Size budgets",
    )
    rates: RateConfig = Field(
        default_factory=RateConfig,
        description="Decay and maintenance rates",
    )
    storage: StorageConfig = Field(
        default_factory=StorageConfig,
        description="Row store configuration",
    )
    llm: LLMConfig = Field(
        default_factory=LLMConfig,
        description="Provider configuration",
    )
    log_level: str = Field(
        default="INFO",
        description="Global log level",
    )
    log_file: Optional[Path] = Field(
        default=None,
        description="Path to log file",
    )
    json_logs: bool = Field(
        default=True,
        description="Render logs as JSON",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()
