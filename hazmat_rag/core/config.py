"""Configuration management for the hazmat retrieval core."""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="HAZMAT_RAG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Hybrid fusion
    semantic_weight: float = Field(default=0.7, ge=0.0)
    keyword_weight: float = Field(default=0.3, ge=0.0)

    # BM25 scores are unbounded; divide by this empirical constant before clamping to 1
    keyword_score_normalizer: float = Field(default=10.0, gt=0.0)
    bm25_k1: float = Field(default=1.2, gt=0.0)
    bm25_b: float = Field(default=0.75, ge=0.0, le=1.0)

    # Search Configuration
    search_limit: int = Field(default=10, gt=0)
    min_score: float = Field(default=0.2, ge=0.0)

    # Windowing Configuration (word counts)
    window_size: int = Field(default=512, gt=0)
    window_overlap: int = Field(default=128, ge=0)
    max_windows: int = Field(default=10, gt=0)
    context_window_words: int = Field(default=256, gt=0)
    min_merge_overlap: int = Field(default=20, gt=0)

    # Reranker Configuration
    rerank_top_k: int = Field(default=10, gt=0)
    rerank_threshold: float = Field(default=0.3, ge=0.0)
    reranker_blend: float = Field(default=0.6, ge=0.0, le=1.0)
    learning_rate: float = Field(default=0.1, ge=0.0)

    # Interval correction
    interval_weight: float = Field(default=0.35)
    numeric_weight: float = Field(default=0.15)

    # Context assembly
    max_context_tokens: int = Field(default=4000, gt=0)

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)


# Global settings instance
settings = Settings()
