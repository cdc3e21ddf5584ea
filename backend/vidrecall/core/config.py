"""
Configuration management using Pydantic Settings.
All environment variables are loaded and validated here.
"""

from typing import Literal, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ================================
    # Application Configuration
    # ================================
    APP_NAME: str = "VidRecall"
    APP_ENV: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = True

    # ================================
    # Database Configuration
    # ================================
    DATABASE_URL: Optional[str] = Field(
        default=None,
        description="PostgreSQL connection string (postgresql+asyncpg://...)"
    )
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10

    # ================================
    # Embedding Configuration
    # ================================
    # An empty model name means the embedding provider is not configured
    EMBEDDING_MODEL: str = "sentence-transformers/all-MiniLM-L6-v2"
    EMBEDDING_DIMENSION: int = 384
    EMBEDDING_DEVICE: Literal["cpu", "cuda", "mps"] = "cpu"
    EMBEDDING_MAX_BATCH_SIZE: int = Field(default=20, ge=1)

    # ================================
    # Answer Generation (Anthropic Claude)
    # ================================
    ANTHROPIC_API_KEY: Optional[str] = None
    ANTHROPIC_MODEL: str = "claude-3-5-haiku-20241022"
    ANTHROPIC_MAX_TOKENS: int = 800
    ANTHROPIC_TEMPERATURE: float = 0.7

    # ================================
    # Chunking Configuration
    # ================================
    CHUNK_MAX_CHARACTERS: int = 512
    CHUNK_OVERLAP_WORDS: int = 50

    # ================================
    # Search Configuration
    # ================================
    SEARCH_SIMILARITY_THRESHOLD: float = 0.5
    SEARCH_CANDIDATE_LIMIT: int = 100  # rows fetched before in-process scoring
    SEARCH_DEFAULT_LIMIT: int = 10
    SEARCH_MAX_LIMIT: int = 100
    VECTOR_STORE_BACKEND: Literal["scan", "pgvector"] = "scan"

    # ================================
    # Q&A Configuration
    # ================================
    QA_CITATION_RESULTS: int = 5
    QA_SOURCE_MAX_CHARACTERS: int = 14000
    QA_MAX_CONTEXT_TOKENS: int = 3000

    # ================================
    # Logging Configuration
    # ================================
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: Literal["json", "text"] = "json"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.APP_ENV == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.APP_ENV == "production"


# Global settings instance
settings = Settings()
