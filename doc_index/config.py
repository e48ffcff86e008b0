"""
Configuration settings.

Values come from ``DOC_INDEX_*`` environment variables or a local ``.env``
file, falling back to the defaults below.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .schemas import DEFAULT_MODEL


class Settings(BaseSettings):
    """Runtime configuration for embedding generation and search."""

    model_config = SettingsConfigDict(
        env_prefix="DOC_INDEX_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    data_path: Path = Field(
        default_factory=lambda: Path.home() / ".doc_index",
        description="Root directory for chunk files, the database and logs",
    )
    database_url: Optional[str] = Field(
        default=None,
        description="SQLAlchemy URL; defaults to a SQLite file under data_path",
    )
    default_embedding_model: str = Field(default=DEFAULT_MODEL, description="Embedding model name")
    embedding_dimension: int = Field(default=384, gt=0, description="Vector dimension of the model")
    ollama_base_url: str = Field(default="http://localhost:11434", description="Ollama server URL")

    batch_size: int = Field(default=10, gt=0, description="Chunks per processing batch")
    max_concurrency: int = Field(default=4, gt=0, description="Concurrent provider calls")
    chunk_timeout: float = Field(default=30.0, gt=0, description="Seconds allowed per chunk")
    embed_retries: int = Field(default=2, ge=0, description="Provider retries before giving up")
    top_k: int = Field(default=3, gt=0, description="Default number of search results")

    log_level: str = Field(default="INFO", description="Logging level")
    log_to_file: bool = Field(default=True, description="Also write logs under data_path/logs")

    @property
    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.data_path / 'doc_index.db'}"

    @property
    def log_dir(self) -> Path:
        return self.data_path / "logs"

    def chunks_dir(self, package: str) -> Path:
        """Directory holding the chunk files of a package."""
        return self.data_path / package / "chunks"


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
