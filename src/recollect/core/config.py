"""
Configuration management.

Loads settings from environment variables and .env file.
Prefix: RECOLLECT_
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

EmbeddingProviderName = Literal["none", "openai", "voyage"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="RECOLLECT_",
        env_file=".env",
        env_file_encoding="utf-8",
        frozen=True,
    )

    # Identity
    agent_id: str = Field(default="default", description="Agent that owns all memories")

    # Storage
    data_dir: Path = Field(default=Path("data"), description="Data storage directory")
    db_name: str = Field(default="recollect.db", description="SQLite database name")

    # Embeddings
    embedding_provider: EmbeddingProviderName = Field(
        default="none", description="Embedding provider (none disables semantic recall)"
    )
    embedding_model: str = Field(
        default="", description="Embedding model id (empty uses the provider default)"
    )
    openai_api_key: str = Field(default="", description="OpenAI API key")
    voyage_api_key: str = Field(default="", description="Voyage AI API key")

    # Recall defaults
    recall_limit: int = Field(default=10, ge=0, description="Default recall result cap")
    min_similarity: float = Field(
        default=0.7, ge=-1.0, le=1.0, description="Semantic recall threshold"
    )
    hybrid_min_similarity: float = Field(
        default=0.5, ge=-1.0, le=1.0, description="Vector candidate threshold for hybrid recall"
    )
    similar_min_similarity: float = Field(
        default=0.8, ge=-1.0, le=1.0, description="Near-duplicate search threshold"
    )
    vector_weight: float = Field(default=0.7, ge=0.0, description="Hybrid vector weight")
    keyword_weight: float = Field(default=0.3, ge=0.0, description="Hybrid keyword weight")

    # Context limits
    max_context_memories: int = Field(default=5, ge=0, description="Memories in context")
    max_context_messages: int = Field(default=20, ge=0, description="Messages in context")

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name

    @property
    def embedding_api_key(self) -> str:
        """Credential for the selected embedding provider."""
        if self.embedding_provider == "openai":
            return self.openai_api_key
        if self.embedding_provider == "voyage":
            return self.voyage_api_key
        return ""


def get_settings() -> Settings:
    """Get settings instance."""
    return Settings()
