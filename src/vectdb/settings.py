from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .types import ChunkStrategy, FixedSize, Semantic


class DatabaseSettings(BaseModel):
    path: str = Field(default="~/.local/share/vectdb/vectors.db", description="SQLite file")


class OllamaSettings(BaseModel):
    base_url: str = "http://localhost:11434"
    default_model: str = "nomic-embed-text"
    timeout_seconds: float = 30.0

    # retry policy for transient failures
    max_attempts: int = 4
    base_delay: float = 0.1
    max_delay: float = 10.0

    # texts per embedding request during ingestion
    embed_batch_size: int = 16


class ChunkingSettings(BaseModel):
    max_chunk_size: int = 512
    overlap_size: int = 50
    strategy: str = Field(default="fixed", description="fixed|semantic")

    def to_strategy(self) -> ChunkStrategy:
        if self.strategy == "semantic":
            return Semantic(max_size=self.max_chunk_size)
        return FixedSize(size=self.max_chunk_size, overlap=self.overlap_size)


class SearchSettings(BaseModel):
    default_top_k: int = 10
    similarity_threshold: float = 0.0


class ServerSettings(BaseModel):
    bind_host: str = "127.0.0.1"
    bind_port: int = 3000


class VectDbSettings(BaseSettings):
    """Configuration for vectdb.

    Environment variables are prefixed with VECTDB_; nested sections use a
    double underscore, e.g. VECTDB_OLLAMA__BASE_URL.
    """

    model_config = SettingsConfigDict(
        env_prefix="VECTDB_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    log_level: str = Field(default="INFO", description="Python logging level")
    embedding_provider: str = Field(default="ollama", description="ollama|stub")

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    ollama: OllamaSettings = Field(default_factory=OllamaSettings)
    chunking: ChunkingSettings = Field(default_factory=ChunkingSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)


settings = VectDbSettings()
