"""Tests for settings defaults and environment overrides."""

from vectdb.settings import ChunkingSettings, VectDbSettings
from vectdb.types import FixedSize, Semantic


def test_defaults():
    cfg = VectDbSettings(_env_file=None)
    assert cfg.ollama.base_url == "http://localhost:11434"
    assert cfg.ollama.default_model == "nomic-embed-text"
    assert cfg.ollama.timeout_seconds == 30.0
    assert cfg.chunking.max_chunk_size == 512
    assert cfg.chunking.overlap_size == 50
    assert cfg.search.default_top_k == 10
    assert cfg.search.similarity_threshold == 0.0
    assert cfg.server.bind_port == 3000


def test_environment_overrides_nested_sections(monkeypatch):
    monkeypatch.setenv("VECTDB_OLLAMA__BASE_URL", "http://gpu-box:11434")
    monkeypatch.setenv("VECTDB_SEARCH__DEFAULT_TOP_K", "3")
    monkeypatch.setenv("VECTDB_EMBEDDING_PROVIDER", "stub")
    cfg = VectDbSettings(_env_file=None)
    assert cfg.ollama.base_url == "http://gpu-box:11434"
    assert cfg.search.default_top_k == 3
    assert cfg.embedding_provider == "stub"


def test_chunking_strategy_selection():
    assert ChunkingSettings().to_strategy() == FixedSize(size=512, overlap=50)
    semantic = ChunkingSettings(strategy="semantic", max_chunk_size=256).to_strategy()
    assert semantic == Semantic(max_size=256)
