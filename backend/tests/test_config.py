"""Tests for layered configuration."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from bank_grounding.core.config import Settings


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("BGR_DB_PATH", "BGR_FILES_DIR", "BGR_EMBEDDING_DIM", "BGR_EMBEDDING_BACKEND"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_yaml(Path("/nonexistent/config.yaml"))

    assert settings.embedding_dim == 1024
    assert settings.embedding_model == "voyage-3"
    assert settings.chunk_size == 512
    assert settings.chunk_overlap == 100
    assert settings.default_limit == 5
    assert settings.search_timeout_ms == 5000


def test_yaml_sections_then_env_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config = tmp_path / "config.yaml"
    config.write_text(
        "storage:\n"
        "  db_path: ~/grounding/test.db\n"
        "embeddings:\n"
        "  backend: voyage\n"
        "  dim: 512\n"
        "chunking:\n"
        "  chunk_size: 256\n"
        "retrieval:\n"
        "  max_limit: 20\n"
    )
    monkeypatch.setenv("BGR_CONFIG", str(config))
    monkeypatch.delenv("BGR_EMBEDDING_DIM", raising=False)
    monkeypatch.delenv("BGR_EMBEDDING_BACKEND", raising=False)
    monkeypatch.delenv("BGR_DB_PATH", raising=False)
    monkeypatch.setenv("BGR_CHUNK_SIZE", "300")

    settings = Settings.from_yaml()

    assert settings.db_path == Path("~/grounding/test.db").expanduser()
    assert settings.embedding_backend == "voyage"
    assert settings.embedding_dim == 512
    assert settings.chunk_size == 300
    assert settings.max_limit == 20


@pytest.mark.parametrize("value", ["0", "", "none"])
def test_timeout_can_be_disabled(value: str) -> None:
    assert Settings(search_timeout_ms=value).search_timeout_ms is None


def test_unknown_backend_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(embedding_backend="openai")
