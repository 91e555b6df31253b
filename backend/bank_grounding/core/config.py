"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "BGR_"
DEFAULT_CONFIG_PATH = Path("~/.config/bank-grounding/config.yaml")

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("storage", "db_path"): "db_path",
    ("storage", "files_dir"): "files_dir",
    ("embeddings", "backend"): "embedding_backend",
    ("embeddings", "model"): "embedding_model",
    ("embeddings", "dim"): "embedding_dim",
    ("embeddings", "api_key"): "embedding_api_key",
    ("embeddings", "batch_size"): "embedding_batch_size",
    ("chunking", "chunk_size"): "chunk_size",
    ("chunking", "chunk_overlap"): "chunk_overlap",
    ("retrieval", "default_limit"): "default_limit",
    ("retrieval", "max_limit"): "max_limit",
    ("retrieval", "search_timeout_ms"): "search_timeout_ms",
}


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    db_path: Path = Field(default=Path.home() / ".bank-grounding" / "grounding.db")
    files_dir: Path = Field(default=Path.home() / ".bank-grounding" / "files")
    embedding_backend: Literal["hashed", "voyage"] = "hashed"
    embedding_model: str = "voyage-3"
    embedding_dim: int = Field(default=1024, ge=1)
    embedding_api_key: str | None = None
    embedding_batch_size: int = Field(default=128, ge=1)
    chunk_size: int = Field(default=512, ge=16)
    chunk_overlap: int = Field(default=100, ge=0)
    default_limit: int = Field(default=5, ge=1)
    max_limit: int = Field(default=50, ge=1)
    search_timeout_ms: int | None = 5000

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("db_path", "files_dir", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        if isinstance(value, Path):
            return value.expanduser()
        if isinstance(value, str):
            return Path(value).expanduser()
        raise TypeError("paths must be a path or string")

    @field_validator("search_timeout_ms", mode="before")
    @classmethod
    def _disable_timeout(cls, value: Any) -> Any:
        # 0, "none" or an empty string turn the deadline off
        if value in (0, "0", "", "none", "None"):
            return None
        return value

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> "Settings":
        """Load YAML config and overlay env vars; fall back to defaults."""
        config_path = cls._resolve_config_path(path)
        data: dict[str, Any] = {}
        if config_path and config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            data.update(_flatten_yaml(raw))
        data.update(_load_env_overrides())
        return cls(**data)

    @staticmethod
    def _resolve_config_path(path: Path | None) -> Path | None:
        if path is not None:
            return path.expanduser()
        env_path = os.environ.get(f"{ENV_PREFIX}CONFIG")
        if env_path:
            return Path(env_path).expanduser()
        resolved_default = DEFAULT_CONFIG_PATH.expanduser()
        return resolved_default if resolved_default.exists() else None


def _flatten_yaml(raw: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> dict[str, Any]:
    """Flatten nested YAML configuration to Settings field names."""
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        next_prefix = prefix + (key,)
        if isinstance(value, Mapping):
            flat.update(_flatten_yaml(value, prefix=next_prefix))
        else:
            mapped_key = _YAML_KEY_MAP.get(next_prefix)
            if mapped_key:
                flat[mapped_key] = value
            elif key in Settings.model_fields:
                flat[key] = value
    return flat


def _load_env_overrides() -> dict[str, Any]:
    """Map environment variables with BGR_ prefix into Settings fields."""
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in Settings.model_fields:
            overrides[field_name] = value
    return overrides


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor for dependency injection."""
    return Settings.from_yaml()


__all__ = ["Settings", "get_settings"]
