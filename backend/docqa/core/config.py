"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from docqa.core.errors import ConfigurationError

ENV_PREFIX = "DOCQA_"
DEFAULT_CONFIG_PATH = Path("~/.config/docqa/config.yaml")

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("storage", "db_path"): "db_path",
    ("embeddings", "backend"): "embedding_backend",
    ("embeddings", "model"): "embedding_model",
    ("embeddings", "dim"): "embedding_dim",
    ("embeddings", "remote_model"): "remote_embedding_model",
    ("embeddings", "summary_model"): "summary_model",
    ("openai", "api_key"): "openai_api_key",
    ("openai", "base_url"): "openai_base_url",
    ("generation", "model"): "generation_model",
    ("generation", "base_url"): "generation_base_url",
    ("generation", "api_key"): "generation_api_key",
    ("generation", "max_attempts"): "generation_max_attempts",
    ("generation", "initial_delay"): "generation_initial_delay",
    ("generation", "timeout"): "generation_timeout",
    ("retrieval", "top_k"): "top_k",
    ("retrieval", "context_chars"): "context_char_limit",
    ("ingest", "chunk_size"): "chunk_size",
    ("ingest", "chunk_overlap"): "chunk_overlap",
    ("ingest", "concurrency"): "ingest_concurrency",
    ("crawl", "max_depth"): "crawl_max_depth",
    ("crawl", "timeout"): "crawl_timeout",
    ("crawl", "user_agent"): "crawl_user_agent",
    ("crawl", "patterns"): "crawl_patterns",
    ("crawl", "fallback_urls"): "crawl_fallback_urls",
    ("crawl", "on_startup"): "crawl_on_startup",
}

EmbeddingBackend = Literal["local", "remote", "hashed"]


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    db_path: Path = Field(default=Path.home() / ".docqa" / "docqa.db")

    embedding_backend: EmbeddingBackend = "hashed"
    embedding_model: str = "intfloat/e5-small-v2"
    embedding_dim: int = 384
    remote_embedding_model: str = "text-embedding-3-small"
    summary_model: str = "gpt-4o-mini"
    openai_api_key: str | None = None
    openai_base_url: str | None = None

    generation_model: str = "gpt-4o-mini"
    generation_base_url: str | None = None
    generation_api_key: str | None = None
    generation_max_attempts: int = Field(default=5, ge=1)
    generation_initial_delay: float = Field(default=1.0, ge=0)
    generation_timeout: float = 60.0

    top_k: int = Field(default=20, ge=1)
    context_char_limit: int = 5000

    chunk_size: int = 512
    chunk_overlap: int = 20
    ingest_concurrency: int = Field(default=4, ge=1)

    crawl_max_depth: int = 3
    crawl_timeout: float = 30.0
    crawl_user_agent: str = "docqa-crawler/0.1"
    crawl_patterns: list[str] = Field(default_factory=list)
    crawl_fallback_urls: dict[str, list[str]] = Field(default_factory=dict)
    crawl_on_startup: bool = False

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("db_path", mode="before")
    @classmethod
    def _expand_db_path(cls, value: Any) -> Path:
        if isinstance(value, Path):
            return value.expanduser()
        if isinstance(value, str):
            return Path(value).expanduser()
        raise TypeError("db_path must be a path or string")

    @field_validator("crawl_patterns", mode="before")
    @classmethod
    def _split_patterns(cls, value: Any) -> Any:
        # Environment overrides arrive as comma separated strings.
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @model_validator(mode="after")
    def _check_chunk_overlap(self) -> "Settings":
        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ValueError("chunk_overlap must be at least 0 and smaller than chunk_size")
        return self

    @property
    def generation_key(self) -> str | None:
        return self.generation_api_key or self.openai_api_key

    def require_remote_credentials(self) -> str:
        if not self.openai_api_key:
            raise ConfigurationError(
                "embedding_backend 'remote' requires openai_api_key (DOCQA_OPENAI_API_KEY)"
            )
        return self.openai_api_key

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
        mapped_key = _YAML_KEY_MAP.get(next_prefix)
        if mapped_key:
            flat[mapped_key] = value
        elif isinstance(value, Mapping):
            flat.update(_flatten_yaml(value, prefix=next_prefix))
        elif key in Settings.model_fields:
            flat[key] = value
    return flat


def _load_env_overrides() -> dict[str, Any]:
    """Map environment variables with DOCQA_ prefix into Settings fields."""
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in Settings.model_fields and field_name != "crawl_fallback_urls":
            overrides[field_name] = value
    return overrides


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor for dependency injection."""
    return Settings.from_yaml()


__all__ = ["Settings", "EmbeddingBackend", "get_settings"]
