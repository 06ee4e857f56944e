"""
Configuration management for notes-rag stores.

The configuration is stored as a TOML file in the store directory.
It binds the embedding service, the two generation backends, the
segmentation policy and the retrieval budget.
"""

import os
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import tomli_w


CONFIG_FILENAME = "notes-rag.toml"
CONFIG_VERSION = 1

DEFAULT_STORE_DIRNAME = ".notes-rag"

DEFAULT_EMBEDDING_MODEL = "BAAI/bge-base-en-v1.5"
DEFAULT_PRIMARY_MODEL = "claude-3-5-sonnet-latest"
DEFAULT_FALLBACK_MODEL = "llama3.1:8b"

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200
DEFAULT_TOP_K = 3

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


@dataclass
class ProviderConfig:
    """Configuration for a single provider."""
    name: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class SplittingConfig:
    """Segmentation policy for add_note."""
    enabled: bool = False
    chunk_size: int = DEFAULT_CHUNK_SIZE
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP


@dataclass
class StoreConfig:
    """Complete store configuration."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    embedding: ProviderConfig = field(
        default_factory=lambda: ProviderConfig(
            "sentence-transformers", {"model": DEFAULT_EMBEDDING_MODEL}
        )
    )
    generation: ProviderConfig = field(
        default_factory=lambda: ProviderConfig("anthropic", {"model": DEFAULT_PRIMARY_MODEL})
    )
    fallback: ProviderConfig = field(
        default_factory=lambda: ProviderConfig("ollama", {"model": DEFAULT_FALLBACK_MODEL})
    )
    splitting: SplittingConfig = field(default_factory=SplittingConfig)
    top_k: int = DEFAULT_TOP_K

    # Recorded on first successful embed
    index_dimension: Optional[int] = None

    @property
    def config_path(self) -> Path:
        """Path to the TOML config file."""
        return self.path / CONFIG_FILENAME

    @property
    def primary_credential(self) -> Optional[str]:
        """API key for the primary backend, from config or environment."""
        return self.generation.params.get("api_key") or os.environ.get("ANTHROPIC_API_KEY")

    def select_generation(self) -> ProviderConfig:
        """
        Choose the generation backend for this deployment.

        The primary backend is used exclusively when its credential is
        present; otherwise the local fallback is used.
        """
        key = self.primary_credential
        if key:
            return ProviderConfig(
                self.generation.name,
                {**self.generation.params, "api_key": key},
            )
        return self.fallback

    def splitting_enabled(self) -> bool:
        """Segmentation flag, with NOTES_RAG_ENABLE_TEXT_SPLITTING taking precedence."""
        env = os.environ.get("NOTES_RAG_ENABLE_TEXT_SPLITTING")
        if env is None:
            return self.splitting.enabled
        return parse_bool(env)


def parse_bool(value: str) -> bool:
    """Parse a boolean environment value."""
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


def get_default_store_path() -> Path:
    """Store directory from NOTES_RAG_STORE_PATH, or ~/.notes-rag."""
    env_path = os.environ.get("NOTES_RAG_STORE_PATH")
    if env_path:
        return Path(env_path).expanduser()
    return Path.home() / DEFAULT_STORE_DIRNAME


def validate_config(config: StoreConfig) -> None:
    """
    Check config values that would otherwise fail deep inside the pipeline.

    Raises:
        ValueError: If a value is out of range
    """
    if config.splitting.chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {config.splitting.chunk_size}")
    if not 0 <= config.splitting.chunk_overlap < config.splitting.chunk_size:
        raise ValueError(
            f"chunk_overlap must be >= 0 and smaller than chunk_size "
            f"({config.splitting.chunk_overlap} vs {config.splitting.chunk_size})"
        )
    if config.top_k < 1:
        raise ValueError(f"top_k must be at least 1, got {config.top_k}")


def load_config(store_path: Path) -> StoreConfig:
    """
    Load configuration from a store directory.

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    config_path = store_path / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    version = data.get("store", {}).get("version", 1)
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    def parse_provider(section: dict, default: ProviderConfig) -> ProviderConfig:
        if not section:
            return default
        return ProviderConfig(
            name=section.get("name", default.name),
            params={k: v for k, v in section.items() if k != "name"},
        )

    defaults = StoreConfig(path=store_path)
    splitting = data.get("splitting", {})

    config = StoreConfig(
        path=store_path,
        version=version,
        created=data.get("store", {}).get("created", ""),
        embedding=parse_provider(data.get("embedding", {}), defaults.embedding),
        generation=parse_provider(data.get("generation", {}), defaults.generation),
        fallback=parse_provider(data.get("fallback", {}), defaults.fallback),
        splitting=SplittingConfig(
            enabled=bool(splitting.get("enabled", False)),
            chunk_size=int(splitting.get("chunk_size", DEFAULT_CHUNK_SIZE)),
            chunk_overlap=int(splitting.get("chunk_overlap", DEFAULT_CHUNK_OVERLAP)),
        ),
        top_k=int(data.get("retrieval", {}).get("top_k", DEFAULT_TOP_K)),
        index_dimension=data.get("index", {}).get("dimension"),
    )
    validate_config(config)
    return config


def save_config(config: StoreConfig) -> None:
    """
    Save configuration to the store directory.

    Creates the directory if it doesn't exist. Credentials set through the
    environment are never written.
    """
    config.path.mkdir(parents=True, exist_ok=True)

    def provider_to_dict(p: ProviderConfig) -> dict:
        d = {"name": p.name}
        d.update(p.params)
        return d

    data: dict[str, Any] = {
        "store": {
            "version": config.version,
            "created": config.created,
        },
        "embedding": provider_to_dict(config.embedding),
        "generation": provider_to_dict(config.generation),
        "fallback": provider_to_dict(config.fallback),
        "splitting": {
            "enabled": config.splitting.enabled,
            "chunk_size": config.splitting.chunk_size,
            "chunk_overlap": config.splitting.chunk_overlap,
        },
        "retrieval": {"top_k": config.top_k},
    }
    if config.index_dimension is not None:
        data["index"] = {"dimension": config.index_dimension}

    with open(config.config_path, "wb") as f:
        tomli_w.dump(data, f)


def load_or_create_config(store_path: Path) -> StoreConfig:
    """
    Load existing config or create a new one with defaults.

    This is the main entry point for config management.
    """
    config_path = store_path / CONFIG_FILENAME

    if config_path.exists():
        return load_config(store_path)
    config = StoreConfig(path=store_path)
    save_config(config)
    return config
