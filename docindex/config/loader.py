"""Layered configuration: ``config/config.yaml`` under environment-derived values.

The YAML file carries settings that rarely change between deployments
(Tesseract language packs, the shutdown drain timeout). Anything also
exposed through :class:`Settings` is taken from the environment and wins.
"""

from pathlib import Path
from typing import Any

import yaml

from docindex.config.settings import Settings
from docindex.utils.errors import ConfigurationError


def _read_yaml(config_path: Path) -> dict[str, Any]:
    if not config_path.exists():
        return {}
    try:
        loaded = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"{config_path} must contain a mapping at the top level")
    return loaded


def _env_sections(settings: Settings) -> dict[str, Any]:
    return {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "embedding": {
            "available_providers": settings.get_available_embedding_providers(),
            "dimension": settings.embedding_dimension,
        },
        "storage": {
            "blob_root_dir": settings.blob_root_dir,
            "metadata_db_path": settings.metadata_db_path,
            "chromadb_persist_dir": settings.chromadb_persist_dir,
            "search_index_name": settings.search_index_name,
            "chat_index_name": settings.chat_index_name,
        },
        "uploads": {
            "document_max_bytes": settings.document_max_bytes,
            "chat_max_bytes": settings.chat_max_bytes,
        },
        "logging": {
            "level": settings.log_level,
        },
    }


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Return the YAML config with environment-derived sections merged on top.

    Args:
        path: YAML file; a missing file counts as empty.
        settings: Pre-built settings; ``Settings()`` is read when omitted.

    Raises:
        ConfigurationError: The file is not valid YAML or not a mapping.
    """
    config = _read_yaml(Path(path))
    _deep_merge(config, _env_sections(settings or Settings()))
    return config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Merge *overrides* into *base* in place; nested dicts merge key by key."""
    for key, value in overrides.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _deep_merge(current, value)
        else:
            base[key] = value
