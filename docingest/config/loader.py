"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers (later layers override earlier):

  1. config/config.yaml  -- static defaults checked into the repo
  2. .env file           -- local developer overrides
  3. Environment vars    -- deployment-time values

``load_config`` reads the YAML first, then deep-merges the values from
:class:`Settings` on top.
"""

from pathlib import Path

import yaml

from docingest.config.settings import Settings

DEFAULT_RESOLVER_ORDER = ["google_drive", "onedrive", "dropbox"]
DEFAULT_RETRIEVAL = {"search_limit": 10, "rag_limit": 5}


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  A missing file is
              treated as empty.
        settings: Pre-built settings; a fresh ``Settings()`` is read when
                  omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "ingestion": {
            "max_chunk_size": settings.max_chunk_size,
            "concurrency": settings.ingestion_concurrency,
            "progress_ttl_seconds": settings.progress_ttl_seconds,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    yaml_config.setdefault("ingestion", {}).setdefault("resolvers", list(DEFAULT_RESOLVER_ORDER))
    retrieval = yaml_config.setdefault("retrieval", {})
    for key, value in DEFAULT_RETRIEVAL.items():
        retrieval.setdefault(key, value)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
