"""Configuration: pydantic-settings ``Settings`` plus the YAML loader."""

from docingest.config.loader import load_config
from docingest.config.settings import Settings

__all__ = ["Settings", "load_config"]
