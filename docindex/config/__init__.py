"""Configuration module: exports Settings and load_config."""

from docindex.config.loader import load_config
from docindex.config.settings import Settings

__all__ = ["Settings", "load_config"]
