"""Configuration module -- exports Settings and load_config."""

from embedstore.config.loader import load_config
from embedstore.config.settings import Settings

__all__ = ["Settings", "load_config"]
