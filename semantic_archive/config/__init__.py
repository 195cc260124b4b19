"""Configuration module -- exports Settings and load_settings."""

from semantic_archive.config.loader import load_settings
from semantic_archive.config.settings import Settings

__all__ = ["Settings", "load_settings"]
