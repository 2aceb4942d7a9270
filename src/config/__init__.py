"""Configuration module - exports Settings and load_config."""

from src.config.loader import load_config, upload_limits
from src.config.settings import Settings

__all__ = ["Settings", "load_config", "upload_limits"]
