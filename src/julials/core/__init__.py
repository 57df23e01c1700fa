"""Core infrastructure modules."""

from .global_paths import GlobalPath

__all__ = ["GlobalPath"]

# Configuration is imported from its own module to avoid circular imports
# with the logger:
# from julials.core.config import Config, ConfigManager
