"""
Storage Layer.

This package handles configuration persistence: loading, migrating and
writing the updater's INI file.
"""

from .config_manager import ConfigManager

__all__ = ["ConfigManager"]
