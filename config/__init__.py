"""
Configuration module for RecordStore.

This module provides configuration management including
loading settings from YAML files and environment variables.

Example:
    >>> from config import Settings, load_config
    >>> 
    >>> # Load default config
    >>> settings = load_config()
    >>> 
    >>> # Build a collection from it
    >>> people = Collection.from_config(settings.store_config(Person))
"""

from .settings import (
    Settings,
    StoreSettings,
    load_config,
    get_default_config_path,
)

__all__ = [
    "Settings",
    "StoreSettings",
    "load_config",
    "get_default_config_path",
]
