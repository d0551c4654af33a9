"""
Configuration management for RecordStore.

Provides dataclasses for configuration and utilities
for loading settings from YAML files.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml

from recordstore.core.collection import StoreConfig
from recordstore.utils.logging import setup_logger


@dataclass
class StoreSettings:
    """Default collection settings."""
    index_fields: List[str] = field(default_factory=list)
    allow_duplicates: bool = True
    error_on_duplicate: Optional[bool] = None
    id_attribute: str = "id"


@dataclass
class Settings:
    """
    Main settings container for RecordStore.
    
    Attributes:
        store: Defaults applied to collections built from these settings
        log_level: Logging level
    """
    store: StoreSettings = field(default_factory=StoreSettings)
    log_level: str = "INFO"
    
    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        """Create Settings from dictionary."""
        data = dict(data)
        store_data = data.pop("store", None) or {}
        
        return cls(
            store=StoreSettings(**store_data),
            **data
        )
    
    def to_dict(self) -> dict:
        """Convert Settings to dictionary."""
        from dataclasses import asdict
        return asdict(self)
    
    def configure_logging(self, log_file: Optional[str] = None) -> logging.Logger:
        """Set up the ``recordstore`` logger at :attr:`log_level`."""
        return setup_logger("recordstore", level=self.log_level, log_file=log_file)
    
    def store_config(self, record_factory=None) -> StoreConfig:
        """
        Build a validated :class:`StoreConfig` from the store settings.
        
        Args:
            record_factory: Factory to attach; factories are code, so they
                cannot come from the YAML file
        """
        return StoreConfig(
            record_factory=record_factory,
            index_fields=list(self.store.index_fields),
            allow_duplicates=self.store.allow_duplicates,
            error_on_duplicate=self.store.error_on_duplicate,
            id_attribute=self.store.id_attribute,
        )


def get_default_config_path() -> Path:
    """Get path to default configuration file."""
    # Environment variable wins
    env_config = os.environ.get("RECORDSTORE_CONFIG")
    if env_config:
        return Path(env_config)
    
    # Check for config in current directory
    local_config = Path("./config/default_config.yaml")
    if local_config.exists():
        return local_config
    
    return Path(__file__).parent / "default_config.yaml"


def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file.
    
    Args:
        config_path: Path to config file. If None, uses default.
        
    Returns:
        Settings object with loaded configuration
        
    Example:
        >>> settings = load_config()
        >>> settings = load_config("./my_config.yaml")
    """
    if config_path is None:
        path = get_default_config_path()
    else:
        path = Path(config_path)
    
    if not path.exists():
        # Return default settings if no config file
        return Settings()
    
    with open(path, "r") as f:
        data = yaml.safe_load(f)
    
    if data is None:
        return Settings()
    
    return Settings.from_dict(data)
