"""
Unit tests for YAML-backed settings.
"""

import logging

import pytest

from config import Settings, StoreSettings, load_config, get_default_config_path
from recordstore import Collection, Record, StoreConfig


class TestSettings:
    """Settings loading and conversion."""
    
    def test_defaults(self):
        settings = Settings()
        
        assert settings.store == StoreSettings()
        assert settings.log_level == "INFO"
    
    def test_from_dict(self):
        settings = Settings.from_dict({
            "store": {"index_fields": ["lname"], "allow_duplicates": False},
            "log_level": "DEBUG",
        })
        
        assert settings.store.index_fields == ["lname"]
        assert settings.store.allow_duplicates is False
        assert settings.log_level == "DEBUG"
    
    def test_from_dict_does_not_mutate_input(self):
        data = {"store": {"id_attribute": "key"}}
        Settings.from_dict(data)
        
        assert "store" in data
    
    def test_to_dict(self):
        assert Settings().to_dict()["store"]["allow_duplicates"] is True
    
    def test_store_config(self):
        Person = Record.define("Person", {"lname": None})
        settings = Settings.from_dict({"store": {"index_fields": ["lname"]}})
        
        config = settings.store_config(Person)
        collection = Collection.from_config(config)
        
        assert isinstance(config, StoreConfig)
        assert config.error_on_duplicate is True
        assert collection.indexed_fields == ["lname"]
        assert collection.record_factory is Person


class TestConfigureLogging:
    """Applying the configured log level."""
    
    @pytest.fixture
    def root_logger(self):
        logger = logging.getLogger("recordstore")
        level, handlers = logger.level, list(logger.handlers)
        yield logger
        for handler in logger.handlers:
            handler.close()
        logger.handlers[:] = handlers
        logger.setLevel(level)
    
    def test_level_is_applied(self, root_logger):
        logger = Settings(log_level="DEBUG").configure_logging()
        
        assert logger is root_logger
        assert logger.level == logging.DEBUG
        
        Settings(log_level="warning").configure_logging()
        assert root_logger.level == logging.WARNING
    
    def test_collection_debug_reaches_log_file(self, root_logger, tmp_path):
        log_file = tmp_path / "store.log"
        Settings(log_level="DEBUG").configure_logging(log_file=str(log_file))
        
        collection = Collection()
        collection.load([{"fname": "John"}, {"fname": "John"}])
        collection.deduplicate()
        for handler in root_logger.handlers:
            handler.flush()
        
        assert "Removed 1 duplicate records" in log_file.read_text()


class TestLoadConfig:
    """Loading settings from YAML files."""
    
    def test_load_file(self, tmp_path):
        path = tmp_path / "recordstore.yaml"
        path.write_text(
            "store:\n"
            "  index_fields: [lname, fname]\n"
            "  allow_duplicates: false\n"
            "  error_on_duplicate: true\n"
            "log_level: WARNING\n"
        )
        
        settings = load_config(str(path))
        
        assert settings.store.index_fields == ["lname", "fname"]
        assert settings.store.error_on_duplicate is True
        assert settings.log_level == "WARNING"
    
    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_config(str(tmp_path / "nope.yaml")) == Settings()
    
    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        
        assert load_config(str(path)) == Settings()
    
    def test_env_override(self, tmp_path, monkeypatch):
        path = tmp_path / "env.yaml"
        path.write_text("store:\n  id_attribute: key\n")
        monkeypatch.setenv("RECORDSTORE_CONFIG", str(path))
        
        assert get_default_config_path() == path
        assert load_config().store.id_attribute == "key"
    
    def test_bundled_default(self, monkeypatch):
        monkeypatch.delenv("RECORDSTORE_CONFIG", raising=False)
        
        settings = load_config()
        
        assert settings.store.allow_duplicates is True
        assert settings.store.index_fields == []
