"""Tests for configuration loading and migration"""

from pathlib import Path

import pytest

from lesson_offline.exceptions import ConfigurationError
from lesson_offline.models.config import DEFAULT_CACHE_NAMESPACE, OfflineConfig
from lesson_offline.storage.config_manager import ConfigManager


@pytest.fixture
def config_file(tmp_path) -> Path:
    return tmp_path / "config" / "config.ini"


class TestConfigManager:
    def test_missing_file_uses_defaults(self, config_file):
        config = ConfigManager(config_file).load_config()

        assert config.cache_namespace == DEFAULT_CACHE_NAMESPACE
        assert config.space_safety_margin == pytest.approx(0.10)
        assert config.resolved_data_dir == config_file.parent
        assert not config_file.exists()

    def test_saved_config_loads_back(self, config_file, tmp_path):
        manager = ConfigManager(config_file)
        manager.save_new_config(
            {"data_dir": str(tmp_path / "lessons"), "max_connections": 8}
        )

        config = ConfigManager(config_file).load_config()

        assert config.resolved_data_dir == tmp_path / "lessons"
        assert config.max_connections == 8
        assert config.chunk_size == 131072

    def test_cli_options_override_file(self, config_file):
        manager = ConfigManager(config_file)
        manager.save_new_config({"max_attempts": 2})

        config = ConfigManager(config_file).load_config({"max_attempts": 5})

        assert config.max_attempts == 5

    def test_missing_keys_are_migrated(self, config_file):
        config_file.parent.mkdir(parents=True)
        config_file.write_text("[DEFAULT]\nmax_connections = 6\n", encoding="utf-8")

        config = ConfigManager(config_file).load_config()

        assert config.max_connections == 6
        contents = config_file.read_text(encoding="utf-8")
        assert "cache_namespace" in contents
        assert "read_timeout" in contents

    def test_non_numeric_value(self, config_file):
        config_file.parent.mkdir(parents=True)
        config_file.write_text("[DEFAULT]\nchunk_size = lots\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="chunk_size"):
            ConfigManager(config_file).load_config()

    def test_out_of_range_value(self, config_file):
        with pytest.raises(ConfigurationError):
            ConfigManager(config_file).load_config({"space_safety_margin": 1.5})


class TestOfflineConfig:
    def test_namespace_must_be_single_segment(self, tmp_path):
        with pytest.raises(ValueError):
            OfflineConfig(cache_namespace="a/b", config_path=str(tmp_path))

    def test_ini_keys_exclude_internal_fields(self):
        keys = OfflineConfig.get_ini_keys()

        assert "config_path" not in keys
        assert {"data_dir", "cache_namespace", "chunk_size"} <= keys
