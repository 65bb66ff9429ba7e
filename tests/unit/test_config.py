"""Tests for configuration management."""

import pytest

import remap
from remap.config import Config, RemapConfig
from remap.errors import ConfigurationError


class TestConfig:
    """Test configuration management."""

    @pytest.fixture
    def config_path(self, temp_dir):
        return temp_dir / "remap.toml"

    def test_defaults(self, config_path):
        config = Config(config_path)
        assert not config.exists

        resolved = config.resolve()
        assert resolved == RemapConfig()
        assert resolved.driver == "sqlite"
        assert resolved.data_source == "remap.db"
        assert resolved.strict_types is False

    def test_load(self, config_path):
        config_path.write_text(
            'driver = "memory"\n'
            'data_source = "cache"\n'
            "strict_types = true\n"
        )

        config = Config(config_path).load()
        assert config.driver == "memory"
        assert config.data_source == "cache"
        assert config.strict_types is True

    def test_load_missing_file(self, config_path):
        with pytest.raises(FileNotFoundError):
            Config(config_path).load()

    def test_env_config_path(self, config_path, monkeypatch):
        config_path.write_text('driver = "memory"\n')
        monkeypatch.setenv("REMAP_CONFIG", str(config_path))

        assert Config().config_path == config_path
        assert Config().load().driver == "memory"

    def test_default_path_is_cwd(self, temp_dir, monkeypatch):
        monkeypatch.chdir(temp_dir)
        assert Config().config_path == temp_dir / "remap.toml"

    def test_env_overrides(self, config_path, monkeypatch):
        config_path.write_text('driver = "sqlite"\ndata_source = "file.db"\n')
        monkeypatch.setenv("REMAP_DRIVER", "memory")
        monkeypatch.setenv("REMAP_DATA_SOURCE", "override")
        monkeypatch.setenv("REMAP_STRICT_TYPES", "true")

        config = Config(config_path).load()
        assert config.driver == "memory"
        assert config.data_source == "override"
        assert config.strict_types is True

    def test_unknown_setting(self, config_path):
        config_path.write_text('driver = "sqlite"\ncolour = "blue"\n')

        with pytest.raises(ConfigurationError):
            Config(config_path).load()

    def test_invalid_toml(self, config_path):
        config_path.write_text("driver = \n")

        with pytest.raises(ConfigurationError):
            Config(config_path).load()

    def test_invalid_env_override(self, config_path, monkeypatch):
        monkeypatch.setenv("REMAP_STRICT_TYPES", "sometimes")

        with pytest.raises(ConfigurationError):
            Config(config_path).resolve()


class TestConnectFromConfig:
    """Test opening maps from configuration."""

    def test_explicit_config(self):
        m = remap.connect_from_config(
            RemapConfig(driver="memory", data_source="", strict_types=True)
        )
        assert m.strict_types is True

        m.set("cool", "beans")
        assert m.get("cool") == "beans"

    def test_config_from_environment(self, temp_dir, monkeypatch):
        db_path = temp_dir / "env.db"
        monkeypatch.chdir(temp_dir)
        monkeypatch.setenv("REMAP_DATA_SOURCE", str(db_path))

        with remap.connect_from_config() as m:
            m.set("cool", "beans")

        assert db_path.exists()
