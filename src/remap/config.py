"""Configuration management for remap."""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import toml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from remap.errors import ConfigurationError

CONFIG_FILENAME = "remap.toml"


class RemapConfig(BaseModel):
    """Settings used to open a map."""

    model_config = ConfigDict(extra="forbid")

    driver: str = Field(default="sqlite", description="Registered driver name")
    data_source: str = Field(
        default="remap.db", description="Data source string handed to the driver"
    )
    strict_types: bool = Field(
        default=False, description="Reject values that serialize to objects or arrays"
    )


class Config:
    """Loads remap configuration from a TOML file and the environment."""

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize config loader.

        Args:
            config_path: Path to the TOML file. If None, uses the REMAP_CONFIG
                env var or remap.toml in the current directory.
        """
        if config_path is None:
            env_path = os.environ.get("REMAP_CONFIG")
            config_path = Path(env_path) if env_path else Path.cwd() / CONFIG_FILENAME

        self.config_path = Path(config_path)

    @property
    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_path.exists()

    def load(self) -> RemapConfig:
        """Load configuration from disk, with environment variable overrides.

        Raises:
            FileNotFoundError: If the config file does not exist
            ConfigurationError: If the file or overrides are invalid
        """
        if not self.exists:
            raise FileNotFoundError(f"Config file not found at {self.config_path}")

        try:
            with open(self.config_path, "r") as f:
                data = toml.load(f)
        except toml.TomlDecodeError as e:
            raise ConfigurationError(f"invalid config file {self.config_path}: {e}") from e

        return self._build(data)

    def resolve(self) -> RemapConfig:
        """Load the config file if present, otherwise defaults, plus env overrides."""
        if self.exists:
            return self.load()
        return self._build({})

    def _build(self, data: Dict[str, Any]) -> RemapConfig:
        self._apply_env_overrides(data)
        try:
            return RemapConfig(**data)
        except ValidationError as e:
            raise ConfigurationError(f"invalid remap configuration: {e}") from e

    def _apply_env_overrides(self, data: Dict[str, Any]) -> None:
        """Apply environment variable overrides to configuration data."""
        if env_driver := os.environ.get("REMAP_DRIVER"):
            data["driver"] = env_driver

        if env_source := os.environ.get("REMAP_DATA_SOURCE"):
            data["data_source"] = env_source

        if env_strict := os.environ.get("REMAP_STRICT_TYPES"):
            data["strict_types"] = env_strict
