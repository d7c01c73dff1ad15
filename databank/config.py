"""Configuration loading for databanks."""

import inspect
import os
from pathlib import Path
from typing import Any

import msgspec
import yaml

from .drivers import Databank, driver_class
from .errors import ConfigError
from .schema import TypeSchema, parse_schema
from .sharding import DEFAULT_HASH_DEPTH, DEFAULT_MODE


class BankConfig(msgspec.Struct, kw_only=True):
    """Settings for one bank instance.

    Only the options the chosen driver accepts are passed to it.
    """

    driver: str = "memory"
    root: str | None = None
    hash_depth: int = DEFAULT_HASH_DEPTH
    mode: int = DEFAULT_MODE
    mktmp: bool = False
    tmp_root: str | None = None
    path: str | None = None
    schema: dict[str, TypeSchema] = msgspec.field(default_factory=dict)
    tolerate_index_errors: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BankConfig":
        """Validate plain data (e.g. parsed YAML) into a config."""
        data = dict(data)
        if "schema" in data:
            data["schema"] = {
                name: msgspec.to_builtins(decl)
                for name, decl in parse_schema(data["schema"]).items()
            }
        try:
            return msgspec.convert(data, cls)
        except msgspec.ValidationError as e:
            raise ConfigError(f"Invalid databank configuration: {e}") from e

    def driver_params(self) -> dict[str, Any]:
        """Options for the configured driver's constructor."""
        cls = driver_class(self.driver)
        accepted = inspect.signature(cls).parameters
        params = {
            "root": self.root,
            "hash_depth": self.hash_depth,
            "mode": self.mode,
            "mktmp": self.mktmp,
            "tmp_root": self.tmp_root,
            "path": self.path,
            "schema": self.schema,
            "tolerate_index_errors": self.tolerate_index_errors,
        }
        return {
            name: value
            for name, value in params.items()
            if name in accepted and value is not None
        }


class Config:
    """Configuration file handling."""

    @staticmethod
    def from_file(path: Path) -> dict[str, Any]:
        """Load configuration from a YAML file."""
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in config file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Error reading config file: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file must hold a mapping: {path}")
        return data

    @staticmethod
    def get_config_paths() -> list[Path]:
        """Get the default configuration file paths to check."""
        paths = []

        xdg_config_home = Path(
            os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")
        )
        paths.append(xdg_config_home / "databank" / "config.yaml")

        paths.append(Path(".databank.yaml"))
        paths.append(Path("databank.yaml"))

        return paths

    @staticmethod
    def merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
        """Merge multiple configuration dictionaries."""
        result: dict[str, Any] = {}
        for config in configs:
            result = _deep_merge(result, config)
        return result


def load_config(paths: list[Path] | None = None) -> BankConfig:
    """Load configuration from files and environment variables.

    Later files win over earlier ones; ``DATABANK_DRIVER``,
    ``DATABANK_ROOT`` and ``DATABANK_PATH`` win over all files.
    """
    config: dict[str, Any] = {}

    for path in paths if paths is not None else Config.get_config_paths():
        if Path(path).exists():
            config = Config.merge_configs(config, Config.from_file(path))

    env_overrides = {}
    if driver := os.environ.get("DATABANK_DRIVER"):
        env_overrides["driver"] = driver
    if root := os.environ.get("DATABANK_ROOT"):
        env_overrides["root"] = root
    if db_path := os.environ.get("DATABANK_PATH"):
        env_overrides["path"] = db_path

    return BankConfig.from_dict(Config.merge_configs(config, env_overrides))


def bank_from_config(config: BankConfig | dict[str, Any] | None = None) -> Databank:
    """Build a (not yet connected) bank from configuration."""
    if config is None:
        config = load_config()
    elif isinstance(config, dict):
        config = BankConfig.from_dict(config)
    return driver_class(config.driver)(**config.driver_params())


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result
