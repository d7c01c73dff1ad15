"""Tests for schema parsing and configuration loading."""

from pathlib import Path

import pytest
import yaml

from databank.config import BankConfig, Config, bank_from_config, load_config
from databank.errors import ConfigError, UnknownDriverError
from databank.schema import TypeSchema, parse_schema


class TestParseSchema:
    """Plain mappings become TypeSchema declarations."""

    def test_empty(self):
        assert parse_schema(None) == {}
        assert parse_schema({}) == {}

    def test_declarations(self):
        schema = parse_schema(
            {
                "user": {"pkey": "username", "indices": ["age", "name.last"]},
                "activity": {"indices": ["verb"]},
                "note": None,
            }
        )

        assert schema["user"] == TypeSchema(
            pkey="username", indices=("age", "name.last")
        )
        assert schema["activity"].pkey is None
        assert schema["activity"].indices == ("verb",)
        assert schema["note"] == TypeSchema()

    def test_typeschema_passthrough(self):
        declaration = TypeSchema(pkey="slug")
        assert parse_schema({"page": declaration})["page"] is declaration

    def test_invalid_declaration(self):
        with pytest.raises(ConfigError, match="user"):
            parse_schema({"user": {"indices": 5}})

    def test_not_a_mapping(self):
        with pytest.raises(ConfigError):
            parse_schema(["user"])


class TestBankConfig:
    """BankConfig validation and driver parameter selection."""

    def test_defaults(self):
        config = BankConfig()

        assert config.driver == "memory"
        assert config.hash_depth == 3
        assert config.mode == 0o755
        assert config.schema == {}

    def test_from_dict(self):
        config = BankConfig.from_dict(
            {
                "driver": "disk",
                "root": "/srv/data",
                "hash_depth": 2,
                "schema": {"user": {"pkey": "username", "indices": ["age"]}},
            }
        )

        assert config.driver == "disk"
        assert config.root == "/srv/data"
        assert config.hash_depth == 2
        assert config.schema["user"] == TypeSchema(pkey="username", indices=("age",))

    def test_from_dict_invalid(self):
        with pytest.raises(ConfigError, match="Invalid databank configuration"):
            BankConfig.from_dict({"hash_depth": "deep"})

    def test_memory_params(self):
        config = BankConfig.from_dict(
            {"driver": "memory", "root": "/ignored", "tolerate_index_errors": True}
        )

        assert config.driver_params() == {"schema": {}, "tolerate_index_errors": True}

    def test_disk_params(self):
        config = BankConfig.from_dict({"driver": "disk", "root": "/srv/data"})

        assert config.driver_params() == {
            "root": "/srv/data",
            "hash_depth": 3,
            "mode": 0o755,
            "mktmp": False,
            "schema": {},
        }

    def test_sqlite_params(self):
        config = BankConfig.from_dict({"driver": "sqlite", "path": "/srv/bank.db"})

        assert config.driver_params() == {"path": "/srv/bank.db", "schema": {}}

    def test_unknown_driver(self):
        with pytest.raises(UnknownDriverError):
            BankConfig(driver="cassandra").driver_params()


class TestConfigFiles:
    """Loading, merging and overriding configuration."""

    def test_from_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"driver": "disk", "root": "/srv/data"}))

        assert Config.from_file(path) == {"driver": "disk", "root": "/srv/data"}

    def test_from_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert Config.from_file(path) == {}

    def test_from_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("driver: [unclosed")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            Config.from_file(path)

    def test_from_non_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ConfigError, match="mapping"):
            Config.from_file(path)

    def test_from_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="Error reading"):
            Config.from_file(tmp_path / "absent.yaml")

    def test_config_paths(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

        paths = Config.get_config_paths()

        assert paths[0] == tmp_path / "databank" / "config.yaml"
        assert Path(".databank.yaml") in paths
        assert Path("databank.yaml") in paths

    def test_merge_configs(self):
        merged = Config.merge_configs(
            {"driver": "disk", "schema": {"user": {"pkey": "username"}}},
            {"schema": {"user": {"indices": ["age"]}, "activity": {}}},
            {"driver": "sqlite"},
        )

        assert merged == {
            "driver": "sqlite",
            "schema": {
                "user": {"pkey": "username", "indices": ["age"]},
                "activity": {},
            },
        }

    def test_load_config_later_files_win(self, tmp_path):
        first = tmp_path / "first.yaml"
        second = tmp_path / "second.yaml"
        first.write_text("driver: disk\nroot: /first\nhash_depth: 2\n")
        second.write_text("root: /second\n")

        config = load_config([first, tmp_path / "absent.yaml", second])

        assert config.driver == "disk"
        assert config.root == "/second"
        assert config.hash_depth == 2

    def test_load_config_env_overrides(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("driver: disk\nroot: /from/file\n")
        monkeypatch.setenv("DATABANK_DRIVER", "sqlite")
        monkeypatch.setenv("DATABANK_ROOT", "/from/env")
        monkeypatch.setenv("DATABANK_PATH", "/from/env.db")

        config = load_config([path])

        assert config.driver == "sqlite"
        assert config.root == "/from/env"
        assert config.path == "/from/env.db"

    def test_load_config_defaults(self):
        assert load_config([]) == BankConfig()

    def test_load_config_default_paths(self, tmp_path, monkeypatch):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        monkeypatch.chdir(tmp_path)
        (tmp_path / "databank.yaml").write_text("driver: sqlite\n")

        assert load_config().driver == "sqlite"


class TestBankFromConfig:
    """Building banks from configuration."""

    def test_from_dict(self, tmp_path):
        from databank.drivers.disk import DiskDatabank

        bank = bank_from_config(
            {"driver": "disk", "root": str(tmp_path), "hash_depth": 1}
        )

        assert isinstance(bank, DiskDatabank)
        assert bank.root == tmp_path
        assert bank.hash_depth == 1
        assert bank.connected is False

    def test_schema_reaches_driver(self):
        bank = bank_from_config(
            BankConfig.from_dict(
                {"driver": "memory", "schema": {"user": {"pkey": "username"}}}
            )
        )

        assert bank.pkey("user") == "username"

    def test_from_environment(self, tmp_path, monkeypatch):
        from databank.drivers.sqlite import SQLiteDatabank

        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("DATABANK_DRIVER", "sqlite")
        monkeypatch.setenv("DATABANK_PATH", str(tmp_path / "bank.db"))

        bank = bank_from_config()

        assert isinstance(bank, SQLiteDatabank)
        assert bank.path == str(tmp_path / "bank.db")

    @pytest.mark.asyncio
    async def test_configured_bank_works(self, tmp_path):
        bank = bank_from_config(
            {
                "driver": "disk",
                "mktmp": True,
                "tmp_root": str(tmp_path),
                "schema": {"user": {"pkey": "username"}},
            }
        )

        async with bank:
            created = await bank.create("user", "evan", {"age": 43})

        assert created == {"username": "evan", "age": 43}
