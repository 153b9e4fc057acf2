"""Unit tests for configuration loading."""

from __future__ import annotations

import json

import pytest

from hashtier.base import Tier
from hashtier.config import (
    ConfigError,
    EnvConfigSource,
    FileConfigSource,
    TieredFileSystemConfig,
    load_config,
)


class TestTieredFileSystemConfig:
    """Tests for TieredFileSystemConfig."""

    def test_defaults(self) -> None:
        """Test default configuration values."""
        config = TieredFileSystemConfig()

        assert config.prefer_remote is False
        assert config.unknown_tier_fallback is Tier.LOCAL
        assert config.dir_permissions == 0o2777
        assert config.file_permissions == 0o666
        assert config.recovery == ["trash"]
        assert config.s3.bucket == ""
        assert config.ledger.url is None

    def test_from_dict(self) -> None:
        """Test building nested configuration from a dictionary."""
        config = TieredFileSystemConfig.from_dict({
            "filedir": "/var/data/filedir",
            "prefer_remote": True,
            "dir_permissions": "0775",
            "file_permissions": 0o640,
            "unknown_tier_fallback": "external",
            "recovery": "trash, remote",
            "s3": {"bucket": "content", "prefix": "files/"},
            "ledger": {"url": "sqlite://"},
        })

        assert config.filedir == "/var/data/filedir"
        assert config.prefer_remote is True
        assert config.dir_permissions == 0o775
        assert config.file_permissions == 0o640
        assert config.unknown_tier_fallback is Tier.EXTERNAL
        assert config.recovery == ["trash", "remote"]
        assert config.s3.bucket == "content"
        assert config.s3.get_key("ab12") == "files/ab12"
        assert config.ledger.url == "sqlite://"

    def test_unknown_keys_ignored(self) -> None:
        """Test that unknown keys do not fail loading."""
        config = TieredFileSystemConfig.from_dict({"colour": "blue", "s3": {"acl": "x"}})

        assert not hasattr(config, "colour")

    @pytest.mark.parametrize(
        "data",
        [
            {"unknown_tier_fallback": "cold"},
            {"dir_permissions": "rwx"},
        ],
    )
    def test_invalid_values(self, data) -> None:
        """Test that unconvertible values raise ConfigError."""
        with pytest.raises(ConfigError):
            TieredFileSystemConfig.from_dict(data)


class TestEnvConfigSource:
    """Tests for EnvConfigSource."""

    def test_nested_keys(self) -> None:
        """Test that the separator nests keys."""
        source = EnvConfigSource(environ={
            "HASHTIER__S3__BUCKET": "content",
            "HASHTIER__PREFER_REMOTE": "true",
            "OTHER__FILEDIR": "/ignored",
        })

        assert source.load() == {"s3": {"bucket": "content"}, "prefer_remote": True}

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("yes", True),
            ("off", False),
            ("none", None),
            ("", None),
            ("65536", 65536),
            ("02777", "02777"),
            ('["trash", "remote"]', ["trash", "remote"]),
            ("/var/data", "/var/data"),
        ],
    )
    def test_value_parsing(self, raw, expected) -> None:
        """Test conversion of raw environment strings."""
        source = EnvConfigSource(environ={"HASHTIER__VALUE": raw})

        assert source.load() == {"value": expected}


class TestFileConfigSource:
    """Tests for FileConfigSource."""

    def test_yaml(self, tmp_path) -> None:
        """Test loading YAML."""
        path = tmp_path / "hashtier.yaml"
        path.write_text("filedir: /data\ns3:\n  bucket: content\n")

        assert FileConfigSource(path).load() == {"filedir": "/data", "s3": {"bucket": "content"}}

    def test_json(self, tmp_path) -> None:
        """Test loading JSON."""
        path = tmp_path / "hashtier.json"
        path.write_text(json.dumps({"prefer_remote": True}))

        assert FileConfigSource(path).load() == {"prefer_remote": True}

    def test_toml(self, tmp_path) -> None:
        """Test loading TOML."""
        path = tmp_path / "hashtier.toml"
        path.write_text('filedir = "/data"\n\n[ledger]\nurl = "sqlite://"\n')

        assert FileConfigSource(path).load() == {
            "filedir": "/data",
            "ledger": {"url": "sqlite://"},
        }

    def test_missing_optional(self, tmp_path) -> None:
        """Test that a missing optional file is empty."""
        assert FileConfigSource(tmp_path / "missing.yaml").load() == {}

    def test_missing_required(self, tmp_path) -> None:
        """Test that a missing required file raises."""
        with pytest.raises(ConfigError):
            FileConfigSource(tmp_path / "missing.yaml", required=True).load()

    def test_unsupported_format(self, tmp_path) -> None:
        """Test that unknown extensions raise."""
        path = tmp_path / "hashtier.ini"
        path.write_text("[hashtier]\n")

        with pytest.raises(ConfigError):
            FileConfigSource(path).load()

    def test_invalid_yaml(self, tmp_path) -> None:
        """Test that malformed files raise."""
        path = tmp_path / "hashtier.yaml"
        path.write_text("filedir: [unclosed\n")

        with pytest.raises(ConfigError):
            FileConfigSource(path).load()

    def test_non_mapping_root(self, tmp_path) -> None:
        """Test that a non-mapping document raises."""
        path = tmp_path / "hashtier.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigError):
            FileConfigSource(path).load()


class TestLoadConfig:
    """Tests for load_config."""

    def test_environment_only(self) -> None:
        """Test loading without a file."""
        config = load_config(environ={"HASHTIER__FILEDIR": "/data"})

        assert config.filedir == "/data"

    def test_environment_overrides_file(self, tmp_path) -> None:
        """Test that environment values take precedence over the file."""
        path = tmp_path / "hashtier.yaml"
        path.write_text(
            "filedir: /data\nprefer_remote: false\ns3:\n  bucket: from-file\n  prefix: files/\n"
        )

        config = load_config(
            path,
            environ={
                "HASHTIER__PREFER_REMOTE": "true",
                "HASHTIER__S3__BUCKET": "from-env",
            },
        )

        assert config.filedir == "/data"
        assert config.prefer_remote is True
        assert config.s3.bucket == "from-env"
        assert config.s3.prefix == "files/"

    def test_octal_mode_from_environment(self) -> None:
        """Test permission modes given as octal strings."""
        config = load_config(environ={"HASHTIER__DIR_PERMISSIONS": "02775"})

        assert config.dir_permissions == 0o2775

    def test_custom_prefix(self) -> None:
        """Test reading a different environment prefix."""
        config = load_config(
            env_prefix="CONTENT",
            environ={"CONTENT__FILEDIR": "/content", "HASHTIER__FILEDIR": "/ignored"},
        )

        assert config.filedir == "/content"

    def test_missing_file_raises(self, tmp_path) -> None:
        """Test that an explicitly given file must exist."""
        with pytest.raises(ConfigError):
            load_config(tmp_path / "missing.yaml", environ={})
