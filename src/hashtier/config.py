"""Configuration for the tiered file system.

Configuration is a set of dataclasses with working defaults. ``load_config``
builds them from an optional YAML, JSON or TOML file merged with environment
variables, environment taking precedence:

    HASHTIER__FILEDIR=/var/data/filedir
    HASHTIER__PREFER_REMOTE=true
    HASHTIER__S3__BUCKET=content
    HASHTIER__DIR_PERMISSIONS=02777

Usage:
    >>> from hashtier.config import load_config
    >>> config = load_config("hashtier.yaml")
    >>> config.prefer_remote
    False
"""

from __future__ import annotations

import json
import logging
import os
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from hashtier.backends.local import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_DIR_PERMISSIONS,
    DEFAULT_FILE_PERMISSIONS,
)
from hashtier.backends.s3 import S3Config
from hashtier.base import Tier

logger = logging.getLogger(__name__)

ENV_PREFIX = "HASHTIER"


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigError(Exception):
    """Raised when configuration cannot be loaded or is invalid."""

    pass


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class LedgerConfig:
    """Configuration for the location ledger.

    Attributes:
        url: SQLAlchemy connection URL. None selects the in-memory ledger.
        echo: Whether to echo SQL statements.
    """

    url: str | None = None
    echo: bool = False


@dataclass
class TieredFileSystemConfig:
    """Configuration for the tiered file system.

    Attributes:
        filedir: Base directory of the local store.
        trashdir: Base directory of trashed content, used by trash recovery.
        dir_permissions: Mode for directories created in the local store.
        file_permissions: Mode for files written to the local store.
        chunk_size: Bytes per read when streaming content.
        hash_algorithm: hashlib algorithm that produced the content hashes.
        prefer_remote: Serve duplicated content from the remote store.
        unknown_tier_fallback: Tier assumed for unrecognised ledger values.
        recovery: Recovery procedures to try, in order
            ("trash", "remote", "none").
        s3: Remote store configuration.
        ledger: Location ledger configuration.
    """

    filedir: str = "filedir"
    trashdir: str | None = None
    dir_permissions: int = DEFAULT_DIR_PERMISSIONS
    file_permissions: int = DEFAULT_FILE_PERMISSIONS
    chunk_size: int = DEFAULT_CHUNK_SIZE
    hash_algorithm: str = "sha1"
    prefer_remote: bool = False
    unknown_tier_fallback: Tier = Tier.LOCAL
    recovery: list[str] = field(default_factory=lambda: ["trash"])
    s3: S3Config = field(default_factory=S3Config)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TieredFileSystemConfig":
        """Create from a (possibly nested) dictionary.

        Raises:
            ConfigError: If a value cannot be converted.
        """
        values = dict(data)
        try:
            s3 = _build(S3Config, values.pop("s3", None) or {})
            ledger = _build(LedgerConfig, values.pop("ledger", None) or {})

            if "dir_permissions" in values:
                values["dir_permissions"] = _parse_mode(values["dir_permissions"])
            if "file_permissions" in values:
                values["file_permissions"] = _parse_mode(values["file_permissions"])
            if "unknown_tier_fallback" in values:
                values["unknown_tier_fallback"] = Tier(values["unknown_tier_fallback"])
            if "recovery" in values:
                values["recovery"] = _parse_list(values["recovery"])
            for key in ("filedir", "trashdir"):
                if values.get(key) is not None:
                    values[key] = str(values[key])

            config = _build(cls, values)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration: {e}")

        config.s3 = s3
        config.ledger = ledger
        return config


def _build(cls: type, values: dict[str, Any]) -> Any:
    names = {f.name for f in fields(cls)}
    unknown = sorted(set(values) - names)
    if unknown:
        logger.warning(f"Ignoring unknown {cls.__name__} keys: {', '.join(unknown)}")
    return cls(**{k: v for k, v in values.items() if k in names})


def _parse_mode(value: Any) -> int:
    """Parse a permission mode; strings are read as octal."""
    if isinstance(value, str):
        return int(value, 8)
    return int(value)


def _parse_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(part) for part in value]


# =============================================================================
# Configuration Sources
# =============================================================================


class EnvConfigSource:
    """Environment variable configuration source.

    Reads variables with the prefix; the separator splits nested keys.

    Example:
        HASHTIER__S3__BUCKET=content
        HASHTIER__PREFER_REMOTE=true

        Will produce:
        {"s3": {"bucket": "content"}, "prefer_remote": True}
    """

    def __init__(
        self,
        prefix: str = ENV_PREFIX,
        separator: str = "__",
        environ: dict[str, str] | None = None,
    ) -> None:
        """Initialize environment source.

        Args:
            prefix: Environment variable prefix.
            separator: Separator for the prefix and nested keys.
            environ: Mapping to read instead of ``os.environ``.
        """
        self._prefix = prefix
        self._separator = separator
        self._environ = environ

    def load(self) -> dict[str, Any]:
        """Load configuration from environment."""
        environ = os.environ if self._environ is None else self._environ
        result: dict[str, Any] = {}
        prefix = f"{self._prefix}{self._separator}"

        for key, value in environ.items():
            if not key.startswith(prefix):
                continue
            parts = key[len(prefix):].lower().split(self._separator)

            current = result
            for part in parts[:-1]:
                current = current.setdefault(part, {})
            current[parts[-1]] = self._parse_value(value)

        return result

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "yes", "on"):
            return True
        if value.lower() in ("false", "no", "off"):
            return False

        if value.lower() in ("null", "none", ""):
            return None

        # Leading zeros mark octal modes, keep them as strings
        if len(value) > 1 and value.startswith("0") and value.isdigit():
            return value

        try:
            return int(value)
        except ValueError:
            pass

        if value.startswith(("[", "{")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value


class FileConfigSource:
    """File-based configuration source.

    Supports YAML, JSON, and TOML formats, detected from the file extension.
    """

    def __init__(self, path: str | Path, *, required: bool = False) -> None:
        """Initialize file source.

        Args:
            path: Path to configuration file.
            required: Raise error if file not found.
        """
        self._path = Path(path)
        self._required = required

    def load(self) -> dict[str, Any]:
        """Load configuration from file.

        Raises:
            ConfigError: If the file is required and missing, or unreadable.
        """
        if not self._path.exists():
            if self._required:
                raise ConfigError(f"Configuration file not found: {self._path}")
            return {}

        suffix = self._path.suffix.lower()
        try:
            content = self._path.read_text(encoding="utf-8")
            if suffix in (".yaml", ".yml"):
                data = yaml.safe_load(content) or {}
            elif suffix == ".json":
                data = json.loads(content)
            elif suffix == ".toml":
                data = tomllib.loads(content)
            else:
                raise ConfigError(f"Unsupported file format: {suffix}")
        except (OSError, yaml.YAMLError, json.JSONDecodeError, tomllib.TOMLDecodeError) as e:
            raise ConfigError(f"Failed to load config {self._path}: {e}")

        if not isinstance(data, dict):
            raise ConfigError(f"Configuration root must be a mapping: {self._path}")
        return data


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(
    path: str | Path | None = None,
    env_prefix: str = ENV_PREFIX,
    environ: dict[str, str] | None = None,
) -> TieredFileSystemConfig:
    """Load configuration from a file and the environment.

    Args:
        path: Optional configuration file; must exist when given.
        env_prefix: Prefix of environment variables to read.
        environ: Mapping to read instead of ``os.environ``.

    Returns:
        The merged configuration.

    Raises:
        ConfigError: If the file or a value is invalid.
    """
    data: dict[str, Any] = {}
    if path is not None:
        data = FileConfigSource(path, required=True).load()

    data = _deep_merge(data, EnvConfigSource(env_prefix, environ=environ).load())
    return TieredFileSystemConfig.from_dict(data)
