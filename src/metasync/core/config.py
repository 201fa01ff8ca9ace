"""
Configuration module for metasync.

Supports loading from YAML/JSON files with environment variable overrides.
Default values are loaded from defaults.yaml for maintainability.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from dataclasses import fields as dataclass_fields
from pathlib import Path
from typing import Any, Optional

import yaml

from metasync.core.iterators import DEFAULT_CHUNK_SIZE

logger = logging.getLogger(__name__)

# Path to the default configuration file
_DEFAULTS_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"

# Cache for default values
_defaults_cache: dict[str, Any] | None = None


def _load_defaults() -> dict[str, Any]:
    """Load default configuration values from defaults.yaml."""
    global _defaults_cache

    if _defaults_cache is not None:
        return _defaults_cache

    if not _DEFAULTS_CONFIG_PATH.exists():
        logger.warning(f"Defaults config not found: {_DEFAULTS_CONFIG_PATH}")
        _defaults_cache = {}
        return _defaults_cache

    try:
        content = _DEFAULTS_CONFIG_PATH.read_text(encoding="utf-8")
        _defaults_cache = yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse defaults config: {e}")
        _defaults_cache = {}

    return _defaults_cache


def _get_default(section: str, key: str, fallback: Any = None) -> Any:
    """Get a default value from the defaults config."""
    defaults = _load_defaults()
    section_defaults = defaults.get(section) or {}
    return section_defaults.get(key, fallback)


@dataclass
class SyncConfig:
    """Configuration for a sync run.

    Attributes:
        chunk_size: Maximum number of fsevents handed to the destination at once
        fields: Field names to sync, empty for every field
    """

    chunk_size: int = field(
        default_factory=lambda: _get_default("sync", "chunk_size", DEFAULT_CHUNK_SIZE)
    )
    fields: list[str] = field(
        default_factory=lambda: list(_get_default("sync", "fields", None) or [])
    )


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = field(default_factory=lambda: _get_default("logging", "level", "WARNING"))
    format: str = field(
        default_factory=lambda: _get_default(
            "logging", "format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
    )


@dataclass
class MetasyncConfig:
    """Main configuration class for metasync."""

    sync: SyncConfig = field(default_factory=SyncConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_file(cls, path: Path | str) -> "MetasyncConfig":
        """
        Load configuration from a YAML or JSON file.

        Args:
            path: Path to the configuration file (.yaml, .yml, or .json)

        Returns:
            MetasyncConfig instance with loaded values

        Raises:
            FileNotFoundError: If the config file doesn't exist
            ValueError: If the file format is unsupported, the file cannot be
                parsed or it holds unknown keys
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        content = path.read_text(encoding="utf-8")

        try:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(content) or {}
            elif path.suffix == ".json":
                data = json.loads(content) if content.strip() else {}
            else:
                raise ValueError(f"Unsupported config file format: {path.suffix}")
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ValueError(f"Invalid configuration file {path}: {e}") from e

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: Any) -> "MetasyncConfig":
        """Create MetasyncConfig from a dictionary."""
        if not isinstance(data, dict):
            raise ValueError("Configuration must be a mapping of sections")
        unknown = sorted(str(key) for key in set(data) - {"sync", "logging"})
        if unknown:
            raise ValueError(f"Unknown configuration section(s): {', '.join(unknown)}")

        config = cls()
        if "sync" in data:
            config.sync = _build_section(SyncConfig, "sync", data["sync"])
        if "logging" in data:
            config.logging = _build_section(LoggingConfig, "logging", data["logging"])

        return config

    def apply_env_overrides(self) -> "MetasyncConfig":
        """
        Apply environment variable overrides to the configuration.

        Environment variables follow the pattern: METASYNC_<SECTION>_<KEY>
        Examples:
            - METASYNC_SYNC_CHUNK_SIZE
            - METASYNC_SYNC_FIELDS (comma-separated)
            - METASYNC_LOGGING_LEVEL

        Returns:
            Self with environment overrides applied
        """
        env_mappings = {
            "METASYNC_SYNC_CHUNK_SIZE": ("sync", "chunk_size", int),
            "METASYNC_SYNC_FIELDS": ("sync", "fields", _parse_list),
            "METASYNC_LOGGING_LEVEL": ("logging", "level", str),
            "METASYNC_LOGGING_FORMAT": ("logging", "format", str),
        }

        for env_var, (section, key, converter) in env_mappings.items():
            value = os.environ.get(env_var)
            if value is not None:
                section_obj = getattr(self, section)
                setattr(section_obj, key, converter(value))

        return self

    def validate(self) -> "MetasyncConfig":
        """
        Check values that cannot be enforced by types alone.

        Raises:
            ValueError: If a value is out of range
        """
        if not isinstance(self.sync.chunk_size, int):
            raise ValueError(f"sync.chunk_size must be an integer, got {self.sync.chunk_size!r}")
        if self.sync.chunk_size < 1:
            raise ValueError(f"sync.chunk_size must be positive, got {self.sync.chunk_size}")
        level = self.logging.level
        if not isinstance(level, str) or not isinstance(logging.getLevelName(level.upper()), int):
            raise ValueError(f"Unknown logging level: {self.logging.level}")
        return self

    def to_dict(self) -> dict:
        """Convert configuration to a dictionary."""
        return asdict(self)

    def to_yaml(self) -> str:
        """Serialize configuration to YAML string."""
        return yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)

    def to_json(self) -> str:
        """Serialize configuration to JSON string."""
        return json.dumps(self.to_dict(), indent=2)

    def save(self, path: Path | str) -> None:
        """
        Save configuration to a file.

        Args:
            path: Path to save the configuration (.yaml, .yml, or .json)

        Raises:
            ValueError: If the file format is unsupported
        """
        path = Path(path)

        if path.suffix in (".yaml", ".yml"):
            content = self.to_yaml()
        elif path.suffix == ".json":
            content = self.to_json()
        else:
            raise ValueError(f"Unsupported config file format: {path.suffix}")

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


def _build_section(section_cls: type, name: str, values: Any) -> Any:
    """Instantiate one config section, rejecting keys it does not define."""
    if values is None:
        return section_cls()
    if not isinstance(values, dict):
        raise ValueError(f"Configuration section '{name}' must be a mapping")
    known = {f.name for f in dataclass_fields(section_cls)}
    unknown = sorted(str(key) for key in set(values) - known)
    if unknown:
        raise ValueError(
            f"Unknown key(s) in configuration section '{name}': {', '.join(unknown)}"
        )
    return section_cls(**values)


def _parse_list(value: str) -> list[str]:
    """Parse a comma-separated string into a list of non-empty items."""
    return [item.strip() for item in value.split(",") if item.strip()]


def configure_logging(config: LoggingConfig, verbose: bool = False) -> None:
    """Configure the root logger from ``config``; ``verbose`` forces DEBUG."""
    level = logging.DEBUG if verbose else getattr(logging, config.level.upper(), logging.WARNING)
    logging.basicConfig(level=level, format=config.format, force=True)


def load_config(config_path: Optional[Path | str] = None, apply_env: bool = True) -> MetasyncConfig:
    """
    Load configuration with optional environment variable overrides.

    Args:
        config_path: Optional path to config file. If None, uses defaults.
        apply_env: Whether to apply environment variable overrides.

    Returns:
        MetasyncConfig instance
    """
    if config_path:
        config = MetasyncConfig.from_file(config_path)
    else:
        config = MetasyncConfig()

    if apply_env:
        config.apply_env_overrides()

    return config
