"""
Configuration Management for TurboLoader

Provides configuration loading from multiple sources:
- Default values
- Configuration files (YAML, TOML, JSON)
- Environment variables
- Command line arguments

Configuration precedence (highest to lowest):
1. Command line arguments
2. Environment variables (TURBOLOADER_*)
3. Configuration file
4. Default values
"""

import json
import logging
import logging.handlers
import os
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)


# ============================================================================
# Configuration Dataclasses
# ============================================================================


@dataclass
class StoreConfig:
    """Configuration for the target key/value store."""

    # 'json' (localStorage dump) or 'sql' (SQLite via SQLAlchemy)
    backend: str = "json"
    path: str | None = None

    # Key version used when the store has no versioned keys at all
    default_version: int = 4


@dataclass
class ImportConfig:
    """Configuration for track import."""

    # skip, overwrite or rename
    collision_policy: str = "skip"

    # Rewrite newer payload tags to PolyTrack1 for older game builds
    legacy_mode: bool = False

    # Pause between writes, for slow stores
    write_delay_ms: int = 0


@dataclass
class ExportConfig:
    """Configuration for exports and reports."""

    output_dir: str = "."
    timestamp_format: str = "%Y-%m-%d_%H-%M-%S"
    write_failed_report: bool = True


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: str | None = None
    file_max_bytes: int = 10 * 1024 * 1024  # 10MB
    file_backup_count: int = 5


@dataclass
class TurboLoaderConfig:
    """Main configuration container."""

    store: StoreConfig = field(default_factory=StoreConfig)
    importer: ImportConfig = field(default_factory=ImportConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Version of the config format
    config_version: str = "1.0"


SECTIONS = ("store", "importer", "export", "logging")


# ============================================================================
# Configuration Loading
# ============================================================================

CONFIG_FILE_NAMES = ("turboloader.yaml", "turboloader.toml", "turboloader.json", ".turboloader.yaml")

# Environment variable -> (section, option)
ENV_OPTIONS = {
    "TURBOLOADER_STORE_BACKEND": ("store", "backend"),
    "TURBOLOADER_STORE_PATH": ("store", "path"),
    "TURBOLOADER_DEFAULT_VERSION": ("store", "default_version"),
    "TURBOLOADER_COLLISION_POLICY": ("importer", "collision_policy"),
    "TURBOLOADER_LEGACY_MODE": ("importer", "legacy_mode"),
    "TURBOLOADER_WRITE_DELAY_MS": ("importer", "write_delay_ms"),
    "TURBOLOADER_OUTPUT_DIR": ("export", "output_dir"),
    "TURBOLOADER_LOG_LEVEL": ("logging", "level"),
    "TURBOLOADER_LOG_FILE": ("logging", "file"),
}

TRUE_VALUES = ("1", "true", "yes", "on")
FALSE_VALUES = ("0", "false", "no", "off")


def get_default_config_paths() -> list[Path]:
    """Config files to look for when none is given, first match wins."""
    home = Path.home()
    user_dir = Path(os.environ.get("XDG_CONFIG_HOME", home / ".config")) / "turboloader"

    paths = [Path.cwd() / name for name in CONFIG_FILE_NAMES]
    paths.extend([user_dir / "config.yaml", user_dir / "config.toml", home / ".turboloader.yaml"])
    return paths


def _read_yaml(path: Path) -> Any:
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f)


def _read_toml(path: Path) -> Any:
    with open(path, "rb") as f:
        return tomllib.load(f)


def _read_json(path: Path) -> Any:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


CONFIG_READERS = {".yaml": _read_yaml, ".yml": _read_yaml, ".toml": _read_toml, ".json": _read_json}


def load_config_file(path: Path) -> dict[str, Any]:
    """
    Read one config file, picking the parser from its suffix.

    A missing file, an unknown suffix or a file that is not a mapping gives
    an empty dict.
    """
    path = Path(path)
    reader = CONFIG_READERS.get(path.suffix.lower())
    if reader is None:
        logger.warning(f"Unknown config file format: {path.suffix}")
        return {}
    if not path.exists():
        return {}

    data = reader(path)
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring {path}: top level is not a mapping")
        return {}
    return data


def _coerce_option(section: str, option: str, value: str) -> Any:
    """Convert an environment string to the type of the option's default."""
    default = getattr(getattr(TurboLoaderConfig(), section), option)

    if isinstance(default, bool):
        lowered = value.strip().lower()
        if lowered in TRUE_VALUES:
            return True
        if lowered in FALSE_VALUES:
            return False
        raise ValueError(f"expected a boolean, got {value!r}")
    if isinstance(default, int):
        return int(value)
    # Strings and optional paths stay as given
    return value


def load_env_config() -> dict[str, Any]:
    """Collect TURBOLOADER_* environment variables into config sections."""
    config: dict[str, Any] = {}

    for env_var, (section, option) in ENV_OPTIONS.items():
        value = os.environ.get(env_var)
        if value is None:
            continue
        try:
            config.setdefault(section, {})[option] = _coerce_option(section, option, value)
        except ValueError as e:
            logger.warning(f"Ignoring {env_var}: {e}")

    return config


def merge_configs(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge two configuration dictionaries."""
    result = base.copy()

    for key, value in override.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value

    return result


def dict_to_config(data: dict[str, Any]) -> TurboLoaderConfig:
    """Convert a dictionary to TurboLoaderConfig."""
    config = TurboLoaderConfig()

    for section_name in SECTIONS:
        values = data.get(section_name)
        if not isinstance(values, dict):
            continue
        section = getattr(config, section_name)
        for key, value in values.items():
            if hasattr(section, key):
                setattr(section, key, value)
            else:
                logger.warning(f"Ignoring unknown config option: {section_name}.{key}")

    return config


def load_config(config_file: Path | None = None, include_env: bool = True) -> TurboLoaderConfig:
    """
    Load configuration from all sources.

    Args:
        config_file: Explicit path to a config file; the default locations
            are searched when omitted
        include_env: Whether TURBOLOADER_* variables override the file

    Returns:
        Merged TurboLoaderConfig
    """
    if config_file is None:
        config_file = next((p for p in get_default_config_paths() if p.exists()), None)

    config_data = load_config_file(config_file) if config_file is not None else {}
    if config_data:
        logger.debug(f"Loaded config from: {config_file}")

    if include_env:
        config_data = merge_configs(config_data, load_env_config())

    return dict_to_config(config_data)


# ============================================================================
# Configuration Saving
# ============================================================================


def save_config(config: TurboLoaderConfig, path: Path) -> None:
    """
    Save configuration to a .yaml/.yml or .json file.

    Raises:
        ValueError: For any other suffix
    """
    path = Path(path)
    data = asdict(config)
    suffix = path.suffix.lower()

    if suffix in (".yaml", ".yml"):
        text = yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
    elif suffix == ".json":
        text = json.dumps(data, indent=2) + "\n"
    else:
        raise ValueError(f"Unknown config format: {suffix}")

    path.write_text(text, encoding="utf-8")
    logger.info(f"Saved config to: {path}")


# ============================================================================
# Global Configuration
# ============================================================================

_global_config: TurboLoaderConfig | None = None


def get_config() -> TurboLoaderConfig:
    """The process-wide configuration, loaded on first use."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def set_config(config: TurboLoaderConfig | None) -> None:
    """Replace the process-wide configuration (None forces a reload)."""
    global _global_config
    _global_config = config


def reset_config() -> None:
    set_config(None)


# ============================================================================
# Logging Setup
# ============================================================================


def configure_logging(config: LoggingConfig, verbose: bool = False) -> None:
    """Configure root logging from a LoggingConfig."""
    level = logging.DEBUG if verbose else getattr(logging, str(config.level).upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.file:
        Path(config.file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                config.file,
                maxBytes=config.file_max_bytes,
                backupCount=config.file_backup_count,
                encoding="utf-8",
            )
        )

    logging.basicConfig(level=level, format=config.format, handlers=handlers, force=True)


# ============================================================================
# Configuration Templates
# ============================================================================

DEFAULT_CONFIG_YAML = """# TurboLoader Configuration

# Target store
store:
  backend: json        # json (localStorage dump) or sql (SQLite)
  # path: /path/to/localstorage.json
  default_version: 4   # key version when the store has no tracks yet

# Import settings
importer:
  collision_policy: skip   # skip, overwrite or rename
  legacy_mode: false       # convert newer payloads to PolyTrack1
  write_delay_ms: 0

# Export settings
export:
  output_dir: .
  timestamp_format: "%Y-%m-%d_%H-%M-%S"
  write_failed_report: true

# Logging settings
logging:
  level: INFO
  # file: /path/to/turboloader.log
"""


def generate_default_config(path: Path) -> None:
    """Generate a default configuration file."""
    suffix = path.suffix.lower()

    if suffix in (".yaml", ".yml"):
        path.write_text(DEFAULT_CONFIG_YAML)
    else:
        config = TurboLoaderConfig()
        save_config(config, path)

    logger.info(f"Generated default config at: {path}")
