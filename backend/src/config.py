import logging
import os
import re
from pathlib import Path
from typing import Any

import toml

from errors import ConfigurationError

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def resolve_path(path: str | Path, config_path: Path) -> Path:
    """Resolve a path relative to the config file's parent directory.

    Absolute paths are returned unchanged.
    """
    path = Path(path)
    if path.is_absolute():
        return path
    return (config_path.parent / path).resolve()


def find_config_path(explicit_path: Path | None = None) -> Path:
    """Locate config.toml: explicit path, working directory, then repo root."""
    if explicit_path:
        return explicit_path
    candidates = [
        Path("config.toml"),
        Path(__file__).parent.parent.parent / "config.toml",
    ]
    for path in candidates:
        if path.exists():
            return path
    raise FileNotFoundError("config.toml not found")


def load_config(config_path: Path = Path("config.toml")) -> dict[str, Any]:
    """Load configuration from a TOML file with environment variable substitution.

    Supports ${ENV_VAR} and ${ENV_VAR:-default} syntax.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the file is not valid TOML.
    """
    try:
        config = toml.load(config_path)
    except toml.TomlDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e
    return _substitute_env_vars(config)


def _substitute_env_vars(value: Any) -> Any:
    """Recursively substitute environment variables in config values."""
    if isinstance(value, str):
        return _substitute_string(value)
    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]
    return value


def _substitute_string(value: str) -> str:
    pattern = r"\$\{([^}:]+)(?::-([^}]*))?\}"

    def replacer(match):
        var_name = match.group(1)
        default = match.group(2) or ""
        return os.environ.get(var_name, default)

    return re.sub(pattern, replacer, value)


def get_config_value(config: dict, key_path: str, default: Any = None) -> Any:
    """Get a nested config value using dot notation (e.g. "retrieval.top_k")."""
    value = config
    for key in key_path.split("."):
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default
    return value


def get_positive_int(config: dict, key_path: str, default: int) -> int:
    """Read an integer setting that must be strictly positive.

    Values coming from environment substitution arrive as strings and are
    converted here.
    """
    raw = get_config_value(config, key_path, default)
    try:
        value = int(raw)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"'{key_path}' must be an integer, got {raw!r}") from e
    if value <= 0:
        raise ConfigurationError(f"'{key_path}' must be positive, got {value}")
    return value


def get_unit_float(config: dict, key_path: str, default: float) -> float:
    """Read a float setting constrained to [0, 1]."""
    raw = get_config_value(config, key_path, default)
    try:
        value = float(raw)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"'{key_path}' must be a number, got {raw!r}") from e
    if not 0.0 <= value <= 1.0:
        raise ConfigurationError(f"'{key_path}' must be within [0, 1], got {value}")
    return value


def get_storage_dir(config: dict, config_path: Path) -> Path:
    """Resolved absolute path of the storage directory."""
    storage_dir = config.get("storage", {}).get("directory", "storage")
    return resolve_path(storage_dir, config_path)


def configure_logging(config: dict | None = None) -> None:
    """Apply the [logging] section to the root logger."""
    level_name = str(get_config_value(config or {}, "logging.level", "INFO")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        raise ConfigurationError(f"Unknown log level: {level_name}")
    logging.basicConfig(level=level, format=LOG_FORMAT)
