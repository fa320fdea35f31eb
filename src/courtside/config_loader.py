"""Configuration loader and validator."""

from pathlib import Path
from typing import Any, Optional

import yaml

from courtside.paths import get_default_db_path

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


class ConfigError(Exception):
    """Configuration validation error."""

    pass


def load_config(path: str) -> dict[str, Any]:
    """Load configuration from YAML file.

    Args:
        path: Path to YAML config file

    Returns:
        Dictionary with configuration values

    Raises:
        ConfigError: If file not found or invalid YAML
    """
    config_file = Path(path)

    if not config_file.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}")

    if config is None:
        return {}

    if not isinstance(config, dict):
        raise ConfigError("Config file must contain a mapping of settings")

    return config


def _positive_int(config: dict[str, Any], key: str, default: int) -> int:
    value = config.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"{key} must be a positive integer, got {value!r}")
    return value


def validate_config(config: dict[str, Any]) -> dict[str, Any]:
    """Validate configuration values.

    Every key is optional; missing keys get their defaults.

    Args:
        config: Configuration dictionary

    Returns:
        Validated and normalized configuration

    Raises:
        ConfigError: If validation fails
    """
    validated = {}

    # Random seed (optional, None = new draw every time)
    random_seed = config.get("random_seed")
    if random_seed is not None and (isinstance(random_seed, bool) or not isinstance(random_seed, int)):
        raise ConfigError("random_seed must be an integer")
    validated["random_seed"] = random_seed

    validated["seed_matches_per_team"] = _positive_int(config, "seed_matches_per_team", 3)
    validated["total_courts"] = _positive_int(config, "total_courts", 6)
    validated["max_pairing_attempts"] = _positive_int(config, "max_pairing_attempts", 100)

    database = config.get("database") or str(get_default_db_path())
    if not isinstance(database, str):
        raise ConfigError("database must be a file path")
    validated["database"] = database

    log_level = str(config.get("log_level", "INFO")).upper()
    if log_level not in LOG_LEVELS:
        raise ConfigError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got '{log_level}'")
    validated["log_level"] = log_level

    return validated


def load_and_validate_config(path: Optional[str] = None) -> dict[str, Any]:
    """Load and validate configuration in one step.

    Args:
        path: Path to YAML config file (None = defaults only)

    Returns:
        Validated configuration dictionary

    Raises:
        ConfigError: If loading or validation fails
    """
    config = load_config(path) if path else {}
    return validate_config(config)
