# config.py
import os
import yaml
from loguru import logger

# Default settings, overridden by the YAML file passed with --config
DEFAULT_CONFIG = {
    "archive": False,    # Write <subdirectory>.tar after flattening
    "delete": False,     # Remove the subdirectory after flattening (and archiving)
    "dry_run": False,    # Only log what would be done
    "log_level": "INFO", # Minimum severity of messages on stderr
    "log_file": None,    # Optional log file, in addition to stderr
}


class ConfigError(Exception):
    """Raised when a configuration file cannot be read or parsed."""


def check_log_level(level, path=None):
    """Return the level name in upper case if loguru knows it."""
    if isinstance(level, bool) or not isinstance(level, str):
        raise ConfigError(f"Config {path}: 'log_level' must be a level name, got {level!r}")
    try:
        logger.level(level.upper())
    except ValueError as e:
        raise ConfigError(f"Config {path}: unknown log level {level!r}") from e
    return level.upper()


def load_config(path=None):
    """Load settings from a YAML file merged over the defaults."""
    config = DEFAULT_CONFIG.copy()
    if path is None:
        return config

    if not os.path.isfile(path):
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            user_config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load config {path}: {e}") from e

    if not isinstance(user_config, dict):
        raise ConfigError(f"Config {path} must be a mapping, got {type(user_config).__name__}")

    unexpected_keys = set(user_config) - set(DEFAULT_CONFIG)
    if unexpected_keys:
        logger.warning(f"Ignored unknown setting(s): {sorted(unexpected_keys)}")

    config.update({
        key: value for key, value in user_config.items()
        if key in DEFAULT_CONFIG
    })
    for key in ("archive", "delete", "dry_run"):
        if not isinstance(config[key], bool):
            raise ConfigError(f"Config {path}: '{key}' must be true or false, got {config[key]!r}")

    config["log_level"] = check_log_level(config["log_level"], path)

    if config["log_file"] is not None and not isinstance(config["log_file"], str):
        raise ConfigError(f"Config {path}: 'log_file' must be a path, got {config['log_file']!r}")
    return config
