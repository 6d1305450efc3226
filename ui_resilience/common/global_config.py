"""
================================================================================
Global Configuration for UI Resilience
================================================================================

Centralized configuration management for the resilience engine, including
logging setup and configuration file loading.

Features:
    - YAML-based configuration loading (config/config.yaml)
    - Environment-specific overlays (config/{ENV}.yaml)
    - Environment variable overrides (RESILIENCE__RETRY__DEFAULT_DELAY=0.2)
    - Loguru sinks configured from the logging section

Author: Automation Team
License: MIT
================================================================================
"""

import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from loguru import logger

# Process-wide configuration tree, loaded lazily
_config: Dict[str, Any] = {}
_logger_initialized: bool = False

DEFAULT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


class ConfigurationError(Exception):
    """Raised when configuration loading or access fails."""
    pass


def init_logger(level: str = None, format_str: str = None) -> None:
    """
    Configure loguru once for the whole process: a stderr sink, plus a
    rotating file sink when logging.file is set.
    
    Args:
        level: Minimum level; falls back to logging.level
        format_str: Sink format; falls back to logging.format
    """
    global _logger_initialized
    
    if _logger_initialized:
        return
    
    _ensure_config_loaded()
    
    log_level = level or get_config("logging.level", "INFO")
    log_format = format_str or get_config("logging.format", DEFAULT_FORMAT)
    
    logger.remove()
    logger.add(
        sys.stderr,
        level=str(log_level).upper(),
        format=log_format,
        colorize=True,
        backtrace=True,
        diagnose=False,
    )
    
    log_file = get_config("logging.file", None)
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level=str(log_level).upper(),
            format=log_format.replace("{level: <8}", "{level}"),
            rotation=get_config("logging.rotation", "10 MB"),
            retention=get_config("logging.retention", "7 days"),
            compression="zip",
            enqueue=True,
        )
    
    _logger_initialized = True
    logger.debug(f"Logger initialized with level: {log_level}")


def get_logger():
    """
    Return the shared loguru logger, configuring it on first use.
    """
    if not _logger_initialized:
        init_logger()
    return logger


def _ensure_config_loaded() -> None:
    """Ensures the configuration is loaded."""
    if not _config:
        _load_config()


def _config_dir() -> Optional[Path]:
    """Locate the configuration directory (CWD first, then repository root)."""
    override = os.getenv("RESILIENCE_CONFIG_DIR")
    candidates = [Path(override)] if override else []
    candidates += [
        Path("config"),
        Path(__file__).parent.parent.parent / "config",
    ]
    for dir_path in candidates:
        if (dir_path / "config.yaml").exists():
            return dir_path
    return None


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file {path}: {e}") from e


def _load_config() -> None:
    """
    Build the configuration tree. Later layers win:
        1. Built-in defaults
        2. Default configuration file (config/config.yaml)
        3. Environment-specific configuration (config/{ENV}.yaml)
        4. Environment variables (override YAML settings)
    """
    global _config
    
    loaded = _get_defaults()
    config_dir = _config_dir()
    
    if config_dir is None:
        logger.debug("No configuration directory found. Using defaults.")
    else:
        default_config_path = config_dir / "config.yaml"
        loaded = _deep_merge(loaded, _read_yaml(default_config_path))
        logger.debug(f"Loaded configuration from {default_config_path}")
        
        env = os.getenv("ENVIRONMENT", os.getenv("ENV", "dev"))
        env_config_path = config_dir / f"{env}.yaml"
        if env_config_path.exists():
            loaded = _deep_merge(loaded, _read_yaml(env_config_path))
            logger.debug(f"Merged environment config: {env_config_path}")
    
    _config = loaded
    _apply_env_overrides()


def _get_defaults() -> Dict[str, Any]:
    """Returns default configuration values."""
    return {
        "logging": {
            "level": "INFO",
        },
        "resilience": {
            "default": {"timeout": 10.0},
            "page": {"load": {"timeout": 30.0}},
            "polling": {"interval": 0.25, "max": {"interval": 2.0}, "factor": 2, "attempts": 3},
            "retry": {"default": {"attempts": 3, "delay": 0.5}},
            "network": {"latency": {"threshold": 1000}},
            "memory": {"usage": {"threshold": 100_000_000}},
            "cpu": {"usage": {"threshold": 70}},
            "strategy": {"settle": {"delay": 0.3}, "pointer": {"pause": 0.2}},
            "recovery": {
                "settle": {"delay": 0.5},
                "overlay": {"selectors": [".overlay", ".modal", ".dialog"]},
            },
            "monitor": {"poll": {"interval": 0.1}},
        },
    }


def _deep_merge(base: Dict, override: Dict) -> Dict:
    """Deep merges two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _apply_env_overrides() -> None:
    """
    Overlay variables named like dotted keys with "__" as separator.
    
    RESILIENCE__RETRY__DEFAULT__DELAY=0.2 sets resilience.retry.default.delay;
    values are parsed as YAML scalars, so "0.2" becomes a float.
    """
    for key, value in os.environ.items():
        if "__" in key:
            parts = [p.lower() for p in key.split("__")]
            try:
                parsed = yaml.safe_load(value)
            except yaml.YAMLError:
                parsed = value
            _set_nested(_config, parts, parsed)


def _set_nested(d: Dict, keys: list, value: Any) -> None:
    """Sets a nested dictionary value using a list of keys."""
    for key in keys[:-1]:
        current = d.get(key)
        if not isinstance(current, dict):
            current = {}
            d[key] = current
        d = current
    d[keys[-1]] = value


def get_config(key: str, default: Any = None) -> Any:
    """
    Look up a value by dotted path.
    
    Args:
        key: Dot-separated key path (e.g., "logging.level", "resilience.retry").
        default: Returned when any segment of the path is missing.
    
    Returns:
        The stored value (a nested dict for section keys) or `default`.
    
    Examples:
        >>> get_config("logging.level", "INFO")
        'DEBUG'
        >>> get_config("resilience.retry.default.attempts", 3)
        3
    """
    _ensure_config_loaded()
    
    value = _config
    for k in key.split("."):
        if isinstance(value, dict) and k in value:
            value = value[k]
        else:
            return default
    
    return value


def set_config(key: str, value: Any) -> None:
    """
    Override a value in memory; intermediate sections are created as needed.
    """
    _ensure_config_loaded()
    _set_nested(_config, key.split("."), value)


def reload_config() -> None:
    """Reloads the configuration from files."""
    global _config
    _config = {}
    _load_config()
    logger.info("Resilience configuration reloaded")


def flatten_config(section: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """
    Flattens a nested configuration section into dot-notation keys.
    
    Lists and scalars are leaves: {"retry": {"default": {"delay": 0.5}}}
    becomes {"retry.default.delay": 0.5}.
    """
    flat: Dict[str, Any] = {}
    for key, value in section.items():
        full_key = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, dict):
            flat.update(flatten_config(value, full_key))
        else:
            flat[full_key] = value
    return flat
