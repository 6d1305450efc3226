"""
================================================================================
UI Resilience Common Utilities
================================================================================

Shared configuration management and logging setup for the resilience engine.

Exports:
    - get_config / set_config / reload_config: dot-notation configuration access
    - init_logger / get_logger: loguru setup with project-wide settings
    - ConfigurationError: raised on unreadable configuration

Usage:
    from ui_resilience.common import get_config, init_logger
    
    init_logger()
    delay = get_config("resilience.retry.default.delay", 0.5)

================================================================================
"""

from .global_config import (
    ConfigurationError,
    flatten_config,
    get_config,
    get_logger,
    init_logger,
    reload_config,
    set_config,
)

__all__ = [
    "ConfigurationError",
    "flatten_config",
    "get_config",
    "get_logger",
    "init_logger",
    "reload_config",
    "set_config",
]
