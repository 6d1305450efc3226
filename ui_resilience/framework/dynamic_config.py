"""
================================================================================
Dynamic Configuration
================================================================================

Runtime-tunable configuration store for one browser session.

Features:
    - Seeded from the static YAML/env configuration (resilience section)
    - Thread-safe get/set with dot-notation keys
    - Rules evaluated against live metrics adjust tunables at runtime

Usage:
    >>> config = DynamicConfig()
    >>> config.default_timeout
    10.0
    >>> config.adjust({"network.latency": 2500})
    True
    >>> config.default_timeout
    20.0

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Mapping, Optional

from loguru import logger

from ..common import ConfigurationError, flatten_config, get_config


ConfigurationRule = Callable[[Mapping[str, Any]], bool]

MAX_DEFAULT_TIMEOUT = 60.0
MAX_PAGE_LOAD_TIMEOUT = 120.0


class DynamicConfig:
    """
    Session-scoped configuration store adjustable by rules.

    Values are plain Python numbers: durations are seconds, thresholds are
    whatever unit the key names (``network.latency.threshold`` is ms).
    """

    def __init__(self, overrides: Optional[Mapping[str, Any]] = None):
        """
        Initialize the store.

        Args:
            overrides: Flat dot-notation values applied on top of the
                static configuration's ``resilience`` section.
        """
        self._lock = threading.RLock()
        self._values: Dict[str, Any] = flatten_config(get_config("resilience", {}) or {})
        if overrides:
            self._values.update(overrides)
        self._rules: Dict[str, ConfigurationRule] = {}
        self._install_default_rules()

    # =========================================================================
    # Access
    # =========================================================================

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._values[key] = value
        logger.debug(f"Configuration updated: {key} = {value}")

    def get_duration(self, key: str, default: Optional[float] = None) -> float:
        """
        Get a duration in seconds.

        Raises:
            ConfigurationError: When the key is missing or not numeric
        """
        value = self.get(key, default)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigurationError(f"Configuration value is not a duration: {key}={value!r}")
        return float(value)

    def get_threshold(self, key: str, default: Optional[float] = None) -> float:
        value = self.get(key, default)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigurationError(f"Configuration value is not a threshold: {key}={value!r}")
        return value

    def get_int(self, key: str, default: Optional[int] = None) -> int:
        value = self.get(key, default)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigurationError(f"Configuration value is not an integer: {key}={value!r}")
        return int(value)

    @property
    def default_timeout(self) -> float:
        return self.get_duration("default.timeout", 10.0)

    def snapshot(self) -> Dict[str, Any]:
        """Return a copy of the current configuration."""
        with self._lock:
            return dict(self._values)

    # =========================================================================
    # Rules
    # =========================================================================

    def add_rule(self, rule_id: str, rule: ConfigurationRule) -> None:
        with self._lock:
            self._rules[rule_id] = rule

    def remove_rule(self, rule_id: str) -> None:
        with self._lock:
            self._rules.pop(rule_id, None)

    @property
    def rule_ids(self):
        with self._lock:
            return list(self._rules)

    def adjust(self, metrics: Mapping[str, Any]) -> bool:
        """
        Evaluate every rule against the given metrics.

        A rule that raises is logged and skipped.

        Returns:
            True if at least one rule changed the configuration
        """
        with self._lock:
            rules = list(self._rules.items())

        changed = False
        for rule_id, rule in rules:
            try:
                if rule(metrics):
                    changed = True
            except Exception as e:
                logger.error(f"Error evaluating configuration rule '{rule_id}': {e}")

        if changed:
            logger.info(f"Configuration updated based on metrics: {dict(metrics)}")
        return changed

    def _install_default_rules(self) -> None:
        self.add_rule("dynamic.timeout.rule", self._latency_rule)
        self.add_rule("dynamic.polling.rule", self._polling_rule)

    def _latency_rule(self, metrics: Mapping[str, Any]) -> bool:
        latency = metrics.get("network.latency")
        if latency is None or latency <= self.get_threshold("network.latency.threshold", 1000):
            return False
        with self._lock:
            timeout = self.get_duration("default.timeout", 10.0)
            page_load = self.get_duration("page.load.timeout", 30.0)
            self.set("default.timeout", min(timeout * 2, MAX_DEFAULT_TIMEOUT))
            self.set("page.load.timeout", min(page_load * 2, MAX_PAGE_LOAD_TIMEOUT))
        return True

    def _polling_rule(self, metrics: Mapping[str, Any]) -> bool:
        cpu = metrics.get("cpu.usage")
        if cpu is None or cpu <= self.get_threshold("cpu.usage.threshold", 70):
            return False
        with self._lock:
            interval = self.get_duration("polling.interval", 0.25)
            max_interval = self.get_duration("polling.max.interval", 2.0)
            self.set("polling.interval", min(interval * 2, max_interval))
        return True


__all__ = [
    "DynamicConfig",
    "ConfigurationRule",
]
