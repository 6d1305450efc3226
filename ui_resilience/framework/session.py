"""
================================================================================
Browser Session Context
================================================================================

Explicit session-scoped context passed to every resilience component.

A BrowserSession owns everything that must not leak between parallel
automation sessions:
    - the driver handle
    - the runtime configuration store (DynamicConfig)
    - performance records and background watchers
    - the element registry: one SelfHealingLocator per logical element key,
      living (and accumulating candidates) until the session closes

Usage:
    with BrowserSession(PlaywrightDriver(page)) as session:
        session.element("login_button", "#login", "text=Log In").click()

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import threading
import uuid
from typing import Any, Dict, Optional

import psutil
from loguru import logger

from . import scripts
from .dynamic_config import DynamicConfig
from .monitoring import ElementEventMonitor, PerformanceMonitor
from .smart_locator import SelfHealingLocator


class BrowserSession:
    """Session-scoped registry of driver, configuration, monitors and locators."""

    def __init__(
        self,
        driver,
        config: Optional[DynamicConfig] = None,
        session_id: Optional[str] = None,
    ):
        """
        Initialize session.

        Args:
            driver: Driver implementation owned by this session
            config: Configuration store (a fresh DynamicConfig by default)
            session_id: Identity used to tag watchers and logs (uuid4 hex by default)
        """
        self.driver = driver
        self.config = config if config is not None else DynamicConfig()
        self.session_id = session_id or uuid.uuid4().hex
        self.performance = PerformanceMonitor(driver, self.session_id)
        self.events = ElementEventMonitor(
            driver,
            self.session_id,
            poll_interval=self.config.get_duration("monitor.poll.interval", 0.1),
        )
        self._lock = threading.Lock()
        self._locators: Dict[str, SelfHealingLocator] = {}
        self._closed = False
        self.log = logger.bind(session=self.session_id)
        self.apply_timeouts()
        self.log.debug(f"Browser session {self.session_id} opened")

    def __enter__(self) -> "BrowserSession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def locator(self, element_key: str, *locators: str) -> SelfHealingLocator:
        """
        Get or create the locator of a logical element.

        Locators passed for an already registered key are added as
        alternatives.
        """
        if self._closed:
            raise RuntimeError(f"Browser session {self.session_id} is closed")
        with self._lock:
            existing = self._locators.get(element_key)
            if existing is None:
                existing = SelfHealingLocator(self.driver, element_key, *locators)
                self._locators[element_key] = existing
                return existing
        for selector in locators:
            existing.add_alternative_locator(selector)
        return existing

    def element(self, element_key: str, *locators: str, **kwargs: Any):
        """Create a ResilientElement bound to this session."""
        from .smart_element import ResilientElement

        return ResilientElement(self, *locators, key=element_key, **kwargs)

    def collect_metrics(self) -> Dict[str, Any]:
        """Live metrics the configuration rules react to (best-effort)."""
        metrics: Dict[str, Any] = {}
        try:
            latency = self.driver.execute_script(scripts.RESPONSE_LATENCY)
        except Exception as e:
            self.log.debug(f"Failed to sample network latency: {e}")
            latency = None
        if isinstance(latency, (int, float)) and not isinstance(latency, bool):
            metrics["network.latency"] = latency
        # Host CPU since the previous sample; the browser has no such API
        metrics["cpu.usage"] = psutil.cpu_percent(interval=None)
        return metrics

    def adapt_to_conditions(self, metrics: Optional[Dict[str, Any]] = None) -> bool:
        """
        Let the configuration rules adjust tunables to current conditions.

        Changed timeouts are pushed to the driver right away; waits and
        retries read the store on every call.

        Args:
            metrics: Explicit metrics; sampled from the page and host when omitted

        Returns:
            True if any tunable changed
        """
        changed = self.config.adjust(self.collect_metrics() if metrics is None else metrics)
        if changed:
            self.apply_timeouts()
        return changed

    def apply_timeouts(self) -> None:
        """Push the operation and page-load timeouts to the driver."""
        self.driver.configure_timeouts(
            self.config.default_timeout,
            self.config.get_duration("page.load.timeout", 30.0),
        )

    def log_context(self):
        """Tag every log line emitted inside the block with this session's id."""
        return logger.contextualize(session=self.session_id)

    @property
    def element_keys(self):
        with self._lock:
            return list(self._locators)

    def close(self) -> None:
        """Stop every background watcher and forget all element handles."""
        if self._closed:
            return
        self._closed = True
        self.events.stop_all()
        with self._lock:
            self._locators.clear()
        self.log.debug(f"Browser session {self.session_id} closed")


__all__ = ["BrowserSession"]
