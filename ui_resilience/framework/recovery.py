"""
================================================================================
Element Recovery Registry
================================================================================

Maps exception kinds to remedies applied to the native reference.

Matching is by exact exception class: a remedy registered for
TransientInteractionError does NOT handle StaleElementReferenceError.

Default remedies:
    - StaleElementReferenceError   -> re-resolve through the locator
    - ElementClickInterceptedError -> scroll into view, hide known overlays
    - ElementNotInteractableError  -> scroll into view, brief settle wait

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, List, Optional, Type

from loguru import logger

from . import scripts
from .exceptions import (
    ElementClickInterceptedError,
    ElementNotInteractableError,
    StaleElementReferenceError,
)


Remedy = Callable[[Any], bool]


class RecoveryRegistry:
    """
    Exception-kind to remedy table.

    Usage:
        >>> registry = RecoveryRegistry(driver, locator, config)
        >>> registry.attempt_recovery(ref, ElementClickInterceptedError("..."))
        True
    """

    def __init__(
        self,
        driver,
        locator=None,
        config=None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize registry with the default remedies.

        Args:
            driver: Driver used by the default remedies
            locator: SelfHealingLocator used to re-resolve stale references
            config: DynamicConfig holding overlay selectors and settle delay
            sleep: Sleep function (injectable for tests)
        """
        self.driver = driver
        self.locator = locator
        self.config = config
        self._sleep = sleep
        self._lock = threading.Lock()
        self._remedies: Dict[Type[BaseException], Remedy] = {}
        self._install_defaults()

    def _install_defaults(self) -> None:
        self.add_recovery_strategy(StaleElementReferenceError, self._re_resolve)
        self.add_recovery_strategy(ElementClickInterceptedError, self._clear_overlays)
        self.add_recovery_strategy(ElementNotInteractableError, self._scroll_and_settle)

    # =========================================================================
    # Registry operations
    # =========================================================================

    def add_recovery_strategy(self, exception_type: Type[BaseException], remedy: Remedy) -> None:
        if not (isinstance(exception_type, type) and issubclass(exception_type, BaseException)):
            raise TypeError(f"exception_type must be an exception class, got {exception_type!r}")
        if not callable(remedy):
            raise TypeError("remedy must be callable")
        with self._lock:
            self._remedies[exception_type] = remedy

    def clear_strategies(self) -> None:
        with self._lock:
            self._remedies.clear()

    def has_strategy_for(self, exception_type: Type[BaseException]) -> bool:
        with self._lock:
            return exception_type in self._remedies

    @property
    def strategy_count(self) -> int:
        with self._lock:
            return len(self._remedies)

    def attempt_recovery(self, ref: Any, error: BaseException) -> bool:
        """
        Apply the remedy registered for exactly ``type(error)``.

        Returns:
            True if a remedy ran and reported success, False when no
            remedy is registered or the remedy failed
        """
        with self._lock:
            remedy: Optional[Remedy] = self._remedies.get(type(error))

        if remedy is None:
            logger.debug(f"No recovery available for {type(error).__name__}")
            return False

        logger.debug(f"Attempting recovery for exception: {type(error).__name__}")
        try:
            recovered = bool(remedy(ref))
        except Exception as e:
            logger.warning(f"Recovery for {type(error).__name__} raised: {e}")
            return False

        if recovered:
            logger.info(f"Recovered from {type(error).__name__}")
        return recovered

    # =========================================================================
    # Default remedies
    # =========================================================================

    def _re_resolve(self, ref: Any) -> bool:
        if self.locator is None:
            return False
        try:
            self.locator.refresh()
            return True
        except Exception as e:
            logger.debug(f"Failed to recover from stale element: {e}")
            return False

    def _overlay_selectors(self) -> List[str]:
        default = [".overlay", ".modal", ".dialog"]
        if self.config is None:
            return default
        return list(self.config.get("recovery.overlay.selectors", default))

    def _clear_overlays(self, ref: Any) -> bool:
        try:
            self.driver.execute_script(scripts.HIDE_OVERLAYS, ref, self._overlay_selectors())
            return True
        except Exception as e:
            logger.debug(f"Failed to recover from intercepted element: {e}")
            return False

    def _scroll_and_settle(self, ref: Any) -> bool:
        try:
            self.driver.execute_script(scripts.SCROLL_INTO_VIEW, ref)
        except Exception as e:
            logger.debug(f"Failed to recover from element not interactable: {e}")
            return False
        delay = 0.5 if self.config is None else self.config.get_duration("recovery.settle.delay", 0.5)
        self._sleep(delay)
        return True


__all__ = [
    "RecoveryRegistry",
    "Remedy",
]
