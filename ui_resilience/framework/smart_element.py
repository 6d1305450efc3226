"""
================================================================================
Resilient Element
================================================================================

Element-shaped façade composing every resilience component.

Call flow of an action (click/type/clear):
    performance timing
      -> context-aware retry
        -> resolve native reference (self-healing locator)
          -> strategy orchestrator (native, pointer, script)
               each failing strategy: recovery registry, one re-try
    terminal failure -> UnrecoverableActionError (cause chain preserved)

Failure contract:
    - click/type/clear/submit/get_text/get_attribute/is_selected/get_tag_name
      raise UnrecoverableActionError once retries and recovery are exhausted
    - is_displayed/is_enabled answer False on any internal failure
    - ValueError/TypeError (invalid arguments) propagate unwrapped

Query split: is_displayed/is_enabled use the strategy set; get_text,
get_attribute, is_selected and get_tag_name go through the driver
directly (with retry and recovery).

Usage:
    >>> button = ResilientElement(driver, "[data-testid='submit']", "#submit")
    >>> button.click()
    >>> button.get_performance_metrics()["click"]["duration_ms"]

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, List, Optional, Type

import allure
from loguru import logger

from . import scripts
from .adaptive_wait import WaitSpec
from .dynamic_config import DynamicConfig
from .exceptions import (
    StaleElementReferenceError,
    StrategiesExhaustedError,
    TransientInteractionError,
    UnrecoverableActionError,
)
from .interaction_manager import ElementInteractionManager, InteractionResult
from .monitoring import WatchHandle, state_check
from .recovery import RecoveryRegistry, Remedy
from .retry import ContextAnalyzer, ContextAwareRetry, is_retryable
from .session import BrowserSession
from .state_validator import ElementStateValidator


class ResilientElement:
    """
    Resilient interaction façade for one logical element.

    Constructed from a driver (a private BrowserSession is created and owned)
    or from an existing BrowserSession, plus one or more initial locators.
    Use as a context manager, or call close(), to stop background watchers.
    """

    def __init__(
        self,
        driver_or_session,
        *locators: str,
        key: Optional[str] = None,
        strategies=None,
        analyzer: Optional[ContextAnalyzer] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize resilient element.

        Args:
            driver_or_session: Driver implementation or BrowserSession
            *locators: Initial candidate locators (at least one)
            key: Logical element key (defaults to "element_<first locator>")
            strategies: Explicit ordered strategy list for the orchestrator
            analyzer: Custom retry context analyzer
            sleep: Sleep function shared by retry, recovery and strategies

        Raises:
            ValueError: When no locator is given
        """
        if not locators:
            raise ValueError("At least one locator is required")

        self._owns_session = not isinstance(driver_or_session, BrowserSession)
        self.session = BrowserSession(driver_or_session) if self._owns_session else driver_or_session

        self.driver = self.session.driver
        self.config: DynamicConfig = self.session.config
        self.key = key or f"element_{locators[0]}"
        self.locator = self.session.locator(self.key, *locators)
        self._watches: List[WatchHandle] = []

        self.manager = ElementInteractionManager(self.driver, self.config, strategies, sleep)
        self.retry = ContextAwareRetry(
            self.driver, self.config, analyzer, sleep,
            before_retry=self.session.adapt_to_conditions,
        )
        self.recovery = RecoveryRegistry(self.driver, self.locator, self.config, sleep)
        self.state_validator = ElementStateValidator(
            self.driver, WaitSpec.from_config(self.config), sleep=sleep
        )

    def __repr__(self) -> str:
        return f"<ResilientElement '{self.key}'>"

    def __enter__(self) -> "ResilientElement":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """
        Cancel this element's watchers.

        A session the element created for itself is closed too; a shared
        session stays open for its other elements.
        """
        for handle in self._watches:
            handle.cancel()
        for handle in self._watches:
            handle.join(2.0)
        self._watches.clear()
        if self._owns_session:
            self.session.close()

    @property
    def timeout(self) -> float:
        return self.config.default_timeout

    # =========================================================================
    # Actions
    # =========================================================================

    def click(self) -> None:
        with self.session.log_context(), allure.step(f"Click element: {self.key}"):
            self._perform(
                "click",
                lambda: self._orchestrate("click", lambda ref, recover: self.manager.click(ref, self.timeout, recover)),
            )
            logger.info(f"Clicked element: {self.key}")

    def type(self, text: str) -> None:
        if not isinstance(text, str):
            raise TypeError(f"text must be a string, got {type(text).__name__}")
        with self.session.log_context(), allure.step(f"Type into element: {self.key}"):
            self._perform(
                "type",
                lambda: self._orchestrate(
                    "type", lambda ref, recover: self.manager.type(ref, text, self.timeout, recover)
                ),
            )
            logger.info(f"Typed text into element: {self.key}")

    def clear(self) -> None:
        with self.session.log_context(), allure.step(f"Clear element: {self.key}"):
            self._perform(
                "clear",
                lambda: self._orchestrate("clear", lambda ref, recover: self.manager.clear(ref, self.timeout, recover)),
            )
            logger.info(f"Cleared element: {self.key}")

    def submit(self) -> None:
        """Submit the element's form (retry and recovery only, no strategy set)."""
        with self.session.log_context(), allure.step(f"Submit form: {self.key}"):
            self._perform(
                "submit",
                lambda: self._direct(lambda ref: self.driver.execute_script(scripts.SUBMIT, ref)),
            )
            logger.info(f"Submitted form of element: {self.key}")

    # =========================================================================
    # Queries
    # =========================================================================

    def get_text(self) -> str:
        return self._perform("get_text", lambda: self._direct(self.driver.get_text))

    def get_attribute(self, name: str) -> Optional[str]:
        if not name:
            raise ValueError("Attribute name must be a non-empty string")
        return self._perform(
            "get_attribute", lambda: self._direct(lambda ref: self.driver.get_attribute(ref, name))
        )

    def is_selected(self) -> bool:
        return bool(self._perform("is_selected", lambda: self._direct(self.driver.is_selected)))

    def get_tag_name(self) -> str:
        return self._perform("get_tag_name", lambda: self._direct(self.driver.get_tag_name))

    def is_displayed(self) -> bool:
        """Whether the element is displayed; False on any internal failure."""
        with self.session.log_context(), self.session.performance.timed(self.key, "is_displayed"):
            try:
                result = self.retry.execute(
                    lambda: self._query_pass("is_displayed", self.manager.is_displayed),
                    description=f"is_displayed on {self.key}",
                )
            except Exception as e:
                logger.debug(f"is_displayed on '{self.key}' degraded to False: {e}")
                return False
        return bool(result)

    def is_enabled(self) -> bool:
        """Whether the element is enabled; single orchestrator pass, no retry."""
        with self.session.log_context(), self.session.performance.timed(self.key, "is_enabled"):
            try:
                ref = self.locator.resolve()
                return bool(self.manager.is_enabled(ref, self.timeout, self._recover))
            except Exception as e:
                logger.debug(f"is_enabled on '{self.key}' degraded to False: {e}")
                return False

    # =========================================================================
    # Resilience extensions
    # =========================================================================

    def add_recovery_strategy(self, exception_type: Type[BaseException], remedy: Remedy) -> None:
        self.recovery.add_recovery_strategy(exception_type, remedy)

    def add_alternative_locator(self, locator: str) -> None:
        self.locator.add_alternative_locator(locator)

    def wait_for_state(self, state: str, callback: Callable[[], None]) -> WatchHandle:
        """
        Invoke `callback` once, in the background, when the element reaches `state`.

        Args:
            state: One of 'visible', 'hidden', 'enabled', 'selected'
            callback: Called without arguments from the watcher thread;
                driver calls made there should go through `driver.dispatch`

        Returns:
            Handle to cancel the watcher; `close()` and the session cancel it too

        Raises:
            ValueError: Unknown state
        """
        check = state_check(self.driver, self.locator.resolve, state)

        def _check() -> bool:
            try:
                return check()
            except StaleElementReferenceError:
                self.locator.invalidate()
                raise

        handle = self.session.events.watch_state(self.key, _check, callback, state=state)
        self._watches = [h for h in self._watches if h.is_active]
        self._watches.append(handle)
        return handle

    def get_performance_metrics(self) -> Dict[str, Dict[str, float]]:
        return self.session.performance.get_element_performance(self.key)

    def get_config(self) -> DynamicConfig:
        return self.config

    def find_all(self) -> List[Any]:
        """Every native reference matched by any candidate (not de-duplicated)."""
        return self.locator.find_elements()

    def get_locator_health_report(self) -> str:
        return self.locator.get_health_report()

    def capture_screenshot(self, name: Optional[str] = None) -> bytes:
        """Capture a page screenshot and attach it to the Allure report."""
        screenshot = self.driver.screenshot()
        allure.attach(
            screenshot,
            name=name or f"{self.key}_screenshot",
            attachment_type=allure.attachment_type.PNG,
        )
        return screenshot

    # =========================================================================
    # Internals
    # =========================================================================

    def _recover(self, ref: Any, error: BaseException) -> Optional[Any]:
        """Apply the registered remedy; returns the reference to re-try with."""
        if not self.recovery.attempt_recovery(ref, error):
            return None
        return self.locator.current or self.locator.resolve()

    def _orchestrate(self, action: str, run: Callable[[Any, Any], InteractionResult]) -> InteractionResult:
        ref = self.locator.resolve()
        result = run(ref, self._recover)
        if not result:
            cause = result.last_error
            if isinstance(cause, StaleElementReferenceError):
                self.locator.invalidate()
            raise StrategiesExhaustedError(action, result.failures) from cause
        logger.debug(f"{action} on '{self.key}' succeeded with {result.strategy} strategy")
        return result

    def _query_pass(self, action: str, run: Callable[..., InteractionResult]) -> bool:
        ref = self.locator.resolve()
        result = run(ref, self.timeout, self._recover)
        if result:
            return True
        if result.last_error is None:
            # Every strategy answered cleanly: not displayed.
            return False
        if isinstance(result.last_error, StaleElementReferenceError):
            self.locator.invalidate()
        raise StrategiesExhaustedError(action, result.failures) from result.last_error

    def _direct(self, primitive: Callable[[Any], Any]) -> Any:
        ref = self.locator.resolve()
        try:
            return primitive(ref)
        except TransientInteractionError as e:
            recovered_ref = self._recover(ref, e)
            if recovered_ref is None:
                if isinstance(e, StaleElementReferenceError):
                    self.locator.invalidate()
                raise
            return primitive(recovered_ref)

    def _perform(self, operation: str, attempt: Callable[[], Any]) -> Any:
        with self.session.log_context(), self.session.performance.timed(self.key, operation):
            try:
                return self.retry.execute(attempt, description=f"{operation} on {self.key}")
            except Exception as e:
                if not is_retryable(e):
                    raise
                logger.error(f"Failed to {operation} element '{self.key}': {e}")
                self._attach_failure(operation)
                raise UnrecoverableActionError(operation, self.key, e) from e

    def _attach_failure(self, operation: str) -> None:
        try:
            self.capture_screenshot(f"{self.key}_{operation}_failure")
        except Exception as e:
            logger.debug(f"Could not capture failure screenshot: {e}")


__all__ = ["ResilientElement"]
