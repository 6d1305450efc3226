# ================================================================================
# Adaptive Wait Module
# ================================================================================
#
# Progressive-backoff polling for UI conditions.
#
# Key Features:
#   - Polls a condition until it yields a result, the timeout elapses, or the
#     attempt budget runs out, whichever comes first
#   - Progressive polling: the interval grows by `factor` after each failed
#     poll, capped at `max_interval`
#   - Exceptions raised by the condition are swallowed and logged; the last
#     one is carried by WaitTimeoutError
#   - Wall-clock deadline: the final sleep is clipped to the remaining time
#
# Usage:
#   wait = AdaptiveWait(driver).with_timeout(5).with_polling(0.1, 1.0)
#   ref = wait.until(lambda d: d.find_element("#ready"))
#
# ================================================================================

import math
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Optional, TypeVar

from loguru import logger

from .exceptions import StaleElementReferenceError, WaitTimeoutError


T = TypeVar('T')
Condition = Callable[[Any], T]


@dataclass
class WaitSpec:
    """
    Configuration for one adaptive wait.

    Attributes:
        timeout: Total wall-clock budget in seconds
        min_interval: First poll interval in seconds
        max_interval: Upper bound for the poll interval
        progressive: Grow the interval after each failed poll
        factor: Interval multiplier in progressive mode
        retry_attempts: Maximum number of polls regardless of time left
    """
    timeout: float = 10.0
    min_interval: float = 0.25
    max_interval: float = 2.0
    progressive: bool = True
    factor: float = 2.0
    retry_attempts: int = 3

    def __post_init__(self):
        if self.timeout < 0:
            raise ValueError(f"timeout must be >= 0, got {self.timeout}")
        if self.min_interval < 0 or self.max_interval < self.min_interval:
            raise ValueError(
                f"invalid polling interval range: {self.min_interval}..{self.max_interval}"
            )
        if self.factor < 1:
            raise ValueError(f"factor must be >= 1, got {self.factor}")
        if self.retry_attempts < 1:
            raise ValueError(f"retry_attempts must be >= 1, got {self.retry_attempts}")

    @classmethod
    def from_config(cls, config, timeout: Optional[float] = None) -> "WaitSpec":
        """Build a spec from a DynamicConfig."""
        return cls(
            timeout=config.default_timeout if timeout is None else timeout,
            min_interval=config.get_duration("polling.interval", 0.25),
            max_interval=config.get_duration("polling.max.interval", 2.0),
            factor=config.get_threshold("polling.factor", 2),
            retry_attempts=config.get_int("polling.attempts", 3),
        )

    def bounded_by_timeout(self) -> "WaitSpec":
        """Copy whose attempt budget is large enough that only the timeout ends the wait."""
        if self.min_interval <= 0:
            return self
        polls = int(math.ceil(self.timeout / self.min_interval)) + 1
        return replace(self, retry_attempts=max(self.retry_attempts, polls))


def interval_after(spec: WaitSpec, failures: int) -> float:
    """
    Poll interval in effect after `failures` consecutive failed polls.

    Progressive mode: min(min_interval * factor ** failures, max_interval).
    """
    if not spec.progressive:
        return spec.min_interval
    return min(spec.min_interval * (spec.factor ** failures), spec.max_interval)


def calculate_next_interval(current_interval: float, spec: WaitSpec) -> float:
    """Next poll interval given the current one."""
    if not spec.progressive:
        return current_interval
    return min(current_interval * spec.factor, spec.max_interval)


def _is_satisfied(result: Any) -> bool:
    return result is not None and result is not False


class AdaptiveWait:
    """
    Builder-configured polling waiter.

    The builder methods mutate the underlying WaitSpec and return self,
    so a waiter can be tuned fluently:

        AdaptiveWait(driver).with_timeout(3).with_progressive_polling(True, 1.5)
    """

    def __init__(
        self,
        driver: Any = None,
        spec: Optional[WaitSpec] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize adaptive wait.

        Args:
            driver: Value handed to each condition call
            spec: Initial wait configuration (defaults to WaitSpec())
            sleep: Sleep function (injectable for tests)
            clock: Monotonic clock in seconds (injectable for tests)
        """
        self.driver = driver
        self.spec = spec if spec is not None else WaitSpec()
        self._sleep = sleep
        self._clock = clock

    # =========================================================================
    # Builder
    # =========================================================================

    def with_timeout(self, timeout: float) -> "AdaptiveWait":
        self.spec = replace(self.spec, timeout=timeout)
        return self

    def with_polling(self, min_interval: float, max_interval: float) -> "AdaptiveWait":
        self.spec = replace(self.spec, min_interval=min_interval, max_interval=max_interval)
        return self

    def with_progressive_polling(self, enable: bool, factor: float = 2.0) -> "AdaptiveWait":
        self.spec = replace(self.spec, progressive=enable, factor=factor)
        return self

    def with_retry_attempts(self, attempts: int) -> "AdaptiveWait":
        self.spec = replace(self.spec, retry_attempts=attempts)
        return self

    # =========================================================================
    # Waiting
    # =========================================================================

    def until(self, condition: Condition, description: str = "condition") -> T:
        """
        Poll `condition(driver)` until it returns a result that is neither
        None nor False.

        Args:
            condition: Callable receiving the driver
            description: Human-readable description for logging

        Returns:
            The first satisfying result

        Raises:
            WaitTimeoutError: Timeout or attempt budget exhausted
        """
        spec = self.spec
        start_time = self._clock()
        deadline = start_time + spec.timeout
        current_interval = spec.min_interval
        attempts = 0
        last_error: Optional[BaseException] = None

        while attempts < spec.retry_attempts:
            attempts += 1

            try:
                result = condition(self.driver)
                if _is_satisfied(result):
                    logger.debug(
                        f"Wait for {description} satisfied after {attempts} attempts "
                        f"({self._clock() - start_time:.2f}s)"
                    )
                    return result
                logger.debug(f"Attempt {attempts}: {description} not met ({result!r})")
            except Exception as e:
                last_error = e
                logger.debug(f"Attempt {attempts} for {description} failed: {e}")

            remaining = deadline - self._clock()
            if remaining <= 0 or attempts >= spec.retry_attempts:
                break

            self._sleep(min(current_interval, remaining))
            current_interval = calculate_next_interval(current_interval, spec)

            if self._clock() >= deadline:
                break

        elapsed = self._clock() - start_time
        error = WaitTimeoutError(elapsed, attempts, last_error, description)
        logger.debug(str(error))
        if last_error is not None:
            raise error from last_error
        raise error


# =============================================================================
# Common wait conditions
# =============================================================================
#
# Each condition takes the driver and reports "not yet" (False) when the
# reference has gone stale instead of raising.

def element_displayed(ref: Any) -> Condition:
    def _condition(driver) -> bool:
        try:
            return driver.is_displayed(ref)
        except StaleElementReferenceError:
            return False
    return _condition


def element_clickable(ref: Any) -> Condition:
    def _condition(driver) -> bool:
        try:
            return driver.is_displayed(ref) and driver.is_enabled(ref)
        except StaleElementReferenceError:
            return False
    return _condition


def element_has_text(ref: Any, text: str) -> Condition:
    def _condition(driver) -> bool:
        try:
            return driver.get_text(ref) == text
        except StaleElementReferenceError:
            return False
    return _condition


def element_contains_text(ref: Any, text: str) -> Condition:
    def _condition(driver) -> bool:
        try:
            actual = driver.get_text(ref)
            return actual is not None and text in actual
        except StaleElementReferenceError:
            return False
    return _condition


def element_has_value(ref: Any, value: str) -> Condition:
    def _condition(driver) -> bool:
        try:
            return driver.get_attribute(ref, "value") == value
        except StaleElementReferenceError:
            return False
    return _condition


__all__ = [
    "WaitSpec",
    "AdaptiveWait",
    "interval_after",
    "calculate_next_interval",
    "element_displayed",
    "element_clickable",
    "element_has_text",
    "element_contains_text",
    "element_has_value",
]
