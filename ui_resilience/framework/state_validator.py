# ================================================================================
# Element State Validator
# ================================================================================
#
# Polled element state checks built on AdaptiveWait.
#
# Every check waits for the condition within the configured budget and
# answers False instead of raising when it is never met.
#
# ================================================================================

import time
from dataclasses import replace
from typing import Any, Callable, Optional

from loguru import logger

from .adaptive_wait import (
    AdaptiveWait,
    WaitSpec,
    element_clickable,
    element_contains_text,
    element_displayed,
    element_has_text,
    element_has_value,
)
from .exceptions import WaitTimeoutError


class ElementStateValidator:
    """
    Fluent validator for element states.

    Example:
        validator = ElementStateValidator(driver).with_timeout(5).with_retries(10)
        validator.has_text(ref, "Welcome")
    """

    def __init__(
        self,
        driver,
        spec: Optional[WaitSpec] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.driver = driver
        self.spec = spec if spec is not None else WaitSpec()
        self._sleep = sleep
        self._clock = clock

    def with_timeout(self, timeout: float) -> "ElementStateValidator":
        self.spec = replace(self.spec, timeout=timeout)
        return self

    def with_polling(self, min_interval: float, max_interval: float) -> "ElementStateValidator":
        self.spec = replace(self.spec, min_interval=min_interval, max_interval=max_interval)
        return self

    def with_progressive_polling(self, enable: bool, factor: float = 2.0) -> "ElementStateValidator":
        self.spec = replace(self.spec, progressive=enable, factor=factor)
        return self

    def with_retries(self, attempts: int) -> "ElementStateValidator":
        self.spec = replace(self.spec, retry_attempts=attempts)
        return self

    def is_displayed(self, ref: Any) -> bool:
        return self._check(element_displayed(ref), "element displayed")

    def is_clickable(self, ref: Any) -> bool:
        return self._check(element_clickable(ref), "element clickable")

    def has_text(self, ref: Any, text: str) -> bool:
        return self._check(element_has_text(ref, text), f"text '{text}'")

    def contains_text(self, ref: Any, text: str) -> bool:
        return self._check(element_contains_text(ref, text), f"text containing '{text}'")

    def has_value(self, ref: Any, value: str) -> bool:
        return self._check(element_has_value(ref, value), f"value '{value}'")

    def _check(self, condition, description: str) -> bool:
        waiter = AdaptiveWait(self.driver, self.spec, sleep=self._sleep, clock=self._clock)
        try:
            waiter.until(condition, description)
            return True
        except WaitTimeoutError as e:
            logger.debug(f"State check failed: {e}")
            return False


__all__ = ["ElementStateValidator"]
