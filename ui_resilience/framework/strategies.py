# ================================================================================
# Interaction Strategies Module
# ================================================================================
#
# Interchangeable implementations of element operations.
#
# Strategies (default preference order):
#   - NativeStrategy:  driver primitives with clickability wait,
#                      scroll-into-view and a short settle delay
#   - PointerStrategy: simulated mouse/keyboard input, with a coordinate
#                      offset fallback for clicks
#   - ScriptStrategy:  injected JavaScript; bypasses normal interaction
#                      semantics and can mask real defects, so it goes last
#
# Every capability returns a success boolean. Internal failures are caught
# and logged; they never propagate. `attempt` also hands back the error of
# that one call, so concurrent callers never read each other's failures.
# type/clear verify the resulting value, so a mismatch is a failure even
# without an exception.
#
# ================================================================================

import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Tuple

from loguru import logger

from . import scripts
from .adaptive_wait import AdaptiveWait, WaitSpec, element_clickable
from .exceptions import ElementNotInteractableError


Outcome = Tuple[bool, Optional[BaseException]]


class InteractionStrategy(ABC):
    """
    Base class for element interaction strategies.

    Subclasses implement the `_do_*` hooks and may raise freely; the
    public capability methods turn any exception into False.
    """

    name: str = "base"

    CAPABILITIES = ("click", "type", "clear", "is_displayed", "is_enabled")

    def __init__(self, config=None, sleep: Callable[[float], None] = time.sleep):
        """
        Initialize strategy.

        Args:
            config: DynamicConfig with polling and settle settings
            sleep: Sleep function (injectable for tests)
        """
        self.config = config
        self._sleep = sleep
        self._local = threading.local()

    @property
    def last_error(self) -> Optional[BaseException]:
        """Error of the calling thread's most recent attempt, if it raised."""
        return getattr(self._local, "error", None)

    # =========================================================================
    # Capabilities
    # =========================================================================

    def attempt(self, action: str, driver, ref: Any, *args: Any) -> Outcome:
        """
        Run one capability and report (succeeded, error).

        Raises:
            ValueError: Unknown capability name
        """
        if action not in self.CAPABILITIES:
            raise ValueError(f"Unknown capability '{action}', expected one of {self.CAPABILITIES}")
        operation = getattr(self, f"_do_{action}")
        return self._guard(action, lambda: operation(driver, ref, *args))

    def click(self, driver, ref: Any, timeout: float) -> bool:
        return self.attempt("click", driver, ref, timeout)[0]

    def type(self, driver, ref: Any, text: str, timeout: float) -> bool:
        return self.attempt("type", driver, ref, text, timeout)[0]

    def clear(self, driver, ref: Any, timeout: float) -> bool:
        return self.attempt("clear", driver, ref, timeout)[0]

    def is_displayed(self, driver, ref: Any, timeout: float) -> bool:
        return self.attempt("is_displayed", driver, ref, timeout)[0]

    def is_enabled(self, driver, ref: Any, timeout: float) -> bool:
        return self.attempt("is_enabled", driver, ref, timeout)[0]

    @abstractmethod
    def _do_click(self, driver, ref, timeout) -> bool: ...

    @abstractmethod
    def _do_type(self, driver, ref, text, timeout) -> bool: ...

    @abstractmethod
    def _do_clear(self, driver, ref, timeout) -> bool: ...

    @abstractmethod
    def _do_is_displayed(self, driver, ref, timeout) -> bool: ...

    @abstractmethod
    def _do_is_enabled(self, driver, ref, timeout) -> bool: ...

    # =========================================================================
    # Helpers
    # =========================================================================

    def _guard(self, action: str, operation: Callable[[], bool]) -> Outcome:
        logger.debug(f"Attempting {action} using {self.name} strategy")
        try:
            ok = bool(operation())
        except Exception as e:
            self._local.error = e
            logger.warning(f"Failed to {action} using {self.name} strategy: {type(e).__name__}: {e}")
            return False, e
        self._local.error = None
        if ok:
            logger.debug(f"Successfully performed {action} using {self.name} strategy")
        return ok, None

    def _setting(self, key: str, default: float) -> float:
        if self.config is None:
            return default
        return self.config.get_duration(key, default)

    def _waiter(self, driver, timeout: float) -> AdaptiveWait:
        spec = WaitSpec.from_config(self.config, timeout) if self.config is not None else WaitSpec(timeout=timeout)
        # Only the operation timeout ends a strategy wait, not the poll cap
        return AdaptiveWait(driver, spec.bounded_by_timeout(), sleep=self._sleep)

    def _wait_clickable(self, driver, ref, timeout: float) -> None:
        # A detached reference raises stale here instead of timing out below
        driver.is_displayed(ref)
        self._waiter(driver, timeout).until(element_clickable(ref), "element clickable")

    def _settle(self, key: str = "strategy.settle.delay", default: float = 0.3) -> None:
        self._sleep(self._setting(key, default))

    def _verify_value(self, actual: Optional[str], expected: str) -> bool:
        if (actual or "") != expected:
            logger.warning(
                f"Value verification failed using {self.name} strategy. "
                f"Expected: '{expected}', Actual: '{actual}'"
            )
            return False
        return True

    def __repr__(self) -> str:
        return f"<{type(self).__name__} '{self.name}'>"


class NativeStrategy(InteractionStrategy):
    """Standard driver primitives with waits and verification."""

    name = "native"

    def _do_click(self, driver, ref, timeout) -> bool:
        self._wait_clickable(driver, ref, timeout)
        driver.execute_script(scripts.SCROLL_INTO_VIEW, ref)
        self._settle()
        driver.click(ref, timeout)
        return True

    def _do_type(self, driver, ref, text, timeout) -> bool:
        self._wait_clickable(driver, ref, timeout)
        if not self._do_clear(driver, ref, timeout):
            return False
        driver.type(ref, text, timeout)
        return self._verify_value(driver.get_attribute(ref, "value"), text)

    def _do_clear(self, driver, ref, timeout) -> bool:
        self._wait_clickable(driver, ref, timeout)
        driver.clear(ref, timeout)
        if driver.get_attribute(ref, "value"):
            driver.press_key(ref, "Control+A")
            driver.press_key(ref, "Delete")
        return self._verify_value(driver.get_attribute(ref, "value"), "")

    def _do_is_displayed(self, driver, ref, timeout) -> bool:
        # A query answers now; waiting for visibility is wait_for_state's job
        return bool(driver.is_displayed(ref))

    def _do_is_enabled(self, driver, ref, timeout) -> bool:
        return driver.is_enabled(ref)


class PointerStrategy(InteractionStrategy):
    """Simulated pointer and keyboard input."""

    name = "pointer"

    CLICK_OFFSET = (1, 1)

    def _do_click(self, driver, ref, timeout) -> bool:
        self._wait_clickable(driver, ref, timeout)
        pause = self._setting("strategy.pointer.pause", 0.2)
        try:
            driver.hover(ref)
            self._sleep(pause)
            driver.mouse_click(ref)
        except Exception as e:
            # Slight offset avoids borders and decorations eating the click
            logger.debug(f"Pointer click failed ({e}), retrying with offset {self.CLICK_OFFSET}")
            driver.hover(ref, self.CLICK_OFFSET)
            self._sleep(pause)
            driver.mouse_click(ref, self.CLICK_OFFSET)
        return True

    def _do_type(self, driver, ref, text, timeout) -> bool:
        self._wait_clickable(driver, ref, timeout)
        if not self._do_clear(driver, ref, timeout):
            return False
        driver.mouse_click(ref)
        driver.keyboard_type(text)
        return self._verify_value(driver.get_attribute(ref, "value"), text)

    def _do_clear(self, driver, ref, timeout) -> bool:
        self._wait_clickable(driver, ref, timeout)
        driver.mouse_click(ref)
        driver.keyboard_press("Control+A")
        driver.keyboard_press("Delete")
        return self._verify_value(driver.get_attribute(ref, "value"), "")

    def _do_is_displayed(self, driver, ref, timeout) -> bool:
        # Hidden elements have no box; hovering them would fail instead of answering
        box = driver.bounding_box(ref)
        if not box or box.get("width", 0) <= 0 or box.get("height", 0) <= 0:
            return False
        driver.hover(ref)
        viewport = driver.viewport_size()
        if not viewport:
            return True
        return (
            box["x"] >= 0
            and box["y"] >= 0
            and box["x"] + box["width"] <= viewport["width"]
            and box["y"] + box["height"] <= viewport["height"]
        )

    def _do_is_enabled(self, driver, ref, timeout) -> bool:
        driver.hover(ref)
        return driver.is_enabled(ref)


class ScriptStrategy(InteractionStrategy):
    """JavaScript injection. Least preferred."""

    name = "script"

    def _do_click(self, driver, ref, timeout) -> bool:
        driver.execute_script(scripts.SCROLL_INTO_VIEW, ref)
        self._settle()
        try:
            driver.execute_script(scripts.JS_CLICK, ref)
        except Exception as e:
            logger.debug(f"Script click failed ({e}), dispatching click event")
            driver.execute_script(scripts.DISPATCH_CLICK, ref)
        return True

    def _do_type(self, driver, ref, text, timeout) -> bool:
        driver.execute_script(scripts.SCROLL_INTO_VIEW, ref)
        if not self._do_clear(driver, ref, timeout):
            return False
        driver.execute_script(scripts.SET_VALUE, ref, text)
        return self._verify_value(driver.execute_script(scripts.GET_VALUE, ref), text)

    def _do_clear(self, driver, ref, timeout) -> bool:
        driver.execute_script(scripts.SET_VALUE, ref, "")
        return self._verify_value(driver.execute_script(scripts.GET_VALUE, ref), "")

    def _do_is_displayed(self, driver, ref, timeout) -> bool:
        return bool(driver.execute_script(scripts.IS_VISIBLE, ref))

    def _do_is_enabled(self, driver, ref, timeout) -> bool:
        result = driver.execute_script(scripts.IS_ENABLED, ref)
        if result is None:
            raise ElementNotInteractableError("Enabled state could not be determined")
        return bool(result)


__all__ = [
    "InteractionStrategy",
    "NativeStrategy",
    "PointerStrategy",
    "ScriptStrategy",
]
