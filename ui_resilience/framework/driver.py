"""
================================================================================
Driver Contract
================================================================================

The browser-automation collaborator the resilience engine sits on top of.

Components:
    - Driver: abstract contract (resolve locators, primitive interactions,
      script execution, screenshots)
    - PlaywrightDriver: implementation over the Playwright sync API, using
      ElementHandle as the native element reference

Playwright raises a single error type; PlaywrightDriver translates its
messages into the exception taxonomy so that recovery and retry can
dispatch on the exact failure kind.

Playwright's sync objects only work on the thread that created them.
Background watchers therefore hand their state checks to `Driver.dispatch`,
which PlaywrightDriver queues for its owning thread. The owning thread
serves the queue on every primitive call and in `pump()`.

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import queue
import re
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from contextlib import contextmanager
from functools import partial
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, TypeVar

from loguru import logger
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import ElementHandle, Page
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from .exceptions import (
    DriverError,
    DriverTimeoutError,
    ElementClickInterceptedError,
    ElementNotInteractableError,
    NoSuchElementError,
    ScriptExecutionError,
    StaleElementReferenceError,
)


Offset = Tuple[float, float]
T = TypeVar("T")


class ThreadAffinity:
    """
    Runs calls on the thread that created it.

    Calls made on any other thread are queued and wait until the owning
    thread serves the queue (`drain` / `serve`), or until `timeout` elapses.
    """

    def __init__(self, timeout: float = 1.0):
        self.owner = threading.get_ident()
        self.timeout = timeout
        self._pending: "queue.SimpleQueue[Tuple[Callable[[], Any], Future]]" = queue.SimpleQueue()

    @property
    def on_owner(self) -> bool:
        return threading.get_ident() == self.owner

    def call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """
        Run `fn` on the owning thread and return its result.

        Raises:
            DriverTimeoutError: The owning thread did not serve the call in time
        """
        if self.on_owner:
            self.drain()
            return fn(*args, **kwargs)

        future: Future = Future()
        self._pending.put((partial(fn, *args, **kwargs), future))
        try:
            return future.result(self.timeout)
        except FutureTimeoutError:
            future.cancel()
            raise DriverTimeoutError(
                f"Owning thread did not serve the call within {self.timeout}s"
            ) from None

    def drain(self) -> int:
        """Run every queued call; only meaningful on the owning thread."""
        served = 0
        while True:
            try:
                call, future = self._pending.get_nowait()
            except queue.Empty:
                return served
            if not future.set_running_or_notify_cancel():
                continue
            try:
                future.set_result(call())
            except BaseException as e:
                future.set_exception(e)
            served += 1

    def serve(self, duration: float, idle: Callable[[float], None], slice_seconds: float = 0.05) -> int:
        """Keep draining for `duration` seconds, idling between rounds."""
        served = self.drain()
        deadline = time.monotonic() + duration
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return served
            idle(min(slice_seconds, remaining))
            served += self.drain()


class Driver(ABC):
    """
    Contract for the underlying browser-automation driver.

    A native reference (``ref``) is whatever the driver hands back from
    ``find_element``; the engine never inspects it, only passes it back.
    Every primitive raises a ``DriverError`` subclass on failure.
    """

    # =========================================================================
    # Resolution
    # =========================================================================

    @abstractmethod
    def find_element(self, locator: str) -> Any:
        """Resolve a locator to one native reference or raise NoSuchElementError."""

    @abstractmethod
    def find_elements(self, locator: str) -> List[Any]:
        """Resolve a locator to every matching native reference."""

    # =========================================================================
    # Element primitives
    # =========================================================================

    @abstractmethod
    def click(self, ref: Any, timeout: float) -> None: ...

    @abstractmethod
    def type(self, ref: Any, text: str, timeout: float) -> None: ...

    @abstractmethod
    def clear(self, ref: Any, timeout: float) -> None: ...

    @abstractmethod
    def press_key(self, ref: Any, key: str) -> None: ...

    @abstractmethod
    def get_text(self, ref: Any) -> str: ...

    @abstractmethod
    def get_attribute(self, ref: Any, name: str) -> Optional[str]: ...

    @abstractmethod
    def get_tag_name(self, ref: Any) -> str: ...

    @abstractmethod
    def is_displayed(self, ref: Any) -> bool: ...

    @abstractmethod
    def is_enabled(self, ref: Any) -> bool: ...

    @abstractmethod
    def is_selected(self, ref: Any) -> bool: ...

    # =========================================================================
    # Pointer / keyboard primitives
    # =========================================================================

    @abstractmethod
    def hover(self, ref: Any, offset: Optional[Offset] = None) -> None: ...

    @abstractmethod
    def mouse_click(self, ref: Any, offset: Optional[Offset] = None) -> None: ...

    @abstractmethod
    def keyboard_type(self, text: str) -> None: ...

    @abstractmethod
    def keyboard_press(self, key: str) -> None: ...

    @abstractmethod
    def bounding_box(self, ref: Any) -> Optional[Dict[str, float]]: ...

    @abstractmethod
    def viewport_size(self) -> Optional[Dict[str, float]]: ...

    # =========================================================================
    # Page-level
    # =========================================================================

    @abstractmethod
    def execute_script(self, script: str, *args: Any) -> Any:
        """Run a page script (see ``scripts``) with the given arguments."""

    @abstractmethod
    def screenshot(self) -> bytes: ...

    # =========================================================================
    # Session plumbing
    # =========================================================================

    def configure_timeouts(self, action_timeout: float, navigation_timeout: float) -> None:
        """Apply session timeouts (seconds) to the driver's own defaults, if it has any."""

    def dispatch(self, fn: Callable[[], T]) -> T:
        """
        Run `fn` where driver calls are allowed.

        Drivers usable from any thread run it directly; thread-bound drivers
        hand it to their owning thread.
        """
        return fn()

    def pump(self, duration: float = 0.0) -> int:
        """Serve calls dispatched from background threads for `duration` seconds."""
        if duration > 0:
            time.sleep(duration)
        return 0


# =============================================================================
# Playwright implementation
# =============================================================================

_ERROR_PATTERNS = [
    (re.compile(r"not attached to the DOM|detached|Execution context was destroyed|"
                r"JSHandle is disposed|Element is not attached", re.I),
     StaleElementReferenceError),
    (re.compile(r"intercepts pointer events|would receive the click|"
                r"another element", re.I),
     ElementClickInterceptedError),
    (re.compile(r"not visible|not enabled|not editable|outside of the viewport|"
                r"not an <input>|Element is disabled|cannot focus", re.I),
     ElementNotInteractableError),
]


def translate_playwright_error(error: Exception) -> DriverError:
    """Map a Playwright error onto the driver exception taxonomy."""
    if isinstance(error, DriverError):
        return error
    message = str(error)
    for pattern, kind in _ERROR_PATTERNS:
        if pattern.search(message):
            return kind(message)
    if isinstance(error, PlaywrightTimeoutError):
        return DriverTimeoutError(message)
    return DriverError(message)


class PlaywrightDriver(Driver):
    """
    Driver over a Playwright sync ``Page``.

    Usage:
        >>> with sync_playwright() as p:
        ...     page = p.chromium.launch().new_page()
        ...     driver = PlaywrightDriver(page)
        ...     ref = driver.find_element("#login")

    Timeouts passed to primitives are seconds; Playwright expects
    milliseconds. Must be created on the thread that owns the page.
    """

    def __init__(self, page: Page, dispatch_timeout: float = 1.0):
        self.page = page
        self._affinity = ThreadAffinity(dispatch_timeout)

    @contextmanager
    def _translated(self, action: str) -> Iterator[None]:
        self._affinity.drain()
        try:
            yield
        except PlaywrightError as e:
            translated = translate_playwright_error(e)
            logger.debug(f"{action} failed: {type(translated).__name__}: {str(e)[:120]}")
            raise translated from e

    def dispatch(self, fn: Callable[[], T]) -> T:
        return self._affinity.call(fn)

    def pump(self, duration: float = 0.0) -> int:
        """Serve queued watcher calls, idling in the page between rounds."""
        return self._affinity.serve(duration, lambda seconds: self.page.wait_for_timeout(seconds * 1000))

    def configure_timeouts(self, action_timeout: float, navigation_timeout: float) -> None:
        self.page.set_default_timeout(action_timeout * 1000)
        self.page.set_default_navigation_timeout(navigation_timeout * 1000)

    def find_element(self, locator: str) -> ElementHandle:
        with self._translated(f"find_element({locator})"):
            handle = self.page.query_selector(locator)
        if handle is None:
            raise NoSuchElementError(f"No element matches locator: {locator}")
        return handle

    def find_elements(self, locator: str) -> List[ElementHandle]:
        with self._translated(f"find_elements({locator})"):
            return self.page.query_selector_all(locator)

    def click(self, ref: ElementHandle, timeout: float) -> None:
        with self._translated("click"):
            ref.click(timeout=timeout * 1000)

    def type(self, ref: ElementHandle, text: str, timeout: float) -> None:
        with self._translated("type"):
            ref.focus()
            self.page.keyboard.type(text)

    def clear(self, ref: ElementHandle, timeout: float) -> None:
        with self._translated("clear"):
            ref.fill("", timeout=timeout * 1000)

    def press_key(self, ref: ElementHandle, key: str) -> None:
        with self._translated(f"press_key({key})"):
            ref.press(key)

    def get_text(self, ref: ElementHandle) -> str:
        with self._translated("get_text"):
            return ref.inner_text()

    def get_attribute(self, ref: ElementHandle, name: str) -> Optional[str]:
        with self._translated(f"get_attribute({name})"):
            if name == "value":
                # Live property, not the initial HTML attribute
                value = ref.evaluate("el => el.value === undefined ? null : String(el.value)")
                if value is not None:
                    return value
            return ref.get_attribute(name)

    def get_tag_name(self, ref: ElementHandle) -> str:
        with self._translated("get_tag_name"):
            return ref.evaluate("el => el.tagName.toLowerCase()")

    def is_displayed(self, ref: ElementHandle) -> bool:
        with self._translated("is_displayed"):
            return ref.is_visible()

    def is_enabled(self, ref: ElementHandle) -> bool:
        with self._translated("is_enabled"):
            return ref.is_enabled()

    def is_selected(self, ref: ElementHandle) -> bool:
        with self._translated("is_selected"):
            return bool(ref.evaluate("el => !!(el.checked || el.selected)"))

    def hover(self, ref: ElementHandle, offset: Optional[Offset] = None) -> None:
        with self._translated("hover"):
            if offset is None:
                ref.hover()
            else:
                ref.hover(position={"x": offset[0], "y": offset[1]})

    def mouse_click(self, ref: ElementHandle, offset: Optional[Offset] = None) -> None:
        with self._translated("mouse_click"):
            box = ref.bounding_box()
            if box is None:
                raise ElementNotInteractableError("Element has no bounding box")
            if offset is None:
                x, y = box["x"] + box["width"] / 2, box["y"] + box["height"] / 2
            else:
                x, y = box["x"] + offset[0], box["y"] + offset[1]
            self.page.mouse.move(x, y)
            self.page.mouse.click(x, y)

    def keyboard_type(self, text: str) -> None:
        with self._translated("keyboard_type"):
            self.page.keyboard.type(text)

    def keyboard_press(self, key: str) -> None:
        with self._translated(f"keyboard_press({key})"):
            self.page.keyboard.press(key)

    def bounding_box(self, ref: ElementHandle) -> Optional[Dict[str, float]]:
        with self._translated("bounding_box"):
            return ref.bounding_box()

    def viewport_size(self) -> Optional[Dict[str, float]]:
        self._affinity.drain()
        size = self.page.viewport_size
        if size is not None:
            return dict(size)
        with self._translated("viewport_size"):
            return self.page.evaluate("() => ({width: window.innerWidth, height: window.innerHeight})")

    def execute_script(self, script: str, *args: Any) -> Any:
        self._affinity.drain()
        try:
            return self.page.evaluate(script, list(args))
        except PlaywrightError as e:
            translated = translate_playwright_error(e)
            if type(translated) is DriverError:
                raise ScriptExecutionError(str(e)) from e
            raise translated from e

    def screenshot(self) -> bytes:
        with self._translated("screenshot"):
            return self.page.screenshot(full_page=True)


__all__ = [
    "Driver",
    "PlaywrightDriver",
    "ThreadAffinity",
    "translate_playwright_error",
]
