"""
In-memory Driver implementation for unit tests.

Elements live in a selector -> element(s) map. Page scripts from
`ui_resilience.framework.scripts` are interpreted by identity, so the
engine runs end-to-end without a browser.
"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional, Tuple

from ui_resilience.framework import scripts
from ui_resilience.framework.driver import Driver, ThreadAffinity
from ui_resilience.framework.exceptions import (
    ElementClickInterceptedError,
    ElementNotInteractableError,
    NoSuchElementError,
    ScriptExecutionError,
    StaleElementReferenceError,
)


SCRIPT_NAMES = {
    value: name
    for name, value in vars(scripts).items()
    if name.isupper() and isinstance(value, str)
}


class FakeElement:
    def __init__(
        self,
        tag: str = "input",
        text: str = "",
        value: str = "",
        attributes: Optional[Dict[str, str]] = None,
        displayed: bool = True,
        enabled: bool = True,
        selected: bool = False,
        covered: bool = False,
        maxlength: Optional[int] = None,
        form: Optional[str] = None,
    ):
        self.tag = tag
        self.text = text
        self._value = value
        self.attributes = dict(attributes or {})
        self.displayed = displayed
        self.enabled = enabled
        self.selected = selected
        self.covered = covered
        self.maxlength = maxlength
        self.form = form
        self.detached = False
        self.clicks = 0
        self.box = {"x": 10, "y": 10, "width": 100, "height": 30}

    @property
    def value(self) -> str:
        return self._value

    @value.setter
    def value(self, new_value: str) -> None:
        if self.maxlength is not None:
            new_value = new_value[: self.maxlength]
        self._value = new_value

    def detached_copy(self) -> "FakeElement":
        copy = FakeElement(
            self.tag, self.text, self.value, self.attributes,
            self.displayed, self.enabled, self.selected,
        )
        copy.detached = True
        return copy

    def __repr__(self) -> str:
        return f"<FakeElement {self.tag} {self.attributes}>"


class FakeDriver(Driver):
    def __init__(self):
        self.dom: Dict[str, List[FakeElement]] = {}
        self.detach_next: Dict[str, int] = {}
        self.script_log: List[str] = []
        self.find_calls: List[str] = []
        self.submitted: List[str] = []
        self.screenshots = 0
        self.focused: Optional[FakeElement] = None
        self._select_all = False
        # Context signals
        self.latency: Any = 50
        self.js_errors: List[str] = []
        self.heap: Any = 0
        # Timing API
        self.performance_api = False
        self.network_entries: List[Dict[str, Any]] = []
        self.page_timings: Optional[Dict[str, Any]] = None
        # (action, navigation) pairs pushed by the session
        self.timeouts: List[Tuple[float, float]] = []

    # -------------------------------------------------------------------------
    # Test helpers
    # -------------------------------------------------------------------------

    def add(self, selector: str, *elements: FakeElement) -> FakeElement:
        self.dom.setdefault(selector, []).extend(elements)
        return elements[0]

    def remove(self, selector: str) -> None:
        self.dom.pop(selector, None)

    def scripts_run(self, name: str) -> int:
        return self.script_log.count(name)

    @staticmethod
    def _check(ref: FakeElement) -> FakeElement:
        if ref.detached:
            raise StaleElementReferenceError("Element is not attached to the DOM")
        return ref

    # -------------------------------------------------------------------------
    # Driver contract
    # -------------------------------------------------------------------------

    def find_element(self, locator: str) -> FakeElement:
        self.find_calls.append(locator)
        elements = self.dom.get(locator)
        if not elements:
            raise NoSuchElementError(f"No element matches locator: {locator}")
        pending = self.detach_next.get(locator, 0)
        if pending:
            self.detach_next[locator] = pending - 1
            return elements[0].detached_copy()
        return elements[0]

    def find_elements(self, locator: str) -> List[FakeElement]:
        return list(self.dom.get(locator, []))

    def click(self, ref, timeout):
        self._check(ref)
        if not ref.displayed:
            raise ElementNotInteractableError("Element is not visible")
        if not ref.enabled:
            raise ElementNotInteractableError("Element is not enabled")
        if ref.covered:
            raise ElementClickInterceptedError("<div class=\"overlay\"> intercepts pointer events")
        ref.clicks += 1

    def type(self, ref, text, timeout):
        self._check(ref)
        if not ref.enabled:
            raise ElementNotInteractableError("Element is not enabled")
        ref.value = ref.value + text

    def clear(self, ref, timeout):
        self._check(ref)
        ref.value = ""

    def press_key(self, ref, key):
        self._check(ref)
        self._press(ref, key)

    def _press(self, ref, key):
        if key == "Control+A":
            self._select_all = True
        elif key in ("Delete", "Backspace") and self._select_all:
            ref.value = ""
            self._select_all = False

    def get_text(self, ref):
        return self._check(ref).text

    def get_attribute(self, ref, name):
        self._check(ref)
        if name == "value":
            return ref.value
        return ref.attributes.get(name)

    def get_tag_name(self, ref):
        return self._check(ref).tag

    def is_displayed(self, ref):
        return self._check(ref).displayed

    def is_enabled(self, ref):
        return self._check(ref).enabled

    def is_selected(self, ref):
        return self._check(ref).selected

    def hover(self, ref, offset=None):
        self._check(ref)
        if not ref.displayed:
            raise ElementNotInteractableError("Element is not visible")

    def mouse_click(self, ref, offset=None):
        self._check(ref)
        if not ref.enabled:
            raise ElementNotInteractableError("Element is not enabled")
        if ref.covered:
            raise ElementClickInterceptedError("another element would receive the click")
        ref.clicks += 1
        self.focused = ref

    def keyboard_type(self, text):
        if self.focused is not None:
            self.focused.value = self.focused.value + text

    def keyboard_press(self, key):
        if self.focused is not None:
            self._press(self.focused, key)

    def bounding_box(self, ref):
        self._check(ref)
        return dict(ref.box) if ref.displayed else None

    def viewport_size(self):
        return {"width": 1280, "height": 720}

    def execute_script(self, script, *args):
        name = SCRIPT_NAMES.get(script, "UNKNOWN")
        self.script_log.append(name)
        ref = self._check(args[0]) if args and isinstance(args[0], FakeElement) else None

        if name == "SCROLL_INTO_VIEW":
            return None
        if name == "HIDE_OVERLAYS":
            ref.covered = False
            return True
        if name in ("JS_CLICK", "DISPATCH_CLICK"):
            ref.clicks += 1
            return None
        if name == "SET_VALUE":
            ref.value = args[1]
            return None
        if name == "GET_VALUE":
            return ref.value
        if name == "IS_VISIBLE":
            return ref.displayed
        if name == "IS_ENABLED":
            return ref.enabled
        if name == "SUBMIT":
            if ref.form is None:
                raise ScriptExecutionError("Element is not inside a form")
            self.submitted.append(ref.form)
            return None
        if name == "RESPONSE_LATENCY":
            return self.latency() if callable(self.latency) else self.latency
        if name == "SCRIPT_ERRORS":
            return list(self.js_errors)
        if name == "HEAP_USAGE":
            return self.heap
        if name == "INSTALL_NETWORK_OBSERVER":
            return self.performance_api
        if name == "READ_NETWORK_ENTRIES":
            return list(self.network_entries) if self.performance_api else []
        if name == "CLEAR_NETWORK_ENTRIES":
            self.network_entries.clear()
            return None
        if name == "PAGE_TIMINGS":
            return self.page_timings
        raise ScriptExecutionError(f"Unsupported script: {script[:40]}")

    def configure_timeouts(self, action_timeout, navigation_timeout):
        self.timeouts.append((action_timeout, navigation_timeout))

    def screenshot(self):
        self.screenshots += 1
        return b"\x89PNG\r\n\x1a\nfake"


class ThreadBoundDriver(FakeDriver):
    """
    FakeDriver that, like a sync browser page, only answers on the thread
    that created it.

    Calls from any other thread fail; `dispatch` queues them for the owner,
    which serves them from `pump`.
    """

    def __init__(self, dispatch_timeout: float = 1.0):
        super().__init__()
        self.affinity = ThreadAffinity(dispatch_timeout)
        self.foreign_calls = 0

    def _owned(self) -> None:
        if not self.affinity.on_owner:
            self.foreign_calls += 1
            raise RuntimeError("Cannot switch to a different thread")

    def find_element(self, locator):
        self._owned()
        return super().find_element(locator)

    def is_displayed(self, ref):
        self._owned()
        return super().is_displayed(ref)

    def is_enabled(self, ref):
        self._owned()
        return super().is_enabled(ref)

    def is_selected(self, ref):
        self._owned()
        return super().is_selected(ref)

    def dispatch(self, fn):
        return self.affinity.call(fn)

    def pump(self, duration):
        return self.affinity.serve(duration, time.sleep, 0.005)
