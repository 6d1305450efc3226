import threading

import pytest
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from ui_resilience.framework.driver import PlaywrightDriver, ThreadAffinity, translate_playwright_error
from ui_resilience.framework.exceptions import (
    DriverError,
    DriverTimeoutError,
    ElementClickInterceptedError,
    ElementNotInteractableError,
    StaleElementReferenceError,
)


@pytest.mark.parametrize("message, expected", [
    ("Element is not attached to the DOM", StaleElementReferenceError),
    ("Execution context was destroyed, most likely because of a navigation", StaleElementReferenceError),
    ("<div class=\"modal-backdrop\"></div> intercepts pointer events", ElementClickInterceptedError),
    ("element is not visible", ElementNotInteractableError),
    ("Element is not an <input>, <textarea> or [contenteditable] element", ElementNotInteractableError),
    ("net::ERR_CONNECTION_REFUSED", DriverError),
])
def test_playwright_errors_map_onto_taxonomy(message, expected):
    assert type(translate_playwright_error(PlaywrightError(message))) is expected


def test_timeouts_translate_to_driver_timeout():
    error = PlaywrightTimeoutError("Timeout 30000ms exceeded.")
    assert isinstance(translate_playwright_error(error), DriverTimeoutError)


def run_in_thread(fn):
    outcome = {}

    def _target():
        try:
            outcome["result"] = fn()
        except Exception as e:
            outcome["error"] = e

    thread = threading.Thread(target=_target)
    thread.start()
    return thread, outcome


def test_affinity_runs_owner_calls_inline():
    affinity = ThreadAffinity()
    assert affinity.on_owner
    assert affinity.call(lambda a, b: a + b, 2, 3) == 5


def test_affinity_hands_foreign_calls_to_owner():
    affinity = ThreadAffinity(timeout=2.0)
    ran_on = []

    thread, outcome = run_in_thread(lambda: affinity.call(lambda: ran_on.append(threading.get_ident()) or "ok"))
    served = affinity.serve(0.5, lambda seconds: thread.join(seconds))
    thread.join(2)

    assert served == 1
    assert outcome == {"result": "ok"}
    assert ran_on == [threading.get_ident()]


def test_affinity_times_out_when_owner_never_serves():
    affinity = ThreadAffinity(timeout=0.05)
    ran = []

    thread, outcome = run_in_thread(lambda: affinity.call(lambda: ran.append(1)))
    thread.join(2)

    assert isinstance(outcome["error"], DriverTimeoutError)
    # An abandoned call is skipped once the owner drains
    assert affinity.drain() == 0
    assert ran == []


class RecordingPage:
    def __init__(self):
        self.timeouts = {}

    def set_default_timeout(self, ms):
        self.timeouts["action"] = ms

    def set_default_navigation_timeout(self, ms):
        self.timeouts["navigation"] = ms


def test_playwright_driver_applies_timeouts_in_milliseconds():
    page = RecordingPage()
    PlaywrightDriver(page).configure_timeouts(20.0, 60.0)
    assert page.timeouts == {"action": 20000.0, "navigation": 60000.0}
