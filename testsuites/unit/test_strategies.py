import threading

import pytest

from testsuites.unit.fake_driver import FakeElement
from ui_resilience.framework.exceptions import ElementClickInterceptedError, StaleElementReferenceError
from ui_resilience.framework.strategies import NativeStrategy, PointerStrategy, ScriptStrategy


ALL_STRATEGIES = [NativeStrategy, PointerStrategy, ScriptStrategy]


@pytest.mark.parametrize("strategy_cls", ALL_STRATEGIES)
def test_type_leaves_exact_value(strategy_cls, driver, config, no_sleep):
    element = driver.add("#name", FakeElement(value="stale text"))
    strategy = strategy_cls(config, no_sleep)

    assert strategy.type(driver, element, "hello world", timeout=1) is True
    assert driver.get_attribute(element, "value") == "hello world"


@pytest.mark.parametrize("strategy_cls", ALL_STRATEGIES)
def test_type_reports_failure_on_value_mismatch(strategy_cls, driver, config, no_sleep):
    element = driver.add("#zip", FakeElement(maxlength=3))
    strategy = strategy_cls(config, no_sleep)

    assert strategy.type(driver, element, "12345", timeout=1) is False
    assert strategy.last_error is None


@pytest.mark.parametrize("strategy_cls", ALL_STRATEGIES)
def test_clear_empties_value(strategy_cls, driver, config, no_sleep):
    element = driver.add("#q", FakeElement(value="something"))
    strategy = strategy_cls(config, no_sleep)

    assert strategy.clear(driver, element, timeout=1) is True
    assert element.value == ""


@pytest.mark.parametrize("strategy_cls", ALL_STRATEGIES)
def test_failures_are_caught_and_kept(strategy_cls, driver, config, no_sleep):
    element = FakeElement()
    element.detached = True
    strategy = strategy_cls(config, no_sleep)

    assert strategy.click(driver, element, timeout=1) is False
    assert isinstance(strategy.last_error, StaleElementReferenceError)


def test_native_click_intercepted_is_reported(driver, config, no_sleep):
    element = driver.add("#buy", FakeElement(tag="button", covered=True))
    strategy = NativeStrategy(config, no_sleep)

    assert strategy.click(driver, element, timeout=1) is False
    assert isinstance(strategy.last_error, ElementClickInterceptedError)
    assert driver.scripts_run("SCROLL_INTO_VIEW") == 1


def test_native_click_settles_after_scroll(driver, config, sleeps, no_sleep):
    element = driver.add("#buy", FakeElement(tag="button"))

    assert NativeStrategy(config, no_sleep).click(driver, element, timeout=1)
    assert sleeps == [0.3]


def test_script_click_bypasses_overlay(driver, config, no_sleep):
    element = driver.add("#buy", FakeElement(tag="button", covered=True))

    assert ScriptStrategy(config, no_sleep).click(driver, element, timeout=1)
    assert element.clicks == 1


def test_pointer_is_displayed_requires_box_in_viewport(driver, config, no_sleep):
    element = driver.add("#far", FakeElement())
    strategy = PointerStrategy(config, no_sleep)
    assert strategy.is_displayed(driver, element, timeout=1) is True

    element.box = {"x": 10, "y": 5000, "width": 100, "height": 30}
    assert strategy.is_displayed(driver, element, timeout=1) is False


def test_native_is_displayed_false_when_hidden(driver, config, no_sleep):
    element = driver.add("#hidden", FakeElement(displayed=False))
    strategy = NativeStrategy(config, no_sleep)

    assert strategy.is_displayed(driver, element, timeout=1) is False


@pytest.mark.parametrize("strategy_cls", ALL_STRATEGIES)
def test_is_enabled(strategy_cls, driver, config, no_sleep):
    enabled = driver.add("#on", FakeElement())
    disabled = driver.add("#off", FakeElement(enabled=False))
    strategy = strategy_cls(config, no_sleep)

    assert strategy.is_enabled(driver, enabled, timeout=1) is True
    assert strategy.is_enabled(driver, disabled, timeout=1) is False


@pytest.mark.parametrize("strategy_cls", ALL_STRATEGIES)
def test_hidden_element_answers_not_displayed_without_error(strategy_cls, driver, config, no_sleep):
    element = driver.add("#hidden", FakeElement(displayed=False))
    strategy = strategy_cls(config, no_sleep)

    assert strategy.attempt("is_displayed", driver, element, 1) == (False, None)


def test_native_click_waits_out_slow_enabling(driver, config, sleeps):
    button = driver.add("#pay", FakeElement(tag="button", enabled=False))

    def sleep(seconds):
        sleeps.append(seconds)
        if len(sleeps) == 4:
            button.enabled = True

    assert NativeStrategy(config, sleep).click(driver, button, timeout=10) is True
    assert button.clicks == 1
    # Polling continues past polling.attempts until the element enables
    assert sleeps == [0.25, 0.5, 1.0, 2.0, 0.3]


def test_attempt_returns_the_error_of_that_call(driver, config, no_sleep):
    element = FakeElement()
    element.detached = True
    strategy = NativeStrategy(config, no_sleep)

    ok, error = strategy.attempt("click", driver, element, 1)

    assert ok is False
    assert isinstance(error, StaleElementReferenceError)
    with pytest.raises(ValueError):
        strategy.attempt("double_click", driver, element, 1)


def test_last_error_is_per_thread(driver, config, no_sleep):
    element = FakeElement()
    element.detached = True
    strategy = NativeStrategy(config, no_sleep)
    strategy.click(driver, element, timeout=1)
    seen = []

    def _other():
        seen.append(strategy.last_error)
        healthy = driver.add("#ok", FakeElement(tag="button"))
        strategy.click(driver, healthy, timeout=1)
        seen.append(strategy.last_error)

    thread = threading.Thread(target=_other)
    thread.start()
    thread.join(2)

    assert seen == [None, None]
    assert isinstance(strategy.last_error, StaleElementReferenceError)
