import pytest

from testsuites.unit.fake_driver import FakeElement
from ui_resilience.framework.exceptions import (
    ElementClickInterceptedError,
    ElementNotInteractableError,
    StaleElementReferenceError,
    TransientInteractionError,
)
from ui_resilience.framework.recovery import RecoveryRegistry
from ui_resilience.framework.smart_locator import SelfHealingLocator


def test_default_remedies_registered(driver):
    registry = RecoveryRegistry(driver)
    assert registry.strategy_count == 3
    for kind in (StaleElementReferenceError, ElementClickInterceptedError, ElementNotInteractableError):
        assert registry.has_strategy_for(kind)


def test_matching_is_exact_type_only(driver):
    registry = RecoveryRegistry(driver)
    registry.clear_strategies()
    called = []
    registry.add_recovery_strategy(TransientInteractionError, lambda ref: called.append(ref) or True)

    assert registry.attempt_recovery("ref", StaleElementReferenceError("gone")) is False
    assert called == []
    assert registry.attempt_recovery("ref", TransientInteractionError("flaky")) is True
    assert called == ["ref"]


def test_unmapped_kind_has_no_recovery(driver):
    assert RecoveryRegistry(driver).attempt_recovery("ref", KeyError("x")) is False


def test_failing_remedy_reports_false(driver):
    registry = RecoveryRegistry(driver)

    def explode(ref):
        raise RuntimeError("remedy broke")

    registry.add_recovery_strategy(ElementClickInterceptedError, explode)
    assert registry.attempt_recovery("ref", ElementClickInterceptedError("covered")) is False


def test_add_rejects_non_exception_kinds(driver):
    registry = RecoveryRegistry(driver)
    with pytest.raises(TypeError):
        registry.add_recovery_strategy("StaleElement", lambda ref: True)
    with pytest.raises(TypeError):
        registry.add_recovery_strategy(ValueError, "not callable")


def test_intercepted_click_hides_configured_overlays(driver, config):
    element = driver.add("#buy", FakeElement(covered=True))
    registry = RecoveryRegistry(driver, config=config)

    assert registry.attempt_recovery(element, ElementClickInterceptedError("covered")) is True
    assert element.covered is False
    assert driver.scripts_run("HIDE_OVERLAYS") == 1


def test_not_interactable_scrolls_and_settles(driver, config, sleeps, no_sleep):
    element = driver.add("#far", FakeElement())
    registry = RecoveryRegistry(driver, config=config, sleep=no_sleep)

    assert registry.attempt_recovery(element, ElementNotInteractableError("off screen")) is True
    assert driver.scripts_run("SCROLL_INTO_VIEW") == 1
    assert sleeps == [0.5]


def test_stale_reference_re_resolves_through_locator(driver):
    old = driver.add("#row", FakeElement(text="old"))
    locator = SelfHealingLocator(driver, "row", "#row")
    locator.find_element()
    old.detached = True
    fresh = FakeElement(text="fresh")
    driver.dom["#row"] = [fresh]

    registry = RecoveryRegistry(driver, locator)
    assert registry.attempt_recovery(old, StaleElementReferenceError("detached")) is True
    assert locator.current is fresh


def test_stale_recovery_without_locator_fails(driver):
    assert RecoveryRegistry(driver).attempt_recovery("ref", StaleElementReferenceError("x")) is False
