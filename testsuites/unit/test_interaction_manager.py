import threading

import pytest

from testsuites.unit.fake_driver import FakeElement
from ui_resilience.framework.exceptions import ElementClickInterceptedError
from ui_resilience.framework.interaction_manager import ElementInteractionManager
from ui_resilience.framework.strategies import (
    InteractionStrategy,
    NativeStrategy,
    PointerStrategy,
    ScriptStrategy,
)


class StubStrategy(InteractionStrategy):
    """Answers every capability from a queue of outcomes (bool or exception)."""

    def __init__(self, name, outcomes, calls):
        super().__init__()
        self.name = name
        self._outcomes = list(outcomes)
        self._calls = calls

    def _next(self, driver, ref, *args):
        self._calls.append((self.name, ref))
        outcome = self._outcomes.pop(0) if len(self._outcomes) > 1 else self._outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    _do_click = _do_clear = _do_is_displayed = _do_is_enabled = _next

    def _do_type(self, driver, ref, text, timeout):
        return self._next(driver, ref)


def test_strategies_tried_in_order_until_first_success(driver):
    calls = []
    manager = ElementInteractionManager(driver, strategies=[
        StubStrategy("first", [False], calls),
        StubStrategy("second", [RuntimeError("boom")], calls),
        StubStrategy("third", [True], calls),
        StubStrategy("fourth", [True], calls),
    ])

    result = manager.click("ref", timeout=1)

    assert result
    assert result.strategy == "third"
    assert [name for name, _ in calls] == ["first", "second", "third"]
    assert [name for name, _ in result.failures] == ["first", "second"]
    assert isinstance(result.failures[1][1], RuntimeError)


def test_first_success_short_circuits(driver):
    calls = []
    manager = ElementInteractionManager(driver, strategies=[
        StubStrategy("first", [True], calls),
        StubStrategy("second", [True], calls),
    ])

    assert manager.is_enabled("ref", timeout=1).strategy == "first"
    assert len(calls) == 1


def test_all_strategies_failing_reports_aggregate_failure(driver):
    calls = []
    manager = ElementInteractionManager(driver, strategies=[
        StubStrategy("a", [False], calls),
        StubStrategy("b", [ValueError("bad")], calls),
    ])

    result = manager.clear("ref", timeout=1)

    assert not result
    assert result.strategy is None
    assert len(result.failures) == 2
    assert isinstance(result.last_error, ValueError)


def test_trying_strategies_never_reorders_them(driver):
    calls = []
    strategies = [
        StubStrategy("a", [False], calls),
        StubStrategy("b", [True], calls),
    ]
    manager = ElementInteractionManager(driver, strategies=strategies)

    manager.click("ref", timeout=1)
    manager.click("ref", timeout=1)

    assert [s.name for s in manager.strategies] == ["a", "b"]
    assert [name for name, _ in calls] == ["a", "b", "a", "b"]


def test_recovery_retries_same_strategy_with_new_reference(driver):
    calls = []
    manager = ElementInteractionManager(driver, strategies=[
        StubStrategy("native", [ElementClickInterceptedError("covered"), True], calls),
        StubStrategy("script", [True], calls),
    ])
    recovered = []

    def recover(ref, error):
        recovered.append((ref, type(error)))
        return "ref-2"

    result = manager.click("ref-1", timeout=1, recover=recover)

    assert result.strategy == "native"
    assert calls == [("native", "ref-1"), ("native", "ref-2")]
    assert recovered == [("ref-1", ElementClickInterceptedError)]


def test_no_retry_when_recovery_unavailable(driver):
    calls = []
    manager = ElementInteractionManager(driver, strategies=[
        StubStrategy("native", [ElementClickInterceptedError("covered")], calls),
        StubStrategy("script", [True], calls),
    ])

    result = manager.click("ref", timeout=1, recover=lambda ref, error: None)

    assert result.strategy == "script"
    assert [name for name, _ in calls] == ["native", "script"]


def test_default_order_and_explicit_list_management(driver, config, no_sleep):
    manager = ElementInteractionManager(driver, config, sleep=no_sleep)
    assert [type(s) for s in manager.strategies] == [NativeStrategy, PointerStrategy, ScriptStrategy]

    custom = StubStrategy("custom", [True], [])
    manager.add_strategy(custom)
    assert manager.strategies[0] is custom

    manager.remove_strategy(PointerStrategy)
    assert [s.name for s in manager.strategies] == ["custom", "native", "script"]

    with pytest.raises(TypeError):
        manager.add_strategy(object())


def test_default_strategies_click_real_element(driver, config, no_sleep):
    element = driver.add("#go", FakeElement(tag="button"))
    manager = ElementInteractionManager(driver, config, sleep=no_sleep)

    result = manager.click(element, timeout=1)

    assert result.strategy == "native"
    assert element.clicks == 1


def test_concurrent_passes_keep_their_own_errors(driver):
    barrier = threading.Barrier(2)

    class GatedStrategy(InteractionStrategy):
        name = "gated"

        def _do_click(self, driver, ref, timeout):
            barrier.wait(2)
            if ref == "covered":
                raise ElementClickInterceptedError("overlay intercepts pointer events")
            return False

        _do_clear = _do_is_displayed = _do_is_enabled = _do_click

        def _do_type(self, driver, ref, text, timeout):
            return self._do_click(driver, ref, timeout)

    manager = ElementInteractionManager(driver, strategies=[GatedStrategy()])
    results = {}

    def _click(ref):
        results[ref] = manager.click(ref, timeout=1)

    threads = [threading.Thread(target=_click, args=(ref,)) for ref in ("covered", "plain")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(2)

    assert isinstance(results["covered"].last_error, ElementClickInterceptedError)
    assert results["plain"].last_error is None
    assert results["plain"].failures == [("gated", None)]
