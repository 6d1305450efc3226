import pytest

from ui_resilience.framework.retry import (
    BrowserState,
    ContextAnalyzer,
    ContextAwareRetry,
    NetworkCondition,
    RetryContext,
    RetryPolicy,
    with_context_retry,
)


GOOD_STABLE = RetryContext(NetworkCondition.GOOD, BrowserState.STABLE)
POOR_STABLE = RetryContext(NetworkCondition.POOR, BrowserState.STABLE)
UNKNOWN = RetryContext()


class ScriptedAnalyzer:
    """Returns the given contexts in order, repeating the last one."""

    def __init__(self, *contexts):
        self.contexts = list(contexts)
        self.samples = 0

    def analyze(self):
        self.samples += 1
        return self.contexts.pop(0) if len(self.contexts) > 1 else self.contexts[0]


def failing(calls, error=RuntimeError):
    def action():
        calls.append(1)
        raise error("flaky")
    return action


def test_good_stable_policy_counts_total_calls(driver, sleeps, no_sleep):
    calls = []
    retry = ContextAwareRetry(driver, analyzer=ScriptedAnalyzer(GOOD_STABLE), sleep=no_sleep)

    with pytest.raises(RuntimeError):
        retry.execute(failing(calls))

    assert len(calls) == 3
    assert sleeps == [0.5, 0.5]


def test_context_switch_mid_loop_applies_new_policy(driver, sleeps, no_sleep):
    calls = []
    analyzer = ScriptedAnalyzer(GOOD_STABLE, POOR_STABLE)
    retry = ContextAwareRetry(driver, analyzer=analyzer, sleep=no_sleep)

    with pytest.raises(RuntimeError):
        retry.execute(failing(calls))

    assert len(calls) == 5
    assert sleeps == [0.5, 1.0, 1.0, 1.0]


def test_switch_to_unmapped_context_keeps_current_policy(driver, sleeps, no_sleep):
    calls = []
    analyzer = ScriptedAnalyzer(POOR_STABLE, UNKNOWN)
    retry = ContextAwareRetry(driver, analyzer=analyzer, sleep=no_sleep)

    with pytest.raises(RuntimeError):
        retry.execute(failing(calls))

    assert len(calls) == 5
    assert sleeps == [1.0] * 4


def test_unmapped_initial_context_uses_default_policy(driver, sleeps, no_sleep):
    calls = []
    retry = ContextAwareRetry(driver, analyzer=ScriptedAnalyzer(UNKNOWN), sleep=no_sleep)

    with pytest.raises(RuntimeError):
        retry.execute(failing(calls))

    assert len(calls) == 3
    assert retry.policy_for(UNKNOWN) == RetryPolicy(3, 0.5)


@pytest.mark.parametrize("error", [ValueError, TypeError])
def test_programming_errors_are_not_retried(error, driver, sleeps, no_sleep):
    calls = []
    retry = ContextAwareRetry(driver, analyzer=ScriptedAnalyzer(GOOD_STABLE), sleep=no_sleep)

    with pytest.raises(error):
        retry.execute(failing(calls, error))

    assert len(calls) == 1
    assert sleeps == []


def test_returns_first_success(driver, sleeps, no_sleep):
    outcomes = [RuntimeError("once"), "done"]

    def action():
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    retry = ContextAwareRetry(driver, analyzer=ScriptedAnalyzer(GOOD_STABLE), sleep=no_sleep)
    assert retry.execute(action) == "done"
    assert sleeps == [0.5]


def test_add_policy_overrides_table(driver, sleeps, no_sleep):
    calls = []
    retry = ContextAwareRetry(driver, analyzer=ScriptedAnalyzer(GOOD_STABLE), sleep=no_sleep)
    retry.add_policy(GOOD_STABLE, RetryPolicy(2, 0.1))

    with pytest.raises(RuntimeError):
        retry.execute(failing(calls))

    assert len(calls) == 2
    assert sleeps == [0.1]


def test_decorator_runs_through_retry(driver, sleeps, no_sleep):
    retry = ContextAwareRetry(driver, analyzer=ScriptedAnalyzer(GOOD_STABLE), sleep=no_sleep)
    attempts = []

    @with_context_retry(retry)
    def flaky():
        attempts.append(1)
        if len(attempts) < 2:
            raise RuntimeError("not yet")
        return "ok"

    assert flaky() == "ok"
    assert flaky.__name__ == "flaky"


def test_analyzer_reads_page_signals(driver, config):
    analyzer = ContextAnalyzer(driver, config)
    assert analyzer.analyze() == GOOD_STABLE

    driver.latency = 2500
    assert analyzer.analyze_network() == NetworkCondition.POOR

    driver.js_errors = ["TypeError: x is undefined"]
    assert analyzer.analyze_browser() == BrowserState.UNSTABLE

    driver.js_errors = []
    driver.heap = 200_000_000
    assert analyzer.analyze_browser() == BrowserState.UNSTABLE


def test_analyzer_degrades_to_unknown(driver):
    def broken(*args):
        raise RuntimeError("page crashed")

    driver.execute_script = broken
    assert ContextAnalyzer(driver).analyze() == UNKNOWN

    driver2 = type(driver)()
    driver2.latency = None
    assert ContextAnalyzer(driver2).analyze_network() == NetworkCondition.UNKNOWN


def test_default_policy_from_config(driver, config):
    config.set("retry.default.attempts", 6)
    config.set("retry.default.delay", 0.2)
    retry = ContextAwareRetry(driver, config)
    assert retry.default_policy == RetryPolicy(6, 0.2)
