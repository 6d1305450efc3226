# ================================================================================
# Context-Aware Retry Module
# ================================================================================
#
# Retry wrapper whose budget and delay depend on the inferred runtime context.
#
# Key Features:
#   - Cheap, best-effort context sampling (network latency, script errors,
#     JS heap usage); any query failure degrades to UNKNOWN
#   - Policy table keyed by (network condition, browser state)
#   - Context re-sampled after every failed attempt; the policy can change
#     mid-loop
#   - ValueError / TypeError are never retried
#
# Default policies:
#   GOOD / STABLE     3 attempts, 0.5 s
#   POOR / STABLE     5 attempts, 1.0 s
#   GOOD / UNSTABLE   4 attempts, 0.75 s
#   POOR / UNSTABLE   7 attempts, 1.5 s
#   anything else     3 attempts, 0.5 s
#
# ================================================================================

import threading
import time
from dataclasses import dataclass
from enum import Enum
from functools import wraps
from typing import Any, Callable, Dict, Optional, Tuple, Type, TypeVar

from loguru import logger

from . import scripts


T = TypeVar('T')


class NetworkCondition(str, Enum):
    GOOD = "GOOD"
    POOR = "POOR"
    UNKNOWN = "UNKNOWN"


class BrowserState(str, Enum):
    STABLE = "STABLE"
    UNSTABLE = "UNSTABLE"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class RetryContext:
    """Inferred runtime context used as the policy table key."""
    network: NetworkCondition = NetworkCondition.UNKNOWN
    browser: BrowserState = BrowserState.UNKNOWN


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry budget for one context.

    Attributes:
        max_attempts: Total number of calls, including the first
        delay_seconds: Sleep between attempts
    """
    max_attempts: int = 3
    delay_seconds: float = 0.5

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.delay_seconds < 0:
            raise ValueError(f"delay_seconds must be >= 0, got {self.delay_seconds}")


DEFAULT_POLICY = RetryPolicy(3, 0.5)

DEFAULT_POLICIES: Dict[RetryContext, RetryPolicy] = {
    RetryContext(NetworkCondition.GOOD, BrowserState.STABLE): RetryPolicy(3, 0.5),
    RetryContext(NetworkCondition.POOR, BrowserState.STABLE): RetryPolicy(5, 1.0),
    RetryContext(NetworkCondition.GOOD, BrowserState.UNSTABLE): RetryPolicy(4, 0.75),
    RetryContext(NetworkCondition.POOR, BrowserState.UNSTABLE): RetryPolicy(7, 1.5),
}

NON_RETRYABLE: Tuple[Type[BaseException], ...] = (ValueError, TypeError)


def is_retryable(error: BaseException) -> bool:
    """Invalid arguments and invalid state are programming errors."""
    return not isinstance(error, NON_RETRYABLE)


class ContextAnalyzer:
    """Samples the RetryContext from the page through page scripts."""

    def __init__(self, driver, config=None):
        self.driver = driver
        self.config = config

    def _threshold(self, key: str, default: float) -> float:
        if self.config is None:
            return default
        return self.config.get_threshold(key, default)

    def analyze(self) -> RetryContext:
        return RetryContext(self.analyze_network(), self.analyze_browser())

    def analyze_network(self) -> NetworkCondition:
        try:
            latency = self.driver.execute_script(scripts.RESPONSE_LATENCY)
        except Exception as e:
            logger.debug(f"Failed to analyze network condition: {e}")
            return NetworkCondition.UNKNOWN
        if latency is None or isinstance(latency, bool) or not isinstance(latency, (int, float)):
            return NetworkCondition.UNKNOWN
        threshold = self._threshold("network.latency.threshold", 1000)
        return NetworkCondition.POOR if latency > threshold else NetworkCondition.GOOD

    def analyze_browser(self) -> BrowserState:
        try:
            errors = self.driver.execute_script(scripts.SCRIPT_ERRORS)
            memory = self.driver.execute_script(scripts.HEAP_USAGE)
        except Exception as e:
            logger.debug(f"Failed to analyze browser state: {e}")
            return BrowserState.UNKNOWN
        if errors:
            return BrowserState.UNSTABLE
        threshold = self._threshold("memory.usage.threshold", 100_000_000)
        if isinstance(memory, (int, float)) and not isinstance(memory, bool) and memory > threshold:
            return BrowserState.UNSTABLE
        return BrowserState.STABLE


class ContextAwareRetry:
    """
    Executes an action under the retry policy of the current context.

    Usage:
        >>> retry = ContextAwareRetry(driver)
        >>> retry.execute(lambda: driver.click(ref, 5))
    """

    def __init__(
        self,
        driver,
        config=None,
        analyzer: Optional[ContextAnalyzer] = None,
        sleep: Callable[[float], None] = time.sleep,
        default_policy: Optional[RetryPolicy] = None,
        before_retry: Optional[Callable[[], Any]] = None,
    ):
        """
        Initialize retry mechanism.

        Args:
            driver: Driver queried for context signals
            config: DynamicConfig supplying thresholds and the default policy
            analyzer: Custom context analyzer (defaults to ContextAnalyzer)
            sleep: Sleep function (injectable for tests)
            default_policy: Policy for unmapped contexts
            before_retry: Called after each retry delay, before the next attempt
        """
        self.driver = driver
        self.analyzer = analyzer or ContextAnalyzer(driver, config)
        self._sleep = sleep
        self._lock = threading.Lock()
        self._policies: Dict[RetryContext, RetryPolicy] = dict(DEFAULT_POLICIES)
        if default_policy is None and config is not None:
            default_policy = RetryPolicy(
                config.get_int("retry.default.attempts", 3),
                config.get_duration("retry.default.delay", 0.5),
            )
        self.default_policy = default_policy or DEFAULT_POLICY
        self.before_retry = before_retry

    def add_policy(self, context: RetryContext, policy: RetryPolicy) -> None:
        with self._lock:
            self._policies[context] = policy

    def policy_for(self, context: RetryContext, fallback: Optional[RetryPolicy] = None) -> RetryPolicy:
        """Look up the policy for a context; never returns None."""
        with self._lock:
            return self._policies.get(context, fallback or self.default_policy)

    def sample_context(self) -> RetryContext:
        try:
            return self.analyzer.analyze()
        except Exception as e:
            logger.debug(f"Context analysis failed: {e}")
            return RetryContext()

    def execute(self, action: Callable[[], T], description: str = "action") -> T:
        """
        Run `action` until it returns, retrying retryable failures.

        Raises:
            The last failure once the attempt budget is exhausted, or a
            non-retryable failure immediately
        """
        context = self.sample_context()
        policy = self.policy_for(context)
        attempt = 0

        while True:
            attempt += 1
            try:
                return action()
            except Exception as e:
                if not is_retryable(e):
                    logger.debug(f"{description}: non-retryable {type(e).__name__}, aborting")
                    raise

                if attempt >= policy.max_attempts:
                    logger.error(
                        f"All {attempt} attempts failed for {description}: {e}"
                    )
                    raise

                logger.warning(
                    f"Attempt {attempt}/{policy.max_attempts} failed for {description}: "
                    f"{e}. Retrying in {policy.delay_seconds}s..."
                )
                self._sleep(policy.delay_seconds)
                if self.before_retry is not None:
                    self.before_retry()

                new_context = self.sample_context()
                if new_context != context:
                    context = new_context
                    policy = self.policy_for(context, fallback=policy)
                    logger.debug(
                        f"Context changed to {context.network.value}/{context.browser.value}; "
                        f"policy now {policy.max_attempts} attempts / {policy.delay_seconds}s"
                    )


def with_context_retry(retry: ContextAwareRetry):
    """
    Decorator running the wrapped function through a ContextAwareRetry.

    Args:
        retry: Configured retry mechanism
    """
    def decorator(func: Callable):
        @wraps(func)
        def wrapper(*args, **kwargs):
            return retry.execute(lambda: func(*args, **kwargs), description=func.__name__)
        return wrapper
    return decorator


__all__ = [
    "NetworkCondition",
    "BrowserState",
    "RetryContext",
    "RetryPolicy",
    "DEFAULT_POLICY",
    "DEFAULT_POLICIES",
    "ContextAnalyzer",
    "ContextAwareRetry",
    "is_retryable",
    "with_context_retry",
]
