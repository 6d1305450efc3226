# ================================================================================
# Element Interaction Manager
# ================================================================================
#
# Orchestrates interaction strategies for one element operation.
#
# Behaviour:
#   - Strategies are tried strictly in list order; the first success wins
#   - A strategy that fails with an error gets one recovery attempt (via the
#     caller-supplied `recover` callback) and, when recovery produces a
#     reference, one immediate re-try before the next strategy is tried
#   - If every strategy fails the result is an aggregate failure; the caller
#     decides whether that is fatal or retryable
#   - Trying strategies never reorders them; add/remove/set are explicit
#
# ================================================================================

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple, Type

from loguru import logger

from .strategies import InteractionStrategy, NativeStrategy, PointerStrategy, ScriptStrategy


Recover = Callable[[Any, BaseException], Optional[Any]]


@dataclass
class InteractionResult:
    """
    Outcome of one orchestrator pass.

    Attributes:
        succeeded: Whether any strategy succeeded
        strategy: Name of the winning strategy
        failures: (strategy name, error or None) for every failed try, in order
    """
    succeeded: bool
    strategy: Optional[str] = None
    failures: List[Tuple[str, Optional[BaseException]]] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.succeeded

    @property
    def last_error(self) -> Optional[BaseException]:
        for _, error in reversed(self.failures):
            if error is not None:
                return error
        return None


def default_strategies(config=None, sleep: Callable[[float], None] = time.sleep) -> List[InteractionStrategy]:
    """Native first, pointer simulation second, script injection last."""
    return [
        NativeStrategy(config, sleep),
        PointerStrategy(config, sleep),
        ScriptStrategy(config, sleep),
    ]


class ElementInteractionManager:
    """
    Tries the configured strategies in order until one succeeds.

    Usage:
        >>> manager = ElementInteractionManager(driver, config)
        >>> result = manager.click(ref, timeout=10)
        >>> result.strategy
        'native'
    """

    def __init__(
        self,
        driver,
        config=None,
        strategies: Optional[List[InteractionStrategy]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the manager.

        Args:
            driver: Driver the strategies act through
            config: DynamicConfig shared with the default strategies
            strategies: Explicit ordered strategy list (defaults to native,
                pointer, script)
            sleep: Sleep function handed to the default strategies
        """
        self.driver = driver
        self.config = config
        self._lock = threading.Lock()
        if strategies is None:
            strategies = default_strategies(config, sleep)
        self._strategies: List[InteractionStrategy] = list(strategies)

    # =========================================================================
    # Strategy list management
    # =========================================================================

    @property
    def strategies(self) -> List[InteractionStrategy]:
        """A copy of the current ordered strategy list."""
        with self._lock:
            return list(self._strategies)

    def add_strategy(self, strategy: InteractionStrategy) -> None:
        """Insert a custom strategy at the front of the list."""
        if not isinstance(strategy, InteractionStrategy):
            raise TypeError(f"Expected an InteractionStrategy, got {type(strategy).__name__}")
        with self._lock:
            self._strategies.insert(0, strategy)
        logger.debug(f"Added interaction strategy: {strategy.name}")

    def remove_strategy(self, strategy_type: Type[InteractionStrategy]) -> None:
        """Remove every strategy of exactly this class."""
        with self._lock:
            self._strategies = [s for s in self._strategies if type(s) is not strategy_type]
        logger.debug(f"Removed interaction strategy: {strategy_type.__name__}")

    def set_strategies(self, strategies: List[InteractionStrategy]) -> None:
        """Replace the strategy list (the only way to reorder)."""
        with self._lock:
            self._strategies = list(strategies)

    # =========================================================================
    # Operations
    # =========================================================================

    def click(self, ref: Any, timeout: float, recover: Optional[Recover] = None) -> InteractionResult:
        return self._run("click", ref, (timeout,), recover)

    def type(self, ref: Any, text: str, timeout: float, recover: Optional[Recover] = None) -> InteractionResult:
        return self._run("type", ref, (text, timeout), recover)

    def clear(self, ref: Any, timeout: float, recover: Optional[Recover] = None) -> InteractionResult:
        return self._run("clear", ref, (timeout,), recover)

    def is_displayed(self, ref: Any, timeout: float, recover: Optional[Recover] = None) -> InteractionResult:
        return self._run("is_displayed", ref, (timeout,), recover)

    def is_enabled(self, ref: Any, timeout: float, recover: Optional[Recover] = None) -> InteractionResult:
        return self._run("is_enabled", ref, (timeout,), recover)

    def _run(
        self,
        action: str,
        ref: Any,
        args: Tuple[Any, ...],
        recover: Optional[Recover],
    ) -> InteractionResult:
        failures: List[Tuple[str, Optional[BaseException]]] = []

        for strategy in self.strategies:
            ok, error = strategy.attempt(action, self.driver, ref, *args)
            if ok:
                return InteractionResult(True, strategy.name, failures)

            failures.append((strategy.name, error))

            if error is not None and recover is not None:
                recovered_ref = self._recover(recover, ref, error)
                if recovered_ref is not None:
                    ref = recovered_ref
                    logger.debug(f"Re-trying {action} with {strategy.name} strategy after recovery")
                    ok, error = strategy.attempt(action, self.driver, ref, *args)
                    if ok:
                        return InteractionResult(True, strategy.name, failures)
                    failures.append((strategy.name, error))

        logger.warning(f"All strategies failed for {action}: {[name for name, _ in failures]}")
        return InteractionResult(False, None, failures)

    @staticmethod
    def _recover(recover: Recover, ref: Any, error: BaseException) -> Optional[Any]:
        try:
            return recover(ref, error)
        except Exception as e:
            logger.warning(f"Recovery callback raised for {type(error).__name__}: {e}")
            return None


__all__ = [
    "ElementInteractionManager",
    "InteractionResult",
    "Recover",
    "default_strategies",
]
