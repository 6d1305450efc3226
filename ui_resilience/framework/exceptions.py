"""
================================================================================
Resilience Exceptions
================================================================================

Failure taxonomy shared by every layer of the resilience engine.

Hierarchy:
    ResilienceError
    ├── DriverError                      raised by driver primitives
    │   ├── NoSuchElementError           a single locator matched nothing
    │   ├── TransientInteractionError    retryable, recovery attempted
    │   │   ├── StaleElementReferenceError
    │   │   ├── ElementClickInterceptedError
    │   │   └── ElementNotInteractableError
    │   ├── DriverTimeoutError
    │   └── ScriptExecutionError
    ├── ElementNotFoundError             all candidates exhausted
    ├── WaitTimeoutError                 wait budget exhausted
    ├── StrategiesExhaustedError         one orchestrator pass failed
    └── UnrecoverableActionError         terminal façade failure

Invalid arguments and invalid state are reported with the builtin
ValueError / TypeError and are never retried.

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

from typing import List, Optional, Tuple


class ResilienceError(Exception):
    """Base class for all resilience engine errors."""
    pass


# =============================================================================
# Driver-level errors
# =============================================================================

class DriverError(ResilienceError):
    """Raised by a driver primitive."""
    pass


class NoSuchElementError(DriverError):
    """Raised when a single locator resolves to no element."""
    pass


class TransientInteractionError(DriverError):
    """Interaction failure expected to clear up on retry."""
    pass


class StaleElementReferenceError(TransientInteractionError):
    """The native reference no longer points at a live element."""
    pass


class ElementClickInterceptedError(TransientInteractionError):
    """Another element would receive the click."""
    pass


class ElementNotInteractableError(TransientInteractionError):
    """The element is present but hidden, disabled or off-screen."""
    pass


class DriverTimeoutError(DriverError):
    """A driver primitive ran out of time."""
    pass


class ScriptExecutionError(DriverError):
    """An injected page script raised."""
    pass


# =============================================================================
# Engine-level errors
# =============================================================================

class ElementNotFoundError(ResilienceError):
    """Raised when all locator candidates, including synthesized ones, fail."""

    def __init__(self, key: str, last_error: Optional[BaseException] = None):
        self.key = key
        self.last_error = last_error
        detail = f": {last_error}" if last_error is not None else ""
        super().__init__(f"Element '{key}' not found with any locator{detail}")


class WaitTimeoutError(ResilienceError):
    """Raised when an adaptive wait exhausts its time or attempt budget."""

    def __init__(
        self,
        elapsed: float,
        attempts: int,
        last_error: Optional[BaseException] = None,
        description: str = "condition",
    ):
        self.elapsed = elapsed
        self.attempts = attempts
        self.last_error = last_error
        message = (
            f"Timeout waiting for {description} after {elapsed * 1000:.0f} ms "
            f"and {attempts} attempts"
        )
        if last_error is not None:
            message += f". Last error: {last_error}"
        super().__init__(message)


class StrategiesExhaustedError(ResilienceError):
    """Raised when every interaction strategy failed for one action."""

    def __init__(self, action: str, failures: List[Tuple[str, Optional[BaseException]]]):
        self.action = action
        self.failures = list(failures)
        summary = ", ".join(
            f"{name}: {type(err).__name__ if err else 'returned False'}"
            for name, err in self.failures
        )
        super().__init__(f"All strategies failed for '{action}' ({summary or 'no strategies'})")


class UnrecoverableActionError(ResilienceError):
    """
    Terminal failure of a façade operation.

    Carries the operation name; the full cause chain is available via
    ``__cause__``.
    """

    def __init__(self, operation: str, element_key: str = "", cause: Optional[BaseException] = None):
        self.operation = operation
        self.element_key = element_key
        self.cause = cause
        target = f" on '{element_key}'" if element_key else ""
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to {operation}{target}{detail}")

    def cause_chain(self) -> List[BaseException]:
        """Return the chained causes, outermost first."""
        chain: List[BaseException] = []
        current = self.__cause__ or self.cause
        while current is not None and current not in chain:
            chain.append(current)
            current = current.__cause__ or current.__context__
        return chain


__all__ = [
    "ResilienceError",
    "DriverError",
    "NoSuchElementError",
    "TransientInteractionError",
    "StaleElementReferenceError",
    "ElementClickInterceptedError",
    "ElementNotInteractableError",
    "DriverTimeoutError",
    "ScriptExecutionError",
    "ElementNotFoundError",
    "WaitTimeoutError",
    "StrategiesExhaustedError",
    "UnrecoverableActionError",
]
