"""
================================================================================
UI Resilience Framework
================================================================================

Resilience engine between UI test scripts and the browser driver.

Components:
    - smart_locator: self-healing, success-ranked candidate locators
    - strategies / interaction_manager: native, pointer and script
      interaction strategies tried in order
    - adaptive_wait / state_validator: progressive-backoff polling
    - retry: retry budgets chosen from inferred network/browser context
    - recovery: exception-kind to remedy registry
    - monitoring: performance timings and background state watchers
    - smart_element: ResilientElement façade composing all of the above
    - session / browser_manager: session-scoped context and Playwright
      lifecycle

Author: Automation Team
License: MIT
================================================================================
"""

from .adaptive_wait import AdaptiveWait, WaitSpec
from .browser_manager import BrowserManager
from .driver import Driver, PlaywrightDriver, ThreadAffinity
from .dynamic_config import DynamicConfig
from .exceptions import (
    ElementClickInterceptedError,
    ElementNotFoundError,
    ElementNotInteractableError,
    ResilienceError,
    StaleElementReferenceError,
    StrategiesExhaustedError,
    UnrecoverableActionError,
    WaitTimeoutError,
)
from .interaction_manager import ElementInteractionManager, InteractionResult
from .monitoring import ElementEventMonitor, PerformanceMonitor, WatchHandle
from .recovery import RecoveryRegistry
from .retry import (
    BrowserState,
    ContextAwareRetry,
    NetworkCondition,
    RetryContext,
    RetryPolicy,
)
from .session import BrowserSession
from .smart_element import ResilientElement
from .smart_locator import SelfHealingLocator
from .state_validator import ElementStateValidator
from .strategies import InteractionStrategy, NativeStrategy, PointerStrategy, ScriptStrategy

__all__ = [
    "AdaptiveWait",
    "WaitSpec",
    "BrowserManager",
    "Driver",
    "PlaywrightDriver",
    "ThreadAffinity",
    "DynamicConfig",
    "ResilienceError",
    "ElementNotFoundError",
    "StaleElementReferenceError",
    "ElementClickInterceptedError",
    "ElementNotInteractableError",
    "StrategiesExhaustedError",
    "UnrecoverableActionError",
    "WaitTimeoutError",
    "ElementInteractionManager",
    "InteractionResult",
    "ElementEventMonitor",
    "PerformanceMonitor",
    "WatchHandle",
    "RecoveryRegistry",
    "BrowserState",
    "ContextAwareRetry",
    "NetworkCondition",
    "RetryContext",
    "RetryPolicy",
    "BrowserSession",
    "ResilientElement",
    "SelfHealingLocator",
    "ElementStateValidator",
    "InteractionStrategy",
    "NativeStrategy",
    "PointerStrategy",
    "ScriptStrategy",
]
