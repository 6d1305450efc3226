"""
================================================================================
Element Event & Performance Monitoring
================================================================================

Timing capture and background state watchers for one browser session.

Components:
    - PerformanceMonitor: start/end markers keyed by (element key, action),
      accumulated until explicitly cleared; page-level navigation/resource
      timings
    - ElementEventMonitor: one background watcher thread per (element, state)
      registration, each returning a cancellable WatchHandle; opportunistic
      network-activity observation

Watchers poll on a fixed short interval and invoke their callback exactly
once, the first time the watched state is observed. There is no back-pressure:
every registration owns a thread until it fires or is cancelled, so callers
should bound how many they register. `stop_all()` cancels everything and is
called when the session closes.

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from loguru import logger

from . import scripts


# =============================================================================
# Performance timing
# =============================================================================

@dataclass
class PerformanceRecord:
    """
    Timing of one (element key, action) pair.

    Attributes:
        start: Wall-clock timestamp of the most recent start marker
        duration_ms: Duration of the most recent completed run
        total_ms: Sum of every completed run
        count: Number of completed runs
    """
    start: float = 0.0
    duration_ms: float = 0.0
    total_ms: float = 0.0
    count: int = 0

    @property
    def average_ms(self) -> float:
        return self.total_ms / self.count if self.count else 0.0

    def as_dict(self) -> Dict[str, float]:
        return {
            "start": self.start,
            "duration_ms": self.duration_ms,
            "total_ms": self.total_ms,
            "average_ms": self.average_ms,
            "count": self.count,
        }


class PerformanceMonitor:
    """
    Per-session timing store.

    Each (element key, action) record has its own lock, so concurrent
    callers timing different keys never contend on a table-wide lock.
    """

    def __init__(self, driver=None, session_id: str = "", clock: Callable[[], float] = time.perf_counter):
        self.driver = driver
        self.session_id = session_id
        self._clock = clock
        self._table_lock = threading.Lock()
        self._records: Dict[Tuple[str, str], PerformanceRecord] = {}
        self._locks: Dict[Tuple[str, str], threading.Lock] = {}
        self._pending: Dict[Tuple[str, str], float] = {}

    def _slot(self, key: Tuple[str, str]) -> Tuple[PerformanceRecord, threading.Lock]:
        with self._table_lock:
            if key not in self._records:
                self._records[key] = PerformanceRecord()
                self._locks[key] = threading.Lock()
            return self._records[key], self._locks[key]

    def start_timing(self, element_key: str, action: str) -> None:
        key = (element_key, action)
        record, lock = self._slot(key)
        with lock:
            record.start = time.time()
            self._pending[key] = self._clock()

    def end_timing(self, element_key: str, action: str) -> Optional[float]:
        """
        Close the timing opened by start_timing.

        Returns:
            Duration in milliseconds, or None if no timing was open
        """
        key = (element_key, action)
        record, lock = self._slot(key)
        with lock:
            started = self._pending.pop(key, None)
            if started is None:
                logger.debug(f"No open timing for {element_key}.{action}")
                return None
            duration_ms = (self._clock() - started) * 1000
            record.duration_ms = duration_ms
            record.total_ms += duration_ms
            record.count += 1
        logger.debug(f"Operation {action} on {element_key} took {duration_ms:.1f} ms")
        return duration_ms

    @contextmanager
    def timed(self, element_key: str, action: str) -> Iterator[None]:
        """Time the enclosed block; failures are timed too."""
        self.start_timing(element_key, action)
        try:
            yield
        finally:
            self.end_timing(element_key, action)

    def get_element_performance(self, element_key: str) -> Dict[str, Dict[str, float]]:
        """Completed timings of one element, keyed by action."""
        with self._table_lock:
            items = [(k, r, self._locks[k]) for k, r in self._records.items() if k[0] == element_key]
        metrics = {}
        for (_, action), record, lock in items:
            with lock:
                if record.count:
                    metrics[action] = record.as_dict()
        return metrics

    def get_all_performance(self) -> Dict[str, Dict[str, float]]:
        with self._table_lock:
            items = list(self._records.items())
        return {f"{key}.{action}": record.as_dict() for (key, action), record in items if record.count}

    def page_performance_metrics(self) -> Dict[str, Any]:
        """Navigation and resource timings of the current page; empty when unavailable."""
        if self.driver is None:
            return {}
        try:
            timings = self.driver.execute_script(scripts.PAGE_TIMINGS)
        except Exception as e:
            logger.debug(f"Failed to collect page performance metrics: {e}")
            return {}
        return dict(timings) if isinstance(timings, dict) else {}

    def clear(self) -> None:
        with self._table_lock:
            self._records.clear()
            self._locks.clear()
            self._pending.clear()


# =============================================================================
# State watchers
# =============================================================================

WATCHABLE_STATES = ("visible", "hidden", "enabled", "selected")


class WatchHandle:
    """Cancellation handle of one background watcher."""

    def __init__(self, element_key: str, state: str):
        self.element_key = element_key
        self.state = state
        self._stop = threading.Event()
        self._fired = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def cancel(self) -> None:
        self._stop.set()

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    @property
    def fired(self) -> bool:
        return self._fired.is_set()

    @property
    def is_active(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def __repr__(self) -> str:
        status = "fired" if self.fired else ("cancelled" if self.cancelled else "watching")
        return f"<WatchHandle {self.element_key}:{self.state} {status}>"


def state_check(driver, resolve: Callable[[], Any], state: str) -> Callable[[], bool]:
    """
    Build a check reporting whether the element is currently in `state`.

    Raises:
        ValueError: Unknown state name
    """
    if state not in WATCHABLE_STATES:
        raise ValueError(f"Unknown element state '{state}', expected one of {WATCHABLE_STATES}")

    def _check() -> bool:
        ref = resolve()
        if state == "visible":
            return bool(driver.is_displayed(ref))
        if state == "hidden":
            return not driver.is_displayed(ref)
        if state == "enabled":
            return bool(driver.is_enabled(ref))
        return bool(driver.is_selected(ref))

    return _check


class ElementEventMonitor:
    """
    Background watchers for element states and network activity.

    Usage:
        >>> monitor = ElementEventMonitor(driver, session_id="abc")
        >>> handle = monitor.watch_state("banner", check, lambda: print("shown"))
        >>> monitor.stop_all()
    """

    def __init__(self, driver, session_id: str = "", poll_interval: float = 0.1):
        self.driver = driver
        self.session_id = session_id
        self.poll_interval = poll_interval
        self._lock = threading.Lock()
        self._handles: List[WatchHandle] = []

    def watch_state(
        self,
        element_key: str,
        check: Callable[[], bool],
        callback: Callable[[], None],
        state: str = "custom",
        interval: Optional[float] = None,
    ) -> WatchHandle:
        """
        Start a watcher invoking `callback` once, the first time `check()` is True.

        The check runs through `driver.dispatch`, so thread-bound drivers
        execute it on their owning thread; the callback runs on the watcher
        thread. Check failures count as "not in state". Never blocks the caller.
        """
        handle = WatchHandle(element_key, state)
        poll = self.poll_interval if interval is None else interval
        run_check = check if self.driver is None else partial(self.driver.dispatch, check)

        def _watch():
            with logger.contextualize(session=self.session_id):
                try:
                    while not handle._stop.is_set():
                        try:
                            observed = bool(run_check())
                        except Exception as e:
                            logger.debug(f"State check for {element_key}:{state} failed: {e}")
                            observed = False
                        if observed:
                            handle._fired.set()
                            logger.debug(f"Element {element_key} reached state '{state}'")
                            try:
                                callback()
                            except Exception as e:
                                logger.error(f"State callback for {element_key}:{state} raised: {e}")
                            return
                        handle._stop.wait(poll)
                finally:
                    self._discard(handle)

        thread = threading.Thread(
            target=_watch,
            name=f"watch-{self.session_id}-{element_key}-{state}",
            daemon=True,
        )
        handle._thread = thread
        with self._lock:
            self._handles.append(handle)
        thread.start()
        return handle

    def _discard(self, handle: WatchHandle) -> None:
        with self._lock:
            if handle in self._handles:
                self._handles.remove(handle)

    @property
    def active_watchers(self) -> List[WatchHandle]:
        with self._lock:
            return list(self._handles)

    def stop_all(self, timeout: float = 2.0) -> None:
        """Cancel every watcher and wait briefly for their threads to finish."""
        handles = self.active_watchers
        for handle in handles:
            handle.cancel()
        for handle in handles:
            handle.join(timeout)
        if handles:
            logger.debug(f"Stopped {len(handles)} watcher(s) for session {self.session_id}")

    # =========================================================================
    # Network activity
    # =========================================================================

    def on_network_activity(self) -> bool:
        """Install the page's network observer; False when the API is missing."""
        try:
            return bool(self.driver.execute_script(scripts.INSTALL_NETWORK_OBSERVER))
        except Exception as e:
            logger.debug(f"Network observation unavailable: {e}")
            return False

    def get_network_activity(self) -> List[Dict[str, Any]]:
        try:
            entries = self.driver.execute_script(scripts.READ_NETWORK_ENTRIES)
        except Exception as e:
            logger.debug(f"Failed to read network activity: {e}")
            return []
        return list(entries) if isinstance(entries, list) else []

    def clear_network_activity(self) -> None:
        try:
            self.driver.execute_script(scripts.CLEAR_NETWORK_ENTRIES)
        except Exception as e:
            logger.debug(f"Failed to clear network activity: {e}")


__all__ = [
    "PerformanceMonitor",
    "PerformanceRecord",
    "ElementEventMonitor",
    "WatchHandle",
    "WATCHABLE_STATES",
    "state_check",
]
