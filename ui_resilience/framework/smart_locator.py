"""
================================================================================
Self-Healing Locator
================================================================================

Maps a logical element identity to ranked, self-healing candidate locators.

Features:
    - Multiple candidate locators per element, ranked by success rate
    - Success/failure counters updated on every resolution attempt
    - Synthesis of new candidates from the last known-good element's
      attributes when every registered candidate fails
    - Multi-element resolution accumulating across all candidates
    - Locator health report for maintenance

Synthesis priority:
    1. id attribute (exact match)
    2. class-derived selector
    3. name-derived selector
    4. visible text match

Known limitation: candidates are never evicted. Every synthesis pass can
append new selectors, so an element whose page keeps changing grows its
candidate list for the life of the session.

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import itertools
import re
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from loguru import logger

from .exceptions import ElementNotFoundError, NoSuchElementError


_SIMPLE_IDENT = re.compile(r"^[A-Za-z_][\w-]*$")


@dataclass
class LocatorCandidate:
    """
    One locator expression with its usage statistics.

    Attributes:
        selector: Locator expression handed to the driver
        order: Registration order, used to break rank ties
        successes: Number of successful resolutions
        failures: Number of failed resolutions
        synthesized: Whether the candidate was generated by self-healing
    """
    selector: str
    order: int
    successes: int = 0
    failures: int = 0
    synthesized: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def score(self) -> int:
        return self.successes - self.failures

    def record_success(self) -> None:
        with self._lock:
            self.successes += 1

    def record_failure(self) -> None:
        with self._lock:
            self.failures += 1


@dataclass
class ElementSnapshot:
    """Observable attributes of the last successfully resolved element."""
    element_id: Optional[str] = None
    class_name: Optional[str] = None
    name: Optional[str] = None
    text: Optional[str] = None

    def is_empty(self) -> bool:
        return not (self.element_id or self.class_name or self.name or self.text)


@dataclass
class ElementHandle:
    """
    Logical identity of one element within a session.

    The native reference is replaced wholesale on re-resolution; it is
    never patched in place.
    """
    key: str
    candidates: List[LocatorCandidate] = field(default_factory=list)
    ref: Any = None
    snapshot: Optional[ElementSnapshot] = None


class SelfHealingLocator:
    """
    Resolves an ElementHandle through its ranked candidates.

    Usage:
        >>> locator = SelfHealingLocator(driver, "login_button",
        ...                              "[data-testid='btn-login']", "#login")
        >>> ref = locator.find_element()
        >>> locator.add_alternative_locator("button:has-text('Log In')")
    """

    def __init__(self, driver, element_key: str, *initial_locators: str):
        """
        Initialize locator.

        Args:
            driver: Driver used to resolve selectors
            element_key: Logical element key
            *initial_locators: At least one locator expression

        Raises:
            ValueError: When no locator is given
        """
        if not initial_locators:
            raise ValueError(f"At least one locator is required for element: {element_key}")

        self.driver = driver
        self._order = itertools.count()
        self._lock = threading.RLock()
        self.handle = ElementHandle(key=element_key)
        for selector in initial_locators:
            self._append(selector)

    @property
    def key(self) -> str:
        return self.handle.key

    @property
    def current(self) -> Any:
        """The current native reference, or None if unresolved/invalidated."""
        return self.handle.ref

    # =========================================================================
    # Candidate management
    # =========================================================================

    def _append(self, selector: str, synthesized: bool = False) -> Optional[LocatorCandidate]:
        with self._lock:
            if any(c.selector == selector for c in self.handle.candidates):
                return None
            candidate = LocatorCandidate(
                selector=selector,
                order=next(self._order),
                synthesized=synthesized,
            )
            self.handle.candidates.append(candidate)
            return candidate

    def add_alternative_locator(self, selector: str) -> None:
        """Register another candidate locator (appended, never replacing)."""
        if not selector:
            raise ValueError("Locator must be a non-empty string")
        if self._append(selector) is not None:
            logger.debug(f"Registered alternative locator for '{self.key}': {selector}")

    def remove_locator(self, selector: str) -> None:
        """
        Remove a candidate and its statistics.

        Raises:
            ValueError: When removing the last remaining candidate
        """
        with self._lock:
            remaining = [c for c in self.handle.candidates if c.selector != selector]
            if not remaining:
                raise ValueError(f"Cannot remove the last locator of element: {self.key}")
            self.handle.candidates = remaining

    def ranked_candidates(self) -> List[LocatorCandidate]:
        """Candidates by (successes - failures) descending, ties by registration order."""
        with self._lock:
            candidates = list(self.handle.candidates)
        return sorted(candidates, key=lambda c: (-c.score, c.order))

    def get_locator_success_rates(self) -> Dict[str, int]:
        return {c.selector: c.score for c in self.ranked_candidates()}

    # =========================================================================
    # Resolution
    # =========================================================================

    def invalidate(self) -> None:
        """Discard the current native reference."""
        self.handle.ref = None

    def resolve(self) -> Any:
        """Return the current reference, resolving if there is none."""
        ref = self.handle.ref
        if ref is None:
            ref = self.find_element()
        return ref

    def refresh(self) -> Any:
        """Discard the current reference and resolve a fresh one."""
        self.invalidate()
        return self.find_element()

    def find_element(self) -> Any:
        """
        Resolve the element through ranked candidates, self-healing if needed.

        Returns:
            Native reference, which becomes the handle's current reference

        Raises:
            ElementNotFoundError: When registered and synthesized candidates fail
        """
        last_error: Optional[BaseException] = None

        for candidate in self.ranked_candidates():
            ref, error = self._try_candidate(candidate)
            if ref is not None:
                return self._accept(candidate, ref)
            last_error = error or last_error

        synthesized = self._synthesize()
        for candidate in synthesized:
            ref, error = self._try_candidate(candidate)
            if ref is not None:
                logger.warning(
                    f"Element '{self.key}' healed with synthesized locator: {candidate.selector}"
                )
                return self._accept(candidate, ref)
            last_error = error or last_error

        logger.error(f"All locators failed for '{self.key}': {last_error}")
        raise ElementNotFoundError(self.key, last_error)

    def find_elements(self) -> List[Any]:
        """
        Resolve every matching element across all candidates.

        Results are accumulated, not de-duplicated. Candidates returning
        elements count a success; candidates returning nothing or raising
        count a failure.
        """
        elements: List[Any] = []

        for candidate in self.ranked_candidates():
            elements.extend(self._collect(candidate))

        if not elements:
            for candidate in self._synthesize():
                elements.extend(self._collect(candidate))

        if elements:
            self._remember(elements[0])
        return elements

    def _try_candidate(self, candidate: LocatorCandidate):
        try:
            ref = self.driver.find_element(candidate.selector)
        except NoSuchElementError as e:
            candidate.record_failure()
            logger.debug(f"Locator failed for '{self.key}': {candidate.selector}")
            return None, e
        except Exception as e:
            candidate.record_failure()
            logger.debug(f"Locator errored for '{self.key}': {candidate.selector} -> {e}")
            return None, e
        if ref is None:
            candidate.record_failure()
            return None, NoSuchElementError(candidate.selector)
        candidate.record_success()
        return ref, None

    def _collect(self, candidate: LocatorCandidate) -> List[Any]:
        try:
            found = self.driver.find_elements(candidate.selector)
        except Exception as e:
            candidate.record_failure()
            logger.debug(f"Locator errored for '{self.key}': {candidate.selector} -> {e}")
            return []
        if found:
            candidate.record_success()
        else:
            candidate.record_failure()
        return list(found)

    def _accept(self, candidate: LocatorCandidate, ref: Any) -> Any:
        self.handle.ref = ref
        self._remember(ref)
        logger.debug(f"Element '{self.key}' resolved with: {candidate.selector}")
        return ref

    # =========================================================================
    # Self-healing
    # =========================================================================

    def _remember(self, ref: Any) -> None:
        """Capture observable attributes of a known-good element (best-effort)."""
        snapshot = ElementSnapshot()
        try:
            snapshot.element_id = self.driver.get_attribute(ref, "id") or None
            snapshot.class_name = self.driver.get_attribute(ref, "class") or None
            snapshot.name = self.driver.get_attribute(ref, "name") or None
            text = self.driver.get_text(ref)
            snapshot.text = text.strip() if text and text.strip() else None
        except Exception as e:
            logger.debug(f"Could not snapshot attributes of '{self.key}': {e}")
        if not snapshot.is_empty():
            self.handle.snapshot = snapshot

    def synthesize_locators(self) -> List[str]:
        """Selectors derivable from the last known-good element, by priority."""
        snapshot = self.handle.snapshot
        if snapshot is None:
            return []

        selectors: List[str] = []
        if snapshot.element_id:
            if _SIMPLE_IDENT.match(snapshot.element_id):
                selectors.append(f"#{snapshot.element_id}")
            else:
                selectors.append(f"[id={_quote(snapshot.element_id)}]")
        if snapshot.class_name:
            classes = [c for c in snapshot.class_name.split() if _SIMPLE_IDENT.match(c)]
            if classes:
                selectors.append("." + ".".join(classes))
        if snapshot.name:
            selectors.append(f"[name={_quote(snapshot.name)}]")
        if snapshot.text:
            selectors.append(f"text={_quote(snapshot.text)}")
        return selectors

    def _synthesize(self) -> List[LocatorCandidate]:
        added = []
        for selector in self.synthesize_locators():
            candidate = self._append(selector, synthesized=True)
            if candidate is not None:
                added.append(candidate)
        if added:
            logger.info(
                f"Synthesized {len(added)} locator(s) for '{self.key}': "
                f"{[c.selector for c in added]}"
            )
        return added

    # =========================================================================
    # Reporting
    # =========================================================================

    def get_health_report(self) -> str:
        """
        Generate locator health report.

        Lists candidates in rank order with their counters, flagging
        synthesized ones as maintenance candidates.
        """
        lines = [f"Locator Health Report - '{self.key}':"]
        for candidate in self.ranked_candidates():
            marker = " (synthesized)" if candidate.synthesized else ""
            lines.append(
                f"  {candidate.selector}{marker}: "
                f"+{candidate.successes} / -{candidate.failures} (score {candidate.score})"
            )
        return "\n".join(lines)


def _quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


__all__ = [
    "SelfHealingLocator",
    "LocatorCandidate",
    "ElementHandle",
    "ElementSnapshot",
]
