"""
================================================================================
Browser Manager
================================================================================

Browser lifecycle management for resilient UI automation.

Features:
    - Single browser instance per manager
    - Isolated context and page per BrowserSession
    - Browser configuration presets

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from loguru import logger
from playwright.sync_api import (
    Browser,
    BrowserContext,
    Playwright,
    sync_playwright,
)

from ..common import init_logger
from .driver import PlaywrightDriver
from .dynamic_config import DynamicConfig
from .session import BrowserSession


class BrowserManager:
    """
    Launches a browser and opens isolated resilience sessions on it.

    Usage:
        with BrowserManager() as manager:
            session = manager.new_session()
            session.driver.page.goto("https://example.com")
            session.element("search", "#q").type("playwright")
    """

    DEFAULT_LAUNCH_OPTIONS: Dict[str, Any] = {
        "headless": True,
        "args": ["--ignore-certificate-errors"],
    }

    DEFAULT_CONTEXT_OPTIONS: Dict[str, Any] = {
        "viewport": {"width": 1920, "height": 1080},
        "ignore_https_errors": True,
    }

    def __init__(self, headless: bool = True, browser_type: str = "chromium"):
        """
        Initialize browser manager.

        Args:
            headless: Run browser in headless mode
            browser_type: Browser to use - 'chromium', 'firefox', 'webkit'
        """
        self.headless = headless
        self.browser_type = browser_type

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._sessions: List[Tuple[BrowserSession, BrowserContext]] = []

    def __enter__(self) -> "BrowserManager":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def start(self) -> None:
        """Start Playwright and launch browser."""
        init_logger()
        self._playwright = sync_playwright().start()
        launcher = getattr(self._playwright, self.browser_type, None) or self._playwright.chromium
        self._browser = launcher.launch(**{**self.DEFAULT_LAUNCH_OPTIONS, "headless": self.headless})
        logger.debug(f"Browser started: {self.browser_type} (headless={self.headless})")

    def new_session(
        self,
        config: Optional[DynamicConfig] = None,
        **context_options: Any,
    ) -> BrowserSession:
        """
        Open a new context and page wrapped in a BrowserSession.

        The session applies its configured timeouts to the page. Call this
        on the thread that started the manager.

        Raises:
            RuntimeError: Browser not started
        """
        if not self._browser:
            raise RuntimeError("Browser not started. Call start() first.")

        context = self._browser.new_context(**{**self.DEFAULT_CONTEXT_OPTIONS, **context_options})
        page = context.new_page()
        session = BrowserSession(PlaywrightDriver(page), config=config)
        self._sessions.append((session, context))
        return session

    def close(self) -> None:
        """Close every session, its context, and the browser."""
        for session, context in self._sessions:
            session.close()
            try:
                context.close()
            except Exception as e:
                logger.debug(f"Failed to close browser context: {e}")
        self._sessions.clear()

        if self._browser:
            self._browser.close()
            self._browser = None

        if self._playwright:
            self._playwright.stop()
            self._playwright = None

        logger.debug("Browser closed")

    @property
    def browser(self) -> Optional[Browser]:
        return self._browser


__all__ = ["BrowserManager"]
