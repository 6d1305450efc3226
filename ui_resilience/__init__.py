"""
================================================================================
UI Resilience
================================================================================

Resilience layer for browser-based UI automation.

Modules:
    - common: Shared configuration and logging utilities
    - framework: Resilient element façade and the engine behind it

Example:
    from ui_resilience.framework import BrowserManager

    with BrowserManager() as manager:
        session = manager.new_session()
        session.driver.page.goto("https://example.com/login")
        session.element("username", "#username", "[name='user']").type("demo")
        session.element("login", "button[type='submit']").click()

Author: Automation Team
License: MIT
================================================================================
"""

__version__ = "1.0.0"
__author__ = "Automation Team"
