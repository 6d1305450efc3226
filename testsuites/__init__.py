"""
Test suites package.

Kept importable so the unit tests can share `testsuites.unit.fake_driver`,
the in-memory Driver used in place of a real browser.
"""
