"""
Repository-level pytest configuration.

Why this exists:
  - Keep configuration loading predictable regardless of the caller's shell
  - Point the resilience engine at the repository's config/ directory
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Generator

import pytest


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return repo root path."""
    return Path(__file__).parent


@pytest.fixture(scope="session", autouse=True)
def _resilience_env_defaults(project_root: Path) -> Generator[None, None, None]:
    """
    Set test environment defaults if not already provided by the user/CI.

    ENV selects the config/{ENV}.yaml overlay; no overlay exists for "unit".
    """
    defaults = {
        "ENV": "unit",
        "RESILIENCE_CONFIG_DIR": str(project_root / "config"),
    }

    for k, v in defaults.items():
        os.environ.setdefault(k, v)

    from ui_resilience.common import init_logger, reload_config

    reload_config()
    init_logger()
    yield
