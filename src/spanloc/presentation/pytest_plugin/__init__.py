"""pytest plugin for spanloc.

Provides fixtures for attribution assertions in application test suites:
    spanloc_config: Engine configuration (override in conftest.py)
    spanloc_engine: Engine built from spanloc_config and installed libraries

Configuration (pytest.ini or pyproject.toml):
    spanloc_root: Application root, relative to rootdir (default: rootdir)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

# Register fixtures from fixtures module
from spanloc.presentation.pytest_plugin.fixtures import spanloc_config, spanloc_engine

if TYPE_CHECKING:
    import pytest

# Export fixtures for pytest discovery
__all__ = [
    "spanloc_config",
    "spanloc_engine",
]


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register ini options."""
    parser.addini("spanloc_root", "Application root for spanloc attribution", default="")


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest plugin with markers."""
    config.addinivalue_line(
        "markers",
        "spanloc: mark test as source location attribution test",
    )
