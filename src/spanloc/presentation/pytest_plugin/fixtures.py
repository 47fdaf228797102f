"""pytest fixtures for source location attribution.

User overrides spanloc_config in their conftest.py.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from spanloc.application.engine import SourceLocationEngine
from spanloc.domain.model.configuration import EngineConfig, absolute_path


@pytest.fixture(scope="session")
def spanloc_config(request: pytest.FixtureRequest) -> EngineConfig:
    """Default engine configuration.

    Root is spanloc_root from pytest.ini, joined to rootdir.
    User overrides this fixture in their conftest.py to provide
    custom configuration.

    Returns:
        EngineConfig rooted at the project
    """
    # Note: rootdir exists on pytest.Config but type stubs may not include it
    root_dir = Path(str(getattr(request.config, "rootdir", ".")))
    configured = str(request.config.getini("spanloc_root") or "")
    return EngineConfig(root=absolute_path(root_dir / configured))


@pytest.fixture(scope="session")
def spanloc_engine(spanloc_config: EngineConfig) -> SourceLocationEngine:
    """Engine over the installed libraries.

    Returns:
        SourceLocationEngine for spanloc_config
    """
    return SourceLocationEngine.from_config(spanloc_config)
