from __future__ import annotations

from pathlib import Path

import pytest

from tests._fixtures.resource_builder import ResourceBuilder


@pytest.fixture
def resources(tmp_path: Path) -> ResourceBuilder:
    """Provide a resource tree rooted at the pytest tmp_path."""
    return ResourceBuilder(tmp_path)
