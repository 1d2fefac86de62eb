"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import pytest


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "linux: mark test as Linux-specific"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )


@pytest.fixture
def generic_dir(tmp_path):
    """Directory standing in for /generic-sensors."""
    directory = tmp_path / "generic-sensors"
    directory.mkdir()
    return directory
