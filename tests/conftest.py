"""Shared pytest fixtures for wireset tests."""

import pytest

from wireset import DescriptorTable

pytest_plugins = ["pytester", "wireset.integrations.pytest_plugin.plugin"]


@pytest.fixture()
def table() -> DescriptorTable:
    """Empty descriptor table."""
    return DescriptorTable()
