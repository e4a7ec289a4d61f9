"""
Pytest configuration and fixtures for pgslice tests.

Provides a mock connection pool for the batch engines.
"""

from pathlib import Path
from unittest.mock import MagicMock

import pytest


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Get project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def mock_cursor() -> MagicMock:
    return MagicMock()


@pytest.fixture
def mock_pool(mock_cursor: MagicMock) -> MagicMock:
    """Pool whose ``transaction()`` yields ``mock_cursor`` and never swallows errors."""
    pool = MagicMock()
    pool.transaction.return_value.__enter__.return_value = mock_cursor
    pool.transaction.return_value.__exit__.return_value = False
    return pool
