import pytest
from unittest.mock import AsyncMock, MagicMock
from tests.fixtures.json_loader import TestDataLoader


@pytest.fixture
def mock_uow():
    """Mock unit of work"""
    uow = MagicMock()
    uow.commit = AsyncMock()
    uow.rollback = AsyncMock()
    return uow


@pytest.fixture
def test_data():
    return TestDataLoader()
