"""Shared pytest fixtures."""

import pytest

from jobmatch.config.models import AppConfig
from jobmatch.logging.context import clear_log_context
from jobmatch.persistence import close_database, init_database


@pytest.fixture
def temp_database():
    """Fresh in-memory database per test."""
    init_database("sqlite:///:memory:")
    yield
    close_database()


@pytest.fixture(autouse=True)
def reset_log_context():
    """Keep context fields from leaking between tests."""
    clear_log_context()
    yield
    clear_log_context()


@pytest.fixture
def app_config():
    """Default configuration."""
    return AppConfig()
