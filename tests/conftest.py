"""
Test Configuration
==================

Pytest configuration with fixtures for all test types.
Provides test settings, mock connection contexts and the FastAPI client.
"""

import os

os.environ.setdefault("PUSHSTREAM_ENVIRONMENT", "testing")
os.environ.setdefault("PUSHSTREAM_LOG_LEVEL", "DEBUG")

from typing import Generator

import pytest
from fastapi.testclient import TestClient

from pushstream.config.settings import Settings, get_settings
from pushstream.api.routes.pong import SessionRegistry

from tests.utils.mocks import MockConnectionContext, RecordingHandler


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Test settings fixture."""
    settings = get_settings()
    assert settings.environment == "testing"
    return settings


@pytest.fixture(scope="session")
def fastapi_client() -> Generator[TestClient, None, None]:
    """FastAPI test client."""
    from pushstream.api.main import app

    with TestClient(app) as client:
        yield client


@pytest.fixture
def mock_context() -> MockConnectionContext:
    """GET request context without headers."""
    return MockConnectionContext()


@pytest.fixture
def recording_handler() -> RecordingHandler:
    """Handler recording callbacks, never sending."""
    return RecordingHandler()


@pytest.fixture
def registry() -> SessionRegistry:
    """Fresh, empty session registry."""
    return SessionRegistry("test")
