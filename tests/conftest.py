"""Pytest configuration and fixtures for aico-review tests."""

import pytest
import structlog


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo CLI logging configuration, which binds to the captured stderr."""
    yield
    structlog.reset_defaults()
