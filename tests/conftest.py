"""Shared pytest fixtures and configuration."""

import logging
from collections.abc import Iterator

import pytest


# Register custom markers
def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: fast tests with no external dependencies")
    config.addinivalue_line("markers", "integration: component interaction tests")


# Shared fixtures


@pytest.fixture(autouse=True)
def reset_agentsync_logging() -> Iterator[None]:
    """Drop handlers installed by a test so later tests never log to closed streams."""
    yield
    logger = logging.getLogger("agentsync")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
