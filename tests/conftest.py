"""Shared test configuration and fixtures."""

import logging
import pytest

from umdloader.cli import cleanup_logging
from umdloader.config import LoaderConfig
from umdloader.storage.recent import RecentHistory
from umdloader.storage.settings import MemorySettingsStore


@pytest.fixture(scope="function", autouse=True)
def cleanup_logging_handlers():
    """Automatically cleanup logging handlers after each test to prevent ResourceWarnings."""
    yield
    cleanup_logging()


@pytest.fixture(scope="function", autouse=True)
def reset_logging():
    """Reset logging configuration after each test."""
    yield
    # Clear all handlers and reset to default
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)
    # Reset logging level
    root_logger.setLevel(logging.WARNING)


@pytest.fixture
def loader_config(tmp_path):
    """Configuration with every directory under tmp_path."""
    return LoaderConfig(
        state_dir=tmp_path / "state",
        log_dir=tmp_path / "logs",
        decrypted_cache_dir=tmp_path / "decrypted",
        disc_tmp_dir=tmp_path / "tmp",
    )


@pytest.fixture
def history():
    """In-memory recent history."""
    return RecentHistory(MemorySettingsStore())
