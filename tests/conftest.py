"""
Pytest configuration for DevDeck tests.

Every test runs with its own state directory and crash file so nothing is
written to the user's home directory or the working directory.
"""

import logging

import pytest


@pytest.fixture(autouse=True)
def isolated_state_dir(tmp_path, monkeypatch):
    """Point DEVDECK_STATE_DIR and DEVDECK_CRASH_LOG at a temp directory."""
    state_dir = tmp_path / "devdeck-state"
    monkeypatch.setenv("DEVDECK_STATE_DIR", str(state_dir))
    monkeypatch.setenv("DEVDECK_CRASH_LOG", str(state_dir / "devdeck-crash.log"))
    yield state_dir


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers added to the devdeck logger by a test."""
    yield
    logger = logging.getLogger("devdeck")
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.WARNING)
    logger.propagate = True
