"""Shared fixtures."""

import logging
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def reset_tablewatch_logger():  # type: ignore[no-untyped-def]
    """Undo the CLI's logging setup between tests."""
    yield
    logger = logging.getLogger("tablewatch")
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def tablewatch_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the CLI at a temporary config directory."""
    home = tmp_path / ".tablewatch"
    monkeypatch.setenv("TABLEWATCH_HOME", str(home))
    return home
