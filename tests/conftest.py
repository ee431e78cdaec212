# tests/conftest.py

import os
from datetime import datetime, timedelta, timezone

import pytest

from src.core.policy_service import PolicyService
from src.monitoring.metrics import EnforcementMetrics
from src.utils.error_handling import ErrorHandler


def age_file(path, days: float) -> None:
    """Set a file's modification time to ``days`` ago"""
    timestamp = (datetime.now(timezone.utc) - timedelta(days=days)).timestamp()
    os.utime(path, (timestamp, timestamp))


@pytest.fixture
def make_file():
    """Create a file (and its parents) with a given age in days"""
    def _make_file(path, days: float = 0, content: str = "data"):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        age_file(path, days)
        return path
    return _make_file


@pytest.fixture
def metrics():
    return EnforcementMetrics()


@pytest.fixture
def error_handler():
    return ErrorHandler()


@pytest.fixture
def policy_service(metrics, error_handler):
    return PolicyService(metrics=metrics, error_handler=error_handler)


@pytest.fixture
def failing_scandir(monkeypatch):
    """Make os.scandir raise PermissionError for the given paths"""
    denied = set()
    original_scandir = os.scandir

    def _scandir(path="."):
        if os.fspath(path) in denied:
            raise PermissionError(13, "Permission denied", os.fspath(path))
        return original_scandir(path)

    monkeypatch.setattr(os, "scandir", _scandir)

    def _deny(*paths):
        denied.update(os.fspath(p) for p in paths)
    return _deny
