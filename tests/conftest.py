"""
Pytest configuration for Qt-based tests.

Provides fixtures for proper Qt object cleanup between tests to prevent segfaults,
and keeps settings writes inside a temporary directory.
"""
import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PySide6.QtWidgets import QApplication


@pytest.fixture(autouse=True)
def cleanup_qt_objects(qtbot, request):
    """
    Auto-cleanup fixture that runs after each test to ensure Qt objects are
    properly destroyed before the next test starts.
    """
    yield

    app = QApplication.instance()
    if app:
        app.processEvents()


@pytest.fixture(autouse=True)
def isolated_config_dir(tmp_path, monkeypatch):
    """Redirect Settings.save()/load() to a per-test directory."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    monkeypatch.setattr(
        "voxpaste.core.settings.settings.get_config_dir", lambda: config_dir
    )
    return config_dir


@pytest.fixture
def settings():
    from voxpaste.core.settings import Settings

    return Settings()
