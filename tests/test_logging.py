from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

import pytest

from packages.core.logging_ import setup_logging
from packages.shared.paths import HOME_ENV


@pytest.fixture
def install_logging(tmp_path, monkeypatch):
    """Runs setup_logging against a root logger with no handlers.

    pytest's capture handlers are detached only for the duration of the call
    and put back afterwards, so the installed handlers can be inspected alone.
    """
    monkeypatch.setenv(HOME_ENV, str(tmp_path))
    root = logging.getLogger()
    monitor_logger = logging.getLogger("packages.core.monitor")
    levels = (root.level, monitor_logger.level)
    installed = []

    def install(*verbose_flags):
        captured = root.handlers[:]
        for h in captured:
            root.removeHandler(h)
        try:
            for verbose in verbose_flags:
                setup_logging(verbose=verbose)
            installed.extend(root.handlers)
        finally:
            for h in root.handlers[:]:
                root.removeHandler(h)
            for h in captured:
                root.addHandler(h)
        return installed

    yield install
    for h in installed:
        h.close()
    root.setLevel(levels[0])
    monitor_logger.setLevel(levels[1])


def test_console_and_rotating_file(install_logging, tmp_path):
    handlers = install_logging(False)

    assert sorted(type(h).__name__ for h in handlers) == ["RotatingFileHandler", "StreamHandler"]
    fh = next(h for h in handlers if isinstance(h, RotatingFileHandler))
    assert fh.baseFilename == str(tmp_path / "logs" / "monitor.log")
    assert fh.maxBytes == 2_000_000
    assert fh.backupCount == 3
    console = next(h for h in handlers if not isinstance(h, RotatingFileHandler))
    assert console.level == logging.INFO
    assert logging.getLogger().level == logging.INFO
    assert logging.getLogger("packages.core.monitor").level == logging.INFO


def test_verbose_and_idempotent(install_logging):
    handlers = install_logging(True, True)

    assert sorted(type(h).__name__ for h in handlers) == ["RotatingFileHandler", "StreamHandler"]
    console = next(h for h in handlers if not isinstance(h, RotatingFileHandler))
    assert console.level == logging.DEBUG
    assert logging.getLogger("packages.core.monitor").level == logging.DEBUG
