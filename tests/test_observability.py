"""
Tests for observability — logging setup and level resolution.
"""

import logging
from pathlib import Path

import pytest

from openvpn_unroot.core.observability.logging_config import (
    LOG_LEVEL_ENV,
    resolve_level,
    setup_logging,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestResolveLevel:
    def test_debug_beats_verbose(self):
        assert resolve_level(debug=True, verbose=True) == "DEBUG"

    def test_verbose(self):
        assert resolve_level(verbose=True) == "INFO"

    def test_environment(self, monkeypatch):
        monkeypatch.setenv(LOG_LEVEL_ENV, "ERROR")
        assert resolve_level() == "ERROR"

    def test_default(self, monkeypatch):
        monkeypatch.delenv(LOG_LEVEL_ENV, raising=False)
        assert resolve_level() == "WARNING"


class TestSetupLogging:
    def test_console_level(self, restore_root_logger, monkeypatch):
        monkeypatch.delenv("OPENVPN_UNROOT_LOG_FILE", raising=False)
        setup_logging("INFO")
        assert restore_root_logger.level == logging.INFO
        assert len(restore_root_logger.handlers) == 1

    def test_unknown_level_falls_back(self, restore_root_logger, monkeypatch):
        monkeypatch.delenv("OPENVPN_UNROOT_LOG_FILE", raising=False)
        setup_logging("LOUD")
        assert restore_root_logger.level == logging.WARNING

    def test_file_handler_gets_debug(self, restore_root_logger, tmp_path: Path):
        log_file = tmp_path / "unroot.log"
        setup_logging("WARNING", log_file=str(log_file))
        assert restore_root_logger.level == logging.DEBUG
        logging.getLogger("openvpn_unroot.test").debug("rolled back %s", "tun0")
        for handler in restore_root_logger.handlers:
            handler.flush()
        assert "rolled back tun0" in log_file.read_text()
