"""Tests for the JSON logger and its optional file output."""

import json
import logging
import sys
import os
from logging.handlers import RotatingFileHandler

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.logger import BotLogger


def _fresh(name: str, log_dir=None) -> BotLogger:
    """Build a non-singleton instance bound to its own logger name."""
    instance = object.__new__(BotLogger)
    instance._init_logger(logging.INFO, name=name, log_dir=log_dir)
    return instance


# ── Handlers ─────────────────────────────────────────────────────────────────


class TestHandlers:
    """Console output always, file output only on request."""

    def test_console_only_by_default(self, tmp_path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        instance = _fresh("botwire.test.console")
        try:
            handlers = instance._logger.handlers
            assert len(handlers) == 1
            assert not any(isinstance(h, RotatingFileHandler) for h in handlers)
            assert list(tmp_path.iterdir()) == []
        finally:
            instance.cleanup()

    def test_log_dir_adds_rotating_file(self, tmp_path) -> None:
        log_dir = tmp_path / "nested" / "logs"
        instance = _fresh("botwire.test.file", log_dir=str(log_dir))
        try:
            instance._logger.warning("upload failed", extra={"api_method": "sendPhoto"})
            for handler in instance._logger.handlers:
                handler.flush()
            lines = (log_dir / "botwire.log").read_text(encoding="utf-8").splitlines()
        finally:
            instance.cleanup()
        entry = json.loads(lines[-1])
        assert entry["message"] == "upload failed"
        assert entry["level"] == "WARNING"
        assert entry["api_method"] == "sendPhoto"

    def test_no_duplicate_handlers(self) -> None:
        first = _fresh("botwire.test.dupes")
        try:
            second = _fresh("botwire.test.dupes")
            assert second._logger is first._logger
            assert len(first._logger.handlers) == 1
        finally:
            first.cleanup()


# ── Singleton ────────────────────────────────────────────────────────────────


class TestSingleton:
    """Module-wide access goes through one shared logger."""

    def test_get_logger_is_shared(self) -> None:
        assert BotLogger.get_logger() is BotLogger.get_logger()
        assert BotLogger.get_logger().name == "botwire"

    @pytest.mark.parametrize("value, expected", [("DEBUG", logging.DEBUG), ("bogus", logging.INFO)])
    def test_env_level(self, monkeypatch, value: str, expected: int) -> None:
        from core.logger import _env_level

        monkeypatch.setenv("BOTWIRE_LOG_LEVEL", value)
        assert _env_level() == expected
