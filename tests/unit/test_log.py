"""
tests/unit/test_log.py — Unit tests for observability/log.py
"""

import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import pytest
from observability.log import LOG_FORMAT, NOISY_LOGGERS, configure_logging


@pytest.fixture
def clean_root():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    yield root
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


class TestConfigureLogging:
    def test_sets_level(self, clean_root):
        configure_logging("DEBUG")
        assert clean_root.level == logging.DEBUG

    def test_lowercase_level_accepted(self, clean_root):
        configure_logging("warning")
        assert clean_root.level == logging.WARNING

    def test_is_idempotent(self, clean_root):
        configure_logging("INFO")
        count = len(clean_root.handlers)
        configure_logging("INFO")
        assert len(clean_root.handlers) == count

    def test_handler_uses_format(self, clean_root):
        configure_logging("INFO")
        handler = next(h for h in clean_root.handlers if h.get_name() == "llm-search")
        assert handler.formatter._fmt == LOG_FORMAT

    def test_noisy_loggers_lowered(self, clean_root):
        configure_logging("DEBUG")
        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

    def test_default_level_from_settings(self, clean_root, monkeypatch):
        from config import settings
        monkeypatch.setattr(settings, "log_level", "ERROR")
        configure_logging()
        assert clean_root.level == logging.ERROR
