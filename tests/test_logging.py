"""Tests for structlog configuration."""

import logging
import sys

import structlog

from social_publisher.logging import _normalize_log_level, configure_logging


class TestLogging:
    def test_level_names(self):
        assert _normalize_log_level("debug") == logging.DEBUG
        assert _normalize_log_level(" WARNING ") == logging.WARNING

    def test_unknown_level_defaults_to_info(self):
        assert _normalize_log_level("chatty") == logging.INFO
        assert _normalize_log_level(None) == logging.INFO

    def test_configure_json(self):
        configure_logging("INFO", json=True)
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_configure_console(self):
        configure_logging("DEBUG", json=False)
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)

    def test_logs_go_to_stderr(self, monkeypatch):
        seen = {}
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: seen.update(kwargs))
        configure_logging("INFO", json=True)
        assert seen["stream"] is sys.stderr
