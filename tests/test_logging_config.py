"""Structured logging setup."""
import json
import logging

import structlog

from voice_chatbot.logging_config import configure_logging


def test_json_logging_carries_context(capsys, monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("LOG_FORMAT", raising=False)
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        configure_logging("DEBUG", "json")
        structlog.get_logger("voice_chatbot.test").info("Transcript resolved", text="Hello")
        record = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert record["event"] == "Transcript resolved"
        assert record["text"] == "Hello"
        assert record["level"] == "info"
        assert record["service"] == "voice-chatbot"
        assert record["component"] == "voice_chatbot.test"
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        structlog.reset_defaults()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)


def test_env_overrides_level(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "error")
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        configure_logging("DEBUG", "console")
        assert root.level == logging.ERROR
    finally:
        structlog.reset_defaults()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
