"""Unit tests for logging configuration."""

from config import Settings
from logging_setup import get_logger, redact_sensitive, setup_logging


def test_redacts_sensitive_keys() -> None:
    event = {
        "event": "login",
        "password": "wonderland",
        "refreshToken": "abc.def.ghi",
        "headers": {"Authorization": "Bearer abc"},
        "user_id": "65f1",
    }

    result = redact_sensitive(None, "info", event)

    assert result["password"] == "***REDACTED***"
    assert result["refreshToken"] == "***REDACTED***"
    assert result["headers"]["Authorization"] == "***REDACTED***"
    assert result["user_id"] == "65f1"
    assert result["event"] == "login"


def test_setup_and_get_logger() -> None:
    setup_logging(Settings(log_format="console", log_level="DEBUG"))

    logger = get_logger("tests")

    assert logger is get_logger("tests")
    logger.info("hello", password="hidden")
