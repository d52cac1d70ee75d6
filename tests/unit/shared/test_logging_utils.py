"""Unit tests for secure logging utilities."""

import logging

from src.lambdas.shared.logging_utils import (
    configure_logging,
    get_safe_error_info,
    mask_id,
    redact_sensitive_fields,
    sanitize_for_log,
)
from src.lib.metrics import JsonFormatter


class TestSanitizeForLog:
    def test_removes_crlf(self):
        assert sanitize_for_log("error\n[FAKE] Admin logged in") == "error [FAKE] Admin logged in"

    def test_removes_control_characters(self):
        assert sanitize_for_log("a\x00b\x1bc") == "a b c"

    def test_truncates(self):
        assert sanitize_for_log("x" * 300) == "x" * 200 + "..."

    def test_non_string(self):
        assert sanitize_for_log(42) == "42"


class TestMaskId:
    def test_truncates_long_ids(self):
        assert mask_id("550e8400-e29b-41d4") == "550e8400..."

    def test_short_ids_unchanged(self):
        assert mask_id("abc") == "abc"

    def test_empty(self):
        assert mask_id(None) == ""


class TestSafeErrorInfo:
    def test_type_only(self):
        assert get_safe_error_info(ValueError("secret input")) == {"error_type": "ValueError"}


class TestRedactSensitiveFields:
    def test_redacts_nested(self):
        data = {"user": "john", "headers": {"Authorization": "Bearer x"}, "access_token": "t"}

        result = redact_sensitive_fields(data)

        assert result == {
            "user": "john",
            "headers": {"Authorization": "***REDACTED***"},
            "access_token": "***REDACTED***",
        }
        # Input untouched
        assert data["access_token"] == "t"


class TestConfigureLogging:
    def test_installs_json_formatter(self, monkeypatch):
        root = logging.getLogger()
        handler = logging.StreamHandler()
        original_handlers = root.handlers[:]
        original_level = root.level
        root.handlers = [handler]
        try:
            monkeypatch.setenv("LOG_LEVEL", "WARNING")
            configure_logging()
            assert isinstance(handler.formatter, JsonFormatter)
            assert root.level == logging.WARNING
        finally:
            root.handlers = original_handlers
            root.setLevel(original_level)
