"""
Log hygiene helpers shared by the auth, membership and error-handling code.

Guards against:
- Log injection through user-supplied values (CWE-117, CWE-93)
- Tokens and credentials leaking into CloudWatch
- Exception messages (which may echo user input) reaching clients

Security References:
- OWASP Logging Cheat Sheet: https://cheatsheetseries.owasp.org/cheatsheets/Logging_Cheat_Sheet.html
"""

import logging
import os
import re
from typing import Any

from src.lib.metrics import JsonFormatter

MAX_LOG_INPUT_LENGTH = 200

# Key substrings that are always redacted
SENSITIVE_FIELDS = {
    "password",
    "secret",
    "token",
    "api_key",
    "apikey",
    "authorization",
    "cookie",
    "credential",
    "credentials",
}

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")


def sanitize_for_log(value: Any, max_length: int = MAX_LOG_INPUT_LENGTH) -> str:
    """Flatten a value to one printable line, truncated to ``max_length``.

    Control characters (CR, LF and tabs included) become spaces, so a
    workspace name or email cannot forge extra log lines.

    Example:
        >>> sanitize_for_log("acme\\n[FAKE] role=owner")
        'acme [FAKE] role=owner'
    """
    text = _CONTROL_CHARS.sub(" ", str(value))
    if len(text) > max_length:
        text = text[:max_length] + "..."
    return text


def mask_id(value: str | None, visible: int = 8) -> str:
    """Truncate an identifier for logs: 'a1b2c3d4...'."""
    if not value:
        return ""
    safe = sanitize_for_log(value, max_length=64)
    return safe[:visible] + "..." if len(safe) > visible else safe


def get_safe_error_info(exception: BaseException) -> dict[str, str]:
    """
    Extract safe information from an exception for logging.

    Returns only the exception type, NOT the message: messages may contain
    user-controlled data or internal paths.

    Example:
        >>> try:
        ...     raise ValueError("user input here")
        ... except Exception as e:
        ...     get_safe_error_info(e)
        {'error_type': 'ValueError'}
    """
    return {"error_type": type(exception).__name__}


def redact_sensitive_fields(data: dict[str, Any]) -> dict[str, Any]:
    """
    Redact sensitive fields from a dictionary before logging.

    Uses case-insensitive substring matching on keys and recurses into
    nested dictionaries. Returns a copy; the input is not modified.

    Example:
        >>> redact_sensitive_fields({"user": "john", "api_key": "secret123"})  # pragma: allowlist secret
        {'user': 'john', 'api_key': '***REDACTED***'}
    """
    result = {}
    for key, value in data.items():
        if any(sensitive in key.lower() for sensitive in SENSITIVE_FIELDS):
            result[key] = "***REDACTED***"
        elif isinstance(value, dict):
            result[key] = redact_sensitive_fields(value)
        else:
            result[key] = value
    return result


def configure_logging(level: str | None = None) -> None:
    """Install the JSON formatter on the root logger once per cold start.

    Lambda pre-installs a handler on the root logger; we swap its formatter
    instead of adding a second handler, which would duplicate every line.
    """
    root = logging.getLogger()
    root.setLevel(level or os.environ.get("LOG_LEVEL", "INFO"))
    if not root.handlers:
        root.addHandler(logging.StreamHandler())
    for handler in root.handlers:
        handler.setFormatter(JsonFormatter())
