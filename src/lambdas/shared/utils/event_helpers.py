"""Event helper utilities for API Gateway Proxy Integration events.

Provides case-insensitive header lookup, null-safe parameter extraction
and body decoding for Lambda handlers operating on raw API Gateway event
dicts.
"""

import base64
import binascii
from typing import Any
from urllib.parse import parse_qsl

import orjson


class BodyDecodeError(ValueError):
    """Raised when a request body cannot be decoded."""


def get_header(event: dict, name: str, default: str | None = None) -> str | None:
    """Get a header value with case-insensitive lookup.

    API Gateway preserves the client's header casing in the event dict, so
    both sides are lowercased before comparing.

    Args:
        event: API Gateway Proxy Integration event dict.
        name: Header name (any case).
        default: Value to return if header is not present.

    Returns:
        Header value or default.
    """
    headers = event.get("headers") or {}
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return default


def get_query_params(event: dict) -> dict[str, str]:
    """Get query string parameters, returning empty dict on None.

    API Gateway sends null (Python None) for queryStringParameters
    when no query string is present.
    """
    return event.get("queryStringParameters") or {}


def get_query_values(event: dict) -> dict[str, str | list[str]]:
    """Get query parameters with repeated keys collapsed into lists.

    A key that appears once stays a string. A key that appears several
    times, or uses the ``key[]`` form, becomes a list of strings (the
    brackets are stripped from the key).

    Example:
        ?status=open&status=closed&tag[]=a  ->
        {"status": ["open", "closed"], "tag": ["a"]}
    """
    multi = event.get("multiValueQueryStringParameters") or {}
    single = get_query_params(event)

    result: dict[str, str | list[str]] = {}
    for key in {**single, **multi}:
        values = multi.get(key)
        if values is None:
            values = [single[key]]
        name = key[:-2] if key.endswith("[]") else key
        existing = result.get(name)
        if existing is not None:
            # tag=a&tag[]=b: both spellings feed one list
            result[name] = [*([existing] if isinstance(existing, str) else existing), *values]
        elif name != key or len(values) > 1:
            result[name] = list(values)
        else:
            result[name] = values[0]
    return result


def get_path_params(event: dict) -> dict[str, str]:
    """Get path parameters, returning empty dict on None.

    API Gateway sends null (Python None) for pathParameters
    when no path parameters are defined.
    """
    return event.get("pathParameters") or {}


def get_raw_body(event: dict) -> str | None:
    """Return the request body as text, decoding base64 when flagged."""
    body = event.get("body")
    if body is None or body == "":
        return None
    if event.get("isBase64Encoded"):
        try:
            return base64.b64decode(body).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise BodyDecodeError("Body is not valid base64-encoded UTF-8") from e
    return body


def parse_body(event: dict) -> Any:
    """Decode the request body according to its Content-Type.

    JSON is assumed when no Content-Type is sent. Form-encoded bodies are
    parsed into a flat dict (last value wins for repeated keys).

    Returns:
        Parsed body, or None for an empty body.

    Raises:
        BodyDecodeError: If the body cannot be decoded.
    """
    raw = get_raw_body(event)
    if raw is None:
        return None

    content_type = (get_header(event, "content-type") or "").split(";")[0].strip()
    if content_type == "application/x-www-form-urlencoded":
        return dict(parse_qsl(raw, keep_blank_values=True))

    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise BodyDecodeError("Body is not valid JSON") from e
