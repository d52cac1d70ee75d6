"""Response builder utilities for API Gateway Proxy Integration responses.

Provides standardized response construction using orjson for serialization.
Produces responses in the exact API Gateway Proxy Integration format:
    {"statusCode": int, "headers": dict, "body": str, "isBase64Encoded": bool}

Error responses always use one envelope:
    {"error": {"code": ..., "message": ..., "severity": ..., "request_id": ...}}
with an optional "details" list of field issues and, outside production,
an optional "debug" block.
"""

from typing import Any

import orjson

REQUEST_ID_HEADER = "X-Request-Id"


def json_response(
    status_code: int,
    body: dict | list,
    headers: dict[str, str] | None = None,
) -> dict:
    """Build a JSON API Gateway Proxy Integration response.

    Args:
        status_code: HTTP status code.
        body: Response body (will be serialized with orjson).
        headers: Additional response headers.

    Returns:
        API Gateway Proxy Integration response dict.
    """
    response_headers = {"Content-Type": "application/json"}
    if headers:
        response_headers.update(headers)
    return {
        "statusCode": status_code,
        "headers": response_headers,
        "body": orjson.dumps(body, option=orjson.OPT_NON_STR_KEYS).decode(),
        "isBase64Encoded": False,
    }


def no_content_response(headers: dict[str, str] | None = None) -> dict:
    """Build a 204 response with an empty body."""
    return {
        "statusCode": 204,
        "headers": dict(headers or {}),
        "body": "",
        "isBase64Encoded": False,
    }


def error_envelope(
    code: str,
    message: str,
    severity: str,
    request_id: str,
    details: list[dict[str, Any]] | None = None,
    debug: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build the error envelope body (without the proxy wrapper)."""
    error: dict[str, Any] = {
        "code": code,
        "message": message,
        "severity": severity,
        "request_id": request_id,
    }
    if details is not None:
        error["details"] = details
    if debug is not None:
        error["debug"] = debug
    return {"error": error}


def error_response(
    status_code: int,
    code: str,
    message: str,
    severity: str,
    request_id: str,
    details: list[dict[str, Any]] | None = None,
    debug: dict[str, Any] | None = None,
) -> dict:
    """Build an error response carrying the request id in body and header.

    Args:
        status_code: HTTP error status code.
        code: Machine-readable error code.
        message: Human-readable error message.
        severity: Error severity (low/medium/high/critical).
        request_id: Request correlation id.
        details: Field-level issues (validation errors only).
        debug: Diagnostic context (non-production only).

    Returns:
        API Gateway Proxy Integration response dict.
    """
    return json_response(
        status_code,
        error_envelope(code, message, severity, request_id, details, debug),
        headers={REQUEST_ID_HEADER: request_id},
    )
