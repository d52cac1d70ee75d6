"""API Gateway event validation.

Validates that incoming events match the API Gateway Proxy Integration
(REST, payload v1) format before any auth or validation stage runs.
Other invocation sources (SNS, SQS, EventBridge, direct invoke) are
rejected here.
"""

REQUIRED_KEYS = {"httpMethod", "path", "requestContext"}


class InvalidEventError(Exception):
    """Raised when an event does not match the API Gateway Proxy format."""


def validate_apigw_event(event: dict) -> None:
    """Validate that an event is an API Gateway Proxy Integration event.

    Args:
        event: Lambda event dict.

    Raises:
        InvalidEventError: If the event is not a dict, is missing required
            keys, or carries values of the wrong shape.
    """
    if not isinstance(event, dict):
        raise InvalidEventError(f"Event must be a dict, got {type(event).__name__}")

    missing = REQUIRED_KEYS - event.keys()
    if missing:
        raise InvalidEventError(
            f"Event missing required API Gateway keys: {sorted(missing)}"
        )

    if not isinstance(event["httpMethod"], str) or not event["httpMethod"]:
        raise InvalidEventError("Event httpMethod must be a non-empty string")

    if not isinstance(event["requestContext"], dict):
        raise InvalidEventError("Event requestContext must be an object")

    for key in ("headers", "queryStringParameters", "pathParameters"):
        value = event.get(key)
        if value is not None and not isinstance(value, dict):
            raise InvalidEventError(f"Event {key} must be an object or null")
