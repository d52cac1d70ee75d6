"""Cookie parsing using stdlib http.cookies.

Browser sessions carry the access token in an HttpOnly cookie; API
clients send it as a Bearer header instead.
"""

from http.cookies import CookieError, SimpleCookie

from src.lambdas.shared.utils.event_helpers import get_header


def parse_cookies(event: dict) -> dict[str, str]:
    """Parse the Cookie header from an API Gateway event.

    A malformed Cookie header yields an empty dict rather than an error:
    the request is then treated as carrying no cookie credentials.

    Args:
        event: API Gateway Proxy Integration event dict.

    Returns:
        Dict mapping cookie names to values. Empty dict if no cookies.
    """
    cookie_header = get_header(event, "cookie", "")
    if not cookie_header:
        return {}
    cookie = SimpleCookie()
    try:
        cookie.load(cookie_header)
    except CookieError:
        return {}
    return {k: v.value for k, v in cookie.items()}


def get_cookie(event: dict, name: str) -> str | None:
    """Return a single cookie value, or None if absent or empty."""
    return parse_cookies(event).get(name) or None
