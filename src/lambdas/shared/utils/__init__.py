"""Utility functions for shared Lambda code."""

from src.lambdas.shared.utils.error_handler import handle_request
from src.lambdas.shared.utils.event_helpers import (
    get_header,
    get_path_params,
    get_query_params,
    get_query_values,
    parse_body,
)
from src.lambdas.shared.utils.response_builder import (
    error_response,
    json_response,
    no_content_response,
)

__all__ = [
    "error_response",
    "get_header",
    "get_path_params",
    "get_query_params",
    "get_query_values",
    "handle_request",
    "json_response",
    "no_content_response",
    "parse_body",
]
