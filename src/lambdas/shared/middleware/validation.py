"""Request validation stage.

Validates query, body and path parameters against pydantic schemas and
reports every violation in one VALIDATION_ERROR, so a client can fix a
request in a single round trip. Runs after authentication: an anonymous
caller learns nothing about a route's input schema.
"""

import logging
from typing import Any

from pydantic import BaseModel, ValidationError

from src.lambdas.shared.errors import FieldIssue, validation_failed
from src.lambdas.shared.middleware.context import RequestContext, ValidationContext
from src.lambdas.shared.utils.event_helpers import (
    BodyDecodeError,
    get_path_params,
    get_query_values,
    parse_body,
)

logger = logging.getLogger(__name__)


def issues_from_validation_error(source: str, exc: ValidationError) -> list[FieldIssue]:
    """Flatten pydantic errors into ``<source>.<dotted.path>`` field issues."""
    issues = []
    for error in exc.errors(include_url=False):
        location = ".".join(str(part) for part in error["loc"])
        issues.append(
            FieldIssue(
                path=f"{source}.{location}" if location else source,
                message=error["msg"],
                type=error["type"],
            )
        )
    return issues


class ValidationStage:
    """Pipeline stage that parses and validates declared request inputs."""

    def __init__(
        self,
        query: type[BaseModel] | None = None,
        body: type[BaseModel] | None = None,
        params: type[BaseModel] | None = None,
        component: str = "validation",
        operation: str = "validate_request",
    ) -> None:
        self.query = query
        self.body = body
        self.params = params
        self.component = component
        self.operation = operation

    def __call__(self, ctx: RequestContext) -> RequestContext:
        return ctx.evolve(validation=self.validate(ctx.event))

    def validate(self, event: dict[str, Any]) -> ValidationContext:
        """Validate every declared source and collect all issues.

        Raises:
            AppError: VALIDATION_ERROR listing every failing field
        """
        issues: list[FieldIssue] = []
        parsed: dict[str, BaseModel | None] = {"query": None, "body": None, "params": None}

        if self.query is not None:
            parsed["query"] = self._validate("query", self.query, get_query_values(event), issues)

        if self.body is not None:
            try:
                raw_body = parse_body(event)
            except BodyDecodeError as e:
                issues.append(FieldIssue(path="body", message=str(e), type="body_decode"))
            else:
                parsed["body"] = self._validate(
                    "body", self.body, {} if raw_body is None else raw_body, issues
                )

        if self.params is not None:
            parsed["params"] = self._validate("params", self.params, get_path_params(event), issues)

        if issues:
            logger.info(
                "Request validation failed",
                extra={
                    "component": self.component,
                    "operation": self.operation,
                    "issue_count": len(issues),
                    "paths": [issue.path for issue in issues],
                },
            )
            raise validation_failed(
                issues, component=self.component, operation=self.operation
            )

        return ValidationContext(**parsed)

    @staticmethod
    def _validate(
        source: str,
        schema: type[BaseModel],
        data: Any,
        issues: list[FieldIssue],
    ) -> BaseModel | None:
        try:
            return schema.model_validate(data)
        except ValidationError as exc:
            issues.extend(issues_from_validation_error(source, exc))
            return None
