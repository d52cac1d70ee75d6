"""
Pydantic Request Schemas
========================

Base classes and shared schemas for validating API input.

For On-Call Engineers:
    Validation errors appear as VALIDATION_ERROR in logs with a details
    field listing every failing field as "<source>.<field>". Common issues:
    - Non-numeric page/limit query parameters
    - Missing required body fields
    - Path ids that are not UUIDs

For Developers:
    - Subclass QuerySchema for query strings, RequestSchema for bodies and
      path parameters
    - Undeclared fields are ignored, never rejected
    - Query list fields accept both ?tag=a&tag=b and ?tag[]=a

Security Notes:
    - All external input must pass through these schemas before business
      logic sees it
"""

import types
from typing import Any, Union, get_args, get_origin
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_PAGE_LIMIT = 20
MIN_PAGE_LIMIT = 1
MAX_PAGE_LIMIT = 100

_SEQUENCE_ORIGINS = (list, tuple, set, frozenset)


def _is_sequence_annotation(annotation: Any) -> bool:
    origin = get_origin(annotation)
    if origin in _SEQUENCE_ORIGINS:
        return True
    if origin in (Union, types.UnionType):
        return any(_is_sequence_annotation(arg) for arg in get_args(annotation))
    return False


class RequestSchema(BaseModel):
    """Base for body and path-parameter schemas."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True, frozen=True)


class QuerySchema(RequestSchema):
    """Base for query-string schemas.

    A key sent once arrives as a string; list-typed fields get it wrapped
    in a one-element list so ``?status=open`` and ``?status=open&status=x``
    validate the same way.
    """

    @model_validator(mode="before")
    @classmethod
    def _wrap_single_values(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        wrapped = dict(data)
        for name, field in cls.model_fields.items():
            key = field.alias or name
            if isinstance(wrapped.get(key), str) and _is_sequence_annotation(
                field.annotation
            ):
                wrapped[key] = [wrapped[key]]
        return wrapped


class Pagination(QuerySchema):
    """Page-number pagination.

    ``limit`` outside [1, 100] is clamped rather than rejected; a
    non-numeric value is still an error.
    """

    page: int = Field(1, ge=1, description="1-based page number")
    limit: int = Field(DEFAULT_PAGE_LIMIT, description="Items per page, clamped to [1, 100]")

    @field_validator("limit")
    @classmethod
    def _clamp_limit(cls, value: int) -> int:
        return max(MIN_PAGE_LIMIT, min(MAX_PAGE_LIMIT, value))

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit



class WorkspaceParams(RequestSchema):
    """Path parameters for /workspaces/{workspace_id} routes."""

    workspace_id: UUID


class MemberParams(WorkspaceParams):
    """Path parameters for /workspaces/{workspace_id}/members/{user_id}."""

    user_id: str = Field(..., min_length=1, max_length=128)
