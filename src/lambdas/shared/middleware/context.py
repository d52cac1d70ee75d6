"""Per-request context threaded through the middleware stages.

Each stage receives a ``RequestContext`` and returns a new one with its
own field filled in. Contexts are frozen: a stage can only add to what
earlier stages established, never rewrite it.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from src.lambdas.shared.auth.enums import Permission, Role

if TYPE_CHECKING:
    from src.lambdas.shared.middleware.auth_middleware import Identity


@dataclass(frozen=True)
class AuthContext:
    """Outcome of a successful workspace authorization.

    API key callers have no role; their permissions are the key's own.
    """

    user_id: str
    workspace_id: str
    role: Role | None
    permissions: frozenset[Permission]
    api_key_id: str | None = None


@dataclass(frozen=True)
class ValidationContext:
    """Parsed request inputs; None where the route declared no schema."""

    query: BaseModel | None = None
    body: BaseModel | None = None
    params: BaseModel | None = None


@dataclass(frozen=True)
class RequestContext:
    event: dict[str, Any]
    request_id: str
    lambda_context: Any = None
    identity: Identity | None = None
    auth: AuthContext | None = None
    validation: ValidationContext | None = None

    def evolve(self, **changes: Any) -> RequestContext:
        return replace(self, **changes)

    @property
    def user_id(self) -> str | None:
        return self.identity.user_id if self.identity else None
