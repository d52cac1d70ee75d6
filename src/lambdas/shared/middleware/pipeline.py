"""Middleware composition for API handlers.

Every API route runs the same ordered pipeline:

    error handling (outermost)
      -> authentication
      -> workspace authorization (workspace-scoped routes only)
      -> validation (routes that declare schemas)
      -> handler

Stages are plain callables ``(RequestContext) -> RequestContext``. A stage
either returns an enriched context or raises ``AppError``; the first
raise ends the request, so a later stage never runs after an earlier one
failed. Only the error-handling layer turns failures into responses.

Usage:
    @route(
        component="members",
        operation="invite_member",
        required_role=Role.ADMIN,
        permissions=[Permission.MEMBER_INVITE],
        body=InviteMemberRequest,
        resolver=get_resolver,
    )
    def invite_member(ctx: RequestContext) -> dict:
        body = ctx.validation.body
        ...
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from pydantic import BaseModel

from src.lambdas.shared.auth.enums import Permission, Role
from src.lambdas.shared.auth.permissions import AuthorizationEngine, default_engine
from src.lambdas.shared.middleware.context import RequestContext
from src.lambdas.shared.middleware.require_role import (
    ApiKeyVerifierFactory,
    AuthenticationStage,
    ResolverFactory,
    WorkspaceAuthStage,
)
from src.lambdas.shared.middleware.validation import ValidationStage
from src.lambdas.shared.utils.error_handler import handle_request

Stage = Callable[[RequestContext], RequestContext]
RouteHandler = Callable[[RequestContext], dict]
LambdaHandler = Callable[[dict, Any], dict]


class Pipeline:
    """An ordered list of stages in front of a route handler."""

    def __init__(self, stages: Sequence[Stage], component: str, operation: str) -> None:
        self.stages = tuple(stages)
        self.component = component
        self.operation = operation

    def run(self, ctx: RequestContext, handler: RouteHandler) -> dict:
        for stage in self.stages:
            ctx = stage(ctx)
        return handler(ctx)

    def __call__(self, handler: RouteHandler) -> LambdaHandler:
        """Wrap a route handler into a Lambda handler ``(event, context)``."""

        @functools.wraps(handler)
        def lambda_handler(event: dict, context: Any) -> dict:
            def _run(event: dict, context: Any, request_id: str) -> dict:
                ctx = RequestContext(
                    event=event, request_id=request_id, lambda_context=context
                )
                return self.run(ctx, handler)

            return handle_request(
                _run,
                event,
                context,
                component=self.component,
                operation=self.operation,
            )

        lambda_handler.pipeline = self  # type: ignore[attr-defined]
        return lambda_handler


def build_stages(
    component: str,
    operation: str,
    *,
    authenticated: bool = True,
    workspace_scoped: bool = False,
    required_role: Role | str | None = None,
    permissions: Iterable[Permission | str] = (),
    any_permissions: Iterable[Permission | str] = (),
    query: type[BaseModel] | None = None,
    body: type[BaseModel] | None = None,
    params: type[BaseModel] | None = None,
    resolver: ResolverFactory | None = None,
    engine: AuthorizationEngine = default_engine,
    allow_api_keys: bool = False,
    api_keys: ApiKeyVerifierFactory | None = None,
) -> list[Stage]:
    """Build the stage list for one route.

    Declaring a role or permissions implies a workspace-scoped route.
    ``allow_api_keys`` lets workspace API keys authenticate; ``api_keys``
    supplies their verifier and is ignored on routes that do not allow keys.

    Raises:
        ValueError: If a workspace-scoped route has no resolver or is not
            authenticated, or a route allowing API keys has no verifier or
            is not workspace-scoped
        InvalidRoleError / InvalidPermissionError: For unknown names
    """
    permissions = tuple(permissions)
    any_permissions = tuple(any_permissions)
    workspace_scoped = workspace_scoped or bool(
        required_role is not None or permissions or any_permissions
    )

    if allow_api_keys:
        if api_keys is None:
            raise ValueError(f"Route {operation} allows API keys but has no verifier")
        if not workspace_scoped:
            raise ValueError(f"Route {operation} allows API keys but is not workspace-scoped")

    stages: list[Stage] = []
    if authenticated:
        stages.append(
            AuthenticationStage(
                component=component,
                operation=operation,
                api_keys=api_keys if allow_api_keys else None,
            )
        )
    if workspace_scoped:
        if not authenticated:
            raise ValueError(f"Route {operation} is workspace-scoped but unauthenticated")
        if resolver is None:
            raise ValueError(f"Route {operation} is workspace-scoped but has no resolver")
        stages.append(
            WorkspaceAuthStage(
                required_role=required_role,
                permissions=permissions,
                any_permissions=any_permissions,
                resolver=resolver,
                engine=engine,
                component=component,
                operation=operation,
            )
        )
    if query is not None or body is not None or params is not None:
        stages.append(
            ValidationStage(
                query=query,
                body=body,
                params=params,
                component=component,
                operation=operation,
            )
        )
    return stages


def route(component: str, operation: str, **options: Any) -> Callable[[RouteHandler], LambdaHandler]:
    """Decorator factory: compose the standard pipeline around a handler.

    Accepts the keyword options of ``build_stages``. The pipeline is built
    at decoration time, so invalid role or permission names fail on import.
    """
    pipeline = Pipeline(build_stages(component, operation, **options), component, operation)
    return pipeline
