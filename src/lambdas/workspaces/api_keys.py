"""Workspace API key management.

Keys are created, listed and revoked by signed-in members; a key can never
manage keys itself. A new key may carry only permissions its creator's
role already grants, so a key never widens what its creator could do.
"""

import logging
import uuid
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from src.lambdas.shared.auth.api_keys import generate_api_key, hash_api_key
from src.lambdas.shared.auth.enums import Permission
from src.lambdas.shared.auth.permissions import AuthorizationEngine, default_engine
from src.lambdas.shared.errors import AuthorizationDetails, conflict, forbidden, not_found
from src.lambdas.shared.logging_utils import mask_id
from src.lambdas.shared.membership_store import MembershipStore
from src.lambdas.shared.middleware.context import AuthContext
from src.lambdas.shared.models import ApiKey

logger = logging.getLogger(__name__)

COMPONENT = "api_keys"


def create_api_key(
    store: MembershipStore,
    auth: AuthContext,
    name: str,
    permissions: Iterable[Permission],
    expires_at: datetime | None = None,
    engine: AuthorizationEngine = default_engine,
) -> dict[str, Any]:
    """Create a key and return it, including the plaintext ``key``.

    The plaintext is not stored and cannot be shown again.

    Raises:
        AppError: FORBIDDEN if a permission exceeds the caller's role,
            CONFLICT if an active key already has this name
    """
    requested = frozenset(permissions)
    granted = engine.get_role_permissions(auth.role) if auth.role is not None else frozenset()
    excess = requested - granted
    if auth.role is None or excess:
        raise forbidden(
            "You cannot grant permissions you do not have",
            details=AuthorizationDetails(
                workspace_id=auth.workspace_id,
                actual_role=auth.role.value if auth.role else None,
                permissions=tuple(sorted(p.value for p in excess)),
            ),
            component=COMPONENT,
            operation="create_api_key",
        )

    plaintext = generate_api_key()
    api_key = ApiKey(
        key_id=str(uuid.uuid4()),
        workspace_id=auth.workspace_id,
        name=name,
        key_hash=hash_api_key(plaintext),
        permissions=requested,
        created_by=auth.user_id,
        created_at=datetime.now(UTC),
        expires_at=expires_at,
    )
    if not store.create_api_key(api_key):
        raise conflict(
            "An API key with this name already exists",
            resource="api_key",
            identifier=name,
            component=COMPONENT,
            operation="create_api_key",
        )
    return {**api_key.to_api_dict(), "key": plaintext}


def list_api_keys(store: MembershipStore, auth: AuthContext) -> dict[str, Any]:
    """Active keys, newest first."""
    keys = store.list_api_keys(auth.workspace_id)
    return {"api_keys": [key.to_api_dict() for key in keys]}


def get_api_key(store: MembershipStore, auth: AuthContext, key_id: str) -> dict[str, Any]:
    api_key = store.get_api_key(auth.workspace_id, key_id)
    if api_key is None:
        raise not_found("api key", key_id, component=COMPONENT, operation="get_api_key")
    return api_key.to_api_dict()


def revoke_api_key(store: MembershipStore, auth: AuthContext, key_id: str) -> None:
    """Deactivate an active key; it stops authenticating immediately."""
    revoked = store.revoke_api_key(auth.workspace_id, key_id, auth.user_id, datetime.now(UTC))
    if revoked is None:
        raise not_found("api key", key_id, component=COMPONENT, operation="revoke_api_key")
    logger.info(
        "API key revoked by member",
        extra={"key_id": mask_id(key_id), "user_id": mask_id(auth.user_id)},
    )
