"""Workspace API keys: generation, hashing and authentication.

Key format: ``dk_`` followed by 64 lowercase hex characters (67 in all).
Keys are looked up by the SHA-256 hex digest of the full key; the
plaintext is never stored.

An authenticated key yields an ``Identity`` bound to the key's workspace,
carrying the key's permissions. Keys have no role, so routes that require
a minimum role reject them.
"""

from __future__ import annotations

import hashlib
import logging
import re
import secrets
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol

from aws_xray_sdk.core import xray_recorder

from src.lambdas.shared.logging_utils import mask_id
from src.lambdas.shared.middleware.auth_middleware import API_KEY_PREFIX, Identity
from src.lambdas.shared.models import ApiKey

logger = logging.getLogger(__name__)

API_KEY_LENGTH = len(API_KEY_PREFIX) + 64
API_KEY_PATTERN = re.compile(rf"^{API_KEY_PREFIX}[0-9a-f]{{64}}$")


def api_key_principal(key_id: str) -> str:
    """The user_id an API key acts as in logs and audit fields."""
    return f"api_key:{key_id}"


def generate_api_key() -> str:
    return API_KEY_PREFIX + secrets.token_hex(32)


def hash_api_key(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()


def is_api_key_format(key: str) -> bool:
    return len(key) == API_KEY_LENGTH and API_KEY_PATTERN.match(key) is not None


class ApiKeySource(Protocol):
    """What the authenticator needs from storage."""

    def get_api_key_by_hash(self, key_hash: str) -> ApiKey | None: ...

    def touch_api_key(self, workspace_id: str, key_id: str, now: datetime) -> bool: ...


class ApiKeyAuthenticator:
    """Verify presented API keys against the store.

    A key is usable when it is well formed, active and not expired. Every
    successful use records ``last_used_at``; that write never fails the
    request.
    """

    def __init__(self, store: ApiKeySource, clock: Callable[[], datetime] | None = None) -> None:
        self._store = store
        self._clock = clock or (lambda: datetime.now(UTC))

    @xray_recorder.capture("authenticate_api_key")
    def authenticate(self, key: str) -> Identity | None:
        if not is_api_key_format(key):
            logger.debug("Malformed API key")
            return None

        api_key = self._store.get_api_key_by_hash(hash_api_key(key))
        if api_key is None or not api_key.is_active:
            logger.info("Unknown or revoked API key presented")
            return None

        now = self._clock()
        if api_key.is_expired(now):
            logger.info(
                "Expired API key presented",
                extra={
                    "key_id": mask_id(api_key.key_id),
                    "workspace_id": mask_id(api_key.workspace_id),
                },
            )
            return None

        self._store.touch_api_key(api_key.workspace_id, api_key.key_id, now)
        logger.debug(
            "Authenticated API key",
            extra={
                "key_id": mask_id(api_key.key_id),
                "workspace_id": mask_id(api_key.workspace_id),
            },
        )
        return Identity(
            user_id=api_key_principal(api_key.key_id),
            auth_method="api_key",
            workspace_id=api_key.workspace_id,
            api_key_id=api_key.key_id,
            permissions=api_key.permissions,
        )
