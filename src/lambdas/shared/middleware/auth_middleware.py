"""Identity extraction for API requests.

Answers one question: who is calling? Workspace membership and role are
resolved later by the workspace access resolver; nothing here looks at
roles.

Credentials are accepted from two places, in order:
1. ``Authorization: Bearer <token>``: a JWT, or a workspace API key
   (``dk_...``) on routes that accept keys
2. ``access_token`` cookie (browser sessions, JWT only)

A missing, malformed, expired or wrongly signed token yields no identity,
which the auth stage turns into a 401.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Literal, Protocol

import jwt
from aws_xray_sdk.core import xray_recorder

from src.lambdas.shared.auth.enums import Permission
from src.lambdas.shared.logging_utils import mask_id
from src.lambdas.shared.utils.cookie_helpers import get_cookie
from src.lambdas.shared.utils.event_helpers import get_header

logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIE = "access_token"
BEARER_PREFIX = "Bearer "
API_KEY_PREFIX = "dk_"

AuthMethod = Literal["bearer", "cookie", "api_key"]


@dataclass(frozen=True)
class JWTClaim:
    """Represents validated claims from a JWT token.

    Attributes:
        subject: User ID (from 'sub' claim)
        expiration: Token expiration timestamp
        issued_at: Token issued timestamp
        issuer: Token issuer (optional)
        email: Email claim, when the issuer includes one
    """

    subject: str
    expiration: datetime
    issued_at: datetime
    issuer: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class JWTConfig:
    """Configuration for JWT validation.

    Attributes:
        secret: Secret key for HMAC validation
        algorithm: JWT algorithm (default: HS256)
        issuer: Expected issuer (None disables the issuer check)
        leeway_seconds: Clock skew tolerance (default: 60s)
    """

    secret: str
    algorithm: str = "HS256"
    issuer: str | None = "duty-optimizer"
    leeway_seconds: int = 60


@dataclass(frozen=True)
class Identity:
    """An authenticated caller.

    A user identity carries no workspace or role information. An API key
    identity is bound to the key's workspace and carries the key's own
    permissions instead of a role.
    """

    user_id: str
    auth_method: AuthMethod
    email: str | None = None
    workspace_id: str | None = None
    api_key_id: str | None = None
    permissions: frozenset[Permission] = frozenset()

    @property
    def is_api_key(self) -> bool:
        return self.auth_method == "api_key"


class ApiKeyVerifier(Protocol):
    """Turns a presented ``dk_`` key into an identity, or None if unusable."""

    def authenticate(self, key: str) -> Identity | None: ...


def _get_jwt_config() -> JWTConfig | None:
    """JWT settings from JWT_SECRET, JWT_ALGORITHM, JWT_ISSUER and JWT_LEEWAY_SECONDS.

    Without JWT_SECRET no token can be verified and every request is anonymous.
    """
    secret = os.environ.get("JWT_SECRET")
    if not secret:
        return None

    return JWTConfig(
        secret=secret,
        algorithm=os.environ.get("JWT_ALGORITHM", "HS256"),
        issuer=os.environ.get("JWT_ISSUER", "duty-optimizer") or None,
        leeway_seconds=int(os.environ.get("JWT_LEEWAY_SECONDS", "60")),
    )


def validate_jwt(token: str, config: JWTConfig | None = None) -> JWTClaim | None:
    """Verify a raw token and return its claims, or None if it is unusable.

    sub, exp and iat are required; iss is checked when the config names an
    issuer. Failures are logged at debug level except a bad signature, which
    is worth a warning.

    Args:
        token: The JWT, without the "Bearer " prefix
        config: Overrides the environment-derived JWTConfig
    """
    if config is None:
        config = _get_jwt_config()
        if config is None:
            logger.warning("JWT_SECRET not configured, cannot validate JWT")
            return None

    try:
        payload = jwt.decode(
            token,
            config.secret,
            algorithms=[config.algorithm],
            issuer=config.issuer,
            leeway=config.leeway_seconds,
            options={
                "require": ["sub", "exp", "iat"],
            },
        )
    except jwt.ExpiredSignatureError:
        logger.debug("JWT token has expired")
        return None
    except jwt.InvalidIssuerError:
        logger.debug("JWT token has invalid issuer")
        return None
    except jwt.InvalidSignatureError:
        logger.warning("JWT token has invalid signature")
        return None
    except jwt.MissingRequiredClaimError as e:
        logger.debug("JWT token missing required claim", extra={"claim": e.claim})
        return None
    except jwt.InvalidTokenError as e:
        logger.debug("JWT token is invalid", extra={"error_type": type(e).__name__})
        return None

    subject = payload["sub"]
    if not isinstance(subject, str) or not subject:
        logger.debug("JWT 'sub' claim is not a non-empty string")
        return None

    email = payload.get("email")
    return JWTClaim(
        subject=subject,
        expiration=datetime.fromtimestamp(payload["exp"], tz=UTC),
        issued_at=datetime.fromtimestamp(payload["iat"], tz=UTC),
        issuer=payload.get("iss"),
        email=email if isinstance(email, str) else None,
    )


def _bearer_token(event: dict[str, Any]) -> str | None:
    auth_header = get_header(event, "authorization") or ""
    if auth_header.startswith(BEARER_PREFIX):
        token = auth_header[len(BEARER_PREFIX) :].strip()
        return token or None
    return None


@xray_recorder.capture("extract_identity")
def extract_identity(
    event: dict[str, Any], api_keys: ApiKeyVerifier | None = None
) -> Identity | None:
    """Extract the caller's identity from the request.

    The Bearer header wins when present; an invalid Bearer token does not
    fall back to the cookie. A Bearer value with the ``dk_`` prefix is an
    API key and is only accepted when ``api_keys`` is given.

    Args:
        event: API Gateway Proxy Integration event dict
        api_keys: Verifier for workspace API keys; None rejects keys

    Returns:
        Identity if a valid credential was found, None otherwise
    """
    token = _bearer_token(event)
    if token is not None and token.startswith(API_KEY_PREFIX):
        if api_keys is None:
            logger.debug("API key presented to a route that does not accept keys")
            return None
        return api_keys.authenticate(token)

    method: AuthMethod = "bearer"
    if token is None:
        token = get_cookie(event, ACCESS_TOKEN_COOKIE)
        method = "cookie"
    if token is None:
        logger.debug("No credentials found in request")
        return None

    claim = validate_jwt(token)
    if claim is None:
        return None

    logger.debug(
        "Authenticated request",
        extra={"user_id": mask_id(claim.subject), "auth_method": method},
    )
    return Identity(user_id=claim.subject, auth_method=method, email=claim.email)
