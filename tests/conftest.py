"""
Pytest Configuration and Shared Fixtures
=========================================

Common fixtures used across all test modules.

For On-Call Engineers:
    If tests fail with AWS credential errors:
    1. Ensure moto is properly mocking (check mock_aws usage)
    2. Verify AWS env vars are set in fixtures

For Developers:
    - Import helpers (make_event, make_token) from tests.conftest
    - All DynamoDB access uses the moto-backed workspaces_table fixture
    - Add new shared fixtures here, test-specific fixtures in test files
"""

import logging
import os
import time
import uuid
from datetime import UTC, datetime
from typing import Any
from unittest.mock import MagicMock

import boto3
import jwt
import orjson
import pytest
from moto import mock_aws

# Set default test environment variables at module load time so modules
# that read configuration on import see test values.
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")

# Disable X-Ray SDK in tests: there is no daemon or active segment, and the
# SDK would otherwise log an ERROR for every captured function.
os.environ.setdefault("AWS_XRAY_SDK_ENABLED", "false")

TEST_TABLE_NAME = "test-workspaces"
TEST_JWT_SECRET = "test-jwt-secret-not-for-production"  # pragma: allowlist secret
TEST_JWT_ISSUER = "duty-optimizer"

if "WORKSPACES_TABLE" not in os.environ:
    os.environ["WORKSPACES_TABLE"] = TEST_TABLE_NAME
if "JWT_SECRET" not in os.environ:
    os.environ["JWT_SECRET"] = TEST_JWT_SECRET
if "JWT_ISSUER" not in os.environ:
    os.environ["JWT_ISSUER"] = TEST_JWT_ISSUER
if "ENVIRONMENT" not in os.environ:
    os.environ["ENVIRONMENT"] = "test"
if "CRITICAL_ALERTS_ENABLED" not in os.environ:
    os.environ["CRITICAL_ALERTS_ENABLED"] = "false"


@pytest.fixture(autouse=True)
def reset_env_vars():
    """
    Reset environment variables after each test.

    Ensures tests don't pollute each other's environment.
    """
    original_env = os.environ.copy()

    yield

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def aws_credentials():
    """
    Set up mock AWS credentials for moto.

    Use this fixture when testing AWS SDK calls.
    """
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_REGION"] = "us-east-1"

    yield


@pytest.fixture
def mock_lambda_context():
    """Lambda context with a fixed request id."""
    context = MagicMock()
    context.aws_request_id = "test-request-id"
    context.function_name = "test-workspaces"
    return context


# =============================================================================
# Event and token builders
# =============================================================================


def make_token(
    user_id: str,
    *,
    email: str | None = None,
    expires_in: int = 900,
    issued_at: int | None = None,
    secret: str = TEST_JWT_SECRET,
    issuer: str | None = TEST_JWT_ISSUER,
    **claims: Any,
) -> str:
    """Sign an HS256 access token the way the identity provider does."""
    now = issued_at if issued_at is not None else int(time.time())
    payload: dict[str, Any] = {"sub": user_id, "iat": now, "exp": now + expires_in}
    if issuer is not None:
        payload["iss"] = issuer
    if email is not None:
        payload["email"] = email
    payload.update(claims)
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_headers(user_id: str, **token_kwargs: Any) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, **token_kwargs)}"}


def make_event(
    method: str = "GET",
    resource: str = "/api/v1/workspaces",
    *,
    path: str | None = None,
    headers: dict[str, str] | None = None,
    query: dict[str, str] | None = None,
    multi_query: dict[str, list[str]] | None = None,
    path_params: dict[str, str] | None = None,
    body: Any = None,
    is_base64: bool = False,
) -> dict[str, Any]:
    """Build an API Gateway REST proxy integration event.

    A dict or list body is JSON-encoded; a string body is passed through.
    """
    if path is None:
        path = resource
        for name, value in (path_params or {}).items():
            path = path.replace("{" + name + "}", value)

    if isinstance(body, dict | list):
        body = orjson.dumps(body).decode()

    if multi_query is None and query is not None:
        multi_query = {key: [value] for key, value in query.items()}

    return {
        "resource": resource,
        "path": path,
        "httpMethod": method,
        "headers": headers,
        "multiValueHeaders": None,
        "queryStringParameters": query,
        "multiValueQueryStringParameters": multi_query,
        "pathParameters": path_params,
        "stageVariables": None,
        "requestContext": {
            "resourcePath": resource,
            "httpMethod": method,
            "requestId": str(uuid.uuid4()),
            "stage": "test",
        },
        "body": body,
        "isBase64Encoded": is_base64,
    }


def response_json(response: dict[str, Any]) -> Any:
    return orjson.loads(response["body"])


# =============================================================================
# DynamoDB (moto)
# =============================================================================

WORKSPACES_TABLE_DEFINITION = {
    "KeySchema": [
        {"AttributeName": "PK", "KeyType": "HASH"},
        {"AttributeName": "SK", "KeyType": "RANGE"},
    ],
    "AttributeDefinitions": [
        {"AttributeName": "PK", "AttributeType": "S"},
        {"AttributeName": "SK", "AttributeType": "S"},
        {"AttributeName": "user_id", "AttributeType": "S"},
        {"AttributeName": "workspace_id", "AttributeType": "S"},
        {"AttributeName": "email", "AttributeType": "S"},
        {"AttributeName": "key_hash", "AttributeType": "S"},
    ],
    "GlobalSecondaryIndexes": [
        {
            "IndexName": "by_user",
            "KeySchema": [
                {"AttributeName": "user_id", "KeyType": "HASH"},
                {"AttributeName": "workspace_id", "KeyType": "RANGE"},
            ],
            "Projection": {"ProjectionType": "ALL"},
        },
        {
            "IndexName": "by_email",
            "KeySchema": [{"AttributeName": "email", "KeyType": "HASH"}],
            "Projection": {"ProjectionType": "ALL"},
        },
        {
            "IndexName": "by_key_hash",
            "KeySchema": [{"AttributeName": "key_hash", "KeyType": "HASH"}],
            "Projection": {"ProjectionType": "ALL"},
        },
    ],
}


@pytest.fixture
def workspaces_table(aws_credentials):
    """
    Create a mocked workspaces table with the by_user, by_email and
    by_key_hash GSIs.

    Yields:
        boto3 Table resource, valid for the duration of the test
    """
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")
        table = dynamodb.create_table(
            TableName=TEST_TABLE_NAME,
            BillingMode="PAY_PER_REQUEST",
            **WORKSPACES_TABLE_DEFINITION,
        )
        table.wait_until_exists()
        yield table


@pytest.fixture
def membership_store(workspaces_table):
    from src.lambdas.shared.membership_store import MembershipStore

    return MembershipStore(workspaces_table)


@pytest.fixture
def seed_member(membership_store):
    """Factory: add a membership (and its workspace, once) to the table."""
    from src.lambdas.shared.auth.enums import Role
    from src.lambdas.shared.models import Workspace, WorkspaceMember

    created_workspaces: set[str] = set()

    def _seed(
        workspace_id: str,
        user_id: str,
        role: Role | str = Role.MEMBER,
        email: str | None = None,
        joined_at: datetime | None = None,
    ) -> WorkspaceMember:
        joined = joined_at or datetime.now(UTC)
        if workspace_id not in created_workspaces:
            membership_store.table.put_item(
                Item=Workspace(
                    workspace_id=workspace_id,
                    name=f"Workspace {workspace_id[:8]}",
                    created_by=user_id,
                    created_at=joined,
                ).to_dynamodb_item()
            )
            created_workspaces.add(workspace_id)
        member = WorkspaceMember(
            workspace_id=workspace_id,
            user_id=user_id,
            role=Role(role),
            email=email,
            joined_at=joined,
            updated_at=joined,
        )
        membership_store.table.put_item(Item=member.to_dynamodb_item())
        return member

    return _seed


@pytest.fixture
def seed_user(membership_store):
    """Factory: register a user profile so it can be invited by email."""
    from src.lambdas.shared.models import UserProfile

    def _seed(user_id: str, email: str) -> UserProfile:
        profile = UserProfile(user_id=user_id, email=email, created_at=datetime.now(UTC))
        membership_store.put_user(profile)
        return profile

    return _seed


@pytest.fixture
def seed_api_key(membership_store):
    """Factory: store an API key and return (plaintext, ApiKey)."""
    from src.lambdas.shared.auth.api_keys import generate_api_key, hash_api_key
    from src.lambdas.shared.auth.enums import Permission
    from src.lambdas.shared.models import ApiKey

    def _seed(
        workspace_id: str,
        permissions: list[Permission | str] | None = None,
        *,
        name: str | None = None,
        created_by: str = "owner-1",
        created_at: datetime | None = None,
        expires_at: datetime | None = None,
        is_active: bool = True,
    ) -> tuple[str, ApiKey]:
        plaintext = generate_api_key()
        api_key = ApiKey(
            key_id=str(uuid.uuid4()),
            workspace_id=workspace_id,
            name=name or f"key-{plaintext[-6:]}",
            key_hash=hash_api_key(plaintext),
            permissions=frozenset(
                Permission(p) for p in (permissions or [Permission.WORKSPACE_VIEW])
            ),
            created_by=created_by,
            created_at=created_at or datetime.now(UTC),
            expires_at=expires_at,
            is_active=is_active,
        )
        membership_store.table.put_item(Item=api_key.to_dynamodb_item())
        return plaintext, api_key

    return _seed


# =============================================================================
# Log Validation Helpers
# =============================================================================
#
# Production code logs normally (never test-aware); tests explicitly
# assert on expected logs using caplog.


def assert_error_logged(caplog, pattern: str):
    """
    Helper to assert an ERROR (or higher) log was captured.

    Raises:
        AssertionError: If no ERROR log matches the pattern
    """
    assert any(
        pattern in record.message
        for record in caplog.records
        if record.levelno >= logging.ERROR
    ), f"Expected ERROR log matching '{pattern}' not found"


def assert_warning_logged(caplog, pattern: str):
    """
    Helper to assert a WARNING log was captured.

    Raises:
        AssertionError: If no WARNING log matches the pattern
    """
    assert any(
        pattern in record.message
        for record in caplog.records
        if record.levelno == logging.WARNING
    ), f"Expected WARNING log matching '{pattern}' not found"
