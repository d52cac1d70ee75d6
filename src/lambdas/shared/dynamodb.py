"""
DynamoDB access for the workspaces single table.

Key layout (see models/workspace.py and models/user.py):
    WORKSPACE#<id> / METADATA        workspace record
    WORKSPACE#<id> / MEMBER#<user>   membership (by_user GSI)
    WORKSPACE#<id> / AUDIT#<ts>#<n>  role audit entry
    USER#<id>      / PROFILE         user profile (by_email GSI)
    USER#<id>      / PREFERENCES     current workspace selection

On-Call Notes:
    - Throttling surfaces as ProvisionedThroughputExceededException after
      the adaptive retries below are exhausted; the table is on-demand, so
      sustained throttling means a hot partition (one very large workspace).
    - A missing WORKSPACES_TABLE fails the first request with ValueError,
      not the cold start.
"""

import logging
import os
from decimal import Decimal
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

TABLE_ENV_VAR = "WORKSPACES_TABLE"

RETRY_CONFIG = Config(
    retries={"max_attempts": 3, "mode": "adaptive"},
    connect_timeout=5,
    read_timeout=10,
)


def get_dynamodb_resource(region_name: str | None = None) -> Any:
    """Return a boto3 DynamoDB resource using RETRY_CONFIG.

    The region falls back to AWS_DEFAULT_REGION, then AWS_REGION (the
    variable the Lambda runtime sets).
    """
    region = region_name or os.environ.get("AWS_DEFAULT_REGION") or os.environ.get("AWS_REGION")
    if not region:
        raise ValueError("AWS_DEFAULT_REGION or AWS_REGION environment variable must be set")
    return boto3.resource("dynamodb", region_name=region, config=RETRY_CONFIG)


def get_table(table_name: str | None = None, region_name: str | None = None) -> Any:
    """Return the workspaces Table, named by argument or WORKSPACES_TABLE."""
    name = table_name or os.environ.get(TABLE_ENV_VAR)
    if not name:
        raise ValueError(f"Table name required: set {TABLE_ENV_VAR} env var or pass table_name")
    return get_dynamodb_resource(region_name).Table(name)


def parse_dynamodb_item(item: dict[str, Any] | None) -> dict[str, Any]:
    """Turn a raw table item into plain JSON-friendly Python values.

    Numbers come back from boto3 as Decimal and string sets as set; both
    are normalized here so models and orjson never see them.
    """
    if not item:
        return {}
    return {key: _plain(value) for key, value in item.items()}


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value % 1 == 0 else float(value)
    if isinstance(value, set):
        return sorted(value)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


def is_conditional_check_failure(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"


def put_item_if_not_exists(table: Any, item: dict[str, Any]) -> bool:
    """Create ``item`` unless its PK/SK is already taken.

    This is what keeps a user to one membership per workspace: a second
    invite for the same pair returns False instead of overwriting the role.

    Returns:
        True if the item was written, False if the key already existed.

    Raises:
        ClientError: Any DynamoDB failure other than the condition check.
    """
    try:
        table.put_item(Item=item, ConditionExpression="attribute_not_exists(PK)")
    except ClientError as e:
        if is_conditional_check_failure(e):
            logger.debug("Key already present", extra={"pk": item.get("PK"), "sk": item.get("SK")})
            return False
        logger.error(
            "Conditional put failed",
            extra={
                "pk": item.get("PK"),
                "sk": item.get("SK"),
                "error_code": e.response.get("Error", {}).get("Code"),
            },
        )
        raise
    return True


def query_all(table: Any, **kwargs: Any) -> list[dict[str, Any]]:
    """Run a Query, following LastEvaluatedKey until every page is read."""
    items: list[dict[str, Any]] = []
    while True:
        response = table.query(**kwargs)
        items.extend(response.get("Items", []))
        last_key = response.get("LastEvaluatedKey")
        if not last_key:
            return items
        kwargs["ExclusiveStartKey"] = last_key
