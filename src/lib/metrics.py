"""
Structured logs and CloudWatch metrics for the duty optimizer Lambdas.

For On-Call Engineers:
    Metrics (namespace "DutyOptimizer"):
    - CriticalErrors: critical-severity API errors, dimensioned by
      Component and ErrorCode. Its alarm pages on-call.

    Logs Insights query for failing requests:
    ```
    fields @timestamp, message, error_code, component, operation, request_id
    | filter level in ["ERROR", "CRITICAL"]
    | sort @timestamp desc
    ```

For Developers:
    - Log with logger.<level>(message, extra={...}); each extra key becomes
      a top-level JSON field.
    - emit_metric() reports failure through its return value and never
      raises into the request path.
"""

import json
import logging
import os
from datetime import UTC, datetime
from typing import Any

import boto3
from botocore.config import Config

logger = logging.getLogger(__name__)

METRIC_NAMESPACE = "DutyOptimizer"

CLOUDWATCH_CONFIG = Config(
    retries={"max_attempts": 3, "mode": "adaptive"},
    connect_timeout=5,
    read_timeout=10,
)

# Attributes every LogRecord has; anything else came from extra={...}
RESERVED_LOG_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime", "taskName"}


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with ``extra`` fields lifted to the top level."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }
        payload.update(
            (key, value)
            for key, value in record.__dict__.items()
            if key not in RESERVED_LOG_ATTRS and not key.startswith("_")
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def get_cloudwatch_client(region_name: str | None = None) -> Any:
    region = (
        region_name
        or os.environ.get("AWS_DEFAULT_REGION")
        or os.environ.get("AWS_REGION", "us-east-1")
    )
    return boto3.client("cloudwatch", region_name=region, config=CLOUDWATCH_CONFIG)


def emit_metric(
    name: str,
    value: float,
    unit: str = "Count",
    dimensions: dict[str, str] | None = None,
    region_name: str | None = None,
) -> bool:
    """
    Put a single datapoint in the DutyOptimizer namespace.

    An Environment dimension (from ENVIRONMENT, default "dev") is always
    appended after ``dimensions``.

    Args:
        name: Metric name, e.g. "CriticalErrors"
        value: Datapoint value
        unit: CloudWatch unit
        dimensions: Extra dimensions, e.g. {"Component": "members"}
        region_name: AWS region override

    Returns:
        True if CloudWatch accepted the datapoint, False otherwise
    """
    metric_dimensions = [{"Name": k, "Value": v} for k, v in (dimensions or {}).items()]
    metric_dimensions.append({"Name": "Environment", "Value": os.environ.get("ENVIRONMENT", "dev")})

    try:
        get_cloudwatch_client(region_name).put_metric_data(
            Namespace=METRIC_NAMESPACE,
            MetricData=[
                {
                    "MetricName": name,
                    "Value": value,
                    "Unit": unit,
                    "Timestamp": datetime.now(UTC),
                    "Dimensions": metric_dimensions,
                }
            ],
        )
    except Exception as e:
        # Metrics are best effort; the request still gets its response
        logger.error(
            "Failed to emit metric",
            extra={"metric_name": name, "error_type": type(e).__name__},
        )
        return False
    logger.debug("Emitted metric", extra={"metric_name": name, "value": value, "unit": unit})
    return True
