"""
Unit Tests for CloudWatch Metrics and Logging Utilities
========================================================

For On-Call Engineers:
    These tests verify:
    - Logs are JSON formatted for CloudWatch Insights
    - Metrics land in the DutyOptimizer namespace with an Environment dimension
    - A CloudWatch failure never raises into the request path

For Developers:
    - Metric tests use moto to mock CloudWatch
"""

import json
import logging
import os
import sys
from datetime import date
from unittest.mock import patch

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

from src.lib.metrics import (
    METRIC_NAMESPACE,
    JsonFormatter,
    emit_metric,
    get_cloudwatch_client,
)


@pytest.fixture
def cloudwatch_client(aws_credentials):
    """Create mocked CloudWatch client."""
    os.environ["ENVIRONMENT"] = "dev"
    with mock_aws():
        yield boto3.client("cloudwatch", region_name="us-east-1")


def _record(msg: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("test.logger", logging.WARNING, __file__, 10, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    def test_basic_fields(self):
        output = json.loads(JsonFormatter().format(_record()))

        assert output["level"] == "WARNING"
        assert output["message"] == "hello"
        assert output["logger"] == "test.logger"
        assert "timestamp" in output

    def test_extra_fields_are_top_level(self):
        output = json.loads(
            JsonFormatter().format(_record(error_code="FORBIDDEN", request_id="req-1"))
        )

        assert output["error_code"] == "FORBIDDEN"
        assert output["request_id"] == "req-1"
        assert "lineno" not in output

    def test_non_serializable_values_use_str(self):
        output = json.loads(JsonFormatter().format(_record(as_of=date(2026, 1, 2))))
        assert output["as_of"] == "2026-01-02"

    def test_exception_is_formatted(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord(
                "t", logging.ERROR, __file__, 1, "failed", (), exc_info=sys.exc_info()
            )

        output = json.loads(JsonFormatter().format(record))

        assert "ValueError: boom" in output["exception"]


class TestEmitMetric:
    def test_emits_to_namespace(self, cloudwatch_client):
        assert emit_metric("CriticalErrors", 1, dimensions={"Component": "members"}) is True

        metrics = cloudwatch_client.list_metrics(Namespace=METRIC_NAMESPACE)["Metrics"]
        assert len(metrics) == 1
        dimensions = {d["Name"]: d["Value"] for d in metrics[0]["Dimensions"]}
        assert dimensions == {"Component": "members", "Environment": "dev"}

    def test_failure_returns_false(self, caplog):
        error = ClientError({"Error": {"Code": "AccessDenied", "Message": "no"}}, "PutMetricData")

        with patch("src.lib.metrics.get_cloudwatch_client") as mock_client:
            mock_client.return_value.put_metric_data.side_effect = error
            assert emit_metric("CriticalErrors", 1) is False

        assert "Failed to emit metric" in caplog.text

    def test_client_uses_region(self, aws_credentials):
        client = get_cloudwatch_client("eu-west-1")
        assert client.meta.region_name == "eu-west-1"
