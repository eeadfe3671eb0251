"""Integration test fixtures and configuration."""

import os

import boto3
import pytest
from botocore.exceptions import BotoCoreError, ClientError


@pytest.fixture
def aws_test_region() -> str:
    """AWS region for integration tests."""
    return os.getenv("AWS_TEST_REGION", "us-east-1")


@pytest.fixture
def skip_if_no_aws_credentials(aws_test_region: str):
    """Skip test if AWS credentials are not available."""
    try:
        sts = boto3.client("sts", region_name=aws_test_region)
        sts.get_caller_identity()
    except (BotoCoreError, ClientError) as e:
        pytest.skip(f"AWS credentials not available: {e}")


@pytest.fixture
def aws_test_role_arn() -> str | None:
    """Test AWS role ARN from environment (optional)."""
    return os.getenv("AWS_TEST_ROLE_ARN")


@pytest.fixture
def integration_test_cluster() -> str | None:
    """Existing EKS cluster to describe read-only (EKSUP_TEST_CLUSTER, optional)."""
    return os.getenv("EKSUP_TEST_CLUSTER")
