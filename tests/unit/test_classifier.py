"""Unit tests for reconcile error classification."""

import pytest

from eksup.core.exceptions import (
    AuthError,
    AWSError,
    ClusterNotFoundError,
    ConfigurationError,
    InvalidVersionError,
    StepFailedError,
    StepTimeoutError,
    StoreError,
    TransientError,
    UpgradeNotPossibleError,
)
from eksup.upgrade.classifier import ErrorClass, classify, is_transient


class TestClassify:
    """Tests for classify."""

    @pytest.mark.parametrize(
        "error",
        [
            TransientError("ResourceInUseException"),
            StepTimeoutError("Control plane upgrade to 1.33", 1900, 1800),
            StoreError("table unavailable"),
            AWSError("describe_cluster: ServiceUnavailable"),
        ],
    )
    def test_transient_errors(self, error: Exception) -> None:
        """Test retryable failures are classified transient."""
        assert classify(error) is ErrorClass.TRANSIENT
        assert is_transient(error)

    @pytest.mark.parametrize(
        "error",
        [
            AuthError("ExpiredToken"),
            InvalidVersionError("abc"),
            UpgradeNotPossibleError("downgrade not supported"),
            StepFailedError("Addon vpc-cni upgrade", "Failed"),
            ClusterNotFoundError("prod-east"),
            ConfigurationError("bad config"),
        ],
    )
    def test_permanent_errors(self, error: Exception) -> None:
        """Test non-retryable failures are classified permanent."""
        assert classify(error) is ErrorClass.PERMANENT
        assert not is_transient(error)

    def test_unknown_errors_are_permanent(self) -> None:
        """Test exceptions outside the taxonomy default to permanent."""
        assert classify(KeyError("update")) is ErrorClass.PERMANENT
        assert classify(RuntimeError("boom")) is ErrorClass.PERMANENT
