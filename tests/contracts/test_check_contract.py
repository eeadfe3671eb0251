"""Contract tests for Check interface.

All Check implementations must pass these tests to ensure substitutability.
"""

import pytest

from eksup.checks.cluster_checks import ClusterInsightsCheck, DeletionProtectionCheck
from eksup.core.models import UpgradeRequest, UpgradeStatus
from eksup.interfaces.check import Check, CheckContext, CheckOutcome, CheckResult


class CheckContract:
    """Base contract tests for Check interface."""

    @pytest.fixture
    def check(self) -> Check:
        """Subclass must provide concrete Check implementation."""
        raise NotImplementedError("Subclass must implement check fixture")

    @pytest.fixture
    def context(self, sample_request: UpgradeRequest, fake_cloud) -> CheckContext:
        return CheckContext(request=sample_request, status=UpgradeStatus(), cloud=fake_cloud)

    def test_check_has_name(self, check: Check):
        """Check must have a name."""
        assert isinstance(check.name, str)
        assert len(check.name) > 0

    def test_check_has_is_mandatory(self, check: Check):
        assert isinstance(check.is_mandatory, bool)

    def test_check_has_timeout_seconds(self, check: Check):
        """Check must have a positive timeout."""
        assert isinstance(check.timeout_seconds, int)
        assert check.timeout_seconds > 0

    @pytest.mark.asyncio
    async def test_execute_returns_check_result(self, check: Check, context: CheckContext):
        """Execute must return a CheckResult named after the check."""
        result = await check.execute(context)

        assert isinstance(result, CheckResult)
        assert result.check_name == check.name
        assert isinstance(result.outcome, CheckOutcome)
        assert isinstance(result.message, str)
        assert result.message


class TestDeletionProtectionCheckContract(CheckContract):
    @pytest.fixture
    def check(self) -> Check:
        return DeletionProtectionCheck()


class TestClusterInsightsCheckContract(CheckContract):
    @pytest.fixture
    def check(self) -> Check:
        return ClusterInsightsCheck()
