"""EKS cluster-level preflight checks."""

from eksup.core.exceptions import AuthError, AWSError
from eksup.interfaces.check import Check, CheckContext, CheckOutcome, CheckResult
from eksup.utils.logging import get_logger

logger = get_logger(__name__)


class DeletionProtectionCheck(Check):
    """Require deletion protection on the cluster before upgrading it."""

    @property
    def name(self) -> str:
        return "EKS Deletion Protection"

    async def execute(self, context: CheckContext) -> CheckResult:
        """Describe the cluster and inspect its deletion protection flag.

        Errors describing the cluster propagate; the preflight phase is
        retried or failed by the reconciler.
        """
        cluster = await context.cloud.describe_cluster(context.request.cluster_name)

        if cluster.deletion_protection is None:
            return CheckResult(self.name, CheckOutcome.SKIP, "unable to determine")

        if cluster.deletion_protection:
            return CheckResult(self.name, CheckOutcome.PASS, "Deletion protection is enabled")

        return CheckResult(self.name, CheckOutcome.FAIL, "Deletion protection is disabled")


class ClusterInsightsCheck(Check):
    """Fail on critical EKS upgrade-readiness insights.

    The insights API is optional: when it cannot be queried the check is
    skipped instead of failing.
    """

    @property
    def name(self) -> str:
        return "EKS Cluster Insights"

    async def execute(self, context: CheckContext) -> CheckResult:
        cluster_name = context.request.cluster_name
        try:
            summary = await context.cloud.get_insights_summary(cluster_name)
        except (AWSError, AuthError) as e:
            logger.warning("insights_check_unavailable", cluster_name=cluster_name, error=str(e))
            return CheckResult(self.name, CheckOutcome.SKIP, "EKS Insights API unavailable")

        counts = (
            f"{summary.total} total: {summary.warning_count} warning, "
            f"{summary.passing_count} passing, {summary.info_count} info"
        )
        if summary.critical_count > 0:
            return CheckResult(
                self.name,
                CheckOutcome.FAIL,
                f"{summary.critical_count} critical insight(s) found that may block upgrade "
                f"({counts})",
            )

        return CheckResult(self.name, CheckOutcome.PASS, f"No critical insights ({counts})")
