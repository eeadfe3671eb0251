"""Runs registered preflight checks."""

import asyncio

from eksup.checks.check_registry import CheckRegistry
from eksup.interfaces.check import CheckContext, CheckOutcome, CheckResult
from eksup.upgrade.classifier import is_transient
from eksup.utils.logging import get_logger

logger = get_logger(__name__)


class CheckRunner:
    """Executes every registered check with a per-check timeout.

    All checks run so the recorded preflight status is complete. Transient
    errors propagate so the whole phase is retried; any other exception is
    recorded as a failure of that check.
    """

    def __init__(self, registry: CheckRegistry):
        self.registry = registry

    async def run_checks(self, context: CheckContext) -> list[CheckResult]:
        """Run all checks.

        Args:
            context: Check context

        Returns:
            List of check results in registration order
        """
        cluster_name = context.request.cluster_name
        results: list[CheckResult] = []

        for check in self.registry.get_all_checks():
            try:
                result = await asyncio.wait_for(
                    check.execute(context), timeout=check.timeout_seconds
                )
            except TimeoutError:
                logger.error(
                    "check_timeout", check_name=check.name, timeout=check.timeout_seconds
                )
                result = CheckResult(
                    check.name,
                    CheckOutcome.FAIL,
                    f"Check timed out after {check.timeout_seconds} seconds",
                )
            except Exception as e:
                if is_transient(e):
                    raise
                logger.error("check_execution_failed", check_name=check.name, error=str(e))
                result = CheckResult(
                    check.name, CheckOutcome.FAIL, f"Check failed with error: {e}"
                )

            result.mandatory = check.is_mandatory
            results.append(result)
            logger.info(
                "check_completed",
                cluster_name=cluster_name,
                check_name=check.name,
                outcome=result.outcome.value,
                message=result.message,
            )

        return results
