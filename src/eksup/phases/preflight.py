"""Preflight phase: validate the cluster before mutating it."""

from eksup.checks import default_registry
from eksup.checks.check_registry import CheckRegistry
from eksup.checks.check_runner import CheckRunner
from eksup.core.models import (
    PreflightCheckStatus,
    PreflightStatus,
    UpgradePhase,
    UpgradeRequest,
    UpgradeStatus,
)
from eksup.core.status import set_condition, set_failed, set_phase
from eksup.interfaces.check import CheckContext
from eksup.interfaces.phase_executor import ExecutionContext, PhaseExecutor, PhaseOutcome
from eksup.phases.common import advance
from eksup.utils.logging import get_logger

logger = get_logger(__name__)

DRY_RUN_MESSAGE = "Dry-run: preflight passed, plan generated but not executed"


class PreflightExecutor(PhaseExecutor):
    """Runs preflight checks and picks the first upgrade phase with work.

    Mandatory check failures fail the upgrade unless the request sets
    ``ignore_preflight_failures``. Dry-run requests stop here.
    """

    def __init__(self, registry: CheckRegistry | None = None):
        self.runner = CheckRunner(registry if registry is not None else default_registry())

    async def execute(
        self,
        request: UpgradeRequest,
        status: UpgradeStatus,
        context: ExecutionContext,
    ) -> PhaseOutcome:
        results = await self.runner.run_checks(
            CheckContext(request=request, status=status, cloud=context.cloud)
        )

        status.phases.preflight = PreflightStatus(
            checks=[
                PreflightCheckStatus(name=r.check_name, status=r.outcome.value, message=r.message)
                for r in results
            ]
        )

        blockers = [f"[{r.check_name}] {r.message}" for r in results if r.blocks_upgrade]
        if blockers:
            if not request.ignore_preflight_failures:
                set_failed(status, f"Preflight check failed: {'; '.join(blockers)}")
                return PhaseOutcome(status, None)
            logger.warning("preflight_failures_ignored", failures=blockers)

        if request.dry_run:
            set_phase(status, UpgradePhase.COMPLETED)
            status.message = DRY_RUN_MESSAGE
            set_condition(status, "Ready", True, "DryRunCompleted", DRY_RUN_MESSAGE)
            return PhaseOutcome(status, None)

        next_phase = advance(status, request)
        if next_phase == UpgradePhase.COMPLETED:
            return PhaseOutcome(status, None)
        return PhaseOutcome(status, 0)
