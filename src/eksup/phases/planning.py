"""Planning phase: compute what has to change."""

from eksup.core.models import (
    ComponentUpgradeStatus,
    ControlPlaneStatus,
    PlanningStatus,
    UpgradePhase,
    UpgradeRequest,
    UpgradeStatus,
)
from eksup.core.status import set_condition, set_phase
from eksup.interfaces.phase_executor import ExecutionContext, PhaseExecutor, PhaseOutcome
from eksup.upgrade.planning import create_upgrade_plan
from eksup.utils.logging import get_logger

logger = get_logger(__name__)


class PlanningExecutor(PhaseExecutor):
    """Builds the upgrade plan and records it in status."""

    async def execute(
        self,
        request: UpgradeRequest,
        status: UpgradeStatus,
        context: ExecutionContext,
    ) -> PhaseOutcome:
        plan = await create_upgrade_plan(
            context.cloud,
            request.cluster_name,
            request.target_version,
            request.addon_versions,
        )

        total_steps = len(plan.upgrade_path)
        status.current_version = plan.current_version
        status.phases.planning = PlanningStatus(
            current_version=plan.current_version, upgrade_path=plan.upgrade_path
        )
        status.phases.control_plane = ControlPlaneStatus(
            current_step=1 if total_steps else 0,
            total_steps=total_steps,
        )
        status.phases.addons = [
            ComponentUpgradeStatus(
                name=addon.name,
                current_version=addon.version,
                target_version=addon_target,
            )
            for addon, addon_target in plan.addon_upgrades
        ]
        status.phases.nodegroups = [
            ComponentUpgradeStatus(
                name=ng.name,
                current_version=ng.version or "unknown",
                target_version=request.target_version,
            )
            for ng in plan.nodegroup_upgrades
        ]

        logger.info(
            "upgrade_planned",
            current_version=plan.current_version,
            target_version=request.target_version,
            upgrade_path=plan.upgrade_path,
            addons=len(plan.addon_upgrades),
            nodegroups=len(plan.nodegroup_upgrades),
        )

        if plan.is_empty():
            message = "All components already at target version"
            set_phase(status, UpgradePhase.COMPLETED)
            status.message = message
            set_condition(status, "Ready", True, "AlreadyUpToDate", message)
            return PhaseOutcome(status, None)

        set_phase(status, UpgradePhase.PREFLIGHT_CHECKING)
        status.message = (
            f"Planned {total_steps} control plane step(s), "
            f"{len(plan.addon_upgrades)} add-on(s), {len(plan.nodegroup_upgrades)} node group(s)"
        )
        set_condition(status, "Ready", False, "UpgradeInProgress", status.message)
        return PhaseOutcome(status, 0)
