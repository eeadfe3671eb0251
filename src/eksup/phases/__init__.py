"""Phase executors for the upgrade state machine."""

from eksup.checks.check_registry import CheckRegistry
from eksup.core.models import UpgradePhase
from eksup.interfaces.phase_executor import PhaseExecutor
from eksup.phases.components import AddonsExecutor, NodeGroupsExecutor
from eksup.phases.control_plane import ControlPlaneExecutor
from eksup.phases.planning import PlanningExecutor
from eksup.phases.preflight import PreflightExecutor


def default_executors(registry: CheckRegistry | None = None) -> dict[UpgradePhase, PhaseExecutor]:
    """Dispatch table from phase to executor.

    Args:
        registry: Preflight checks, defaults to the built-in ones

    Returns:
        Mapping for every non-terminal phase except Pending
    """
    return {
        UpgradePhase.PLANNING: PlanningExecutor(),
        UpgradePhase.PREFLIGHT_CHECKING: PreflightExecutor(registry),
        UpgradePhase.UPGRADING_CONTROL_PLANE: ControlPlaneExecutor(),
        UpgradePhase.UPGRADING_ADDONS: AddonsExecutor(),
        UpgradePhase.UPGRADING_NODE_GROUPS: NodeGroupsExecutor(),
    }


__all__ = [
    "AddonsExecutor",
    "ControlPlaneExecutor",
    "NodeGroupsExecutor",
    "PlanningExecutor",
    "PreflightExecutor",
    "default_executors",
]
