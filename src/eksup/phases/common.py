"""Helpers shared by phase executors."""

from datetime import datetime

from eksup.core.models import UpgradePhase, UpgradeRequest, UpgradeStatus, utc_now
from eksup.core.status import set_condition, set_phase
from eksup.interfaces.cloud_types import UpdateInfo
from eksup.upgrade.waiter import StepState, StepStatus

UPGRADE_PHASE_ORDER = (
    UpgradePhase.UPGRADING_CONTROL_PLANE,
    UpgradePhase.UPGRADING_ADDONS,
    UpgradePhase.UPGRADING_NODE_GROUPS,
)

_UPDATE_STATES = {
    "Successful": StepState.SUCCEEDED,
    "Failed": StepState.FAILED,
    "Cancelled": StepState.CANCELLED,
}


def to_step_status(update: UpdateInfo, progress: str | None = None) -> StepStatus:
    """Map an EKS update status (InProgress, Successful, Failed, Cancelled)."""
    return StepStatus(
        state=_UPDATE_STATES.get(update.status, StepState.IN_PROGRESS),
        progress=progress,
        error_messages=list(update.errors),
        raw_status=update.status,
    )


def elapsed_since(started_at: datetime | None) -> float:
    """Seconds since a persisted step start, zero if unknown."""
    if started_at is None:
        return 0.0
    return max((utc_now() - started_at).total_seconds(), 0.0)


def has_work(status: UpgradeStatus, phase: UpgradePhase) -> bool:
    """Whether an upgrade phase still has components to process."""
    phases = status.phases
    if phase == UpgradePhase.UPGRADING_CONTROL_PLANE:
        cp = phases.control_plane
        return cp is not None and cp.total_steps > 0 and cp.current_step <= cp.total_steps
    if phase == UpgradePhase.UPGRADING_ADDONS:
        return any(not c.is_done for c in phases.addons)
    if phase == UpgradePhase.UPGRADING_NODE_GROUPS:
        return any(not c.is_done for c in phases.nodegroups)
    return False


def advance(
    status: UpgradeStatus,
    request: UpgradeRequest,
    after: UpgradePhase | None = None,
) -> UpgradePhase:
    """Move to the first upgrade phase after ``after`` that has work.

    Without remaining work the upgrade is marked completed.

    Args:
        status: Status to mutate
        request: Upgrade request
        after: Phase just finished, or None to start from the beginning

    Returns:
        The new phase
    """
    candidates = UPGRADE_PHASE_ORDER
    if after in UPGRADE_PHASE_ORDER:
        candidates = UPGRADE_PHASE_ORDER[UPGRADE_PHASE_ORDER.index(after) + 1 :]

    for phase in candidates:
        if has_work(status, phase):
            set_phase(status, phase)
            return phase

    set_phase(status, UpgradePhase.COMPLETED)
    status.current_version = request.target_version
    status.message = f"Upgrade of {request.cluster_name} to {request.target_version} completed"
    set_condition(status, "Ready", True, "UpgradeCompleted", status.message)
    return UpgradePhase.COMPLETED
