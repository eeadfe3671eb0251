"""Helpers for mutating an UpgradeStatus in place."""

from eksup.core.models import UpgradeCondition, UpgradePhase, UpgradeStatus, utc_now


def set_phase(status: UpgradeStatus, phase: UpgradePhase) -> None:
    """Move status to a new phase, stamping ``completed_at`` on completion."""
    status.phase = phase
    if phase == UpgradePhase.COMPLETED:
        status.completed_at = utc_now()


def set_condition(
    status: UpgradeStatus,
    condition_type: str,
    value: bool,
    reason: str,
    message: str | None = None,
) -> None:
    """Set or replace a named condition.

    Args:
        status: Status to mutate
        condition_type: Condition type (e.g. ``Ready``, ``AWSAuthenticated``)
        value: Boolean condition value
        reason: CamelCase machine-readable reason
        message: Optional human-readable message
    """
    status.conditions = [c for c in status.conditions if c.type != condition_type]
    status.conditions.append(
        UpgradeCondition(
            type=condition_type,
            status="True" if value else "False",
            reason=reason,
            message=message,
        )
    )


def set_failed(status: UpgradeStatus, message: str) -> None:
    """Mark the upgrade as permanently failed."""
    status.phase = UpgradePhase.FAILED
    status.completed_at = utc_now()
    status.message = message
    set_condition(status, "Ready", False, "UpgradeFailed", message)
