"""Upgrade lifecycle notifications."""

from enum import Enum

from eksup.core.models import UpgradePhase, UpgradeRequest, UpgradeStatus
from eksup.interfaces.notifier import NotificationSender
from eksup.utils.logging import get_logger

logger = get_logger(__name__)

HEADER = "[EKSUP]"
PHASES_LINE = "Planning → Preflight → ControlPlane → Addons → NodeGroups"


class LifecycleEvent(str, Enum):
    """Notification-worthy lifecycle events."""

    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


def should_notify(request: UpgradeRequest) -> bool:
    """Apply the request's notification policy.

    No policy means no notifications; dry runs follow ``on_dry_run`` and
    live upgrades follow ``on_upgrade``.
    """
    if request.notification is None:
        return False
    if request.dry_run:
        return request.notification.on_dry_run
    return request.notification.on_upgrade


def _mode(request: UpgradeRequest) -> str:
    return "Dry Run" if request.dry_run else "Live Upgrade"


def format_upgrade_path(request: UpgradeRequest, status: UpgradeStatus) -> str:
    """Human-readable path such as ``1.32 → 1.33 → 1.34``."""
    planning = status.phases.planning
    current = (planning.current_version if planning else None) or status.current_version
    if current is None:
        return f"? → {request.target_version}"

    path = status.upgrade_path
    if not path:
        return f"{current} → {request.target_version}"
    return " → ".join([current, *path])


def format_duration(status: UpgradeStatus) -> str:
    """Elapsed upgrade time as ``{m}m {s}s``, or ``unknown``."""
    if status.started_at is None or status.completed_at is None:
        return "unknown"
    seconds = max(int((status.completed_at - status.started_at).total_seconds()), 0)
    return f"{seconds // 60}m {seconds % 60}s"


def build_started_message(request: UpgradeRequest, status: UpgradeStatus) -> str:
    return "\n".join(
        [
            f"*{HEADER} EKS Upgrade Started*",
            f"*Cluster*: {request.cluster_name}",
            f"*Region*: {request.region}",
            f"*Target*: {request.target_version}",
            f"*Mode*: {_mode(request)}",
            f"*Upgrade Path*: {format_upgrade_path(request, status)}",
            f"*Phases*: {PHASES_LINE}",
        ]
    )


def build_completed_message(request: UpgradeRequest, status: UpgradeStatus) -> str:
    return "\n".join(
        [
            f"*{HEADER} EKS Upgrade Completed*",
            f"*Cluster*: {request.cluster_name} ({request.region})",
            f"*Target*: {request.target_version}",
            f"*Mode*: {_mode(request)}",
            f"*Upgrade Path*: {format_upgrade_path(request, status)}",
            f"*Duration*: {format_duration(status)}",
        ]
    )


def build_failed_message(
    request: UpgradeRequest, status: UpgradeStatus, failed_phase: UpgradePhase
) -> str:
    return "\n".join(
        [
            f"*{HEADER} EKS Upgrade Failed*",
            f"*Cluster*: {request.cluster_name} ({request.region})",
            f"*Target*: {request.target_version}",
            f"*Mode*: {_mode(request)}",
            f"*Upgrade Path*: {format_upgrade_path(request, status)}",
            f"*Phase*: {failed_phase.value}",
            f"*Error*: {status.message or 'unknown error'}",
        ]
    )


class NotificationDispatcher:
    """Sends one message per lifecycle event when the request's policy allows.

    The reconciler calls ``dispatch`` only on the persisted transition that
    produced the event, which is what keeps each message unique per request.
    Delivery failures never propagate.
    """

    def __init__(self, sender: NotificationSender | None = None):
        self.sender = sender

    async def dispatch(
        self,
        event: LifecycleEvent,
        request: UpgradeRequest,
        status: UpgradeStatus,
        failed_phase: UpgradePhase | None = None,
    ) -> bool:
        """Build and send the message for a lifecycle event.

        Args:
            event: Lifecycle event
            request: Upgrade request
            status: Persisted status after the transition
            failed_phase: Phase that failed, for FAILED events

        Returns:
            True if a message was handed to the sender and accepted
        """
        if self.sender is None or not should_notify(request):
            logger.debug("notification_skipped", notification_event=event.value)
            return False

        if event == LifecycleEvent.STARTED:
            message = build_started_message(request, status)
        elif event == LifecycleEvent.COMPLETED:
            message = build_completed_message(request, status)
        else:
            message = build_failed_message(request, status, failed_phase or status.phase)

        try:
            sent = await self.sender.send(message)
        except Exception as e:
            logger.warning(
                "notification_send_failed", notification_event=event.value, error=str(e)
            )
            return False

        logger.info("notification_dispatched", notification_event=event.value, sent=sent)
        return sent
