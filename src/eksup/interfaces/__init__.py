"""Interface definitions for eksup collaborators."""

from eksup.interfaces.check import Check, CheckContext, CheckOutcome, CheckResult
from eksup.interfaces.cloud_provider import CloudClientFactory, CloudClients
from eksup.interfaces.event_recorder import EventRecorder
from eksup.interfaces.notifier import NotificationSender
from eksup.interfaces.phase_executor import ExecutionContext, PhaseExecutor, PhaseOutcome
from eksup.interfaces.state_store import StatusStore

__all__ = [
    "Check",
    "CheckContext",
    "CheckOutcome",
    "CheckResult",
    "CloudClientFactory",
    "CloudClients",
    "EventRecorder",
    "ExecutionContext",
    "NotificationSender",
    "PhaseExecutor",
    "PhaseOutcome",
    "StatusStore",
]
