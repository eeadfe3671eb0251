"""Event recorders for upgrade lifecycle events."""

from rich.console import Console

from eksup.interfaces.event_recorder import EventRecorder
from eksup.utils.logging import get_logger

logger = get_logger(__name__)


class LoggingEventRecorder(EventRecorder):
    """Publishes events as structured log lines."""

    def publish(self, request_id: str, reason: str, message: str) -> None:
        logger.info("upgrade_event", request_id=request_id, reason=reason, message=message)

    def publish_warning(self, request_id: str, reason: str, message: str) -> None:
        logger.warning("upgrade_event", request_id=request_id, reason=reason, message=message)


class ConsoleEventRecorder(LoggingEventRecorder):
    """Logs events and prints them to the console for CLI users."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def publish(self, request_id: str, reason: str, message: str) -> None:
        super().publish(request_id, reason, message)
        self.console.print(f"[green]●[/green] [bold]{reason}[/bold] {message}")

    def publish_warning(self, request_id: str, reason: str, message: str) -> None:
        super().publish_warning(request_id, reason, message)
        self.console.print(f"[yellow]▲[/yellow] [bold]{reason}[/bold] {message}")
