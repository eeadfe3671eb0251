"""Event recorder interface for user-visible lifecycle events."""

from abc import ABC, abstractmethod


class EventRecorder(ABC):
    """Publishes events about an upgrade request.

    Publishing is best effort; implementations log and swallow their own
    failures.
    """

    @abstractmethod
    def publish(self, request_id: str, reason: str, message: str) -> None:
        """Publish a normal event."""

    @abstractmethod
    def publish_warning(self, request_id: str, reason: str, message: str) -> None:
        """Publish a warning event."""
