"""Notification sender interface."""

from abc import ABC, abstractmethod


class NotificationSender(ABC):
    """Fire-and-forget message transport (e.g. a chat webhook).

    ``send`` must never raise: delivery failures are logged and dropped so
    notifications cannot block upgrade progress.
    """

    @abstractmethod
    async def send(self, message: str) -> bool:
        """Send a message.

        Args:
            message: Message text (Slack mrkdwn)

        Returns:
            True if the transport accepted the message
        """
