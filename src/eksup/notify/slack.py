"""Slack incoming-webhook notification sender."""

import aiohttp

from eksup.interfaces.notifier import NotificationSender
from eksup.utils.logging import get_logger

logger = get_logger(__name__)


class SlackNotifier(NotificationSender):
    """Posts messages to a Slack incoming webhook.

    Failures are logged and dropped; nothing is retried.
    """

    def __init__(self, webhook_url: str, timeout_seconds: float = 5.0):
        """Initialize Slack notifier.

        Args:
            webhook_url: Slack incoming webhook URL
            timeout_seconds: Total request timeout
        """
        self.webhook_url = webhook_url
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def send(self, message: str) -> bool:
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(self.webhook_url, json={"text": message}) as resp:
                    if resp.status >= 300:
                        body = await resp.text()
                        logger.warning(
                            "slack_notification_rejected", status=resp.status, body=body[:200]
                        )
                        return False
        except (aiohttp.ClientError, TimeoutError) as e:
            logger.warning("slack_notification_failed", error=str(e))
            return False

        logger.debug("slack_notification_sent")
        return True
