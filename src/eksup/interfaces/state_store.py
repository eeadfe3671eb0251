"""Status store interface for persisted upgrade status."""

from abc import ABC, abstractmethod

from eksup.core.models import UpgradeStatus


class StatusStore(ABC):
    """Abstract interface for upgrade status persistence.

    The reconciler is the only writer. A patch replaces the whole status for
    a request (last writer wins); there is at most one active upgrade request
    per cluster.

    Implementations raise ``StoreError`` on any storage failure.
    """

    @abstractmethod
    async def get(self, request_id: str) -> UpgradeStatus | None:
        """Load the status of a request.

        Args:
            request_id: Upgrade request identifier

        Returns:
            UpgradeStatus if one was persisted, None otherwise

        Raises:
            StoreError: If retrieval fails
        """

    @abstractmethod
    async def patch(self, request_id: str, status: UpgradeStatus) -> None:
        """Durably record the status of a request.

        Args:
            request_id: Upgrade request identifier
            status: Full new status

        Raises:
            StoreError: If the write fails
        """

    @abstractmethod
    async def delete(self, request_id: str) -> bool:
        """Remove persisted status, allowing a request to start over.

        Returns:
            True if status existed and was removed
        """
