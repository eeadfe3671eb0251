"""In-memory status store."""

from eksup.core.models import UpgradeStatus
from eksup.interfaces.state_store import StatusStore


class InMemoryStatusStore(StatusStore):
    """Keeps status in process memory; used by tests and one-shot dry runs.

    Statuses are copied on the way in and out so callers never share a
    mutable instance with the store.
    """

    def __init__(self) -> None:
        self._statuses: dict[str, UpgradeStatus] = {}
        self.patch_count = 0

    async def get(self, request_id: str) -> UpgradeStatus | None:
        status = self._statuses.get(request_id)
        return status.model_copy(deep=True) if status is not None else None

    async def patch(self, request_id: str, status: UpgradeStatus) -> None:
        self._statuses[request_id] = status.model_copy(deep=True)
        self.patch_count += 1

    async def delete(self, request_id: str) -> bool:
        return self._statuses.pop(request_id, None) is not None
