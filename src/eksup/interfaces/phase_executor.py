"""Phase executor interface."""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from eksup.core.config import PollingConfig
from eksup.core.models import UpgradeRequest, UpgradeStatus
from eksup.interfaces.cloud_provider import CloudClients
from eksup.upgrade.waiter import AsyncStepWaiter, ProgressCallback


@dataclass
class PhaseOutcome:
    """Result of executing one phase.

    ``requeue_after`` of ``0`` asks for an immediate follow-up reconcile,
    ``None`` means nothing more happens until an external change.
    """

    status: UpgradeStatus
    requeue_after: float | None = None


Checkpoint = Callable[[UpgradeStatus], Awaitable[None]]


@dataclass
class ExecutionContext:
    """Dependencies passed to phase executors."""

    cloud: CloudClients
    waiter: AsyncStepWaiter
    polling: PollingConfig
    checkpoint: Checkpoint | None = None
    on_progress: ProgressCallback | None = None

    @property
    def blocking(self) -> bool:
        """Whether executors should wait for steps inside a single call.

        Blocking requires a checkpoint so the step handle is persisted
        before waiting on it.
        """
        return self.polling.blocking and self.checkpoint is not None


class PhaseExecutor(ABC):
    """Executes the work of a single upgrade phase.

    Design Philosophy:
    - Receives a copy of the status and returns the new one; never patches
      the store except through ``context.checkpoint``
    - Resumes a recorded update handle instead of initiating a new mutation
    - Raises the eksup exception taxonomy; the reconciler classifies
    """

    @abstractmethod
    async def execute(
        self,
        request: UpgradeRequest,
        status: UpgradeStatus,
        context: ExecutionContext,
    ) -> PhaseOutcome:
        """Execute the phase.

        Args:
            request: Declared upgrade
            status: Working copy of the persisted status
            context: Execution dependencies

        Returns:
            PhaseOutcome with the new status and requeue delay
        """
