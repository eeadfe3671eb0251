"""Control plane phase: step through the upgrade path one minor version at a time."""

from eksup.core.exceptions import StepFailedError
from eksup.core.models import (
    ControlPlaneStatus,
    UpgradePhase,
    UpgradeRequest,
    UpgradeStatus,
    utc_now,
)
from eksup.interfaces.phase_executor import ExecutionContext, PhaseExecutor, PhaseOutcome
from eksup.phases.common import advance, elapsed_since, to_step_status
from eksup.upgrade.waiter import StepState, StepStatus
from eksup.utils.logging import get_logger

logger = get_logger(__name__)


class ControlPlaneExecutor(PhaseExecutor):
    """Upgrades the control plane, one path step per update.

    A recorded ``update_id`` is always polled, never re-initiated.
    """

    async def execute(
        self,
        request: UpgradeRequest,
        status: UpgradeStatus,
        context: ExecutionContext,
    ) -> PhaseOutcome:
        cp = status.phases.control_plane
        if cp is None:
            cp = status.phases.control_plane = ControlPlaneStatus()

        path = status.upgrade_path
        if cp.current_step < 1 or cp.current_step > cp.total_steps:
            return self._finish(request, status)

        step_version = path[cp.current_step - 1]
        cluster_name = request.cluster_name
        operation = f"Control plane upgrade to {step_version}"
        timeout = request.timeouts.control_plane_minutes * 60
        interval = context.polling.control_plane_seconds

        async def poll(update_id: str) -> StepStatus:
            update = await context.cloud.describe_update(cluster_name, update_id)
            return to_step_status(update)

        async def initiate() -> str:
            return await context.cloud.update_cluster_version(cluster_name, step_version)

        async def record(update_id: str) -> None:
            self._record_update(status, cp, step_version, update_id)
            if context.checkpoint is not None:
                await context.checkpoint(status)

        try:
            if context.blocking:
                if cp.update_id:
                    await context.waiter.resume(
                        f"{operation} (update: {cp.update_id})",
                        cp.update_id,
                        poll,
                        timeout,
                        interval,
                        elapsed_offset=elapsed_since(cp.started_at),
                        on_progress=context.on_progress,
                    )
                else:
                    await context.waiter.wait(
                        operation,
                        initiate,
                        poll,
                        timeout,
                        interval,
                        on_initiated=record,
                        on_progress=context.on_progress,
                    )
                return self._complete_step(request, status, cp, step_version)

            if not cp.update_id:
                await record(await initiate())
                return PhaseOutcome(status, interval)

            result = await context.waiter.check(
                f"{operation} (update: {cp.update_id})",
                cp.update_id,
                poll,
                elapsed_since(cp.started_at),
                timeout,
            )
        except StepFailedError:
            cp.update_id = None
            raise

        if result.state == StepState.SUCCEEDED:
            return self._complete_step(request, status, cp, step_version)
        return PhaseOutcome(status, interval)

    def _record_update(
        self,
        status: UpgradeStatus,
        cp: ControlPlaneStatus,
        step_version: str,
        update_id: str,
    ) -> None:
        cp.target_version = step_version
        cp.update_id = update_id
        cp.started_at = utc_now()
        status.message = (
            f"Upgrading control plane to {step_version} "
            f"(step {cp.current_step}/{cp.total_steps})"
        )
        logger.info(
            "control_plane_update_started",
            step=cp.current_step,
            total_steps=cp.total_steps,
            version=step_version,
            update_id=update_id,
        )

    def _complete_step(
        self,
        request: UpgradeRequest,
        status: UpgradeStatus,
        cp: ControlPlaneStatus,
        step_version: str,
    ) -> PhaseOutcome:
        logger.info(
            "control_plane_step_completed",
            step=cp.current_step,
            total_steps=cp.total_steps,
            version=step_version,
        )
        status.current_version = step_version
        cp.current_step += 1
        cp.update_id = None
        cp.target_version = None
        cp.started_at = None

        if cp.current_step > cp.total_steps:
            return self._finish(request, status)
        return PhaseOutcome(status, 0)

    def _finish(self, request: UpgradeRequest, status: UpgradeStatus) -> PhaseOutcome:
        cp = status.phases.control_plane
        if cp is not None:
            cp.completed_at = utc_now()
            cp.update_id = None
            cp.target_version = None

        next_phase = advance(status, request, after=UpgradePhase.UPGRADING_CONTROL_PLANE)
        if next_phase == UpgradePhase.COMPLETED:
            return PhaseOutcome(status, None)
        return PhaseOutcome(status, 0)
