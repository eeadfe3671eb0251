"""Add-on and node group phases: upgrade components one at a time."""

from abc import abstractmethod

from eksup.core.exceptions import EksupError, StepFailedError
from eksup.core.models import (
    ComponentStatus,
    ComponentUpgradeStatus,
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


class ComponentPhaseExecutor(PhaseExecutor):
    """Upgrades the components of a phase sequentially.

    The first component that is neither completed nor skipped is worked on:
    initiated if it has no update handle, polled otherwise.
    """

    phase: UpgradePhase
    kind: str

    @abstractmethod
    def components(self, status: UpgradeStatus) -> list[ComponentUpgradeStatus]:
        """Component records of this phase."""

    @abstractmethod
    async def initiate(
        self, context: ExecutionContext, cluster_name: str, component: ComponentUpgradeStatus
    ) -> str:
        """Start the component update and return its update ID."""

    @abstractmethod
    async def poll(
        self,
        context: ExecutionContext,
        cluster_name: str,
        component: ComponentUpgradeStatus,
        update_id: str,
    ) -> StepStatus:
        """Poll the component update."""

    @abstractmethod
    def timeout_seconds(self, request: UpgradeRequest) -> float:
        """Per-component timeout."""

    @abstractmethod
    def interval_seconds(self, context: ExecutionContext) -> float:
        """Poll interval."""

    async def execute(
        self,
        request: UpgradeRequest,
        status: UpgradeStatus,
        context: ExecutionContext,
    ) -> PhaseOutcome:
        component = next((c for c in self.components(status) if not c.is_done), None)
        if component is None:
            return self._finish(request, status)

        operation = f"{self.kind} {component.name} upgrade to {component.target_version}"
        if component.status == ComponentStatus.FAILED:
            raise StepFailedError(operation, ComponentStatus.FAILED.value)

        cluster_name = request.cluster_name
        timeout = self.timeout_seconds(request)
        interval = self.interval_seconds(context)

        async def start_update() -> str:
            return await self.initiate(context, cluster_name, component)

        async def poll_update(update_id: str) -> StepStatus:
            return await self.poll(context, cluster_name, component, update_id)

        async def record(update_id: str) -> None:
            self._record_update(status, component, update_id)
            if context.checkpoint is not None:
                await context.checkpoint(status)

        try:
            if context.blocking:
                if component.update_id:
                    await context.waiter.resume(
                        operation,
                        component.update_id,
                        poll_update,
                        timeout,
                        interval,
                        elapsed_offset=elapsed_since(component.started_at),
                        on_progress=context.on_progress,
                    )
                else:
                    await context.waiter.wait(
                        operation,
                        start_update,
                        poll_update,
                        timeout,
                        interval,
                        on_initiated=record,
                        on_progress=context.on_progress,
                    )
                return self._complete(request, status, component)

            if not component.update_id:
                await record(await start_update())
                return PhaseOutcome(status, interval)

            result = await context.waiter.check(
                operation,
                component.update_id,
                poll_update,
                elapsed_since(component.started_at),
                timeout,
            )
        except StepFailedError:
            component.status = ComponentStatus.FAILED
            component.update_id = None
            raise

        if result.state == StepState.SUCCEEDED:
            return self._complete(request, status, component)

        if result.progress:
            status.message = f"Upgrading {self.kind.lower()} {component.name}: {result.progress}"
        return PhaseOutcome(status, interval)

    def _record_update(
        self, status: UpgradeStatus, component: ComponentUpgradeStatus, update_id: str
    ) -> None:
        component.update_id = update_id
        component.status = ComponentStatus.IN_PROGRESS
        component.started_at = utc_now()
        status.message = (
            f"Upgrading {self.kind.lower()} {component.name} to {component.target_version}"
        )
        logger.info(
            "component_update_started",
            kind=self.kind,
            component=component.name,
            target_version=component.target_version,
            update_id=update_id,
        )

    def _complete(
        self,
        request: UpgradeRequest,
        status: UpgradeStatus,
        component: ComponentUpgradeStatus,
    ) -> PhaseOutcome:
        component.status = ComponentStatus.COMPLETED
        component.update_id = None
        component.completed_at = utc_now()
        logger.info(
            "component_upgraded",
            kind=self.kind,
            component=component.name,
            version=component.target_version,
        )

        if any(not c.is_done for c in self.components(status)):
            return PhaseOutcome(status, 0)
        return self._finish(request, status)

    def _finish(self, request: UpgradeRequest, status: UpgradeStatus) -> PhaseOutcome:
        next_phase = advance(status, request, after=self.phase)
        if next_phase == UpgradePhase.COMPLETED:
            return PhaseOutcome(status, None)
        return PhaseOutcome(status, 0)


class AddonsExecutor(ComponentPhaseExecutor):
    """Upgrades EKS add-ons to their planned versions."""

    phase = UpgradePhase.UPGRADING_ADDONS
    kind = "Addon"

    def components(self, status: UpgradeStatus) -> list[ComponentUpgradeStatus]:
        return status.phases.addons

    async def initiate(
        self, context: ExecutionContext, cluster_name: str, component: ComponentUpgradeStatus
    ) -> str:
        return await context.cloud.update_addon(
            cluster_name, component.name, component.target_version
        )

    async def poll(
        self,
        context: ExecutionContext,
        cluster_name: str,
        component: ComponentUpgradeStatus,
        update_id: str,
    ) -> StepStatus:
        update = await context.cloud.describe_update(
            cluster_name, update_id, addon_name=component.name
        )
        return to_step_status(update)

    def timeout_seconds(self, request: UpgradeRequest) -> float:
        return request.timeouts.addon_minutes * 60

    def interval_seconds(self, context: ExecutionContext) -> float:
        return context.polling.addon_seconds


class NodeGroupsExecutor(ComponentPhaseExecutor):
    """Rolls managed node groups to the target version.

    Polls also report Auto Scaling instance health for display; the
    update status alone decides completion.
    """

    phase = UpgradePhase.UPGRADING_NODE_GROUPS
    kind = "Nodegroup"

    def components(self, status: UpgradeStatus) -> list[ComponentUpgradeStatus]:
        return status.phases.nodegroups

    async def initiate(
        self, context: ExecutionContext, cluster_name: str, component: ComponentUpgradeStatus
    ) -> str:
        return await context.cloud.update_nodegroup_version(
            cluster_name, component.name, component.target_version
        )

    async def poll(
        self,
        context: ExecutionContext,
        cluster_name: str,
        component: ComponentUpgradeStatus,
        update_id: str,
    ) -> StepStatus:
        update = await context.cloud.describe_update(
            cluster_name, update_id, nodegroup_name=component.name
        )

        progress = None
        if update.status == "InProgress":
            try:
                node_progress = await context.cloud.get_nodegroup_progress(
                    cluster_name, component.name
                )
            except EksupError as e:
                logger.warning(
                    "nodegroup_progress_unavailable", nodegroup=component.name, error=str(e)
                )
            else:
                progress = str(node_progress) if node_progress is not None else None

        return to_step_status(update, progress=progress)

    def timeout_seconds(self, request: UpgradeRequest) -> float:
        return request.timeouts.nodegroup_minutes * 60

    def interval_seconds(self, context: ExecutionContext) -> float:
        return context.polling.nodegroup_seconds
