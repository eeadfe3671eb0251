"""Unit tests for the planning, preflight and component phase executors."""

import pytest
import pytest_asyncio

from eksup.checks.check_registry import CheckRegistry
from eksup.core.config import PollingConfig
from eksup.core.exceptions import StepFailedError
from eksup.core.models import ComponentStatus, UpgradePhase, UpgradeStatus
from eksup.interfaces.check import Check, CheckContext, CheckOutcome, CheckResult
from eksup.interfaces.phase_executor import ExecutionContext
from eksup.phases.components import AddonsExecutor, NodeGroupsExecutor
from eksup.phases.planning import PlanningExecutor
from eksup.phases.preflight import DRY_RUN_MESSAGE, PreflightExecutor
from eksup.upgrade.waiter import AsyncStepWaiter


async def _no_sleep(seconds: float) -> None:
    return None


class FailingCheck(Check):
    @property
    def name(self) -> str:
        return "Always Fails"

    async def execute(self, context: CheckContext) -> CheckResult:
        return CheckResult(self.name, CheckOutcome.FAIL, "nope")


@pytest.fixture
def context(fake_cloud) -> ExecutionContext:
    return ExecutionContext(
        cloud=fake_cloud,
        waiter=AsyncStepWaiter(sleep=_no_sleep),
        polling=PollingConfig(addon_seconds=3, nodegroup_seconds=4),
    )


@pytest_asyncio.fixture
async def planned_status(sample_request, context) -> UpgradeStatus:
    """Status right after planning 1.32 -> 1.34."""
    status = UpgradeStatus(phase=UpgradePhase.PLANNING)
    outcome = await PlanningExecutor().execute(sample_request, status, context)
    return outcome.status


class TestPlanningExecutor:
    """Tests for PlanningExecutor."""

    @pytest.mark.asyncio
    async def test_records_plan(self, sample_request, context) -> None:
        """Test the plan is written into the phase statuses."""
        status = UpgradeStatus(phase=UpgradePhase.PLANNING)

        outcome = await PlanningExecutor().execute(sample_request, status, context)

        phases = outcome.status.phases
        assert outcome.status.phase == UpgradePhase.PREFLIGHT_CHECKING
        assert outcome.requeue_after == 0
        assert phases.planning.upgrade_path == ["1.33", "1.34"]
        assert phases.control_plane.current_step == 1
        assert phases.control_plane.total_steps == 2
        assert [(a.name, a.target_version) for a in phases.addons] == [
            ("vpc-cni", "v1.19.2-eksbuild.1")
        ]
        assert [(n.name, n.target_version) for n in phases.nodegroups] == [("workers", "1.34")]
        assert outcome.status.get_condition("Ready").reason == "UpgradeInProgress"

    @pytest.mark.asyncio
    async def test_empty_plan_completes(self, sample_request, fake_cloud, context) -> None:
        """Test nothing to do completes with AlreadyUpToDate."""
        fake_cloud.cluster.version = "1.34"
        fake_cloud.addons.clear()
        fake_cloud.nodegroups.clear()

        outcome = await PlanningExecutor().execute(
            sample_request, UpgradeStatus(phase=UpgradePhase.PLANNING), context
        )

        assert outcome.status.phase == UpgradePhase.COMPLETED
        assert outcome.requeue_after is None
        assert outcome.status.get_condition("Ready").reason == "AlreadyUpToDate"


class TestPreflightExecutor:
    """Tests for PreflightExecutor."""

    @pytest.mark.asyncio
    async def test_passing_checks_start_upgrade(
        self, sample_request, context, planned_status
    ) -> None:
        """Test passing checks move to the control plane phase."""
        outcome = await PreflightExecutor().execute(sample_request, planned_status, context)

        assert outcome.status.phase == UpgradePhase.UPGRADING_CONTROL_PLANE
        assert [c.status for c in outcome.status.phases.preflight.checks] == ["Pass", "Pass"]

    @pytest.mark.asyncio
    async def test_failure_fails_upgrade(self, sample_request, context, planned_status) -> None:
        """Test a mandatory failure fails the request."""
        registry = CheckRegistry()
        registry.register(FailingCheck())

        outcome = await PreflightExecutor(registry).execute(
            sample_request, planned_status, context
        )

        assert outcome.status.phase == UpgradePhase.FAILED
        assert "[Always Fails] nope" in outcome.status.message
        assert outcome.requeue_after is None

    @pytest.mark.asyncio
    async def test_failure_ignored(self, sample_request, context, planned_status) -> None:
        """Test ignore_preflight_failures lets the upgrade continue."""
        registry = CheckRegistry()
        registry.register(FailingCheck())
        request = sample_request.model_copy(update={"ignore_preflight_failures": True})

        outcome = await PreflightExecutor(registry).execute(request, planned_status, context)

        assert outcome.status.phase == UpgradePhase.UPGRADING_CONTROL_PLANE

    @pytest.mark.asyncio
    async def test_dry_run_stops(self, sample_request, fake_cloud, context, planned_status) -> None:
        """Test dry runs complete after preflight without mutations."""
        request = sample_request.model_copy(update={"dry_run": True})

        outcome = await PreflightExecutor().execute(request, planned_status, context)

        assert outcome.status.phase == UpgradePhase.COMPLETED
        assert outcome.status.message == DRY_RUN_MESSAGE
        assert fake_cloud.mutations() == []

    @pytest.mark.asyncio
    async def test_skips_to_addons(self, sample_request, fake_cloud, context) -> None:
        """Test a control plane already at target goes straight to add-ons."""
        fake_cloud.cluster.version = "1.34"
        planned = await PlanningExecutor().execute(
            sample_request, UpgradeStatus(phase=UpgradePhase.PLANNING), context
        )

        outcome = await PreflightExecutor().execute(sample_request, planned.status, context)

        assert outcome.status.phase == UpgradePhase.UPGRADING_ADDONS


class TestComponentExecutors:
    """Tests for AddonsExecutor and NodeGroupsExecutor."""

    @pytest.mark.asyncio
    async def test_addon_initiate_then_complete(
        self, sample_request, fake_cloud, context, planned_status
    ) -> None:
        """Test an add-on update is started, polled and marked completed."""
        executor = AddonsExecutor()

        started = await executor.execute(sample_request, planned_status, context)
        addon = started.status.phases.addons[0]
        assert addon.status == ComponentStatus.IN_PROGRESS
        assert addon.update_id == "addon-1"
        assert started.requeue_after == 3

        finished = await executor.execute(sample_request, started.status, context)

        addon = finished.status.phases.addons[0]
        assert addon.status == ComponentStatus.COMPLETED
        assert addon.completed_at is not None
        assert fake_cloud.addons["vpc-cni"].version == "v1.19.2-eksbuild.1"
        assert finished.status.phase == UpgradePhase.UPGRADING_NODE_GROUPS
        assert finished.requeue_after == 0

    @pytest.mark.asyncio
    async def test_addons_run_sequentially(
        self, sample_request, fake_cloud, context
    ) -> None:
        """Test the next add-on starts only after the previous one finished."""
        fake_cloud.add_addon("coredns", "v1.11.1-eksbuild.1", ["v1.11.4-eksbuild.2"])
        planned = await PlanningExecutor().execute(
            sample_request, UpgradeStatus(phase=UpgradePhase.PLANNING), context
        )
        executor = AddonsExecutor()

        status = (await executor.execute(sample_request, planned.status, context)).status
        assert len(fake_cloud.mutations("update_addon")) == 1

        status = (await executor.execute(sample_request, status, context)).status
        status = (await executor.execute(sample_request, status, context)).status

        assert [c[1] for c in fake_cloud.mutations("update_addon")] == ["vpc-cni", "coredns"]
        assert status.phases.addons[1].status == ComponentStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_nodegroup_progress_message(
        self, sample_request, fake_cloud, context, planned_status
    ) -> None:
        """Test node group polls report instance progress in the message."""
        fake_cloud.polls_to_complete = 2
        executor = NodeGroupsExecutor()
        started = await executor.execute(sample_request, planned_status, context)

        polled = await executor.execute(sample_request, started.status, context)

        assert polled.status.message == "Upgrading nodegroup workers: 2/3 nodes ready"
        assert polled.requeue_after == 4

    @pytest.mark.asyncio
    async def test_nodegroup_failure_marks_component(
        self, sample_request, fake_cloud, context, planned_status
    ) -> None:
        """Test a failed node group update marks the component failed."""
        fake_cloud.fail_updates = True
        executor = NodeGroupsExecutor()
        started = await executor.execute(sample_request, planned_status, context)

        with pytest.raises(StepFailedError):
            await executor.execute(sample_request, started.status, context)

        nodegroup = started.status.phases.nodegroups[0]
        assert nodegroup.status == ComponentStatus.FAILED
        assert nodegroup.update_id is None

    @pytest.mark.asyncio
    async def test_last_component_completes_upgrade(
        self, sample_request, context, planned_status
    ) -> None:
        """Test finishing the last node group completes the upgrade."""
        executor = NodeGroupsExecutor()
        started = await executor.execute(sample_request, planned_status, context)

        finished = await executor.execute(sample_request, started.status, context)

        assert finished.status.phase == UpgradePhase.COMPLETED
        assert finished.status.current_version == "1.34"
        assert finished.requeue_after is None
