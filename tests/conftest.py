"""Pytest configuration and shared fixtures."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import pytest

from eksup.adapters.memory_store import InMemoryStatusStore
from eksup.core.config import PollingConfig, ReconcilerConfig
from eksup.core.models import NotificationPolicy, UpgradeRequest
from eksup.interfaces.cloud_provider import CloudClientFactory, CloudClients
from eksup.interfaces.cloud_types import (
    AddonInfo,
    AddonVersion,
    ClusterInfo,
    Identity,
    InsightsSummary,
    NodegroupInfo,
    NodeProgress,
    UpdateInfo,
)
from eksup.interfaces.event_recorder import EventRecorder
from eksup.interfaces.notifier import NotificationSender
from eksup.notify.dispatcher import NotificationDispatcher
from eksup.phases import default_executors
from eksup.upgrade.reconciler import AwaitExternalChange, PhaseReconciler, RequeueDirective
from eksup.upgrade.waiter import AsyncStepWaiter
from eksup.utils.metrics import MetricsRecorder


@dataclass
class FakeUpdate:
    """In-flight update tracked by FakeCloudClients."""

    apply: Callable[[], None]
    remaining_polls: int
    status: str = "InProgress"
    errors: list[str] = field(default_factory=list)


class FakeCloudClients(CloudClients):
    """In-memory EKS that completes updates after ``polls_to_complete`` polls."""

    def __init__(
        self,
        cluster_name: str = "prod-east",
        version: str = "1.32",
        region: str = "us-east-1",
        polls_to_complete: int = 1,
    ):
        self.region = region
        self.cluster = ClusterInfo(
            name=cluster_name,
            version=version,
            status="ACTIVE",
            arn=f"arn:aws:eks:{region}:123456789012:cluster/{cluster_name}",
            deletion_protection=True,
        )
        self.addons: dict[str, AddonInfo] = {}
        self.addon_versions: dict[str, list[AddonVersion]] = {}
        self.nodegroups: dict[str, NodegroupInfo] = {}
        self.insights = InsightsSummary(passing_count=4)
        self.identity = Identity(
            account_id="123456789012",
            arn="arn:aws:sts::123456789012:assumed-role/eksup/eksup-session",
        )
        self.polls_to_complete = polls_to_complete
        self.fail_updates = False
        self.errors: dict[str, Exception] = {}
        self.updates: dict[str, FakeUpdate] = {}
        self.calls: list[tuple[str, ...]] = []

    def add_addon(self, name: str, version: str, available: list[str]) -> None:
        """Install an add-on; the last available version is the default."""
        self.addons[name] = AddonInfo(name=name, version=version, status="ACTIVE")
        self.addon_versions[name] = [
            AddonVersion(version=v, default=(i == len(available) - 1))
            for i, v in enumerate(available)
        ]

    def add_nodegroup(self, name: str, version: str) -> None:
        self.nodegroups[name] = NodegroupInfo(
            name=name, version=version, status="ACTIVE", autoscaling_groups=[f"eks-{name}-asg"]
        )

    def mutations(self, name: str | None = None) -> list[tuple[str, ...]]:
        """Recorded mutating calls, optionally filtered by method name."""
        return [
            c for c in self.calls if c[0].startswith("update_") and (name is None or c[0] == name)
        ]

    def _raise_if_configured(self, method: str) -> None:
        error = self.errors.get(method)
        if error is not None:
            raise error

    def _start(self, prefix: str, apply: Callable[[], None]) -> str:
        update_id = f"{prefix}-{len(self.updates) + 1}"
        self.updates[update_id] = FakeUpdate(apply=apply, remaining_polls=self.polls_to_complete)
        return update_id

    async def verify_identity(self) -> Identity:
        self.calls.append(("verify_identity",))
        self._raise_if_configured("verify_identity")
        return self.identity

    async def describe_cluster(self, cluster_name: str) -> ClusterInfo:
        self.calls.append(("describe_cluster", cluster_name))
        self._raise_if_configured("describe_cluster")
        return self.cluster

    async def update_cluster_version(self, cluster_name: str, version: str) -> str:
        self.calls.append(("update_cluster_version", version))
        self._raise_if_configured("update_cluster_version")

        def apply() -> None:
            self.cluster.version = version

        return self._start("cp", apply)

    async def describe_update(
        self,
        cluster_name: str,
        update_id: str,
        addon_name: str | None = None,
        nodegroup_name: str | None = None,
    ) -> UpdateInfo:
        self.calls.append(("describe_update", update_id))
        self._raise_if_configured("describe_update")
        update = self.updates[update_id]

        if update.status == "InProgress":
            update.remaining_polls -= 1
            if update.remaining_polls <= 0:
                if self.fail_updates:
                    update.status = "Failed"
                    update.errors = ["NodeCreationFailure: instances failed to join"]
                else:
                    update.apply()
                    update.status = "Successful"

        return UpdateInfo(update_id=update_id, status=update.status, errors=list(update.errors))

    async def list_addons(self, cluster_name: str) -> list[AddonInfo]:
        self.calls.append(("list_addons", cluster_name))
        return list(self.addons.values())

    async def list_addon_versions(
        self, addon_name: str, kubernetes_version: str
    ) -> list[AddonVersion]:
        return self.addon_versions.get(addon_name, [])

    async def update_addon(self, cluster_name: str, addon_name: str, version: str) -> str:
        self.calls.append(("update_addon", addon_name, version))
        self._raise_if_configured("update_addon")

        def apply() -> None:
            self.addons[addon_name].version = version

        return self._start("addon", apply)

    async def list_nodegroups(self, cluster_name: str) -> list[NodegroupInfo]:
        self.calls.append(("list_nodegroups", cluster_name))
        return list(self.nodegroups.values())

    async def update_nodegroup_version(
        self, cluster_name: str, nodegroup_name: str, version: str
    ) -> str:
        self.calls.append(("update_nodegroup_version", nodegroup_name, version))
        self._raise_if_configured("update_nodegroup_version")

        def apply() -> None:
            self.nodegroups[nodegroup_name].version = version

        return self._start("ng", apply)

    async def get_nodegroup_progress(
        self, cluster_name: str, nodegroup_name: str
    ) -> NodeProgress | None:
        return NodeProgress(healthy=2, total=3)

    async def get_insights_summary(self, cluster_name: str) -> InsightsSummary:
        self._raise_if_configured("get_insights_summary")
        return self.insights


class FakeCloudClientFactory(CloudClientFactory):
    """Hands out a single FakeCloudClients and records requested credentials.

    ``builds`` counts credential builds: a key is built once until invalidated.
    """

    def __init__(self, cloud: FakeCloudClients):
        self.cloud = cloud
        self.created: list[tuple[str, str | None]] = []
        self.invalidated: list[tuple[str, str | None]] = []
        self.builds = 0
        self._cached: set[tuple[str, str | None]] = set()

    async def create(self, region: str, role_arn: str | None = None) -> CloudClients:
        self.created.append((region, role_arn))
        if (region, role_arn) not in self._cached:
            self._cached.add((region, role_arn))
            self.builds += 1
        return self.cloud

    def invalidate(self, region: str, role_arn: str | None = None) -> None:
        self.invalidated.append((region, role_arn))
        self._cached.discard((region, role_arn))


class RecordingSender(NotificationSender):
    """Collects notification messages instead of sending them."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    async def send(self, message: str) -> bool:
        self.messages.append(message)
        return True


class RecordingEventRecorder(EventRecorder):
    """Collects published events as (type, reason, message)."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, str]] = []

    def publish(self, request_id: str, reason: str, message: str) -> None:
        self.events.append(("Normal", reason, message))

    def publish_warning(self, request_id: str, reason: str, message: str) -> None:
        self.events.append(("Warning", reason, message))

    def reasons(self) -> list[str]:
        return [reason for _, reason, _ in self.events]


async def _no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def fake_cloud() -> FakeCloudClients:
    """Cluster at 1.32 with one upgradable add-on and one node group."""
    cloud = FakeCloudClients()
    cloud.add_addon(
        "vpc-cni", "v1.18.0-eksbuild.1", ["v1.18.0-eksbuild.1", "v1.19.2-eksbuild.1"]
    )
    cloud.add_nodegroup("workers", "1.32")
    return cloud


@pytest.fixture
def cloud_factory(fake_cloud: FakeCloudClients) -> FakeCloudClientFactory:
    return FakeCloudClientFactory(fake_cloud)


@pytest.fixture
def store() -> InMemoryStatusStore:
    return InMemoryStatusStore()


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def events() -> RecordingEventRecorder:
    return RecordingEventRecorder()


@pytest.fixture
def metrics() -> MetricsRecorder:
    return MetricsRecorder()


@pytest.fixture
def sample_request() -> UpgradeRequest:
    """Provide a live upgrade request from 1.32 to 1.34."""
    return UpgradeRequest(
        request_id="prod-east-upgrade",
        cluster_name="prod-east",
        region="us-east-1",
        assume_role_arn="arn:aws:iam::123456789012:role/eksup",
        target_version="1.34",
        notification=NotificationPolicy(on_upgrade=True, on_dry_run=False),
    )


@pytest.fixture
def make_reconciler(
    cloud_factory: FakeCloudClientFactory,
    store: InMemoryStatusStore,
    sender: RecordingSender,
    events: RecordingEventRecorder,
    metrics: MetricsRecorder,
) -> Callable[..., PhaseReconciler]:
    """Factory for reconcilers wired to the shared fakes."""

    def _make(
        config: ReconcilerConfig | None = None,
        polling: PollingConfig | None = None,
        status_store=None,
    ) -> PhaseReconciler:
        return PhaseReconciler(
            cloud_factory=cloud_factory,
            store=status_store if status_store is not None else store,
            executors=default_executors(),
            waiter=AsyncStepWaiter(sleep=_no_sleep),
            metrics=metrics,
            notifier=NotificationDispatcher(sender),
            events=events,
            config=config,
            polling=polling,
        )

    return _make


@pytest.fixture
def drive() -> Callable[[PhaseReconciler, UpgradeRequest], Awaitable[list[RequeueDirective]]]:
    """Reconcile without sleeping until the request awaits an external change."""

    async def _drive(
        reconciler: PhaseReconciler, request: UpgradeRequest, max_calls: int = 50
    ) -> list[RequeueDirective]:
        directives: list[RequeueDirective] = []
        for _ in range(max_calls):
            directive = await reconciler.reconcile(request)
            directives.append(directive)
            if isinstance(directive, AwaitExternalChange):
                return directives
        raise AssertionError(f"request did not settle within {max_calls} reconciles")

    return _drive
