"""AWS adapter implementing the CloudClients interface."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from eksup.clients.aws_client import DEFAULT_SESSION_NAME, AWSClient
from eksup.core.exceptions import EksupError
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
from eksup.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DESCRIBE_CONCURRENCY = 5

# Assumed-role sessions last one hour; rebuild clients well before that.
CLIENT_TTL_SECONDS = 45 * 60


def _to_update_info(update: dict[str, Any]) -> UpdateInfo:
    return UpdateInfo(
        update_id=update["id"],
        status=update.get("status", "InProgress"),
        update_type=update.get("type"),
        errors=[
            err.get("errorMessage") or err.get("errorCode", "unknown error")
            for err in update.get("errors", [])
        ],
    )


class AWSAdapter(CloudClients):
    """Adapter wrapping AWSClient to implement CloudClients.

    boto3 calls block, so each one runs in a worker thread. Describe calls
    made while listing add-ons and node groups run concurrently, bounded by
    ``max_concurrency``; items whose describe fails are left out of the
    listing.
    """

    def __init__(self, client: AWSClient, max_concurrency: int = DESCRIBE_CONCURRENCY):
        self.client = client
        self.region = client.region
        self.max_concurrency = max_concurrency

    async def _gather_described(
        self, names: list[str], describe: Callable[[str], Awaitable[T]], kind: str
    ) -> list[T]:
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(name: str) -> T:
            async with semaphore:
                return await describe(name)

        results = await asyncio.gather(*(bounded(n) for n in names), return_exceptions=True)

        described: list[T] = []
        for name, result in zip(names, results, strict=True):
            if isinstance(result, EksupError):
                logger.warning(f"{kind}_describe_failed", name=name, error=str(result))
            elif isinstance(result, BaseException):
                raise result
            else:
                described.append(result)
        return described

    async def verify_identity(self) -> Identity:
        response = await asyncio.to_thread(self.client.get_caller_identity)
        return Identity(
            account_id=response["Account"],
            arn=response["Arn"],
            user_id=response.get("UserId"),
        )

    async def describe_cluster(self, cluster_name: str) -> ClusterInfo:
        cluster = await asyncio.to_thread(self.client.describe_cluster, cluster_name)
        return ClusterInfo(
            name=cluster.get("name", cluster_name),
            version=cluster["version"],
            status=cluster.get("status"),
            arn=cluster.get("arn"),
            deletion_protection=cluster.get("deletionProtection"),
        )

    async def update_cluster_version(self, cluster_name: str, version: str) -> str:
        update = await asyncio.to_thread(
            self.client.update_cluster_version, cluster_name, version
        )
        return str(update["id"])

    async def describe_update(
        self,
        cluster_name: str,
        update_id: str,
        addon_name: str | None = None,
        nodegroup_name: str | None = None,
    ) -> UpdateInfo:
        update = await asyncio.to_thread(
            self.client.describe_update,
            cluster_name,
            update_id,
            addon_name,
            nodegroup_name,
        )
        return _to_update_info(update)

    async def list_addons(self, cluster_name: str) -> list[AddonInfo]:
        names = await asyncio.to_thread(self.client.list_addons, cluster_name)

        async def describe(name: str) -> AddonInfo:
            addon = await asyncio.to_thread(self.client.describe_addon, cluster_name, name)
            return AddonInfo(
                name=addon.get("addonName", name),
                version=addon["addonVersion"],
                status=addon.get("status"),
            )

        return await self._gather_described(names, describe, "addon")

    async def list_addon_versions(
        self, addon_name: str, kubernetes_version: str
    ) -> list[AddonVersion]:
        versions = await asyncio.to_thread(
            self.client.describe_addon_versions, addon_name, kubernetes_version
        )
        return [AddonVersion(version=v["version"], default=v["default"]) for v in versions]

    async def update_addon(self, cluster_name: str, addon_name: str, version: str) -> str:
        update = await asyncio.to_thread(
            self.client.update_addon, cluster_name, addon_name, version
        )
        return str(update["id"])

    async def list_nodegroups(self, cluster_name: str) -> list[NodegroupInfo]:
        names = await asyncio.to_thread(self.client.list_nodegroups, cluster_name)

        async def describe(name: str) -> NodegroupInfo:
            nodegroup = await asyncio.to_thread(
                self.client.describe_nodegroup, cluster_name, name
            )
            groups = nodegroup.get("resources", {}).get("autoScalingGroups", [])
            return NodegroupInfo(
                name=nodegroup.get("nodegroupName", name),
                version=nodegroup.get("version"),
                status=nodegroup.get("status"),
                autoscaling_groups=[g["name"] for g in groups if g.get("name")],
            )

        return await self._gather_described(names, describe, "nodegroup")

    async def update_nodegroup_version(
        self, cluster_name: str, nodegroup_name: str, version: str
    ) -> str:
        update = await asyncio.to_thread(
            self.client.update_nodegroup_version, cluster_name, nodegroup_name, version
        )
        return str(update["id"])

    async def get_nodegroup_progress(
        self, cluster_name: str, nodegroup_name: str
    ) -> NodeProgress | None:
        """Count healthy in-service instances against desired capacity."""
        nodegroup = await asyncio.to_thread(
            self.client.describe_nodegroup, cluster_name, nodegroup_name
        )
        group_names = [
            g["name"]
            for g in nodegroup.get("resources", {}).get("autoScalingGroups", [])
            if g.get("name")
        ]
        if not group_names:
            return None

        groups = await asyncio.to_thread(self.client.describe_auto_scaling_groups, group_names)
        healthy = 0
        total = 0
        for group in groups:
            total += group.get("DesiredCapacity", 0)
            healthy += sum(
                1
                for instance in group.get("Instances", [])
                if instance.get("HealthStatus") == "Healthy"
                and instance.get("LifecycleState") == "InService"
            )
        return NodeProgress(healthy=healthy, total=total)

    async def get_insights_summary(self, cluster_name: str) -> InsightsSummary:
        insights = await asyncio.to_thread(self.client.list_insights, cluster_name)
        summary = InsightsSummary()
        for insight in insights:
            state = insight.get("insightStatus", {}).get("status", "UNKNOWN")
            if state == "ERROR":
                summary.critical_count += 1
            elif state == "WARNING":
                summary.warning_count += 1
            elif state == "PASSING":
                summary.passing_count += 1
            else:
                summary.info_count += 1
        return summary


class AWSClientFactory(CloudClientFactory):
    """Builds and caches AWSAdapter instances per region and role.

    Cached adapters are rebuilt after ``ttl_seconds`` so long upgrades never
    run on expired assumed-role credentials.
    """

    def __init__(
        self,
        profile: str | None = None,
        session_name: str = DEFAULT_SESSION_NAME,
        ttl_seconds: float = CLIENT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.profile = profile
        self.session_name = session_name
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: dict[tuple[str, str | None], tuple[AWSAdapter, float]] = {}

    def _build(self, region: str, role_arn: str | None) -> AWSClient:
        if role_arn:
            return AWSClient.from_assumed_role(
                role_arn,
                region=region,
                session_name=self.session_name,
                profile=self.profile,
            )
        return AWSClient(region=region, profile=self.profile)

    async def create(self, region: str, role_arn: str | None = None) -> CloudClients:
        key = (region, role_arn)
        cached = self._cache.get(key)
        if cached is not None and self._clock() - cached[1] < self.ttl_seconds:
            return cached[0]

        client = await asyncio.to_thread(self._build, region, role_arn)
        adapter = AWSAdapter(client)
        self._cache[key] = (adapter, self._clock())
        logger.debug("cloud_clients_created", region=region, role_arn=role_arn)
        return adapter

    def invalidate(self, region: str, role_arn: str | None = None) -> None:
        """Drop a cached adapter so the next call rebuilds credentials."""
        self._cache.pop((region, role_arn), None)
