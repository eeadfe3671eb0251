"""Upgrade planning: control-plane path, add-on targets and node groups."""

import functools
from dataclasses import dataclass, field

from eksup.interfaces.cloud_provider import CloudClients
from eksup.interfaces.cloud_types import AddonInfo, AddonVersion, NodegroupInfo
from eksup.upgrade.version import plan_upgrade_path
from eksup.utils.logging import get_logger

logger = get_logger(__name__)

EKSBUILD_SEPARATOR = "-eksbuild."


def parse_addon_version(version: str) -> tuple[int, int, int, int] | None:
    """Parse an EKS add-on version such as ``v1.11.3-eksbuild.2``.

    Args:
        version: Add-on version string

    Returns:
        (major, minor, patch, build) or None if the format is not recognized
    """
    text = version[1:] if version.startswith("v") else version

    build = 0
    if EKSBUILD_SEPARATOR in text:
        text, _, build_text = text.partition(EKSBUILD_SEPARATOR)
        if not build_text.isdigit():
            return None
        build = int(build_text)

    parts = text.split(".")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return None

    return int(parts[0]), int(parts[1]), int(parts[2]), build


def compare_addon_versions(a: str, b: str) -> int:
    """Compare add-on versions numerically, falling back to string order.

    Returns:
        Negative if a < b, zero if equal, positive if a > b
    """
    parsed_a, parsed_b = parse_addon_version(a), parse_addon_version(b)
    left: tuple | str = a
    right: tuple | str = b
    if parsed_a is not None and parsed_b is not None:
        left, right = parsed_a, parsed_b
    return (left > right) - (left < right)


def latest_compatible_version(versions: list[AddonVersion]) -> str | None:
    """Pick the version to upgrade to: the AWS default, else the newest."""
    if not versions:
        return None

    default = next((v for v in versions if v.default), None)
    if default is not None:
        return default.version

    newest = sorted(
        versions,
        key=functools.cmp_to_key(lambda x, y: compare_addon_versions(x.version, y.version)),
    )[-1]
    return newest.version


@dataclass
class UpgradePlan:
    """Everything that needs to change to reach the target version."""

    current_version: str
    target_version: str
    upgrade_path: list[str] = field(default_factory=list)
    addon_upgrades: list[tuple[AddonInfo, str]] = field(default_factory=list)
    nodegroup_upgrades: list[NodegroupInfo] = field(default_factory=list)
    skipped_addons: int = 0

    def is_empty(self) -> bool:
        """Whether every component is already at the target."""
        return not (self.upgrade_path or self.addon_upgrades or self.nodegroup_upgrades)


async def plan_addon_upgrades(
    cloud: CloudClients,
    cluster_name: str,
    target_version: str,
    overrides: dict[str, str],
) -> tuple[list[tuple[AddonInfo, str]], int]:
    """Decide the target version of every installed add-on.

    An override wins; otherwise the latest version compatible with the
    target Kubernetes version is used. Add-ons with no compatible version or
    already at their target are skipped.

    Returns:
        List of (add-on, target version) and number of skipped add-ons
    """
    addons = await cloud.list_addons(cluster_name)
    upgrades: list[tuple[AddonInfo, str]] = []
    skipped = 0

    for addon in addons:
        addon_target = overrides.get(addon.name)
        if addon_target is None:
            versions = await cloud.list_addon_versions(addon.name, target_version)
            addon_target = latest_compatible_version(versions)

        if addon_target is None:
            logger.warning(
                "addon_no_compatible_version",
                addon_name=addon.name,
                kubernetes_version=target_version,
            )
            skipped += 1
        elif addon_target == addon.version:
            skipped += 1
        else:
            upgrades.append((addon, addon_target))

    logger.info(
        "addon_plan_created",
        cluster_name=cluster_name,
        total=len(addons),
        upgrades=len(upgrades),
        skipped=skipped,
    )
    return upgrades, skipped


async def plan_nodegroup_upgrades(
    cloud: CloudClients, cluster_name: str, target_version: str
) -> list[NodegroupInfo]:
    """Managed node groups not yet running the target version."""
    nodegroups = await cloud.list_nodegroups(cluster_name)
    upgrades = [ng for ng in nodegroups if ng.version != target_version]

    logger.info(
        "nodegroup_plan_created",
        cluster_name=cluster_name,
        total=len(nodegroups),
        upgrades=len(upgrades),
    )
    return upgrades


async def create_upgrade_plan(
    cloud: CloudClients,
    cluster_name: str,
    target_version: str,
    addon_overrides: dict[str, str] | None = None,
) -> UpgradePlan:
    """Build the full upgrade plan for a cluster.

    Raises:
        ClusterNotFoundError: If the cluster does not exist
        InvalidVersionError: If a version cannot be parsed
        UpgradeNotPossibleError: On cross-major upgrades or downgrades
    """
    cluster = await cloud.describe_cluster(cluster_name)
    path = plan_upgrade_path(cluster.version, target_version)

    addon_upgrades, skipped = await plan_addon_upgrades(
        cloud, cluster_name, target_version, addon_overrides or {}
    )
    nodegroup_upgrades = await plan_nodegroup_upgrades(cloud, cluster_name, target_version)

    return UpgradePlan(
        current_version=cluster.version,
        target_version=target_version,
        upgrade_path=path,
        addon_upgrades=addon_upgrades,
        nodegroup_upgrades=nodegroup_upgrades,
        skipped_addons=skipped,
    )
