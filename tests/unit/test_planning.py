"""Unit tests for upgrade planning.

This module tests:
- EKS add-on version parsing and comparison
- Add-on target selection with overrides and defaults
- Node group selection
- The complete upgrade plan
"""

import pytest

from eksup.core.exceptions import ClusterNotFoundError, UpgradeNotPossibleError
from eksup.interfaces.cloud_types import AddonVersion
from eksup.upgrade.planning import (
    compare_addon_versions,
    create_upgrade_plan,
    latest_compatible_version,
    parse_addon_version,
    plan_addon_upgrades,
    plan_nodegroup_upgrades,
)


class TestAddonVersions:
    """Tests for add-on version helpers."""

    @pytest.mark.parametrize(
        ("version", "expected"),
        [
            ("v1.11.3-eksbuild.2", (1, 11, 3, 2)),
            ("v1.19.0", (1, 19, 0, 0)),
            ("1.2.3-eksbuild.10", (1, 2, 3, 10)),
            ("latest", None),
            ("v1.2-eksbuild.1", None),
            ("v1.2.3-eksbuild.x", None),
        ],
    )
    def test_parse_addon_version(self, version, expected) -> None:
        """Test add-on versions parse into comparable tuples."""
        assert parse_addon_version(version) == expected

    def test_compare_numerically(self) -> None:
        """Test build numbers compare numerically, not lexically."""
        assert compare_addon_versions("v1.11.3-eksbuild.10", "v1.11.3-eksbuild.9") > 0
        assert compare_addon_versions("v1.9.0-eksbuild.1", "v1.10.0-eksbuild.1") < 0
        assert compare_addon_versions("v1.9.0", "v1.9.0") == 0

    def test_compare_falls_back_to_strings(self) -> None:
        """Test unparseable versions compare as strings."""
        assert compare_addon_versions("beta", "alpha") > 0

    def test_latest_prefers_default(self) -> None:
        """Test the AWS default version wins over newer versions."""
        versions = [
            AddonVersion("v1.19.2-eksbuild.1"),
            AddonVersion("v1.18.5-eksbuild.3", default=True),
        ]
        assert latest_compatible_version(versions) == "v1.18.5-eksbuild.3"

    def test_latest_without_default(self) -> None:
        """Test the newest version is chosen when no default is flagged."""
        versions = [
            AddonVersion("v1.9.0-eksbuild.1"),
            AddonVersion("v1.10.1-eksbuild.2"),
            AddonVersion("v1.10.1-eksbuild.1"),
        ]
        assert latest_compatible_version(versions) == "v1.10.1-eksbuild.2"

    def test_latest_empty(self) -> None:
        """Test no versions yields None."""
        assert latest_compatible_version([]) is None


class TestPlanAddonUpgrades:
    """Tests for plan_addon_upgrades."""

    @pytest.mark.asyncio
    async def test_default_target(self, fake_cloud) -> None:
        """Test add-ons upgrade to the default compatible version."""
        upgrades, skipped = await plan_addon_upgrades(fake_cloud, "prod-east", "1.34", {})

        assert [(a.name, target) for a, target in upgrades] == [
            ("vpc-cni", "v1.19.2-eksbuild.1")
        ]
        assert skipped == 0

    @pytest.mark.asyncio
    async def test_override_wins(self, fake_cloud) -> None:
        """Test a per-add-on override replaces the computed target."""
        upgrades, _ = await plan_addon_upgrades(
            fake_cloud, "prod-east", "1.34", {"vpc-cni": "v1.18.9-eksbuild.4"}
        )

        assert upgrades[0][1] == "v1.18.9-eksbuild.4"

    @pytest.mark.asyncio
    async def test_skip_current_and_incompatible(self, fake_cloud) -> None:
        """Test add-ons already at target or without versions are skipped."""
        fake_cloud.add_addon("coredns", "v1.11.4-eksbuild.2", ["v1.11.4-eksbuild.2"])
        fake_cloud.add_addon("custom", "v0.1.0", [])

        upgrades, skipped = await plan_addon_upgrades(fake_cloud, "prod-east", "1.34", {})

        assert [a.name for a, _ in upgrades] == ["vpc-cni"]
        assert skipped == 2


class TestPlanNodegroupUpgrades:
    """Tests for plan_nodegroup_upgrades."""

    @pytest.mark.asyncio
    async def test_only_outdated_nodegroups(self, fake_cloud) -> None:
        """Test node groups at the target are left alone."""
        fake_cloud.add_nodegroup("system", "1.34")

        upgrades = await plan_nodegroup_upgrades(fake_cloud, "prod-east", "1.34")

        assert [ng.name for ng in upgrades] == ["workers"]


class TestCreateUpgradePlan:
    """Tests for create_upgrade_plan."""

    @pytest.mark.asyncio
    async def test_full_plan(self, fake_cloud) -> None:
        """Test the plan covers control plane, add-ons and node groups."""
        plan = await create_upgrade_plan(fake_cloud, "prod-east", "1.34")

        assert plan.current_version == "1.32"
        assert plan.upgrade_path == ["1.33", "1.34"]
        assert len(plan.addon_upgrades) == 1
        assert len(plan.nodegroup_upgrades) == 1
        assert not plan.is_empty()

    @pytest.mark.asyncio
    async def test_empty_plan(self, fake_cloud) -> None:
        """Test a fully upgraded cluster yields an empty plan."""
        fake_cloud.cluster.version = "1.34"
        fake_cloud.addons.clear()
        fake_cloud.nodegroups.clear()

        plan = await create_upgrade_plan(fake_cloud, "prod-east", "1.34")

        assert plan.is_empty()

    @pytest.mark.asyncio
    async def test_downgrade_rejected(self, fake_cloud) -> None:
        """Test downgrades are rejected before listing components."""
        fake_cloud.cluster.version = "1.35"

        with pytest.raises(UpgradeNotPossibleError):
            await create_upgrade_plan(fake_cloud, "prod-east", "1.34")

        assert ("list_addons", "prod-east") not in fake_cloud.calls

    @pytest.mark.asyncio
    async def test_missing_cluster(self, fake_cloud) -> None:
        """Test a missing cluster propagates ClusterNotFoundError."""
        fake_cloud.errors["describe_cluster"] = ClusterNotFoundError("prod-east")

        with pytest.raises(ClusterNotFoundError):
            await create_upgrade_plan(fake_cloud, "prod-east", "1.34")
