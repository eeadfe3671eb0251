"""Preflight checks run before any cluster mutation."""

from eksup.checks.check_registry import CheckRegistry
from eksup.checks.cluster_checks import ClusterInsightsCheck, DeletionProtectionCheck


def default_registry() -> CheckRegistry:
    """Registry with the built-in preflight checks."""
    registry = CheckRegistry()
    registry.register(ClusterInsightsCheck())
    registry.register(DeletionProtectionCheck())
    return registry


__all__ = [
    "CheckRegistry",
    "ClusterInsightsCheck",
    "DeletionProtectionCheck",
    "default_registry",
]
