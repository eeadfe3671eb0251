"""Kubernetes minor-version upgrade path planning."""

from eksup.core.exceptions import InvalidVersionError, UpgradeNotPossibleError


def parse_version(version: str) -> tuple[int, int]:
    """Parse a Kubernetes version into (major, minor).

    Patch components are accepted and ignored (``1.30.2`` -> ``(1, 30)``).

    Args:
        version: Version string such as ``1.30``

    Returns:
        Tuple of major and minor version numbers

    Raises:
        InvalidVersionError: If the version is incomplete or any component is not
            plain decimal digits
    """
    parts = version.strip().split(".")
    if len(parts) < 2 or not all(part.isascii() and part.isdigit() for part in parts):
        raise InvalidVersionError(version)

    return int(parts[0]), int(parts[1])


def plan_upgrade_path(current: str, target: str) -> list[str]:
    """Compute the ordered control-plane steps between two versions.

    EKS only upgrades one minor version at a time, so every intermediate
    minor version becomes one step. An empty path means the control plane is
    already at the target ("sync" mode): add-ons and node groups may still
    need work.

    Args:
        current: Current cluster version
        target: Target cluster version

    Returns:
        Minor versions from ``current + 1`` to ``target`` inclusive, ascending

    Raises:
        InvalidVersionError: If either version cannot be parsed
        UpgradeNotPossibleError: On cross-major upgrades or downgrades
    """
    current_major, current_minor = parse_version(current)
    target_major, target_minor = parse_version(target)

    if current_major != target_major:
        raise UpgradeNotPossibleError("Cross-major version upgrades are not supported")

    if target_minor == current_minor:
        return []

    if target_minor < current_minor:
        raise UpgradeNotPossibleError(
            f"Target version {target} is lower than current version {current} "
            "(downgrade not supported)"
        )

    return [f"{current_major}.{minor}" for minor in range(current_minor + 1, target_minor + 1)]
