"""Data types for the CloudClients interface."""

from dataclasses import dataclass, field


@dataclass
class ClusterInfo:
    """EKS cluster information."""

    name: str
    version: str
    status: str | None = None
    arn: str | None = None
    deletion_protection: bool | None = None


@dataclass
class AddonInfo:
    """Installed EKS add-on."""

    name: str
    version: str
    status: str | None = None


@dataclass
class NodegroupInfo:
    """EKS managed node group."""

    name: str
    version: str | None
    status: str | None = None
    autoscaling_groups: list[str] = field(default_factory=list)


@dataclass
class UpdateInfo:
    """Status of an EKS update (cluster, add-on or node group)."""

    update_id: str
    status: str
    update_type: str | None = None
    errors: list[str] = field(default_factory=list)


@dataclass
class NodeProgress:
    """Instance health across a node group's Auto Scaling groups."""

    healthy: int
    total: int

    def __str__(self) -> str:
        return f"{self.healthy}/{self.total} nodes ready"


@dataclass
class InsightsSummary:
    """Counts of EKS upgrade-readiness insights by status."""

    critical_count: int = 0
    warning_count: int = 0
    passing_count: int = 0
    info_count: int = 0

    @property
    def total(self) -> int:
        """Total number of insights."""
        return self.critical_count + self.warning_count + self.passing_count + self.info_count


@dataclass
class Identity:
    """Caller identity returned by STS."""

    account_id: str
    arn: str
    user_id: str | None = None


@dataclass
class AddonVersion:
    """Add-on version available for a Kubernetes version."""

    version: str
    default: bool = False
