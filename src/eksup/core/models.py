"""Core data models for eksup."""

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, model_validator

from eksup.core.exceptions import ConfigurationError


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class UpgradePhase(str, Enum):
    """Upgrade phase enum.

    Exactly one phase is current for an upgrade request. ``COMPLETED`` and
    ``FAILED`` are terminal.
    """

    PENDING = "Pending"
    PLANNING = "Planning"
    PREFLIGHT_CHECKING = "PreflightChecking"
    UPGRADING_CONTROL_PLANE = "UpgradingControlPlane"
    UPGRADING_ADDONS = "UpgradingAddons"
    UPGRADING_NODE_GROUPS = "UpgradingNodeGroups"
    COMPLETED = "Completed"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        """Whether the phase freezes the request."""
        return self in (UpgradePhase.COMPLETED, UpgradePhase.FAILED)


class ComponentStatus(str, Enum):
    """Status of a single add-on or node group upgrade."""

    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    FAILED = "Failed"
    SKIPPED = "Skipped"


# ---------------------------------------------------------------------------
# Upgrade request (desired state)
# ---------------------------------------------------------------------------


class NotificationPolicy(BaseModel):
    """Per-request notification policy."""

    on_upgrade: bool = Field(default=True, description="Notify for live upgrades")
    on_dry_run: bool = Field(default=False, description="Notify for dry-run requests")


class TimeoutOverrides(BaseModel):
    """Per-request step timeouts in minutes."""

    control_plane_minutes: int = Field(default=30, gt=0)
    addon_minutes: int = Field(default=15, gt=0)
    nodegroup_minutes: int = Field(default=60, gt=0)


class UpgradeRequest(BaseModel):
    """Declared upgrade for one cluster.

    Desired-state fields are treated as immutable; editing them bumps ``generation``.
    """

    request_id: str = Field(default="", description="Unique request identifier")
    generation: int = Field(default=1, ge=1, description="Request generation counter")
    cluster_name: str = Field(..., description="EKS cluster name")
    region: str = Field(..., description="AWS region")
    assume_role_arn: str | None = Field(None, description="Cross-account IAM role ARN")
    target_version: str = Field(..., description="Target Kubernetes version (e.g. 1.34)")
    addon_versions: dict[str, str] = Field(
        default_factory=dict, description="Per-add-on version overrides"
    )
    dry_run: bool = False
    ignore_preflight_failures: bool = False
    notification: NotificationPolicy | None = None
    timeouts: TimeoutOverrides = Field(default_factory=TimeoutOverrides)

    @model_validator(mode="after")
    def default_request_id(self) -> "UpgradeRequest":
        """Use the cluster name as request identifier when none is given."""
        if not self.request_id:
            self.request_id = self.cluster_name
        return self

    @classmethod
    def from_file(cls, path: str | Path) -> "UpgradeRequest":
        """Load an upgrade request from a YAML file.

        Args:
            path: Path to request file

        Returns:
            UpgradeRequest instance

        Raises:
            ConfigurationError: If file cannot be loaded or parsed
        """
        request_path = Path(path).expanduser()

        if not request_path.exists():
            raise ConfigurationError(f"Upgrade request file not found: {request_path}")

        try:
            with request_path.open() as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to load upgrade request: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Upgrade request must be a mapping: {request_path}")

        try:
            return cls(**data)
        except ValueError as e:
            raise ConfigurationError(f"Invalid upgrade request: {e}") from e


# ---------------------------------------------------------------------------
# Upgrade status (observed state)
# ---------------------------------------------------------------------------


class PlanningStatus(BaseModel):
    """Result of the planning phase."""

    current_version: str | None = None
    upgrade_path: list[str] = Field(default_factory=list)


class PreflightCheckStatus(BaseModel):
    """Recorded outcome of a single preflight check."""

    name: str
    status: str = Field(..., description="Pass, Fail or Skip")
    message: str = ""


class PreflightStatus(BaseModel):
    """Results of the preflight phase."""

    checks: list[PreflightCheckStatus] = Field(default_factory=list)


class ControlPlaneStatus(BaseModel):
    """Control plane upgrade progress.

    ``update_id`` is populated while a version update is in flight and must be
    polled rather than re-initiated.
    """

    current_step: int = 0
    total_steps: int = 0
    target_version: str | None = None
    update_id: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None


class ComponentUpgradeStatus(BaseModel):
    """Upgrade progress of an add-on or a managed node group."""

    name: str
    current_version: str
    target_version: str
    status: ComponentStatus = ComponentStatus.PENDING
    update_id: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_done(self) -> bool:
        """Whether no further work is needed for this component."""
        return self.status in (ComponentStatus.COMPLETED, ComponentStatus.SKIPPED)


class PhaseStatuses(BaseModel):
    """Per-phase sub-status records."""

    planning: PlanningStatus | None = None
    preflight: PreflightStatus | None = None
    control_plane: ControlPlaneStatus | None = None
    addons: list[ComponentUpgradeStatus] = Field(default_factory=list)
    nodegroups: list[ComponentUpgradeStatus] = Field(default_factory=list)


class UpgradeCondition(BaseModel):
    """Named boolean condition exposed for external visibility."""

    type: str
    status: str = Field(..., description="True or False")
    reason: str
    message: str | None = None
    last_transition_time: datetime = Field(default_factory=utc_now)


class CloudIdentity(BaseModel):
    """Verified cloud caller identity."""

    account_id: str
    arn: str
    generation: int = 0


class UpgradeStatus(BaseModel):
    """Persisted status of an upgrade request, owned by the reconciler."""

    phase: UpgradePhase = UpgradePhase.PENDING
    current_version: str | None = None
    phases: PhaseStatuses = Field(default_factory=PhaseStatuses)
    conditions: list[UpgradeCondition] = Field(default_factory=list)
    identity: CloudIdentity | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    observed_generation: int = 0
    message: str | None = None
    auth_failures: int = 0
    transient_failures: int = 0

    def get_condition(self, condition_type: str) -> UpgradeCondition | None:
        """Get a condition by type.

        Args:
            condition_type: Condition type name

        Returns:
            UpgradeCondition if present, None otherwise
        """
        return next((c for c in self.conditions if c.type == condition_type), None)

    @property
    def upgrade_path(self) -> list[str]:
        """Computed upgrade path, empty before planning."""
        if self.phases.planning is None:
            return []
        return list(self.phases.planning.upgrade_path)

    @property
    def has_update_in_flight(self) -> bool:
        """Whether any recorded step handle is still outstanding."""
        control_plane = self.phases.control_plane
        if control_plane is not None and control_plane.update_id:
            return True
        return any(
            c.update_id and c.status == ComponentStatus.IN_PROGRESS
            for c in [*self.phases.addons, *self.phases.nodegroups]
        )
