"""Cloud provider interfaces consumed by the reconciler and phase executors."""

from abc import ABC, abstractmethod

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


class CloudClients(ABC):
    """Abstract interface for the EKS operations an upgrade needs.

    Implementations hide provider-specific details (boto3 exceptions,
    response formats) and raise the eksup exception taxonomy:
    ``AuthError`` for credential problems, ``ClusterNotFoundError`` for a
    missing cluster, ``TransientError`` for retryable conflicts and
    ``AWSError`` for any other API failure.

    Mutating calls return the opaque update handle used for polling and are
    never retried internally.
    """

    region: str

    @abstractmethod
    async def verify_identity(self) -> Identity:
        """Verify credentials by resolving the caller identity.

        Returns:
            Identity with account ID and ARN

        Raises:
            AuthError: If credentials are missing, invalid or expired
        """

    @abstractmethod
    async def describe_cluster(self, cluster_name: str) -> ClusterInfo:
        """Describe a cluster.

        Args:
            cluster_name: EKS cluster name

        Returns:
            ClusterInfo with version, status and deletion protection

        Raises:
            ClusterNotFoundError: If the cluster does not exist
        """

    @abstractmethod
    async def update_cluster_version(self, cluster_name: str, version: str) -> str:
        """Start a control-plane version update.

        Args:
            cluster_name: EKS cluster name
            version: Next minor version

        Returns:
            Update ID
        """

    @abstractmethod
    async def describe_update(
        self,
        cluster_name: str,
        update_id: str,
        addon_name: str | None = None,
        nodegroup_name: str | None = None,
    ) -> UpdateInfo:
        """Describe an update on a cluster, add-on or node group.

        Args:
            cluster_name: EKS cluster name
            update_id: Update ID returned by the initiating call
            addon_name: Add-on name for add-on updates
            nodegroup_name: Node group name for node group updates

        Returns:
            UpdateInfo with status and error messages
        """

    @abstractmethod
    async def list_addons(self, cluster_name: str) -> list[AddonInfo]:
        """List installed add-ons with their versions."""

    @abstractmethod
    async def list_addon_versions(
        self, addon_name: str, kubernetes_version: str
    ) -> list[AddonVersion]:
        """List add-on versions compatible with a Kubernetes version."""

    @abstractmethod
    async def update_addon(self, cluster_name: str, addon_name: str, version: str) -> str:
        """Start an add-on update, overwriting conflicting configuration.

        Returns:
            Update ID
        """

    @abstractmethod
    async def list_nodegroups(self, cluster_name: str) -> list[NodegroupInfo]:
        """List managed node groups with their versions."""

    @abstractmethod
    async def update_nodegroup_version(
        self, cluster_name: str, nodegroup_name: str, version: str
    ) -> str:
        """Start a rolling node group version update.

        Returns:
            Update ID
        """

    @abstractmethod
    async def get_nodegroup_progress(
        self, cluster_name: str, nodegroup_name: str
    ) -> NodeProgress | None:
        """Healthy/total instance counts of a node group, for display only.

        Returns:
            NodeProgress, or None if it cannot be determined
        """

    @abstractmethod
    async def get_insights_summary(self, cluster_name: str) -> InsightsSummary:
        """Summarize upgrade-readiness insights for a cluster."""


class CloudClientFactory(ABC):
    """Creates CloudClients for a region and optional cross-account role."""

    @abstractmethod
    async def create(self, region: str, role_arn: str | None = None) -> CloudClients:
        """Create clients for a region.

        Args:
            region: AWS region
            role_arn: Optional IAM role ARN to assume

        Returns:
            CloudClients bound to the region and credentials

        Raises:
            AuthError: If credentials or role assumption fail
            ConfigurationError: If the region is not usable
        """

    def invalidate(self, region: str, role_arn: str | None = None) -> None:
        """Forget any cached clients so the next ``create`` rebuilds credentials.

        Factories that do not cache have nothing to do.
        """
