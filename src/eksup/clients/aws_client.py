"""AWS client for STS, EKS and Auto Scaling operations."""

from typing import Any, cast

import boto3
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    NoCredentialsError,
    NoRegionError,
    PartialCredentialsError,
    ProfileNotFound,
)

from eksup.core.exceptions import (
    AuthError,
    AWSError,
    ClusterNotFoundError,
    ConfigurationError,
    EksupError,
    TransientError,
)
from eksup.utils.logging import get_logger
from eksup.utils.retry import retry_on_exception

logger = get_logger(__name__)

DEFAULT_SESSION_NAME = "eksup-session"

CREDENTIAL_ERROR_CODES = frozenset(
    {
        "AccessDenied",
        "AccessDeniedException",
        "ExpiredToken",
        "ExpiredTokenException",
        "InvalidClientTokenId",
        "SignatureDoesNotMatch",
        "UnrecognizedClientException",
    }
)

CREDENTIAL_ERROR_PATTERNS = (
    "no credentials",
    "unable to locate credentials",
    "security token",
    "token has expired",
    "not authorized to perform: sts:assumerole",
)

TRANSIENT_ERROR_CODES = frozenset({"ResourceInUseException", "ThrottlingException"})


def translate_error(operation: str, error: Exception) -> EksupError:
    """Map a boto3/botocore exception onto the eksup exception taxonomy.

    Args:
        operation: Name of the failing operation, used in the message
        error: Exception raised by boto3

    Returns:
        AuthError, ConfigurationError, TransientError or AWSError
    """
    if isinstance(error, ClientError):
        code = error.response.get("Error", {}).get("Code", "Unknown")
        message = error.response.get("Error", {}).get("Message", str(error))
        text = f"{code} {message}".lower()

        if code in CREDENTIAL_ERROR_CODES or any(p in text for p in CREDENTIAL_ERROR_PATTERNS):
            return AuthError(f"{operation}: AWS credentials rejected ({code}: {message})")
        if code in TRANSIENT_ERROR_CODES:
            return TransientError(f"{operation}: {code}: {message}")
        return AWSError(f"{operation}: {code}: {message}")

    if isinstance(error, (NoCredentialsError, PartialCredentialsError)):
        return AuthError(f"{operation}: AWS credentials not available ({error})")
    if isinstance(error, (NoRegionError, ProfileNotFound)):
        return ConfigurationError(f"{operation}: {error}")
    return AWSError(f"{operation}: {error}")


class AWSClient:
    """Blocking boto3 wrapper for the calls an EKS upgrade needs.

    Read-only calls retry on ``AWSError``. Mutations are never retried here;
    the reconciler decides whether to try again.
    """

    def __init__(
        self,
        region: str = "us-east-1",
        profile: str | None = None,
        session: boto3.Session | None = None,
    ):
        """Initialize AWS client.

        Args:
            region: AWS region
            profile: AWS profile name (optional)
            session: Existing boto3 session (optional, overrides profile)

        Raises:
            ConfigurationError: If the profile or region is not usable
        """
        self.region = region
        self.profile = profile

        try:
            if session:
                self.session = session
            elif profile:
                self.session = boto3.Session(profile_name=profile, region_name=region)
            else:
                self.session = boto3.Session(region_name=region)

            self.sts = self.session.client("sts")
            self.eks = self.session.client("eks")
            self.autoscaling = self.session.client("autoscaling")
        except BotoCoreError as e:
            raise translate_error("create_session", e) from e

        logger.debug("aws_client_initialized", region=region, profile=profile)

    @classmethod
    def from_assumed_role(
        cls,
        role_arn: str,
        region: str = "us-east-1",
        session_name: str | None = None,
        profile: str | None = None,
    ) -> "AWSClient":
        """Create AWSClient from an assumed IAM role.

        Args:
            role_arn: IAM role ARN to assume
            region: AWS region
            session_name: Session name (defaults to 'eksup-session')
            profile: Profile holding the base credentials (optional)

        Returns:
            New AWSClient with assumed role credentials

        Raises:
            AuthError: If role assumption is rejected
        """
        base_client = cls(region=region, profile=profile)
        assumed_session = base_client.assume_role(role_arn, session_name)
        return cls(region=region, session=assumed_session)

    @retry_on_exception(exceptions=(AWSError,), max_attempts=3)
    def assume_role(self, role_arn: str, session_name: str | None = None) -> boto3.Session:
        """Assume an IAM role and return a new session.

        Args:
            role_arn: IAM role ARN to assume
            session_name: Session name (defaults to 'eksup-session')

        Returns:
            New boto3 session with assumed role credentials

        Raises:
            AuthError: If role assumption is rejected
        """
        session_name = session_name or DEFAULT_SESSION_NAME

        try:
            logger.info("assuming_role", role_arn=role_arn, session_name=session_name)
            response = self.sts.assume_role(
                RoleArn=role_arn,
                RoleSessionName=session_name,
                DurationSeconds=3600,
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "Unknown")
            logger.error("role_assumption_failed", role_arn=role_arn, error_code=code)
            raise translate_error(f"assume_role {role_arn}", e) from e
        except BotoCoreError as e:
            raise translate_error("assume_role", e) from e

        credentials = response["Credentials"]
        logger.info("role_assumed_successfully", role_arn=role_arn)
        return boto3.Session(
            aws_access_key_id=credentials["AccessKeyId"],
            aws_secret_access_key=credentials["SecretAccessKey"],
            aws_session_token=credentials["SessionToken"],
            region_name=self.region,
        )

    @retry_on_exception(exceptions=(AWSError,), max_attempts=3)
    def get_caller_identity(self) -> dict[str, Any]:
        """Resolve the caller identity.

        Returns:
            STS GetCallerIdentity response (Account, Arn, UserId)

        Raises:
            AuthError: If credentials are missing or rejected
        """
        try:
            return cast(dict[str, Any], self.sts.get_caller_identity())
        except (ClientError, BotoCoreError) as e:
            raise translate_error("get_caller_identity", e) from e

    @retry_on_exception(exceptions=(AWSError,), max_attempts=3)
    def describe_cluster(self, cluster_name: str) -> dict[str, Any]:
        """Get EKS cluster information.

        Args:
            cluster_name: Name of the EKS cluster

        Returns:
            Cluster information dictionary

        Raises:
            ClusterNotFoundError: If the cluster does not exist
            AWSError: If cluster info cannot be retrieved
        """
        try:
            logger.debug("describing_cluster", cluster_name=cluster_name)
            response = self.eks.describe_cluster(name=cluster_name)
            return cast(dict[str, Any], response["cluster"])
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ResourceNotFoundException":
                raise ClusterNotFoundError(cluster_name) from e
            raise translate_error("describe_cluster", e) from e
        except BotoCoreError as e:
            raise translate_error("describe_cluster", e) from e

    def update_cluster_version(self, cluster_name: str, version: str) -> dict[str, Any]:
        """Start a control plane version update.

        Returns:
            EKS update record
        """
        try:
            logger.info("updating_cluster_version", cluster_name=cluster_name, version=version)
            response = self.eks.update_cluster_version(name=cluster_name, version=version)
            return cast(dict[str, Any], response["update"])
        except (ClientError, BotoCoreError) as e:
            raise translate_error("update_cluster_version", e) from e

    @retry_on_exception(exceptions=(AWSError,), max_attempts=3)
    def describe_update(
        self,
        cluster_name: str,
        update_id: str,
        addon_name: str | None = None,
        nodegroup_name: str | None = None,
    ) -> dict[str, Any]:
        """Describe an update on a cluster, add-on or node group.

        Args:
            cluster_name: Name of the EKS cluster
            update_id: Update ID
            addon_name: Add-on name for add-on updates
            nodegroup_name: Node group name for node group updates

        Returns:
            EKS update record
        """
        kwargs: dict[str, Any] = {"name": cluster_name, "updateId": update_id}
        if addon_name:
            kwargs["addonName"] = addon_name
        if nodegroup_name:
            kwargs["nodegroupName"] = nodegroup_name

        try:
            response = self.eks.describe_update(**kwargs)
            return cast(dict[str, Any], response["update"])
        except (ClientError, BotoCoreError) as e:
            raise translate_error("describe_update", e) from e

    @retry_on_exception(exceptions=(AWSError,), max_attempts=3)
    def list_addons(self, cluster_name: str) -> list[str]:
        """List installed add-on names."""
        try:
            names: list[str] = []
            for page in self.eks.get_paginator("list_addons").paginate(clusterName=cluster_name):
                names.extend(page.get("addons", []))
            return names
        except (ClientError, BotoCoreError) as e:
            raise translate_error("list_addons", e) from e

    @retry_on_exception(exceptions=(AWSError,), max_attempts=3)
    def describe_addon(self, cluster_name: str, addon_name: str) -> dict[str, Any]:
        """Describe an installed add-on."""
        try:
            response = self.eks.describe_addon(clusterName=cluster_name, addonName=addon_name)
            return cast(dict[str, Any], response["addon"])
        except (ClientError, BotoCoreError) as e:
            raise translate_error("describe_addon", e) from e

    @retry_on_exception(exceptions=(AWSError,), max_attempts=3)
    def describe_addon_versions(
        self, addon_name: str, kubernetes_version: str
    ) -> list[dict[str, Any]]:
        """List versions of an add-on compatible with a Kubernetes version.

        Args:
            addon_name: Add-on name
            kubernetes_version: Kubernetes minor version (e.g. 1.33)

        Returns:
            List of ``{"version": str, "default": bool}`` dictionaries
        """
        try:
            versions: list[dict[str, Any]] = []
            paginator = self.eks.get_paginator("describe_addon_versions")
            for page in paginator.paginate(
                addonName=addon_name, kubernetesVersion=kubernetes_version
            ):
                for addon in page.get("addons", []):
                    for entry in addon.get("addonVersions", []):
                        default = any(
                            c.get("defaultVersion", False)
                            for c in entry.get("compatibilities", [])
                            if c.get("clusterVersion") == kubernetes_version
                        )
                        versions.append({"version": entry["addonVersion"], "default": default})
            return versions
        except (ClientError, BotoCoreError) as e:
            raise translate_error("describe_addon_versions", e) from e

    def update_addon(self, cluster_name: str, addon_name: str, version: str) -> dict[str, Any]:
        """Start an add-on update, overwriting conflicting configuration.

        Returns:
            EKS update record
        """
        try:
            logger.info(
                "updating_addon", cluster_name=cluster_name, addon=addon_name, version=version
            )
            response = self.eks.update_addon(
                clusterName=cluster_name,
                addonName=addon_name,
                addonVersion=version,
                resolveConflicts="OVERWRITE",
            )
            return cast(dict[str, Any], response["update"])
        except (ClientError, BotoCoreError) as e:
            raise translate_error("update_addon", e) from e

    @retry_on_exception(exceptions=(AWSError,), max_attempts=3)
    def list_nodegroups(self, cluster_name: str) -> list[str]:
        """List managed node group names."""
        try:
            names: list[str] = []
            paginator = self.eks.get_paginator("list_nodegroups")
            for page in paginator.paginate(clusterName=cluster_name):
                names.extend(page.get("nodegroups", []))
            return names
        except (ClientError, BotoCoreError) as e:
            raise translate_error("list_nodegroups", e) from e

    @retry_on_exception(exceptions=(AWSError,), max_attempts=3)
    def describe_nodegroup(self, cluster_name: str, nodegroup_name: str) -> dict[str, Any]:
        """Describe a managed node group."""
        try:
            response = self.eks.describe_nodegroup(
                clusterName=cluster_name, nodegroupName=nodegroup_name
            )
            return cast(dict[str, Any], response["nodegroup"])
        except (ClientError, BotoCoreError) as e:
            raise translate_error("describe_nodegroup", e) from e

    def update_nodegroup_version(
        self, cluster_name: str, nodegroup_name: str, version: str
    ) -> dict[str, Any]:
        """Start a rolling node group version update.

        Returns:
            EKS update record
        """
        try:
            logger.info(
                "updating_nodegroup_version",
                cluster_name=cluster_name,
                nodegroup=nodegroup_name,
                version=version,
            )
            response = self.eks.update_nodegroup_version(
                clusterName=cluster_name, nodegroupName=nodegroup_name, version=version
            )
            return cast(dict[str, Any], response["update"])
        except (ClientError, BotoCoreError) as e:
            raise translate_error("update_nodegroup_version", e) from e

    @retry_on_exception(exceptions=(AWSError,), max_attempts=3)
    def describe_auto_scaling_groups(self, group_names: list[str]) -> list[dict[str, Any]]:
        """Describe Auto Scaling groups by name."""
        if not group_names:
            return []
        try:
            response = self.autoscaling.describe_auto_scaling_groups(
                AutoScalingGroupNames=group_names
            )
            return cast(list[dict[str, Any]], response.get("AutoScalingGroups", []))
        except (ClientError, BotoCoreError) as e:
            raise translate_error("describe_auto_scaling_groups", e) from e

    @retry_on_exception(exceptions=(AWSError,), max_attempts=3)
    def list_insights(self, cluster_name: str) -> list[dict[str, Any]]:
        """List upgrade-readiness insights for a cluster."""
        try:
            insights: list[dict[str, Any]] = []
            kwargs: dict[str, Any] = {
                "clusterName": cluster_name,
                "filter": {"categories": ["UPGRADE_READINESS"]},
            }
            while True:
                response = self.eks.list_insights(**kwargs)
                insights.extend(response.get("insights", []))
                next_token = response.get("nextToken")
                if not next_token:
                    return insights
                kwargs["nextToken"] = next_token
        except (ClientError, BotoCoreError) as e:
            raise translate_error("list_insights", e) from e
