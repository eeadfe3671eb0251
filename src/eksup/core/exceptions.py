"""Custom exceptions for eksup."""


class EksupError(Exception):
    """Base exception for all eksup errors."""


class ConfigurationError(EksupError):
    """Configuration-related errors."""


class InvalidVersionError(EksupError):
    """Version string could not be parsed."""

    def __init__(self, version: str):
        super().__init__(f"Invalid version format: {version}")
        self.version = version


class UpgradeNotPossibleError(EksupError):
    """Requested upgrade violates the version policy."""

    def __init__(self, reason: str):
        super().__init__(f"Upgrade not possible: {reason}")
        self.reason = reason


class ClusterNotFoundError(EksupError):
    """Cluster does not exist in the target account/region."""

    def __init__(self, cluster_name: str):
        super().__init__(f"Cluster not found: {cluster_name}")
        self.cluster_name = cluster_name


class AWSError(EksupError):
    """AWS operation failed."""


class AuthError(EksupError):
    """AWS credentials, role assumption or identity verification failed."""


class TransientError(EksupError):
    """Failure that is expected to clear on its own and should be retried."""


class StoreError(EksupError):
    """Status store read or patch failed."""


class StepTimeoutError(EksupError):
    """An asynchronous cloud step did not reach a terminal state in time.

    Attributes:
        operation: Description of the operation being waited on
        elapsed: Seconds waited before giving up
        limit: Configured timeout in seconds
    """

    def __init__(self, operation: str, elapsed: float, limit: float, details: str | None = None):
        message = f"Timeout waiting for {operation} after {int(elapsed)}s (limit: {int(limit)}s)"
        if details:
            message = f"{message}: {details}"
        super().__init__(message)
        self.operation = operation
        self.elapsed = elapsed
        self.limit = limit


class StepFailedError(EksupError):
    """An asynchronous cloud step finished in a failed or cancelled state.

    Attributes:
        operation: Description of the operation
        status: Terminal status reported by the cloud API
        error_messages: Error details reported by the cloud API
    """

    def __init__(self, operation: str, status: str, error_messages: list[str] | None = None):
        self.operation = operation
        self.status = status
        self.error_messages = error_messages or []
        message = f"{operation} finished with status {status}"
        if self.error_messages:
            message = f"{message}: {', '.join(self.error_messages)}"
        super().__init__(message)
