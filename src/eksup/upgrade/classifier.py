"""Error classification for reconcile failures."""

from enum import Enum

from eksup.core.exceptions import (
    AuthError,
    AWSError,
    ClusterNotFoundError,
    ConfigurationError,
    InvalidVersionError,
    StepFailedError,
    StepTimeoutError,
    StoreError,
    TransientError,
    UpgradeNotPossibleError,
)


class ErrorClass(str, Enum):
    """Whether a failure is worth retrying."""

    TRANSIENT = "transient"
    PERMANENT = "permanent"


# Order matters only for subclasses; the first matching entry wins.
_CLASSIFICATION: tuple[tuple[type[BaseException], ErrorClass], ...] = (
    (TransientError, ErrorClass.TRANSIENT),
    (StepTimeoutError, ErrorClass.TRANSIENT),
    (StoreError, ErrorClass.TRANSIENT),
    (AuthError, ErrorClass.PERMANENT),
    (AWSError, ErrorClass.TRANSIENT),
    (InvalidVersionError, ErrorClass.PERMANENT),
    (UpgradeNotPossibleError, ErrorClass.PERMANENT),
    (StepFailedError, ErrorClass.PERMANENT),
    (ClusterNotFoundError, ErrorClass.PERMANENT),
    (ConfigurationError, ErrorClass.PERMANENT),
)


def classify(error: BaseException) -> ErrorClass:
    """Classify a failure as transient or permanent.

    Pure lookup with no side effects. Anything not listed is permanent.

    Args:
        error: Raised exception

    Returns:
        ErrorClass for the exception
    """
    for error_type, error_class in _CLASSIFICATION:
        if isinstance(error, error_type):
            return error_class
    return ErrorClass.PERMANENT


def is_transient(error: BaseException) -> bool:
    """Shorthand for ``classify(error) is ErrorClass.TRANSIENT``."""
    return classify(error) is ErrorClass.TRANSIENT
