"""Preflight check interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from eksup.core.models import UpgradeRequest, UpgradeStatus
from eksup.interfaces.cloud_provider import CloudClients


class CheckOutcome(str, Enum):
    """Outcome of a preflight check."""

    PASS = "Pass"
    FAIL = "Fail"
    SKIP = "Skip"


@dataclass
class CheckResult:
    """Result of a preflight check."""

    check_name: str
    outcome: CheckOutcome
    message: str
    mandatory: bool = True

    @property
    def blocks_upgrade(self) -> bool:
        """Whether this result stops the upgrade."""
        return self.mandatory and self.outcome == CheckOutcome.FAIL


@dataclass
class CheckContext:
    """Context passed to preflight checks."""

    request: UpgradeRequest
    status: UpgradeStatus
    cloud: CloudClients


class Check(ABC):
    """Abstract interface for preflight checks.

    Design Philosophy:
    - Single responsibility: each check validates one thing
    - Checks that cannot gather their data return ``SKIP`` rather than fail
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable check name."""

    @property
    def is_mandatory(self) -> bool:
        """Whether a failure blocks the upgrade (default: True)."""
        return True

    @property
    def timeout_seconds(self) -> int:
        """Maximum execution time for this check (default: 60)."""
        return 60

    @abstractmethod
    async def execute(self, context: CheckContext) -> CheckResult:
        """Execute the check.

        Args:
            context: Check context

        Returns:
            CheckResult with outcome and message
        """
