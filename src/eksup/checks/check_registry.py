"""Registry for preflight checks."""

from eksup.interfaces.check import Check
from eksup.utils.logging import get_logger

logger = get_logger(__name__)


class CheckRegistry:
    """Ordered collection of preflight checks, unique by name."""

    def __init__(self) -> None:
        self._checks: dict[str, Check] = {}

    def register(self, check: Check) -> None:
        """Register a check; a second check with the same name is ignored.

        Args:
            check: Check to register
        """
        if check.name in self._checks:
            logger.warning("check_already_registered", check_name=check.name)
            return

        self._checks[check.name] = check
        logger.debug("check_registered", check_name=check.name)

    def get_all_checks(self) -> list[Check]:
        """All checks in registration order."""
        return list(self._checks.values())

    def __len__(self) -> int:
        return len(self._checks)
