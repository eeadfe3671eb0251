"""EKS Upgrade orchestrator (eksup).

Drive managed Kubernetes upgrades one minor version at a time through a restart-safe,
level-triggered phase state machine.
"""

__version__ = "0.1.0"
__author__ = "Platform Engineering Team"
__license__ = "Apache-2.0"
