"""Prometheus metrics for upgrade reconciliation."""

import threading
import time
from collections.abc import Callable
from enum import Enum

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    start_http_server,
)

from eksup.core.models import UpgradePhase
from eksup.utils.logging import get_logger

logger = get_logger(__name__)

RECONCILE_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
PHASE_BUCKETS = (1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0, 1800.0, 3600.0)


class ReconcileResult(str, Enum):
    """Outcome label of a reconcile call."""

    SUCCESS = "success"
    REQUEUE = "requeue"
    ERROR = "error"


class PhaseTimer:
    """In-memory start times of the current phase per cluster.

    Best effort only: persisted ``started_at``/``completed_at`` are the
    source of truth. A restart empties the map, and a phase whose start was
    not seen by this process is simply not observed.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._starts: dict[tuple[str, str], tuple[UpgradePhase, float]] = {}

    def record_start(self, key: tuple[str, str], phase: UpgradePhase) -> None:
        """Record that ``phase`` started now, replacing any previous entry."""
        with self._lock:
            self._starts[key] = (phase, self._clock())

    def ensure_start(self, key: tuple[str, str], phase: UpgradePhase) -> None:
        """Record a start only if none is tracked for the cluster."""
        with self._lock:
            self._starts.setdefault(key, (phase, self._clock()))

    def pop_elapsed(self, key: tuple[str, str], phase: UpgradePhase) -> float | None:
        """Remove the tracked start and return seconds elapsed in ``phase``.

        Returns:
            Elapsed seconds, or None if the phase start was not tracked
        """
        with self._lock:
            entry = self._starts.pop(key, None)
        if entry is None or entry[0] != phase:
            return None
        return max(self._clock() - entry[1], 0.0)

    def __len__(self) -> int:
        with self._lock:
            return len(self._starts)


class MetricsRecorder:
    """Records reconcile and phase metrics on a dedicated registry.

    Owns its PhaseTimer; nothing here is global state, so several recorders
    (e.g. one per test) can coexist.
    """

    def __init__(
        self,
        registry: CollectorRegistry | None = None,
        timer: PhaseTimer | None = None,
    ):
        self.registry = registry if registry is not None else CollectorRegistry()
        self.timer = timer if timer is not None else PhaseTimer()

        self.reconcile_total = Counter(
            "eksup_reconcile",
            "Reconcile calls by result",
            ["cluster_name", "region", "result"],
            registry=self.registry,
        )
        self.reconcile_duration = Histogram(
            "eksup_reconcile_duration_seconds",
            "Reconcile call duration",
            ["cluster_name", "region"],
            buckets=RECONCILE_BUCKETS,
            registry=self.registry,
        )
        self.phase_info = Gauge(
            "eksup_upgrade_phase_info",
            "1 for the current upgrade phase, 0 otherwise",
            ["cluster_name", "region", "phase"],
            registry=self.registry,
        )
        self.phase_transitions = Counter(
            "eksup_phase_transition",
            "Phase transitions by destination phase",
            ["phase"],
            registry=self.registry,
        )
        self.phase_duration = Histogram(
            "eksup_phase_duration_seconds",
            "Time spent in a phase",
            ["phase"],
            buckets=PHASE_BUCKETS,
            registry=self.registry,
        )
        self.upgrades_completed = Counter(
            "eksup_upgrade_completed",
            "Upgrades that reached Completed",
            ["cluster_name", "region"],
            registry=self.registry,
        )
        self.upgrades_failed = Counter(
            "eksup_upgrade_failed",
            "Upgrades that reached Failed",
            ["cluster_name", "region"],
            registry=self.registry,
        )

    def record_reconcile(
        self, cluster_name: str, region: str, result: ReconcileResult, duration: float
    ) -> None:
        """Count a reconcile call and observe its duration."""
        self.reconcile_total.labels(cluster_name, region, result.value).inc()
        self.reconcile_duration.labels(cluster_name, region).observe(duration)

    def set_phase(self, cluster_name: str, region: str, phase: UpgradePhase) -> None:
        """Set the phase gauge to 1 for ``phase`` and 0 for every other phase."""
        for candidate in UpgradePhase:
            self.phase_info.labels(cluster_name, region, candidate.value).set(
                1 if candidate == phase else 0
            )

    def record_transition(
        self,
        cluster_name: str,
        region: str,
        from_phase: UpgradePhase,
        to_phase: UpgradePhase,
    ) -> None:
        """Record a persisted phase transition.

        Args:
            cluster_name: Cluster name label
            region: Region label
            from_phase: Phase being left
            to_phase: Phase entered
        """
        key = (cluster_name, region)

        self.set_phase(cluster_name, region, to_phase)
        self.phase_transitions.labels(to_phase.value).inc()

        elapsed = self.timer.pop_elapsed(key, from_phase)
        if elapsed is not None:
            self.phase_duration.labels(from_phase.value).observe(elapsed)

        if to_phase.is_terminal:
            if to_phase == UpgradePhase.COMPLETED:
                self.upgrades_completed.labels(cluster_name, region).inc()
            else:
                self.upgrades_failed.labels(cluster_name, region).inc()
        else:
            self.timer.record_start(key, to_phase)

        logger.debug(
            "phase_transition_recorded",
            cluster_name=cluster_name,
            from_phase=from_phase.value,
            to_phase=to_phase.value,
            phase_seconds=elapsed,
        )

    def render(self) -> bytes:
        """Metrics in the Prometheus text exposition format."""
        return generate_latest(self.registry)

    def serve(self, port: int, addr: str = "0.0.0.0") -> None:
        """Expose ``/metrics`` over HTTP from a background thread."""
        start_http_server(port, addr=addr, registry=self.registry)
        logger.info("metrics_server_started", port=port)
