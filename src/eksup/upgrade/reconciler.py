"""Level-triggered reconciler driving the upgrade phase state machine."""

import asyncio
import time
from dataclasses import dataclass

from eksup.core.config import PollingConfig, ReconcilerConfig
from eksup.core.exceptions import AuthError, EksupError, StoreError
from eksup.core.models import (
    CloudIdentity,
    UpgradePhase,
    UpgradeRequest,
    UpgradeStatus,
    utc_now,
)
from eksup.core.status import set_condition, set_failed, set_phase
from eksup.events import LoggingEventRecorder
from eksup.interfaces.cloud_provider import CloudClientFactory, CloudClients
from eksup.interfaces.event_recorder import EventRecorder
from eksup.interfaces.phase_executor import (
    Checkpoint,
    ExecutionContext,
    PhaseExecutor,
    PhaseOutcome,
)
from eksup.interfaces.state_store import StatusStore
from eksup.notify.dispatcher import LifecycleEvent, NotificationDispatcher
from eksup.upgrade.classifier import ErrorClass, classify
from eksup.upgrade.waiter import AsyncStepWaiter, ProgressCallback
from eksup.utils.logging import bound_context, get_logger, log_error
from eksup.utils.metrics import MetricsRecorder, ReconcileResult

logger = get_logger(__name__)


@dataclass(frozen=True)
class RequeueAfter:
    """Reconcile again after ``seconds``; zero means immediately."""

    seconds: float


@dataclass(frozen=True)
class AwaitExternalChange:
    """Nothing to do until the request changes."""


RequeueDirective = RequeueAfter | AwaitExternalChange


class PhaseReconciler:
    """Decides and performs the next upgrade step for a request.

    Each ``reconcile`` call loads persisted status, runs the executor of the
    current phase and durably patches the result before publishing events,
    notifications or metrics about the new state. Calls are single-flight per
    request and safe to repeat at any time: recorded update handles are
    resumed, never re-initiated.
    """

    def __init__(
        self,
        cloud_factory: CloudClientFactory,
        store: StatusStore,
        executors: dict[UpgradePhase, PhaseExecutor],
        waiter: AsyncStepWaiter | None = None,
        metrics: MetricsRecorder | None = None,
        notifier: NotificationDispatcher | None = None,
        events: EventRecorder | None = None,
        config: ReconcilerConfig | None = None,
        polling: PollingConfig | None = None,
        on_progress: ProgressCallback | None = None,
    ):
        """Initialize reconciler.

        Args:
            cloud_factory: Creates cloud clients per region/role
            store: Persisted status accessor
            executors: Executor per non-terminal phase (Pending is built in)
            waiter: Step waiter shared by executors
            metrics: Metrics recorder
            notifier: Lifecycle notification dispatcher
            events: Event recorder
            config: Requeue and retry policy
            polling: Poll intervals and blocking mode
            on_progress: Display callback for in-flight step progress
        """
        self.cloud_factory = cloud_factory
        self.store = store
        self.executors = executors
        self.waiter = waiter or AsyncStepWaiter()
        self.metrics = metrics or MetricsRecorder()
        self.notifier = notifier or NotificationDispatcher()
        self.events = events or LoggingEventRecorder()
        self.config = config or ReconcilerConfig()
        self.polling = polling or PollingConfig()
        self.on_progress = on_progress
        self._locks: dict[str, asyncio.Lock] = {}

    async def reconcile(self, request: UpgradeRequest) -> RequeueDirective:
        """Advance an upgrade request as far as possible.

        Outcomes asking for an immediate requeue are chained within this
        call, up to ``max_chained_steps`` ticks.

        Args:
            request: Current upgrade request

        Returns:
            RequeueAfter or AwaitExternalChange
        """
        lock = self._locks.setdefault(request.request_id, asyncio.Lock())
        start = time.monotonic()

        async with lock:
            with bound_context(
                request_id=request.request_id,
                cluster_name=request.cluster_name,
                region=request.region,
            ):
                directive: RequeueDirective = RequeueAfter(0)
                errored = False
                for _ in range(self.config.max_chained_steps):
                    directive, errored = await self._reconcile_once(request)
                    if errored or directive != RequeueAfter(0):
                        break

        if errored:
            result = ReconcileResult.ERROR
        elif isinstance(directive, RequeueAfter):
            result = ReconcileResult.REQUEUE
        else:
            result = ReconcileResult.SUCCESS
        self.metrics.record_reconcile(
            request.cluster_name, request.region, result, time.monotonic() - start
        )
        return directive

    async def _reconcile_once(self, request: UpgradeRequest) -> tuple[RequeueDirective, bool]:
        """Run a single tick.

        Returns:
            Requeue directive and whether the tick ended in an error
        """
        try:
            persisted = await self.store.get(request.request_id)
        except StoreError as e:
            logger.warning("status_load_failed", error=str(e))
            return RequeueAfter(self.config.store_retry_seconds), True

        status = persisted or UpgradeStatus()
        old_phase = status.phase

        if old_phase.is_terminal:
            if status.observed_generation < request.generation:
                logger.warning(
                    "generation_drift_ignored",
                    phase=old_phase.value,
                    observed_generation=status.observed_generation,
                    generation=request.generation,
                    guidance="terminal upgrades are frozen; run `eksup status --reset` "
                    "to apply the new generation",
                )
            self.metrics.set_phase(request.cluster_name, request.region, old_phase)
            return AwaitExternalChange(), False

        if old_phase == UpgradePhase.PENDING:
            self.metrics.timer.ensure_start((request.cluster_name, request.region), old_phase)

        working = status.model_copy(deep=True)

        try:
            cloud = await self._prepare_clients(request, working)
            outcome = await self._execute_phase(request, working, cloud)
        except StoreError as e:
            logger.warning("status_checkpoint_failed", phase=old_phase.value, error=str(e))
            return RequeueAfter(self.config.store_retry_seconds), True
        except AuthError as e:
            return await self._on_auth_error(request, old_phase, working, e)
        except Exception as e:
            if classify(e) is ErrorClass.TRANSIENT:
                return await self._on_transient_error(request, old_phase, working, e)
            return await self._on_permanent_error(request, old_phase, working, e)

        return await self._on_success(request, old_phase, outcome)

    async def _prepare_clients(
        self, request: UpgradeRequest, status: UpgradeStatus
    ) -> CloudClients:
        """Create cloud clients and verify identity once per generation."""
        cloud = await self.cloud_factory.create(request.region, request.assume_role_arn)

        identity = status.identity
        if identity is None or identity.generation != request.generation:
            verified = await cloud.verify_identity()
            status.identity = CloudIdentity(
                account_id=verified.account_id,
                arn=verified.arn,
                generation=request.generation,
            )
            set_condition(
                status,
                "AWSAuthenticated",
                True,
                "IdentityVerified",
                f"account={verified.account_id}",
            )
            logger.info("identity_verified", account_id=verified.account_id, arn=verified.arn)

        status.auth_failures = 0
        return cloud

    async def _execute_phase(
        self, request: UpgradeRequest, status: UpgradeStatus, cloud: CloudClients
    ) -> PhaseOutcome:
        if status.phase == UpgradePhase.PENDING:
            status.started_at = utc_now()
            status.message = (
                f"Starting upgrade of {request.cluster_name} to {request.target_version}"
            )
            set_phase(status, UpgradePhase.PLANNING)
            return PhaseOutcome(status, 0)

        executor = self.executors.get(status.phase)
        if executor is None:
            raise EksupError(f"No executor registered for phase {status.phase.value}")

        context = ExecutionContext(
            cloud=cloud,
            waiter=self.waiter,
            polling=self.polling,
            checkpoint=self._checkpoint_for(request),
            on_progress=self.on_progress,
        )
        return await executor.execute(request, status, context)

    def _checkpoint_for(self, request: UpgradeRequest) -> Checkpoint:
        async def checkpoint(status: UpgradeStatus) -> None:
            status.observed_generation = request.generation
            await self.store.patch(request.request_id, status)
            logger.debug("status_checkpointed", phase=status.phase.value)

        return checkpoint

    async def _persist(self, request: UpgradeRequest, status: UpgradeStatus) -> bool:
        try:
            await self.store.patch(request.request_id, status)
        except StoreError as e:
            logger.warning("status_patch_failed", phase=status.phase.value, error=str(e))
            return False
        return True

    async def _on_success(
        self, request: UpgradeRequest, old_phase: UpgradePhase, outcome: PhaseOutcome
    ) -> tuple[RequeueDirective, bool]:
        status = outcome.status
        status.observed_generation = request.generation
        status.transient_failures = 0

        if not await self._persist(request, status):
            return RequeueAfter(self.config.store_retry_seconds), True

        await self._after_patch(request, old_phase, status)

        if status.phase.is_terminal or outcome.requeue_after is None:
            return AwaitExternalChange(), False
        return RequeueAfter(outcome.requeue_after), False

    async def _on_auth_error(
        self,
        request: UpgradeRequest,
        old_phase: UpgradePhase,
        status: UpgradeStatus,
        error: AuthError,
    ) -> tuple[RequeueDirective, bool]:
        self.cloud_factory.invalidate(request.region, request.assume_role_arn)
        status.auth_failures += 1
        set_condition(status, "AWSAuthenticated", False, "AuthenticationFailed", str(error))
        logger.error(
            "aws_authentication_failed",
            attempt=status.auth_failures,
            max_attempts=self.config.max_auth_failures,
            error=str(error),
        )

        if status.auth_failures >= self.config.max_auth_failures:
            return await self._fail(
                request, old_phase, status, f"AWS authentication failed: {error}"
            )

        if not await self._persist(request, status):
            return RequeueAfter(self.config.store_retry_seconds), True
        return RequeueAfter(self.config.auth_requeue_seconds), True

    async def _on_transient_error(
        self,
        request: UpgradeRequest,
        old_phase: UpgradePhase,
        status: UpgradeStatus,
        error: Exception,
    ) -> tuple[RequeueDirective, bool]:
        status.transient_failures += 1
        logger.warning(
            "transient_error",
            phase=old_phase.value,
            attempt=status.transient_failures,
            error_type=type(error).__name__,
            error=str(error),
        )

        if status.transient_failures > self.config.max_transient_retries:
            return await self._fail(
                request,
                old_phase,
                status,
                f"Giving up after {status.transient_failures - 1} retries: {error}",
            )

        set_condition(status, "Ready", False, "TransientError", str(error))
        if not await self._persist(request, status):
            return RequeueAfter(self.config.store_retry_seconds), True

        self._publish_warning(request, "TransientError", str(error))
        return RequeueAfter(self.config.transient_requeue_seconds), True

    async def _on_permanent_error(
        self,
        request: UpgradeRequest,
        old_phase: UpgradePhase,
        status: UpgradeStatus,
        error: Exception,
    ) -> tuple[RequeueDirective, bool]:
        log_error(logger, error, operation="reconcile", phase=old_phase.value, retryable=False)
        return await self._fail(request, old_phase, status, str(error))

    async def _fail(
        self,
        request: UpgradeRequest,
        old_phase: UpgradePhase,
        status: UpgradeStatus,
        message: str,
    ) -> tuple[RequeueDirective, bool]:
        set_failed(status, message)
        status.observed_generation = request.generation

        if not await self._persist(request, status):
            return RequeueAfter(self.config.store_retry_seconds), True

        await self._after_patch(request, old_phase, status)
        return AwaitExternalChange(), True

    async def _after_patch(
        self, request: UpgradeRequest, old_phase: UpgradePhase, status: UpgradeStatus
    ) -> None:
        """Publish everything that reports a persisted phase change."""
        new_phase = status.phase
        if new_phase == old_phase:
            self.metrics.set_phase(request.cluster_name, request.region, new_phase)
            return

        self.metrics.record_transition(request.cluster_name, request.region, old_phase, new_phase)
        logger.info(
            "phase_transition",
            from_phase=old_phase.value,
            to_phase=new_phase.value,
            message=status.message,
        )

        if old_phase == UpgradePhase.PENDING and new_phase == UpgradePhase.PLANNING:
            self._publish(
                request,
                "UpgradeStarted",
                f"Starting upgrade of {request.cluster_name} to {request.target_version}",
            )
        elif not new_phase.is_terminal:
            self._publish(
                request, "PhaseTransition", f"{old_phase.value} → {new_phase.value}"
            )

        if old_phase == UpgradePhase.PLANNING and new_phase != UpgradePhase.FAILED:
            await self.notifier.dispatch(LifecycleEvent.STARTED, request, status)

        if new_phase == UpgradePhase.COMPLETED:
            self._publish(request, "UpgradeCompleted", status.message or "Upgrade completed")
            await self.notifier.dispatch(LifecycleEvent.COMPLETED, request, status)
        elif new_phase == UpgradePhase.FAILED:
            self._publish_warning(request, "UpgradeFailed", status.message or "Upgrade failed")
            await self.notifier.dispatch(
                LifecycleEvent.FAILED, request, status, failed_phase=old_phase
            )

    def _publish(self, request: UpgradeRequest, reason: str, message: str) -> None:
        try:
            self.events.publish(request.request_id, reason, message)
        except Exception as e:
            logger.warning("event_publish_failed", reason=reason, error=str(e))

    def _publish_warning(self, request: UpgradeRequest, reason: str, message: str) -> None:
        try:
            self.events.publish_warning(request.request_id, reason, message)
        except Exception as e:
            logger.warning("event_publish_failed", reason=reason, error=str(e))
