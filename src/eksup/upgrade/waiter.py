"""Generic initiate-then-poll waiter for asynchronous cloud steps."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum

from eksup.core.exceptions import StepFailedError, StepTimeoutError
from eksup.utils.logging import get_logger

logger = get_logger(__name__)


class StepState(str, Enum):
    """Normalized state of an asynchronous cloud step."""

    IN_PROGRESS = "InProgress"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    CANCELLED = "Cancelled"


@dataclass
class StepStatus:
    """Result of polling an asynchronous step.

    ``progress`` is display-only and never influences the terminal decision.
    """

    state: StepState
    progress: str | None = None
    error_messages: list[str] = field(default_factory=list)
    raw_status: str | None = None

    @property
    def is_terminal(self) -> bool:
        """Whether polling can stop."""
        return self.state != StepState.IN_PROGRESS


Initiate = Callable[[], Awaitable[str]]
Poll = Callable[[str], Awaitable[StepStatus]]
ProgressCallback = Callable[[StepStatus], None]
HandleCallback = Callable[[str], Awaitable[None]]


class AsyncStepWaiter:
    """Initiate an asynchronous cloud mutation once and poll it to completion.

    Two calling styles share the same timeout and terminal-state rules:

    - ``wait``/``wait_for`` loop inside one call, sleeping between polls
      (sequential CLI execution). Elapsed time is compared with the timeout
      before each poll.
    - ``check`` performs a single poll, for level-triggered callers that
      requeue between polls and keep the step start time in persisted status.
      It polls first and times out only a step that is still in progress.

    Timeouts cancel the wait only. The underlying cloud operation keeps
    running.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize waiter.

        Args:
            clock: Monotonic clock in seconds
            sleep: Coroutine used to suspend between polls
        """
        self._clock = clock
        self._sleep = sleep

    async def wait(
        self,
        operation: str,
        initiate: Initiate,
        poll: Poll,
        timeout: float,
        interval: float,
        on_initiated: HandleCallback | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> str:
        """Start a step and wait for it to finish.

        Args:
            operation: Description used in logs and errors
            initiate: Starts the mutation and returns its handle; called exactly once
            poll: Returns the current status for a handle
            timeout: Maximum seconds to wait
            interval: Seconds to sleep after each non-terminal poll
            on_initiated: Awaited with the handle before the first poll,
                typically to persist it
            on_progress: Called with in-progress statuses carrying progress

        Returns:
            Operation handle

        Raises:
            StepTimeoutError: If no terminal state is reached within timeout
            StepFailedError: If the step ends Failed or Cancelled
        """
        handle = await initiate()
        logger.info("step_initiated", operation=operation, handle=handle)

        if on_initiated is not None:
            await on_initiated(handle)

        await self.wait_for(
            operation, handle, poll, timeout, interval, on_progress=on_progress
        )
        return handle

    async def wait_for(
        self,
        operation: str,
        handle: str,
        poll: Poll,
        timeout: float,
        interval: float,
        elapsed_offset: float = 0.0,
        on_progress: ProgressCallback | None = None,
    ) -> StepStatus:
        """Poll an already-initiated step until it finishes.

        Args:
            operation: Description used in logs and errors
            handle: Operation handle returned by the initiating call
            poll: Returns the current status for a handle
            timeout: Maximum seconds to wait
            interval: Seconds to sleep after each non-terminal poll
            elapsed_offset: Seconds already spent on this step before the call
            on_progress: Called with in-progress statuses carrying progress

        Returns:
            The successful StepStatus

        Raises:
            StepTimeoutError: If no terminal state is reached within timeout
            StepFailedError: If the step ends Failed or Cancelled
        """
        start = self._clock()

        while True:
            elapsed = elapsed_offset + (self._clock() - start)
            if elapsed > timeout:
                raise self._timed_out(operation, handle, elapsed, timeout)

            status = await self.check(operation, handle, poll, elapsed, timeout)

            if status.state == StepState.SUCCEEDED:
                return status

            if on_progress is not None and status.progress:
                on_progress(status)

            logger.debug(
                "step_in_progress",
                operation=operation,
                handle=handle,
                elapsed=int(elapsed),
                progress=status.progress,
            )
            await self._sleep(interval)

    async def resume(
        self,
        operation: str,
        handle: str,
        poll: Poll,
        timeout: float,
        interval: float,
        elapsed_offset: float = 0.0,
        on_progress: ProgressCallback | None = None,
    ) -> StepStatus:
        """Continue waiting on a step recorded before a restart.

        The recorded handle is polled once before the timeout applies, so a
        step that finished while nobody was waiting is not reported as timed
        out. A step still in progress is then waited on as in ``wait_for``.

        Raises:
            StepTimeoutError: If the step is still in progress past the timeout
            StepFailedError: If the step ended Failed or Cancelled
        """
        start = self._clock()
        status = await self.check(operation, handle, poll, elapsed_offset, timeout)
        if status.state == StepState.SUCCEEDED:
            return status

        if on_progress is not None and status.progress:
            on_progress(status)
        await self._sleep(interval)

        return await self.wait_for(
            operation,
            handle,
            poll,
            timeout,
            interval,
            elapsed_offset=elapsed_offset + (self._clock() - start),
            on_progress=on_progress,
        )

    async def check(
        self,
        operation: str,
        handle: str,
        poll: Poll,
        elapsed: float,
        timeout: float,
    ) -> StepStatus:
        """Poll a step once.

        The handle is always polled, so a step that finished after its
        deadline still reports its terminal state.

        Args:
            operation: Description used in logs and errors
            handle: Operation handle
            poll: Returns the current status for a handle
            elapsed: Seconds spent on this step so far
            timeout: Maximum seconds allowed for the step

        Returns:
            StepStatus that is either in progress or succeeded

        Raises:
            StepTimeoutError: If the step is still in progress and elapsed exceeds timeout
            StepFailedError: If the step ended Failed or Cancelled
        """
        status = await poll(handle)

        if status.state in (StepState.FAILED, StepState.CANCELLED):
            logger.error(
                "step_failed",
                operation=operation,
                handle=handle,
                status=status.raw_status or status.state.value,
                errors=status.error_messages,
            )
            raise StepFailedError(
                operation, status.raw_status or status.state.value, status.error_messages
            )

        if status.state == StepState.SUCCEEDED:
            logger.info("step_succeeded", operation=operation, handle=handle)
            return status

        if elapsed > timeout:
            raise self._timed_out(operation, handle, elapsed, timeout)

        return status

    def _timed_out(
        self, operation: str, handle: str, elapsed: float, timeout: float
    ) -> StepTimeoutError:
        logger.warning(
            "step_timeout",
            operation=operation,
            handle=handle,
            elapsed=int(elapsed),
            limit=int(timeout),
        )
        return StepTimeoutError(
            operation,
            elapsed,
            timeout,
            details=f"update {handle} did not complete within {int(timeout // 60)} minutes",
        )
