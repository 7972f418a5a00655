# orchestrator.py
"""
Sequential step runner.

A run walks a list of steps over one ``InstallContext``. Each step returns a
``StepResult``; the runner turns it into the next transition:

    NOT_STARTED -> RUNNING -> COMPLETED | STOPPED | ABORTED | CANCELLED

COMPLETED and STOPPED are successful outcomes, the other two are failures.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence

from loguru import logger

from .context import CancellationToken, InstallContext
from .logger import LoggingTelemetry, TelemetryCollector
from .progress import ProgressSink
from .results import Abort, AbortReason, Continue, StepResult, Stop
from .types import FailureKind, OperationCancelled

Step = Callable[[ProgressSink, InstallContext, CancellationToken], Awaitable[StepResult]]
SuccessCallback = Callable[[InstallContext], Awaitable[None]]

POLL_INTERVAL = 0.1


def named_step(name: str) -> Callable[[Step], Step]:
    """Give a step a display name other than its function name."""
    def decorator(step: Step) -> Step:
        step.step_name = name
        return step
    return decorator


def step_name(step: Step) -> str:
    return getattr(step, "step_name", None) or getattr(step, "__name__", repr(step))


async def run_step(
    step: Step,
    progress: ProgressSink,
    context: InstallContext,
    cancel: CancellationToken,
) -> StepResult:
    """
    Run one step and always come back with a ``StepResult``.

    Cancellation becomes ``Abort(CANCELLED)``; any other exception becomes
    ``Abort(UNEXPECTED)`` carrying the exception as its cause.
    """
    try:
        result = await step(progress, context, cancel)
    except (OperationCancelled, asyncio.CancelledError):
        cancel.cancel()
        return Abort.cancelled()
    except Exception as e:
        return Abort.unexpected(e)

    if not isinstance(result, (Continue, Stop, Abort)):
        return Abort.unexpected(
            TypeError(f"Step {step_name(step)} returned {result!r} instead of a StepResult")
        )
    return result


class RunState(Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    STOPPED = "stopped"
    ABORTED = "aborted"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class RunOutcome:
    """Terminal state of a run and the step that produced it."""
    state: RunState
    step_index: Optional[int] = None
    step_name: Optional[str] = None
    reason: Optional[AbortReason] = None

    @property
    def succeeded(self) -> bool:
        return self.state in (RunState.COMPLETED, RunState.STOPPED)


class Orchestrator:
    """
    Runs install or uninstall steps against a progress surface.

    Args:
        steps: Steps in execution order.
        context: Context shared by the steps of this run.
        progress: Progress surface; closed exactly once when the run ends.
        operation: Name used in messages ("Installation", "Uninstallation").
        quiet: Never show the surface nor wait for the user.
        auto_close: Close right after a successful install instead of waiting.
        telemetry: Collector for unexpected failures.
        cancel: Cancellation token shared with the steps.
        on_success: Awaited after a successful run, once the surface is closed.
    """

    def __init__(
        self,
        steps: Sequence[Step],
        context: InstallContext,
        progress: ProgressSink,
        operation: str = "Installation",
        quiet: bool = False,
        auto_close: bool = False,
        telemetry: Optional[TelemetryCollector] = None,
        cancel: Optional[CancellationToken] = None,
        on_success: Optional[SuccessCallback] = None,
        poll_interval: float = POLL_INTERVAL,
    ):
        self.steps: List[Step] = list(steps)
        self.context = context
        self.progress = progress
        self.operation = operation
        self.quiet = quiet
        self.auto_close = auto_close
        self.telemetry = telemetry or LoggingTelemetry()
        self.cancel = cancel or CancellationToken()
        self.on_success = on_success
        self.poll_interval = poll_interval
        self.state = RunState.NOT_STARTED
        self._progress_closed = False

    async def run(self) -> RunOutcome:
        """Execute the steps and return the terminal outcome."""
        self.state = RunState.RUNNING
        watcher = asyncio.create_task(self._watch_progress_cancel())
        try:
            if not self.quiet:
                self.progress.show()
            outcome = await self._execute()
        except Exception as e:
            logger.exception(f"{self.operation} encountered an unexpected error.")
            self.telemetry.capture_exception(e, operation=self.operation)
            outcome = RunOutcome(RunState.ABORTED, reason=Abort.unexpected(e).reason)
        finally:
            watcher.cancel()
            await asyncio.gather(watcher, return_exceptions=True)
            self._close_progress()

        self.state = outcome.state
        if outcome.succeeded and self.on_success is not None:
            await self._run_success_callback()
        return outcome

    async def _execute(self) -> RunOutcome:
        for index, step in enumerate(self.steps):
            number = index + 1
            name = step_name(step)

            if self.cancel.cancelled or self.progress.cancelled():
                self.cancel.cancel()
                logger.warning(f"{self.operation} cancelled by user before step {number} ({name}).")
                return RunOutcome(RunState.CANCELLED, number, name, Abort.cancelled().reason)

            self.progress.set_lines("", "", "")
            logger.debug(f"{self.operation} step {number}: {name}")

            result = await run_step(step, self.progress, self.context, self.cancel)
            match result:
                case Continue():
                    continue
                case Stop():
                    logger.info(
                        f"{self.operation} stopped at step {number} ({name}). "
                        f"No further actions required."
                    )
                    return RunOutcome(RunState.STOPPED, number, name)
                case Abort(reason=reason) if reason.kind is FailureKind.CANCELLED:
                    logger.warning(f"{self.operation} step {number} ({name}) was canceled.")
                    await self._report_failure(number, cancelled=True)
                    return RunOutcome(RunState.CANCELLED, number, name, reason)
                case Abort(reason=reason):
                    self._log_abort(number, name, reason)
                    await self._report_failure(number, cancelled=False)
                    return RunOutcome(RunState.ABORTED, number, name, reason)
                case _:
                    raise TypeError(f"Unhandled step result: {result!r}")

        await self._report_completion()
        return RunOutcome(RunState.COMPLETED, len(self.steps), step_name(self.steps[-1]) if self.steps else None)

    def _log_abort(self, number: int, name: str, reason: AbortReason) -> None:
        if reason.kind is FailureKind.UNEXPECTED:
            logger.opt(exception=reason.cause).error(
                f"{self.operation} step {number} ({name}) encountered an unexpected error."
            )
            if reason.cause is not None:
                self.telemetry.capture_exception(
                    reason.cause, operation=self.operation, step=name, step_number=number
                )
        else:
            logger.error(
                f"{self.operation} aborted at step {number} ({name}): "
                f"[{reason.kind.value}] {reason.message}"
            )

    async def _report_failure(self, number: int, cancelled: bool) -> None:
        if self.quiet:
            return
        # Messages set by the step take precedence over the defaults.
        if cancelled:
            default_line1 = f"{self.operation} was canceled."
            default_line2 = f"Step {number} did not complete successfully."
        else:
            default_line1 = f"{self.operation} failed!"
            default_line2 = f"Step {number} encountered an error."
        if not self.progress.line1:
            self.progress.line1 = default_line1
        if not self.progress.line2:
            self.progress.line2 = default_line2
        self.progress.set_cancel_text("Close")
        await self.wait_for_acknowledgment()

    async def _report_completion(self) -> None:
        if self.quiet or not self.context.performed_install:
            return
        self.progress.set_lines(
            f"{self.operation} completed successfully!", "You can close this window.", ""
        )
        self.progress.set_cancel_text("Close")
        if self.auto_close:
            self._close_progress()
        else:
            await self.wait_for_acknowledgment()

    async def wait_for_acknowledgment(self) -> None:
        """Poll until the user dismisses the surface or cancellation is requested."""
        while not self.progress.cancelled() and not self.cancel.cancelled:
            await asyncio.sleep(self.poll_interval)

    async def _watch_progress_cancel(self) -> None:
        # The surface has no notification channel, so it is polled.
        while not self.cancel.cancelled:
            if self.progress.cancelled():
                self.cancel.cancel()
                return
            await asyncio.sleep(self.poll_interval)

    def _close_progress(self) -> None:
        if self._progress_closed:
            return
        self._progress_closed = True
        self.progress.close()

    async def _run_success_callback(self) -> None:
        try:
            await self.on_success(self.context)
        except Exception as e:
            logger.exception(f"Post-{self.operation.lower()} action failed")
            self.telemetry.capture_exception(e, operation=self.operation, phase="on_success")
