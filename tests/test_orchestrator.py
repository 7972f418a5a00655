import asyncio
from unittest.mock import MagicMock

import pytest

from bootstrapper.context import CancellationToken
from bootstrapper.orchestrator import Orchestrator, RunState, named_step, run_step, step_name
from bootstrapper.results import Abort, Continue, Stop
from bootstrapper.types import FailureKind, OperationCancelled

from conftest import RecordingProgress


class Recorder:
    """Builds steps that log their invocation before returning a fixed result."""

    def __init__(self):
        self.calls = []

    def step(self, name, result=None, raises=None, lines=None):
        async def _step(progress, context, cancel):
            self.calls.append(name)
            if lines:
                progress.set_lines(*lines)
            if raises is not None:
                raise raises
            return Continue() if result is None else result

        _step.__name__ = name
        return _step


@pytest.fixture
def recorder():
    return Recorder()


def orchestrator(steps, context, progress, **kwargs) -> Orchestrator:
    kwargs.setdefault("poll_interval", 0.01)
    return Orchestrator(steps, context, progress, **kwargs)


@pytest.mark.asyncio
async def test_all_steps_continue(recorder, context, progress):
    steps = [recorder.step("a"), recorder.step("b"), recorder.step("c")]
    outcome = await orchestrator(steps, context, progress).run()

    assert outcome.state is RunState.COMPLETED
    assert outcome.succeeded
    assert recorder.calls == ["a", "b", "c"]
    assert progress.shown == 1
    assert progress.closed == 1


@pytest.mark.asyncio
async def test_lines_reset_before_each_step(recorder, context, progress):
    steps = [recorder.step("a", lines=("one", "two", "three")), recorder.step("b")]
    await orchestrator(steps, context, progress).run()
    assert progress.history == [("", "", ""), ("one", "two", "three"), ("", "", "")]


@pytest.mark.asyncio
async def test_completion_message_after_install(recorder, context, progress):
    async def install(progress, context, cancel):
        context.performed_install = True
        return Continue()

    outcome = await orchestrator([install], context, progress, operation="Installation").run()

    assert outcome.state is RunState.COMPLETED
    assert progress.history[-1] == ("Installation completed successfully!", "You can close this window.", "")
    assert progress.cancel_text == "Close"
    assert progress.closed == 1


@pytest.mark.asyncio
async def test_auto_close_does_not_wait(context):
    progress = RecordingProgress(acknowledge=False)

    async def install(progress, context, cancel):
        context.performed_install = True
        return Continue()

    outcome = await asyncio.wait_for(orchestrator([install], context, progress, auto_close=True).run(), 5)
    assert outcome.succeeded
    assert progress.closed == 1


@pytest.mark.asyncio
async def test_no_completion_message_without_install(recorder, context, progress):
    await orchestrator([recorder.step("a")], context, progress).run()
    assert "Installation completed successfully!" not in [h[0] for h in progress.history]
    assert progress.cancel_text == "Cancel"


@pytest.mark.asyncio
async def test_stop_skips_remaining_steps(recorder, context, progress):
    steps = [recorder.step("a"), recorder.step("b", Stop("up to date")), recorder.step("c")]
    outcome = await orchestrator(steps, context, progress).run()

    assert outcome.state is RunState.STOPPED
    assert outcome.succeeded
    assert (outcome.step_index, outcome.step_name) == (2, "b")
    assert recorder.calls == ["a", "b"]
    assert progress.closed == 1


@pytest.mark.asyncio
async def test_abort_reports_default_messages(recorder, context, progress):
    steps = [recorder.step("a"), recorder.step("b", Abort.because(FailureKind.NETWORK, "offline")), recorder.step("c")]
    outcome = await orchestrator(steps, context, progress).run()

    assert outcome.state is RunState.ABORTED
    assert not outcome.succeeded
    assert outcome.reason.kind is FailureKind.NETWORK
    assert outcome.reason.message == "offline"
    assert recorder.calls == ["a", "b"]
    assert progress.line1 == "Installation failed!"
    assert progress.line2 == "Step 2 encountered an error."
    assert progress.cancel_text == "Close"
    assert progress.closed == 1


@pytest.mark.asyncio
async def test_abort_keeps_step_messages(recorder, context, progress):
    step = recorder.step(
        "a", Abort.because(FailureKind.ENVIRONMENT), lines=("Unsupported system", "", "Details")
    )
    await orchestrator([step], context, progress).run()
    assert progress.line1 == "Unsupported system"
    assert progress.line2 == "Step 1 encountered an error."
    assert progress.line3 == "Details"


@pytest.mark.asyncio
async def test_unexpected_exception_is_reported(recorder, context, progress):
    telemetry = MagicMock()
    error = RuntimeError("boom")
    steps = [recorder.step("a", raises=error), recorder.step("b")]
    outcome = await orchestrator(steps, context, progress, telemetry=telemetry).run()

    assert outcome.state is RunState.ABORTED
    assert outcome.reason.kind is FailureKind.UNEXPECTED
    assert outcome.reason.cause is error
    assert recorder.calls == ["a"]
    telemetry.capture_exception.assert_called_once()
    assert telemetry.capture_exception.call_args.args[0] is error
    assert telemetry.capture_exception.call_args.kwargs["step"] == "a"


@pytest.mark.asyncio
async def test_expected_abort_is_not_sent_to_telemetry(recorder, context, progress):
    telemetry = MagicMock()
    step = recorder.step("a", Abort.because(FailureKind.NETWORK, "offline"))
    await orchestrator([step], context, progress, telemetry=telemetry).run()
    telemetry.capture_exception.assert_not_called()


@pytest.mark.asyncio
async def test_step_raising_cancellation(recorder, context, progress):
    cancel = CancellationToken()
    steps = [recorder.step("a", raises=OperationCancelled("stop")), recorder.step("b")]
    outcome = await orchestrator(steps, context, progress, cancel=cancel).run()

    assert outcome.state is RunState.CANCELLED
    assert outcome.reason.kind is FailureKind.CANCELLED
    assert cancel.cancelled
    assert recorder.calls == ["a"]
    assert progress.line1 == "Installation was canceled."
    assert progress.line2 == "Step 1 did not complete successfully."


@pytest.mark.asyncio
async def test_cancel_before_step(recorder, context, progress):
    cancel = CancellationToken()

    async def cancelling(progress, context, cancel):
        cancel.cancel()
        return Continue()

    outcome = await orchestrator([cancelling, recorder.step("b")], context, progress, cancel=cancel).run()

    assert outcome.state is RunState.CANCELLED
    assert outcome.step_index == 2
    assert recorder.calls == []
    assert progress.closed == 1


@pytest.mark.asyncio
async def test_progress_cancel_propagates_to_token(context):
    progress = RecordingProgress()
    cancel = CancellationToken()

    async def waits_for_cancel(progress, context, cancel):
        progress.user_cancelled = True
        for _ in range(500):
            cancel.raise_if_cancelled()
            await asyncio.sleep(0.01)
        return Continue()

    outcome = await orchestrator([waits_for_cancel], context, progress, cancel=cancel).run()
    assert outcome.state is RunState.CANCELLED
    assert cancel.cancelled


@pytest.mark.asyncio
async def test_invalid_step_result(context, progress):
    async def broken(progress, context, cancel):
        return "done"

    outcome = await orchestrator([broken], context, progress).run()
    assert outcome.state is RunState.ABORTED
    assert isinstance(outcome.reason.cause, TypeError)


@pytest.mark.asyncio
async def test_quiet_run_never_shows_or_waits(recorder, context):
    progress = RecordingProgress(acknowledge=False)
    step = recorder.step("a", Abort.because(FailureKind.NETWORK, "offline"))
    outcome = await asyncio.wait_for(orchestrator([step], context, progress, quiet=True).run(), 5)

    assert outcome.state is RunState.ABORTED
    assert progress.shown == 0
    assert progress.closed == 1
    assert progress.line1 == ""


@pytest.mark.asyncio
async def test_on_success_runs_only_after_success(recorder, context, progress):
    calls = []

    async def on_success(ctx):
        calls.append(ctx)

    await orchestrator([recorder.step("a", Stop())], context, progress, on_success=on_success).run()
    assert calls == [context]

    progress = RecordingProgress()
    failing = recorder.step("b", Abort.because(FailureKind.APPLICATION))
    await orchestrator([failing], context, progress, on_success=on_success).run()
    assert calls == [context]


@pytest.mark.asyncio
async def test_on_success_failure_is_contained(recorder, context, progress):
    telemetry = MagicMock()

    async def on_success(ctx):
        raise OSError("cannot launch")

    outcome = await orchestrator(
        [recorder.step("a")], context, progress, telemetry=telemetry, on_success=on_success
    ).run()
    assert outcome.succeeded
    telemetry.capture_exception.assert_called_once()


@pytest.mark.asyncio
async def test_run_step_wraps_exceptions(context, progress):
    async def failing(progress, context, cancel):
        raise ValueError("bad")

    result = await run_step(failing, progress, context, CancellationToken())
    assert isinstance(result, Abort)
    assert result.kind is FailureKind.UNEXPECTED
    assert result.reason.message == "bad"


def test_step_names():
    @named_step("Download release")
    async def download(progress, context, cancel):
        return Continue()

    async def plain(progress, context, cancel):
        return Continue()

    assert step_name(download) == "Download release"
    assert step_name(plain) == "plain"
