import io
import signal

from bootstrapper.progress import ConsoleProgress, NullProgress, ProgressSink

from conftest import RecordingProgress


def test_sinks_satisfy_protocol():
    assert isinstance(NullProgress(), ProgressSink)
    assert isinstance(ConsoleProgress(), ProgressSink)
    assert isinstance(RecordingProgress(), ProgressSink)


def test_null_progress_never_cancels():
    progress = NullProgress()
    progress.set_lines("a", "b", "c")
    progress.set_percent(40)
    progress.set_cancel_text("Close")
    assert (progress.line1, progress.line2, progress.line3) == ("a", "b", "c")
    assert progress.percent == 40
    assert not progress.cancelled()
    assert progress.confirm("Sure?")


def test_console_progress_renders_and_closes_once(monkeypatch):
    monkeypatch.setattr("sys.stdin", io.StringIO())
    output = io.StringIO()
    handler_before = signal.getsignal(signal.SIGINT)

    progress = ConsoleProgress(title="App", file=output)
    progress.show()
    progress.set_lines("Installing App", "Downloading...", "")
    progress.line3 = "10 KB / 20 KB"
    progress.set_percent(50)
    assert not progress.cancelled()

    progress.set_cancel_text("Close")
    assert progress.cancelled()

    progress.close()
    progress.close()
    assert "Installing App" in output.getvalue()
    assert signal.getsignal(signal.SIGINT) == handler_before


def test_console_progress_interrupt_requests_cancellation():
    progress = ConsoleProgress(file=io.StringIO())
    progress._on_interrupt(signal.SIGINT, None)
    assert progress.cancelled()
