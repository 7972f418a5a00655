# progress.py
"""
Progress surfaces.

The orchestrator and the steps only talk to the ``ProgressSink`` protocol:
three status lines, a percentage, a marquee flag and a cancel affordance. The
console implementation renders through tqdm; the quiet implementation only
records what it was told.
"""

from __future__ import annotations

import signal
import sys
import threading
from typing import Optional, Protocol, runtime_checkable

from loguru import logger
from rich.prompt import Confirm
from tqdm import tqdm


@runtime_checkable
class ProgressSink(Protocol):
    """Narrow interface to the interactive progress surface."""

    line1: str
    line2: str
    line3: str

    def set_lines(self, line1: str = "", line2: str = "", line3: str = "") -> None: ...

    def set_percent(self, percent: int) -> None: ...

    def set_marquee(self, marquee: bool) -> None: ...

    def set_cancel_text(self, text: str) -> None: ...

    def cancelled(self) -> bool: ...

    def confirm(self, question: str) -> bool: ...

    def show(self) -> None: ...

    def close(self) -> None: ...


class NullProgress:
    """Progress sink for quiet runs: nothing is displayed, nothing is ever cancelled."""

    def __init__(self) -> None:
        self.line1 = ""
        self.line2 = ""
        self.line3 = ""
        self.percent = 0
        self.marquee = True
        self.cancel_text = "Cancel"
        self.closed = 0

    def set_lines(self, line1: str = "", line2: str = "", line3: str = "") -> None:
        self.line1, self.line2, self.line3 = line1, line2, line3

    def set_percent(self, percent: int) -> None:
        self.percent = percent

    def set_marquee(self, marquee: bool) -> None:
        self.marquee = marquee

    def set_cancel_text(self, text: str) -> None:
        self.cancel_text = text

    def cancelled(self) -> bool:
        return False

    def confirm(self, question: str) -> bool:
        return True

    def show(self) -> None:
        pass

    def close(self) -> None:
        self.closed += 1


class ConsoleProgress:
    """
    Terminal progress surface backed by a tqdm bar.

    Ctrl+C requests cancellation instead of killing the process. Once the
    cancel affordance has been relabelled (e.g. to "Close"), pressing Enter
    acknowledges the final message.
    """

    def __init__(self, title: str = "", file=None) -> None:
        self.title = title
        self._file = file or sys.stderr
        self._bar: Optional[tqdm] = None
        self._cancel_event = threading.Event()
        self._previous_handler = None
        self._closed = False
        self._marquee = True
        self.cancel_text = "Cancel"
        self._line1 = ""
        self._line2 = ""
        self._line3 = ""

    # Lines are properties so that plain attribute assignment refreshes the bar.
    @property
    def line1(self) -> str:
        return self._line1

    @line1.setter
    def line1(self, value: str) -> None:
        self._line1 = value
        self._render()

    @property
    def line2(self) -> str:
        return self._line2

    @line2.setter
    def line2(self, value: str) -> None:
        self._line2 = value
        self._render()

    @property
    def line3(self) -> str:
        return self._line3

    @line3.setter
    def line3(self, value: str) -> None:
        self._line3 = value
        self._render()

    def show(self) -> None:
        self._bar = tqdm(
            total=100,
            desc=self.title,
            file=self._file,
            bar_format="{desc} |{bar}| {n_fmt}% {postfix}",
            leave=True,
        )
        if threading.current_thread() is threading.main_thread():
            self._previous_handler = signal.signal(signal.SIGINT, self._on_interrupt)

    def _on_interrupt(self, signum, frame) -> None:
        logger.warning("Cancellation requested from the console")
        self._cancel_event.set()

    def _render(self) -> None:
        if self._bar is None:
            return
        if self._line1 and self._line1 != self._bar.desc:
            self._bar.write(self._line1, file=self._file)
            self._bar.set_description_str(self._line1, refresh=False)
        self._bar.set_postfix_str(" - ".join(p for p in (self._line2, self._line3) if p))

    def set_lines(self, line1: str = "", line2: str = "", line3: str = "") -> None:
        self._line1, self._line2, self._line3 = line1, line2, line3
        self._render()

    def set_percent(self, percent: int) -> None:
        if self._bar is None:
            return
        self._bar.n = max(0, min(100, int(percent)))
        self._bar.refresh()

    def set_marquee(self, marquee: bool) -> None:
        self._marquee = marquee
        if marquee and self._bar is not None:
            self._bar.n = 0
            self._bar.refresh()

    def set_cancel_text(self, text: str) -> None:
        self.cancel_text = text
        if text.lower() != "close":
            return
        if not sys.stdin or not sys.stdin.isatty():
            self._cancel_event.set()
            return
        self._file.write(f"\n{self._line1}\n{self._line2}\n{self._line3}\nPress Enter to close.\n")
        threading.Thread(target=self._wait_for_enter, daemon=True).start()

    def _wait_for_enter(self) -> None:
        try:
            sys.stdin.readline()
        finally:
            self._cancel_event.set()

    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def confirm(self, question: str) -> bool:
        return Confirm.ask(question, default=False)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._bar is not None:
            self._bar.close()
        if self._previous_handler is not None:
            signal.signal(signal.SIGINT, self._previous_handler)
            self._previous_handler = None
