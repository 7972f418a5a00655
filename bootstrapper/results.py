# results.py
"""Step outcomes: every step returns exactly one of ``Continue``, ``Stop`` or ``Abort``."""

from dataclasses import dataclass
from typing import Optional, Union

from .types import FailureKind


@dataclass(frozen=True)
class AbortReason:
    """Why a run ended as a failure."""
    kind: FailureKind
    message: str = ""
    cause: Optional[BaseException] = None


@dataclass(frozen=True)
class Continue:
    """Proceed with the next step."""


@dataclass(frozen=True)
class Stop:
    """End the run successfully without running the remaining steps."""
    message: str = ""


@dataclass(frozen=True)
class Abort:
    """End the run as a failure."""
    reason: AbortReason

    @classmethod
    def because(cls, kind: FailureKind, message: str = "", cause: Optional[BaseException] = None) -> "Abort":
        return cls(AbortReason(kind, message, cause))

    @classmethod
    def cancelled(cls) -> "Abort":
        return cls(AbortReason(FailureKind.CANCELLED, "Operation cancelled by the user"))

    @classmethod
    def unexpected(cls, exc: BaseException) -> "Abort":
        return cls(AbortReason(FailureKind.UNEXPECTED, str(exc) or type(exc).__name__, exc))

    @property
    def kind(self) -> FailureKind:
        return self.reason.kind


StepResult = Union[Continue, Stop, Abort]
