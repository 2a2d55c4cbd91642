from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, List, Optional, TextIO, Union
import sys

if TYPE_CHECKING:
    from .newton import NewtonStatus

__all__ = [
    "ConditioningFlag",
    "NewtonStart",
    "StepDiagnostic",
    "NewtonSummary",
    "Reporter",
    "NullReporter",
    "RecordingReporter",
    "ConsoleReporter",
    "TeeReporter",
]


class ConditioningFlag(Enum):
    NORMAL = "normal"
    SINGULAR = "singular"
    ILL_CONDITIONED = "ill-conditioned"


@dataclass(frozen=True)
class NewtonStart:
    """Emitted once, after the residual/Jacobian at x0 have been evaluated."""
    norm_F0: float
    norm_x0: float


@dataclass(frozen=True)
class StepDiagnostic:
    """One Newton step.

    norm_F, norm_x are measured at the new iterate; norm_step is the norm of
    the step that produced it; conditioning is what the linear solve reported.
    """
    iteration: int
    norm_F: float
    norm_x: float
    norm_step: float
    conditioning: ConditioningFlag


@dataclass(frozen=True)
class NewtonSummary:
    """Emitted once on termination.

    final_norm_x / final_norm_step are only filled in when the run stopped
    because the step became too small.
    """
    status: "NewtonStatus"
    message: str
    iterations: int
    final_norm_F: float
    final_norm_x: Optional[float] = None
    final_norm_step: Optional[float] = None


Event = Union[NewtonStart, StepDiagnostic, NewtonSummary]


class Reporter:
    """Diagnostic sink. The solver only ever calls record(event)."""

    def record(self, event: Event) -> None:
        raise NotImplementedError


class NullReporter(Reporter):
    def record(self, event: Event) -> None:
        return None


@dataclass
class RecordingReporter(Reporter):
    """Keeps every event in memory (tests, post-processing, plotting)."""
    events: List[Event] = field(default_factory=list)

    def record(self, event: Event) -> None:
        self.events.append(event)

    @property
    def start(self) -> Optional[NewtonStart]:
        for e in self.events:
            if isinstance(e, NewtonStart):
                return e
        return None

    @property
    def steps(self) -> List[StepDiagnostic]:
        return [e for e in self.events if isinstance(e, StepDiagnostic)]

    @property
    def summary(self) -> Optional[NewtonSummary]:
        for e in reversed(self.events):
            if isinstance(e, NewtonSummary):
                return e
        return None


_FLAG_TAG = {
    ConditioningFlag.NORMAL: "-",
    ConditioningFlag.SINGULAR: "sing",
    ConditioningFlag.ILL_CONDITIONED: "ill-cond",
}

_RULE = " " + "-" * 59


class ConsoleReporter(Reporter):
    """Fixed-width iteration table.

    Row k lists ||F|| and ||x|| at iterate k followed by the step taken from
    it, so a row is only complete once the next step event arrives:

      Iter      Norm-F         Norm-x       Norm-step    Warning
          0  1.0000000e+00  0.0000000e+00  1.0000000e+00   -
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream if stream is not None else sys.stdout
        self._pending: Optional[str] = None

    def _write(self, text: str) -> None:
        print(text, file=self.stream)

    @staticmethod
    def _row(iteration: int, norm_F: float, norm_x: float) -> str:
        return f" {iteration:5d} {norm_F:14.7e} {norm_x:14.7e}"

    def record(self, event: Event) -> None:
        if isinstance(event, NewtonStart):
            self._write(_RULE)
            self._write(f"{'Newton Method':^60}")
            self._write(_RULE)
            self._write("  Iter      Norm-F         Norm-x       Norm-step    Warning")
            self._pending = self._row(0, event.norm_F0, event.norm_x0)
        elif isinstance(event, StepDiagnostic):
            if self._pending is not None:
                self._write(f"{self._pending} {event.norm_step:14.7e}   {_FLAG_TAG[event.conditioning]}")
            self._pending = self._row(event.iteration, event.norm_F, event.norm_x)
        elif isinstance(event, NewtonSummary):
            if self._pending is not None:
                self._write(self._pending)
                self._pending = None
            self._write("")
            self._write(f" Result     : {event.message}")
            if event.final_norm_x is not None:
                self._write(f"              ||x||    : {event.final_norm_x:13.7e}")
            if event.final_norm_step is not None:
                self._write(f"              ||step|| : {event.final_norm_step:13.7e}")
            self._write(f" Iterations : {event.iterations:<5d}")
            self._write(f" Final |F|  : {event.final_norm_F:13.7e}")
            self._write(" " + "-" * 50)


class TeeReporter(Reporter):
    """Forward each event to several reporters, in order."""

    def __init__(self, *reporters: Reporter):
        self.reporters = list(reporters)

    def record(self, event: Event) -> None:
        for r in self.reporters:
            r.record(event)
