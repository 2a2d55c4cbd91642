from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

import numpy as np

from .linsolve import ConditioningSignal, LinearSolveResult, solve_linear
from .problem import NewtonProblem
from .report import (
    ConditioningFlag,
    ConsoleReporter,
    NewtonStart,
    NewtonSummary,
    NullReporter,
    Reporter,
    StepDiagnostic,
)

__all__ = [
    "TINY",
    "NewtonStatus",
    "IterateState",
    "NewtonOutcome",
    "NewtonError",
    "NewtonOptions",
    "NewtonSolver",
    "newton_solve",
]


# Step-size floor for the stagnation test: ||p|| < (1+||x||)*TINY.
TINY = float(np.finfo(float).eps) ** (2.0 / 3.0)

LinearSolver = Callable[[np.ndarray, np.ndarray], LinearSolveResult]


class NewtonStatus(IntEnum):
    """Reason for termination. Negative codes are failures."""

    CONVERGED = 0
    STEP_TOO_SMALL = 1
    MAX_ITERATIONS = 2
    INVALID_INPUT = -1
    NAN_OR_INF = -2
    UNCLASSIFIED_WARNING = -9


@dataclass
class IterateState:
    """Mutable state of one solve: the iterate x and F, J evaluated at x."""
    x: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=float))
    F: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=float))
    J: np.ndarray = field(default_factory=lambda: np.zeros((0, 0), dtype=float))
    iteration_count: int = 0
    norm_F: float = 0.0
    norm_F0: float = 0.0
    norm_x: float = 0.0


@dataclass(frozen=True)
class NewtonOutcome:
    status: NewtonStatus
    iterations: int
    message: str
    final_norm_F: float = 0.0
    final_norm_x: float = 0.0
    final_norm_step: Optional[float] = None

    @property
    def converged(self) -> bool:
        return self.status == NewtonStatus.CONVERGED

    @property
    def failed(self) -> bool:
        return int(self.status) < 0

    def check(self, allow: Sequence[NewtonStatus] = (NewtonStatus.CONVERGED,)) -> "NewtonOutcome":
        """Raise NewtonError unless the status is one of `allow`; returns self."""
        if self.status not in tuple(allow):
            raise NewtonError(self)
        return self


class NewtonError(RuntimeError):
    def __init__(self, outcome: NewtonOutcome):
        super().__init__(
            f"Newton terminated with {outcome.status.name} after {outcome.iterations} iterations: "
            f"{outcome.message} (|F|={outcome.final_norm_F:.3e})"
        )
        self.outcome = outcome


def _is_int(v: Any) -> bool:
    return isinstance(v, (int, np.integer)) and not isinstance(v, (bool, np.bool_))


def _is_real(v: Any) -> bool:
    return isinstance(v, (int, float, np.integer, np.floating)) and not isinstance(v, (bool, np.bool_))


def _invalid_argument(x0: Any, maxiter: Any, tol: Any, verbosity: Any, tiny: Any) -> Optional[str]:
    """Name of the first bad argument, or None."""
    try:
        x = np.asarray(x0, dtype=float)
    except (TypeError, ValueError):
        return "x0"
    if x.ndim > 1 or x.size == 0:
        return "x0"
    if not _is_int(maxiter) or maxiter < 0:
        return "maxiter"
    if not _is_int(verbosity) or verbosity < 0:
        return "verbosity"
    # `not (v >= 0)` also rejects NaN
    if not _is_real(tol) or not (tol >= 0):
        return "tol"
    if not _is_real(tiny) or not (tiny >= 0):
        return "tiny"
    return None


def _evaluate(problem: NewtonProblem, x: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    n = x.size
    F = np.asarray(problem.residual(x.copy()), dtype=float).reshape(-1)
    if F.size != n:
        raise ValueError(f"residual(x) must return shape ({n},), got {F.shape}.")
    J = np.asarray(problem.jacobian(x.copy()), dtype=float)
    if n == 1 and J.size == 1:
        # scalar derivative for a 1D problem
        J = J.reshape(1, 1)
    if J.shape != (n, n):
        raise ValueError(f"jacobian(x) must return shape ({n},{n}), got {J.shape}.")
    return F, J


def _conditioning_flag(signal: ConditioningSignal) -> Optional[ConditioningFlag]:
    """Map the solver signal onto a flag; None means 'unrecognized'."""
    if signal is ConditioningSignal.NONE:
        return ConditioningFlag.NORMAL
    elif signal is ConditioningSignal.SINGULAR:
        return ConditioningFlag.SINGULAR
    elif signal is ConditioningSignal.ILL_CONDITIONED:
        return ConditioningFlag.ILL_CONDITIONED
    else:
        return None


def _norm(v: np.ndarray) -> float:
    return float(np.linalg.norm(v)) if v.size else 0.0


def newton_solve(
    problem: NewtonProblem,
    x0: Any,
    *,
    maxiter: int = 50,
    tol: float = 1e-10,
    verbosity: int = 0,
    reporter: Optional[Reporter] = None,
    linear_solver: LinearSolver = solve_linear,
    tiny: float = TINY,
) -> Tuple[IterateState, NewtonOutcome]:
    """Undamped Newton iteration for F(x) = 0.

    Parameters
    ----------
    problem
        Anything with residual(x) -> (n,) and jacobian(x) -> (n,n).
    x0
        Initial guess, (n,) array-like (a scalar is treated as n=1).
    maxiter
        Maximum number of Newton steps (>= 0).
    tol
        Relative stopping tolerance: stop when ||F|| <= tol*max(1, ||F(x0)||).
    verbosity
        0 = silent; > 0 sends a NewtonStart, one StepDiagnostic per step and a
        NewtonSummary to `reporter` (a ConsoleReporter if none is given).
    linear_solver
        Primitive solving J p = b and reporting its conditioning
        (see core/linsolve.py).
    tiny
        Stagnation threshold: a step with ||p|| < (1+||x_prev||)*tiny stops
        the run with STEP_TOO_SMALL.

    Returns
    -------
    state, outcome
        Final IterateState (empty if the input was rejected) and the
        NewtonOutcome. Failures are reported through outcome.status, never
        raised; use outcome.check() to turn them into a NewtonError.

    Notes
    -----
    Singular and ill-conditioned Jacobians are not fatal: the best-effort step
    from the linear solver is taken and the non-finite/stagnation checks decide
    whether the run can go on. Any other report from the linear solver ends the
    run with UNCLASSIFIED_WARNING.
    """
    bad = _invalid_argument(x0, maxiter, tol, verbosity, tiny)
    if bad is not None:
        outcome = NewtonOutcome(NewtonStatus.INVALID_INPUT, 0, f"Invalid value for argument {bad}")
        if _is_int(verbosity) and verbosity > 0:
            (reporter if reporter is not None else ConsoleReporter()).record(
                NewtonSummary(status=outcome.status, message=outcome.message, iterations=0, final_norm_F=0.0)
            )
        return IterateState(), outcome

    if verbosity == 0:
        reporter = NullReporter()
    elif reporter is None:
        reporter = ConsoleReporter()

    tol_f = float(tol)
    tiny_f = float(tiny)

    # --- initialization ---
    x = np.array(x0, dtype=float).reshape(-1)
    F, J = _evaluate(problem, x)
    state = IterateState(x=x, F=F, J=J, iteration_count=0)
    state.norm_x = _norm(x)
    state.norm_F = _norm(F)
    state.norm_F0 = state.norm_F

    reporter.record(NewtonStart(norm_F0=state.norm_F0, norm_x0=state.norm_x))

    norm_p: Optional[float] = None
    status: NewtonStatus
    message: str

    if not np.all(np.isfinite(F)):
        status, message = NewtonStatus.NAN_OR_INF, "NaN/Inf when evaluating F at x0"
    elif not np.all(np.isfinite(J)):
        status, message = NewtonStatus.NAN_OR_INF, "NaN/Inf when evaluating J at x0"
    else:
        status, message, norm_p = _iterate(problem, state, maxiter, tol_f, tiny_f, linear_solver, reporter)

    outcome = NewtonOutcome(
        status=status,
        iterations=state.iteration_count,
        message=message,
        final_norm_F=state.norm_F,
        final_norm_x=state.norm_x,
        final_norm_step=norm_p,
    )

    too_small = status == NewtonStatus.STEP_TOO_SMALL
    reporter.record(
        NewtonSummary(
            status=status,
            message=message,
            iterations=state.iteration_count,
            final_norm_F=state.norm_F,
            final_norm_x=state.norm_x if too_small else None,
            final_norm_step=norm_p if too_small else None,
        )
    )
    return state, outcome


def _iterate(
    problem: NewtonProblem,
    state: IterateState,
    maxiter: int,
    tol: float,
    tiny: float,
    linear_solver: LinearSolver,
    reporter: Reporter,
) -> Tuple[NewtonStatus, str, Optional[float]]:
    """Main loop; mutates `state` and returns (status, message, last step norm)."""
    n = state.x.size
    norm_p: Optional[float] = None

    while True:
        # termination test comes before the step, so x0 itself may be accepted
        if state.norm_F <= tol * max(1.0, state.norm_F0):
            return NewtonStatus.CONVERGED, "Relative stopping tolerance reached", norm_p
        if state.iteration_count >= maxiter:
            return NewtonStatus.MAX_ITERATIONS, "Maximum allowed iterations reached", norm_p

        # Newton step: J p = -F
        result = linear_solver(state.J, -state.F)
        flag = _conditioning_flag(result.signal)
        if flag is None:
            detail = f": {result.message}" if result.message else ""
            return NewtonStatus.UNCLASSIFIED_WARNING, f"Unknown warning from the linear solver{detail}", norm_p

        p = np.asarray(result.solution, dtype=float).reshape(-1)
        if p.size != n:
            raise ValueError(f"linear_solver returned a step of shape {p.shape}, expected ({n},).")
        if not np.all(np.isfinite(p)):
            return NewtonStatus.NAN_OR_INF, "NaN/Inf in the search direction", norm_p
        norm_p = _norm(p)

        norm_x_prev = state.norm_x

        x_new = state.x + p
        F, J = _evaluate(problem, x_new)
        state.iteration_count += 1
        state.x = x_new
        state.F = F
        state.J = J
        state.norm_x = _norm(x_new)
        state.norm_F = _norm(F)

        if not np.all(np.isfinite(F)):
            return NewtonStatus.NAN_OR_INF, "NaN/Inf when evaluating F", norm_p
        if not np.all(np.isfinite(J)):
            return NewtonStatus.NAN_OR_INF, "NaN/Inf when evaluating J", norm_p

        reporter.record(
            StepDiagnostic(
                iteration=state.iteration_count,
                norm_F=state.norm_F,
                norm_x=state.norm_x,
                norm_step=norm_p,
                conditioning=flag,
            )
        )

        if norm_p < (1.0 + norm_x_prev) * tiny:
            return NewtonStatus.STEP_TOO_SMALL, "Newton step is too small to make additional progress", norm_p


@dataclass
class NewtonOptions:
    """Iteration controls for NewtonSolver / newton_solve."""
    maxiter: int = 50
    tol: float = 1e-10
    verbosity: int = 0
    tiny: float = TINY

    def kwargs(self) -> Dict[str, Any]:
        """Convert to newton_solve kwargs."""
        return dict(maxiter=self.maxiter, tol=self.tol, verbosity=self.verbosity, tiny=self.tiny)


class NewtonSolver:
    """Reusable solver bound to options, a reporting sink and a linear solver.

    Holds no per-run state, so one instance may serve independent solves.
    """

    def __init__(
        self,
        options: Optional[NewtonOptions] = None,
        *,
        reporter: Optional[Reporter] = None,
        linear_solver: LinearSolver = solve_linear,
    ):
        self.options = options if options is not None else NewtonOptions()
        self.reporter = reporter
        self.linear_solver = linear_solver

    def solve(self, problem: NewtonProblem, x0: Any) -> Tuple[IterateState, NewtonOutcome]:
        return newton_solve(
            problem,
            x0,
            reporter=self.reporter,
            linear_solver=self.linear_solver,
            **self.options.kwargs(),
        )
