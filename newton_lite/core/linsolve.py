from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import numpy as np
from scipy import linalg
from scipy.linalg import lapack

__all__ = [
    "ConditioningSignal",
    "LinearSolveResult",
    "solve_linear",
]


class ConditioningSignal(Enum):
    """What the linear solver reported besides the solution itself."""

    NONE = "none"
    SINGULAR = "singular"
    ILL_CONDITIONED = "ill-conditioned"
    OTHER = "other"


@dataclass
class LinearSolveResult:
    """Solution of J p = b together with the solver's conditioning signal.

    - solution: (n,) array; best-effort when signal is SINGULAR.
    - signal: ConditioningSignal
    - message: what produced the signal (if any).
    """
    solution: np.ndarray
    signal: ConditioningSignal = ConditioningSignal.NONE
    message: Optional[str] = None


def _as_system(J: Any, b: Any) -> tuple:
    J_arr = np.asarray(J, dtype=float)
    b_arr = np.asarray(b, dtype=float).reshape(-1)
    n = b_arr.size
    if J_arr.shape != (n, n):
        raise ValueError(f"J must have shape ({n},{n}) to match b, got {J_arr.shape}.")
    return J_arr, b_arr


def _least_squares(J: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Minimum-norm least-squares solution, used when J is exactly singular."""
    try:
        x, *_ = linalg.lstsq(J, b, check_finite=False)
    except (linalg.LinAlgError, ValueError):
        # SVD did not converge (usually NaN/Inf in J): hand back a poisoned step
        return np.full(b.shape, np.nan)
    return np.asarray(x, dtype=float)


def solve_linear(J: Any, b: Any) -> LinearSolveResult:
    """Solve J p = b by LU and classify the factorization's conditioning.

    The LAPACK return codes are the side channel, so the signal belongs to
    this call alone: getrf info > 0 is an exact zero pivot, gecon's
    reciprocal condition number below machine epsilon is ill-conditioning.

    Signals
    -------
    NONE
        Plain LU solve.
    SINGULAR
        LU hit an exact zero pivot. The minimum-norm least-squares solution is
        returned as a best-effort step.
    ILL_CONDITIONED
        LU succeeded but rcond < eps; the LU solution is kept.
    OTHER
        Anything else: a LAPACK argument error or a non-finite condition
        estimate (NaN/Inf in J). The LU solution, if any, is returned as is.
    """
    J_arr, b_arr = _as_system(J, b)
    getrf, getrs, gecon, lange = lapack.get_lapack_funcs(("getrf", "getrs", "gecon", "lange"), (J_arr, b_arr))

    lu, piv, info = getrf(J_arr, overwrite_a=False)
    if info > 0:
        return LinearSolveResult(
            solution=_least_squares(J_arr, b_arr),
            signal=ConditioningSignal.SINGULAR,
            message=f"Matrix is singular (zero pivot U[{info - 1},{info - 1}]).",
        )
    if info < 0:
        return LinearSolveResult(
            solution=np.full(b_arr.shape, np.nan),
            signal=ConditioningSignal.OTHER,
            message=f"getrf: illegal value in argument {-info}",
        )

    x, info = getrs(lu, piv, b_arr, overwrite_b=False)
    x = np.asarray(x, dtype=float).reshape(-1)
    if info != 0:
        return LinearSolveResult(solution=x, signal=ConditioningSignal.OTHER, message=f"getrs: info={info}")

    anorm = lange("1", J_arr)
    rcond, info = gecon(lu, anorm, norm="1")
    if info != 0 or not np.isfinite(rcond):
        return LinearSolveResult(
            solution=x,
            signal=ConditioningSignal.OTHER,
            message=f"condition estimate failed (rcond={rcond}, info={info})",
        )
    if rcond < np.finfo(float).eps:
        return LinearSolveResult(
            solution=x,
            signal=ConditioningSignal.ILL_CONDITIONED,
            message=f"Ill-conditioned matrix (rcond={rcond:.6g}): result may not be accurate.",
        )
    return LinearSolveResult(solution=x)
