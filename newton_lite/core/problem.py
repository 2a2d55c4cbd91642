from __future__ import annotations

from typing import Any, Callable, Optional

import numpy as np

__all__ = [
    "NewtonProblem",
    "CallableProblem",
    "StationarityProblem",
    "fd_jacobian",
]


class NewtonProblem:
    """Interface for a square nonlinear system F(x) = 0.

    You implement:

      residual(x) -> F(x), shape (n,)
      jacobian(x) -> dF/dx, shape (n,n)

    Both must be deterministic: the solver evaluates them once per iterate and
    assumes the pair describes the same point.
    """

    def residual(self, x: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def jacobian(self, x: np.ndarray) -> np.ndarray:
        raise NotImplementedError


def _fd_step(x: float, dx_rel: float) -> float:
    """Relative finite-difference step with a floor."""
    dx = float(dx_rel) * (abs(float(x)) + 1.0)
    # avoid pathological zero/denorm steps
    if dx == 0.0:
        dx = float(dx_rel) if dx_rel != 0.0 else 1e-12
    return dx


def fd_jacobian(F: Callable[[np.ndarray], Any], x: Any, dx_rel: float = 1e-6) -> np.ndarray:
    """Central-difference Jacobian of F at x, column by column.

    dx_j = dx_rel*(|x_j|+1); F is called 2*n times.
    """
    x = np.asarray(x, dtype=float).reshape(-1)
    d = x.size
    J = np.empty((d, d), dtype=float)
    for j in range(d):
        dxj = _fd_step(float(x[j]), dx_rel)
        xp = x.copy(); xm = x.copy()
        xp[j] += dxj
        xm[j] -= dxj
        Fp = np.asarray(F(xp), dtype=float).reshape(-1)
        Fm = np.asarray(F(xm), dtype=float).reshape(-1)
        if Fp.size != d or Fm.size != d:
            raise ValueError(f"F(x) must return shape ({d},), got {Fp.shape}.")
        J[:, j] = (Fp - Fm) / (2.0 * dxj)
    return J


class CallableProblem(NewtonProblem):
    """Wrap plain callables as a NewtonProblem.

    Parameters
    ----------
    fun
        Residual F(x). Scalar-valued functions are accepted for 1-vectors.
    jac
        Optional Jacobian jac(x) -> (n,n). If None, a central-difference
        approximation is used (see fd_jacobian).
    dx_rel
        Relative FD step size.
    """

    def __init__(
        self,
        fun: Callable[[np.ndarray], Any],
        jac: Optional[Callable[[np.ndarray], Any]] = None,
        *,
        dx_rel: float = 1e-6,
    ):
        self.fun = fun
        self.jac = jac
        self.dx_rel = float(dx_rel)

    def residual(self, x: np.ndarray) -> np.ndarray:
        return np.asarray(self.fun(x), dtype=float).reshape(-1)

    def jacobian(self, x: np.ndarray) -> np.ndarray:
        if self.jac is None:
            return fd_jacobian(self.residual, x, self.dx_rel)
        J = np.asarray(self.jac(x), dtype=float)
        n = np.asarray(x).size
        # scalar derivative for a 1D problem
        return J.reshape(1, 1) if n == 1 and J.size == 1 else J


class StationarityProblem(NewtonProblem):
    """First-order conditions grad m(x) = 0 of an objective m.

    The objective must expose grad(x) and hess(x); Newton on this system is
    Newton's method for unconstrained optimization (no descent safeguard).
    """

    def __init__(self, objective: Any):
        if not (callable(getattr(objective, "grad", None)) and callable(getattr(objective, "hess", None))):
            raise TypeError("objective must provide grad(x) and hess(x).")
        self.objective = objective

    def residual(self, x: np.ndarray) -> np.ndarray:
        return np.asarray(self.objective.grad(x), dtype=float).reshape(-1)

    def jacobian(self, x: np.ndarray) -> np.ndarray:
        return np.asarray(self.objective.hess(x), dtype=float)
