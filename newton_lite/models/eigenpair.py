from __future__ import annotations

from typing import Any, Tuple

import numpy as np

from ..core.problem import NewtonProblem

__all__ = [
    "EigenpairProblem",
]


class EigenpairProblem(NewtonProblem):
    """Eigenvector/eigenvalue of a square matrix A as a root-finding problem.

    Unknown: y = [x; lam], x in R^n, lam scalar (so y has n+1 entries).

    Residual:
        F(y) = [ A x - lam x ]
               [ x.x - 1     ]

    Jacobian:
        J(y) = [ A - lam I   -x ]
               [ 2 x^T        0 ]

    Which eigenpair is found depends on the starting guess; the sign of x is
    not fixed by the normalization.
    """

    def __init__(self, A: Any):
        A = np.asarray(A, dtype=float)
        if A.ndim != 2 or A.shape[0] != A.shape[1] or A.shape[0] == 0:
            raise ValueError(f"A must be a non-empty square matrix, got shape {A.shape}.")
        self.A = A
        self.n = int(A.shape[0])

    def split(self, y: Any) -> Tuple[np.ndarray, float]:
        y = np.asarray(y, dtype=float).reshape(-1)
        if y.size != self.n + 1:
            raise ValueError(f"y must have {self.n + 1} entries, got {y.size}.")
        return y[: self.n], float(y[self.n])

    def residual(self, y: np.ndarray) -> np.ndarray:
        x, lam = self.split(y)
        return np.concatenate([self.A @ x - lam * x, [x @ x - 1.0]])

    def jacobian(self, y: np.ndarray) -> np.ndarray:
        x, lam = self.split(y)
        n = self.n
        J = np.zeros((n + 1, n + 1), dtype=float)
        J[:n, :n] = self.A - lam * np.eye(n)
        J[:n, n] = -x
        J[n, :n] = 2.0 * x
        return J
