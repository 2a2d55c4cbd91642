from __future__ import annotations

from typing import Any

import numpy as np

__all__ = [
    "rosenbrock",
    "grad_rosenbrock",
    "hessian_rosenbrock",
    "RosenbrockObjective",
]


def rosenbrock(u: Any) -> float:
    """
    m(u) = 10 (u2 - u1^2)^2 + (u1 - 1)^2
    u: array-like of shape (2,)
    """
    u1, u2 = np.asarray(u, dtype=float)
    return float(10.0 * (u2 - u1**2) ** 2 + (u1 - 1.0) ** 2)


def grad_rosenbrock(u: Any) -> np.ndarray:
    """
    Gradient of m(u), shape (2,)
    """
    u1, u2 = np.asarray(u, dtype=float)

    dm_du1 = -40.0 * u1 * (u2 - u1**2) + 2.0 * (u1 - 1.0)
    dm_du2 = 20.0 * (u2 - u1**2)

    return np.array([dm_du1, dm_du2], dtype=float)


def hessian_rosenbrock(u: Any) -> np.ndarray:
    """
    Hessian of m(u), shape (2, 2)
    """
    u1, u2 = np.asarray(u, dtype=float)

    d2m_du1du1 = 120.0 * u1**2 - 40.0 * u2 + 2.0
    d2m_du1du2 = -40.0 * u1
    d2m_du2du2 = 20.0

    return np.array(
        [
            [d2m_du1du1, d2m_du1du2],
            [d2m_du1du2, d2m_du2du2],
        ],
        dtype=float,
    )


class RosenbrockObjective:
    """Objective object in the value/grad/hess convention used by StationarityProblem.

    The only stationary point is the minimizer u* = (1, 1).
    """

    def value(self, u: Any) -> float:
        return rosenbrock(u)

    def grad(self, u: Any) -> np.ndarray:
        return grad_rosenbrock(u)

    def hess(self, u: Any) -> np.ndarray:
        return hessian_rosenbrock(u)
