"""
Example: stationary point of the Rosenbrock function with undamped Newton.

Solves grad m(u) = 0 for m(u) = 10 (u2 - u1^2)^2 + (u1 - 1)^2, i.e. Newton's
method for minimization without any globalization, and prints the iteration
table.

Run:
  python -m newton_lite.examples.example_rosenbrock_2d
"""
from __future__ import annotations

import numpy as np

from newton_lite.core.newton import NewtonOptions, NewtonSolver
from newton_lite.core.problem import StationarityProblem
from newton_lite.models.rosenbrock import RosenbrockObjective, rosenbrock


def main() -> None:
    problem = StationarityProblem(RosenbrockObjective())
    solver = NewtonSolver(NewtonOptions(maxiter=50, tol=1e-12, verbosity=1))

    # the classic starting point
    u0 = np.array([-1.2, 1.0], dtype=float)

    state, outcome = solver.solve(problem, u0)
    outcome.check()

    print("Stationary point u* =", tuple(float(v) for v in state.x))
    print("m(u*) =", rosenbrock(state.x))


if __name__ == "__main__":
    main()
