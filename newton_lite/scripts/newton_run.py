from __future__ import annotations

import argparse
import os
import sys
from typing import List, Optional, Sequence, Tuple

import numpy as np

# Non-interactive backend for batch runs
import matplotlib
matplotlib.use("Agg")  # noqa: E402
import matplotlib.pyplot as plt  # noqa: E402

from ..core.newton import NewtonOutcome, NewtonStatus, newton_solve
from ..core.problem import CallableProblem, NewtonProblem, StationarityProblem
from ..core.report import ConsoleReporter, RecordingReporter, TeeReporter
from ..models.eigenpair import EigenpairProblem
from ..models.rosenbrock import RosenbrockObjective


# 3x3 test matrix used for the eigenpair model
EIGEN_A = np.array([[4.0, 2.0, 1.0], [2.0, 3.0, 0.0], [1.0, 0.0, 1.0]], dtype=float)

DEFAULT_X0 = {
    "rosenbrock": [-1.2, 1.0],
    "eigenpair": [0.2, -0.2, 0.8, 1.0],
    "quadratic": [1.0],
}


def build_problem(name: str) -> NewtonProblem:
    if name == "rosenbrock":
        return StationarityProblem(RosenbrockObjective())
    if name == "eigenpair":
        return EigenpairProblem(EIGEN_A)
    if name == "quadratic":
        return CallableProblem(lambda x: x**2 - 4.0, lambda x: np.diag(2.0 * x))
    raise ValueError(f"unknown model: {name}")


def write_history_dat(filename: str, outcome: NewtonOutcome, rec: RecordingReporter) -> None:
    """Write the convergence history:
      - first row: status, iterations, final_norm_F
      - subsequent rows: iter, norm_F, norm_x, norm_step, flag
    Row 0 is the initial guess (norm_step = 0, flag = start).
    """
    lines = []
    lines.append(f"{int(outcome.status)}, {outcome.iterations}, {outcome.final_norm_F}\n")
    if rec.start is not None:
        lines.append(f"0, {rec.start.norm_F0}, {rec.start.norm_x0}, 0.0, start\n")
    for s in rec.steps:
        lines.append(f"{s.iteration}, {s.norm_F}, {s.norm_x}, {s.norm_step}, {s.conditioning.value}\n")

    with open(filename, "w", encoding="utf-8") as f:
        f.writelines(lines)


def history_arrays(rec: RecordingReporter) -> Tuple[np.ndarray, np.ndarray]:
    its: List[int] = []
    nF: List[float] = []
    if rec.start is not None:
        its.append(0)
        nF.append(rec.start.norm_F0)
    for s in rec.steps:
        its.append(s.iteration)
        nF.append(s.norm_F)
    return np.asarray(its, dtype=int), np.asarray(nF, dtype=float)


def plot_history(filename: str, rec: RecordingReporter, title: str) -> None:
    its, nF = history_arrays(rec)
    # semilogy cannot show exact zeros
    nF = np.maximum(nF, np.finfo(float).tiny)

    plt.figure()
    plt.semilogy(its, nF, "o-")
    plt.xlabel("iteration")
    plt.ylabel(r"$\|F(x_k)\|_2$")
    plt.title(title)
    plt.grid(True, which="both", alpha=0.3)
    plt.tight_layout()
    plt.savefig(filename, dpi=200)
    plt.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="newton_lite runner (undamped Newton on a bundled model)")
    ap.add_argument("--model", choices=sorted(DEFAULT_X0), default="rosenbrock")
    ap.add_argument("--x0", type=float, nargs="+", default=None, help="Initial guess (defaults per model).")
    ap.add_argument("--maxiter", type=int, default=50)
    ap.add_argument("--tol", type=float, default=1e-10)
    ap.add_argument("--verbosity", type=int, default=1)
    ap.add_argument("--outdir", type=str, default=".")
    ap.add_argument("--no-plot", action="store_true", help="Skip the convergence plot.")
    args = ap.parse_args(argv)

    os.makedirs(args.outdir, exist_ok=True)

    problem = build_problem(args.model)
    x0 = np.asarray(args.x0 if args.x0 is not None else DEFAULT_X0[args.model], dtype=float)

    rec = RecordingReporter()
    reporter = TeeReporter(ConsoleReporter(), rec)

    # history needs events even when the console table is not wanted;
    # any other verbosity goes through so that a negative one is rejected
    if args.verbosity == 0:
        verbosity, reporter = 1, rec
    else:
        verbosity = args.verbosity
    state, outcome = newton_solve(
        problem,
        x0,
        maxiter=args.maxiter,
        tol=args.tol,
        verbosity=verbosity,
        reporter=reporter,
    )

    print(f"[result] model={args.model} status={outcome.status.name} iterations={outcome.iterations}")
    if state.x.size:
        print(f"[result] x = {np.array2string(state.x, precision=12)}")
    if isinstance(problem, EigenpairProblem) and state.x.size:
        x, lam = problem.split(state.x)
        print(f"[result] eigenvalue = {lam:.12g}")

    if outcome.status != NewtonStatus.INVALID_INPUT:
        fn = os.path.join(args.outdir, f"newton_{args.model}.dat")
        write_history_dat(fn, outcome, rec)
        if not args.no_plot:
            plot_history(os.path.join(args.outdir, f"newton_{args.model}.png"), rec, f"Newton: {args.model}")
        print(f"[saved] history in: {os.path.abspath(args.outdir)}")

    return 1 if outcome.failed else 0


if __name__ == "__main__":
    sys.exit(main())
