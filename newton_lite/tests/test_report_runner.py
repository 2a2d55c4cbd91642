import io
import os

import numpy as np

from newton_lite.core.newton import NewtonStatus, newton_solve
from newton_lite.core.problem import CallableProblem
from newton_lite.core.report import ConsoleReporter, RecordingReporter, TeeReporter
from newton_lite.scripts.newton_run import main as run_main


def _quadratic() -> CallableProblem:
    return CallableProblem(lambda x: x**2 - 4.0, lambda x: np.diag(2.0 * x))


def test_console_table_for_converged_run() -> None:
    buf = io.StringIO()
    _, outcome = newton_solve(_quadratic(), [1.0], tol=1e-10, verbosity=1, reporter=ConsoleReporter(buf))
    text = buf.getvalue()
    lines = text.splitlines()

    assert "Newton Method" in text
    assert "Norm-step" in text
    assert "Relative stopping tolerance reached" in text
    assert f" Iterations : {outcome.iterations}" in text
    assert "||step||" not in text

    # one row per iterate: x0 .. x_k
    rows = [ln for ln in lines if ln[:6].strip().isdigit()]
    assert len(rows) == outcome.iterations + 1
    assert rows[0].split()[0] == "0"
    assert rows[0].split()[-1] == "-"


def test_console_summary_for_stagnation() -> None:
    buf = io.StringIO()
    _, outcome = newton_solve(
        CallableProblem(lambda x: x**2, lambda x: np.diag(2.0 * x)),
        [1.0],
        maxiter=200,
        tol=0.0,
        verbosity=1,
        reporter=ConsoleReporter(buf),
    )
    text = buf.getvalue()

    assert outcome.status == NewtonStatus.STEP_TOO_SMALL
    assert "||x||" in text
    assert "||step||" in text


def test_console_marks_singular_steps() -> None:
    buf = io.StringIO()
    newton_solve(
        CallableProblem(lambda x: np.array([x[0] ** 2 + 1.0] * 2), lambda x: np.array([[2.0 * x[0], 0.0]] * 2)),
        [0.5, 0.0],
        maxiter=3,
        verbosity=1,
        reporter=ConsoleReporter(buf),
    )
    text = buf.getvalue()

    assert text.count("sing") == 3
    assert "Maximum allowed iterations reached" in text


def test_silent_run_emits_nothing() -> None:
    rec = RecordingReporter()
    newton_solve(_quadratic(), [1.0], verbosity=0, reporter=rec)
    assert rec.events == []


def test_invalid_input_is_reported_when_verbose() -> None:
    rec = RecordingReporter()
    _, outcome = newton_solve(_quadratic(), [], verbosity=1, reporter=rec)

    assert outcome.status == NewtonStatus.INVALID_INPUT
    assert len(rec.events) == 1
    assert rec.summary is not None and "x0" in rec.summary.message


def test_tee_reporter_forwards_in_order() -> None:
    a, b = RecordingReporter(), RecordingReporter()
    newton_solve(_quadratic(), [1.0], verbosity=1, reporter=TeeReporter(a, b))
    assert a.events == b.events
    assert len(a.events) == len(a.steps) + 2


def test_runner_writes_history(tmp_path, capsys) -> None:
    code = run_main(["--model", "quadratic", "--outdir", str(tmp_path), "--no-plot", "--verbosity", "0"])
    out = capsys.readouterr().out

    assert code == 0
    assert "[result] model=quadratic status=CONVERGED" in out
    assert "Newton Method" not in out

    with open(tmp_path / "newton_quadratic.dat", encoding="utf-8") as f:
        lines = f.read().splitlines()
    status, iterations, _ = [s.strip() for s in lines[0].split(",")]
    assert int(status) == int(NewtonStatus.CONVERGED)
    assert len(lines) == int(iterations) + 2
    assert lines[1].startswith("0, ")
    assert lines[-1].endswith("normal")


def test_runner_plot_and_table(tmp_path, capsys) -> None:
    code = run_main(["--model", "rosenbrock", "--outdir", str(tmp_path)])
    out = capsys.readouterr().out

    assert code == 0
    assert "Newton Method" in out
    assert os.path.isfile(tmp_path / "newton_rosenbrock.dat")
    assert os.path.isfile(tmp_path / "newton_rosenbrock.png")


def test_runner_reports_failure_code(tmp_path) -> None:
    code = run_main(["--model", "quadratic", "--x0", "1.0", "--maxiter", "-1", "--outdir", str(tmp_path)])
    assert code == 1
    assert not os.path.exists(tmp_path / "newton_quadratic.dat")


def test_runner_rejects_negative_verbosity(tmp_path, capsys) -> None:
    code = run_main(["--model", "quadratic", "--outdir", str(tmp_path), "--no-plot", "--verbosity", "-1"])
    out = capsys.readouterr().out

    assert code == 1
    assert "status=INVALID_INPUT" in out
    assert "Newton Method" not in out
    assert not os.path.exists(tmp_path / "newton_quadratic.dat")
