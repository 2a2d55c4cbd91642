import warnings
from concurrent.futures import ThreadPoolExecutor
from typing import List

import numpy as np
import pytest
from scipy.linalg import lapack

from newton_lite.core import linsolve
from newton_lite.core.linsolve import ConditioningSignal, solve_linear


def test_regular_system() -> None:
    J = np.array([[3.0, 1.0], [1.0, 2.0]])
    b = np.array([9.0, 8.0])
    res = solve_linear(J, b)

    assert res.signal is ConditioningSignal.NONE
    assert res.message is None
    assert np.allclose(J @ res.solution, b, rtol=0.0, atol=1e-12)


def test_exactly_singular_gives_min_norm_least_squares() -> None:
    J = np.array([[1.0, 2.0], [2.0, 4.0]])
    b = np.array([1.0, 2.0])  # consistent right-hand side
    res = solve_linear(J, b)

    assert res.signal is ConditioningSignal.SINGULAR
    assert res.message
    assert np.all(np.isfinite(res.solution))
    assert np.allclose(J @ res.solution, b, rtol=0.0, atol=1e-12)
    # minimum-norm solution lies in the row space, i.e. along (1, 2)
    assert np.allclose(res.solution, np.array([1.0, 2.0]) / 5.0, rtol=0.0, atol=1e-12)


def test_ill_conditioned_keeps_lu_solution() -> None:
    J = np.diag([1.0, 1e-20])
    res = solve_linear(J, np.array([2.0, 3e-20]))

    assert res.signal is ConditioningSignal.ILL_CONDITIONED
    assert "ll-conditioned" in res.message
    assert np.allclose(res.solution, [2.0, 3.0], rtol=1e-12, atol=0.0)


def test_solve_emits_no_warnings() -> None:
    with warnings.catch_warnings(record=True) as outer:
        warnings.simplefilter("always")
        solve_linear(np.diag([1.0, 1e-20]), np.ones(2))
        solve_linear(np.ones((2, 2)), np.ones(2))
    assert outer == []

    # a later well-conditioned solve starts from a clean slate
    assert solve_linear(np.eye(2), np.ones(2)).signal is ConditioningSignal.NONE


def test_concurrent_solves_keep_their_own_signal() -> None:
    ill = np.diag([1.0, 1e-20])
    well = np.eye(2)

    def run(J: np.ndarray) -> List[ConditioningSignal]:
        return [solve_linear(J, np.ones(2)).signal for _ in range(2000)]

    with ThreadPoolExecutor(max_workers=4) as pool:
        futures = [pool.submit(run, J) for J in (ill, well, ill, well)]
        results = [f.result() for f in futures]

    for J, signals in zip((ill, well, ill, well), results):
        expected = ConditioningSignal.ILL_CONDITIONED if J is ill else ConditioningSignal.NONE
        assert all(s is expected for s in signals)


def test_lapack_error_is_other(monkeypatch) -> None:
    real_funcs = lapack.get_lapack_funcs

    def with_failing_getrs(names, arrays):
        getrf, getrs, gecon, lange = real_funcs(names, arrays)

        def getrs_bad(lu, piv, b, **kwargs):
            x, _ = getrs(lu, piv, b, **kwargs)
            return x, -3

        return getrf, getrs_bad, gecon, lange

    monkeypatch.setattr(linsolve.lapack, "get_lapack_funcs", with_failing_getrs)
    res = solve_linear(np.eye(2), np.ones(2))

    assert res.signal is ConditioningSignal.OTHER
    assert "getrs" in res.message


def test_non_finite_matrix_propagates_into_solution() -> None:
    res = solve_linear(np.array([[np.nan, 0.0], [0.0, 1.0]]), np.ones(2))
    assert res.signal in (ConditioningSignal.OTHER, ConditioningSignal.SINGULAR)
    assert not np.all(np.isfinite(res.solution))


def test_shape_mismatch() -> None:
    with pytest.raises(ValueError):
        solve_linear(np.eye(3), np.ones(2))
