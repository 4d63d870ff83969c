import importlib
import logging

import numpy as np
from numpy.testing import assert_allclose, assert_array_equal
import pytest

from owlqn import Options, ReturnCode, optimize
from owlqn.function_generators.lasso import (
    l1_objective, make_classification_problem, make_lasso_problem, soft_threshold
)
from owlqn.function_generators.losses import logistic_loss, squared_loss
from owlqn.optimizers.numeric.linesearch import backtracking_line_search
from owlqn.optimizers.scipy import minimize_lbfgsb_split


def _lying_loss(z, y):
    return float(np.sum(z ** 2)) + float(np.sum(z)), -np.ones_like(z)


def test_soft_threshold_recovery():
    t = np.array([3.0, -0.5, 1.5, -2.0, 0.2])
    lam = 1.0
    x, result = optimize(squared_loss, np.zeros(5), np.eye(5), t, lam, epsg=1e-8, maxiter=100)

    assert result.return_code == ReturnCode.SUCCESS
    assert_allclose(x, soft_threshold(t, lam), atol=1e-6)


@pytest.mark.parametrize("m", [0, 1, 6])
def test_soft_threshold_recovery_any_memory(m):
    rng = np.random.default_rng(m)
    t = rng.normal(scale=2.0, size=20)
    lam = 0.7
    x, result = optimize(squared_loss, np.zeros(20), np.eye(20), t, lam, m=m, epsg=1e-8, maxiter=500)

    assert result.return_code == ReturnCode.SUCCESS
    assert_allclose(x, soft_threshold(t, lam), atol=1e-6)


def test_immediate_convergence():
    A, y, _ = make_lasso_problem(40, 10, seed=1)
    x0 = np.ones(10)
    x, result = optimize(squared_loss, x0, A, y, 0.1, epsg=1e6)

    assert result.return_code == 0
    assert result.iterations == 0
    assert_array_equal(x, x0)
    assert len(result.fval_history) == 2


def test_function_value_tolerance():
    A, y, _ = make_lasso_problem(40, 10, seed=2)
    lam = 0.1
    f0 = l1_objective(squared_loss, np.zeros(10), A, y, lam)
    x, result = optimize(squared_loss, np.zeros(10), A, y, lam, tol=0.5 * f0, epsg=0.0, maxiter=1000)

    assert result.return_code == ReturnCode.SUCCESS
    assert result.fval < 0.5 * f0
    assert result.iterations > 0


def test_max_iterations():
    A, y, _ = make_lasso_problem(60, 30, seed=3)
    x, result = optimize(squared_loss, np.zeros(30), A, y, 0.05, epsg=0.0, maxiter=3)

    assert result.return_code == ReturnCode.MAX_ITERATIONS
    assert result.iterations == 2
    assert len(result.fval_history) == 4
    assert len(result.time_history) == 4


def test_maxiter_one_takes_no_step():
    A, y, _ = make_lasso_problem(20, 5, seed=4)
    x0 = np.full(5, 0.3)
    x, result = optimize(squared_loss, x0, A, y, 0.05, epsg=0.0, maxiter=1)

    assert result.return_code == ReturnCode.MAX_ITERATIONS
    assert result.iterations == 0
    assert_array_equal(x, x0)


def test_linesearch_failure_returns_entry_point():
    x0 = np.zeros(4)
    x, result = optimize(_lying_loss, x0, np.eye(4), np.zeros(4), 0.0, max_linesearch=10)

    assert result.return_code == ReturnCode.LINESEARCH_FAILED
    assert result.iterations == 0
    assert_array_equal(x, x0)
    assert result.fval_history[-1] == result.fval_history[0]


def test_zero_pseudo_gradient_is_not_descent():
    # x = 0 is already optimal, but epsg = 0 forces a step with d = 0
    t = np.array([0.5, -0.3])
    x, result = optimize(squared_loss, np.zeros(2), np.eye(2), t, 1.0, epsg=0.0)

    assert result.return_code == ReturnCode.NOT_DESCENT
    assert_array_equal(x, np.zeros(2))
    assert_array_equal(result.final_pseudo_gradient, np.zeros(2))


def test_history_is_monotone():
    A, y, _ = make_lasso_problem(80, 40, n_informative=8, seed=5)
    x, result = optimize(squared_loss, np.zeros(40), A, y, 0.05, epsg=1e-8, maxiter=500)

    assert result.iterations > 1
    assert np.all(np.diff(result.fval_history) <= 0)


def test_matches_reference_solver():
    A, y, _ = make_lasso_problem(60, 30, n_informative=5, seed=6)
    lam = 0.05
    x, result = optimize(squared_loss, np.zeros(30), A, y, lam, epsg=1e-8, maxiter=2000)
    x_ref = minimize_lbfgsb_split(squared_loss, np.zeros(30), A, y, lam)

    f_owl = l1_objective(squared_loss, x, A, y, lam)
    f_ref = l1_objective(squared_loss, x_ref, A, y, lam)
    assert f_owl <= f_ref + 1e-5 * max(1.0, abs(f_ref))


def test_logistic_matches_reference_solver():
    A, y, _ = make_classification_problem(100, 20, n_informative=4, seed=7)
    lam = 5.0
    x, result = optimize(logistic_loss, np.zeros(20), A, y, lam, epsg=1e-7, maxiter=2000)
    x_ref = minimize_lbfgsb_split(logistic_loss, np.zeros(20), A, y, lam)

    f_owl = l1_objective(logistic_loss, x, A, y, lam)
    f_ref = l1_objective(logistic_loss, x_ref, A, y, lam)
    assert f_owl <= f_ref + 1e-4 * max(1.0, abs(f_ref))
    assert np.count_nonzero(x) < 20


def test_sparse_design_matrix():
    A, y, _ = make_lasso_problem(80, 40, seed=8, density=0.3)
    lam = 0.05
    x_sparse, result_sparse = optimize(squared_loss, np.zeros(40), A, y, lam, epsg=1e-8, maxiter=1000)
    x_dense, result_dense = optimize(squared_loss, np.zeros(40), A.toarray(), y, lam, epsg=1e-8, maxiter=1000)

    assert result_sparse.fval == pytest.approx(result_dense.fval, rel=1e-6)


def test_skip_nonpositive_curvature_still_converges():
    A, y, _ = make_lasso_problem(60, 30, seed=9)
    lam = 0.05
    x, result = optimize(squared_loss, np.zeros(30), A, y, lam, epsg=1e-8, maxiter=2000,
                         skip_nonpositive_curvature=True)
    x_ref = minimize_lbfgsb_split(squared_loss, np.zeros(30), A, y, lam)

    f_ref = l1_objective(squared_loss, x_ref, A, y, lam)
    assert result.fval <= f_ref + 1e-5 * max(1.0, abs(f_ref))


def test_callback_receives_snapshots():
    t = np.array([3.0, -0.5, 1.5, -2.0, 0.2])
    snapshots = []
    x, result = optimize(squared_loss, np.zeros(5), np.eye(5), t, 1.0, epsg=1e-8, maxiter=100,
                         callback=snapshots.append)

    assert [s.iteration for s in snapshots] == list(range(result.iterations + 1))
    assert snapshots[0].fval == result.fval_history[0]
    assert snapshots[0].step == pytest.approx(1.0 / snapshots[0].gnorm)
    assert snapshots[-1].gnorm < 1e-8


def test_distance_history():
    t = np.array([2.0, -3.0])
    w0 = soft_threshold(t, 0.5)
    x, result = optimize(squared_loss, np.zeros(2), np.eye(2), t, 0.5, w0=w0, epsg=1e-8, maxiter=50)

    assert len(result.distance_history) == len(result.fval_history)
    assert result.distance_history[0] == pytest.approx(np.linalg.norm(w0))
    assert result.distance_history[-1] == pytest.approx(0.0, abs=1e-6)


def test_no_distance_history_without_reference():
    x, result = optimize(squared_loss, np.zeros(2), np.eye(2), np.ones(2), 0.1)
    assert result.distance_history is None


def test_display_logs_progress(caplog):
    caplog.set_level(logging.INFO, logger="owlqn")
    optimize(squared_loss, np.zeros(3), np.eye(3), np.array([2.0, 0.0, -1.0]), 0.5, display=2)

    assert any("fval=" in record.getMessage() for record in caplog.records)
    assert any("Optimization success" in record.getMessage() for record in caplog.records)


def test_options_overrides():
    options = Options(m=3, maxiter=10)
    x, result = optimize(squared_loss, np.zeros(2), np.eye(2), np.ones(2), 0.1, options, maxiter=1)

    assert result.options.m == 3
    assert result.options.maxiter == 1
    assert options.maxiter == 10

    with pytest.raises(TypeError):
        optimize(squared_loss, np.zeros(2), np.eye(2), np.ones(2), 0.1, not_an_option=1)


@pytest.mark.parametrize("kwargs", [
    {"m": -1},
    {"maxiter": -2},
    {"max_linesearch": 0},
    {"ftol": 0.0},
    {"ftol": 1.5},
    {"epsg": -1e-3},
])
def test_invalid_options(kwargs):
    with pytest.raises(ValueError):
        Options(**kwargs)


def test_input_validation():
    with pytest.raises(ValueError):
        optimize(squared_loss, np.zeros(3), np.eye(2), np.ones(2), 0.1)
    with pytest.raises(ValueError):
        optimize(squared_loss, np.zeros(2), np.eye(2), np.ones(3), 0.1)
    with pytest.raises(ValueError):
        optimize(squared_loss, np.zeros(2), np.eye(2), np.ones(2), -0.1)
    with pytest.raises(ValueError):
        optimize(squared_loss, np.zeros(2), np.eye(2), np.ones(2), 0.1, w0=np.zeros(5))


def test_snapshots_report_accepted_step(monkeypatch):
    driver = importlib.import_module("owlqn.optimizers.numeric.owlqn")
    accepted = []

    def recording_search(*args, **kwargs):
        result = backtracking_line_search(*args, **kwargs)
        accepted.append(result.step)
        return result

    monkeypatch.setattr(driver, "backtracking_line_search", recording_search)

    A, y, _ = make_classification_problem(100, 20, n_informative=4, seed=7)
    snapshots = []
    x, result = optimize(logistic_loss, np.zeros(20), A, y, 5.0, epsg=1e-7, maxiter=50,
                         callback=snapshots.append)

    assert any(step != 1.0 for step in accepted)
    for k, step in enumerate(accepted[:len(snapshots) - 1]):
        assert snapshots[k + 1].step == step
