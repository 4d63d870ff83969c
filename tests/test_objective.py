import numpy as np
from numpy.testing import assert_allclose
import pytest

from owlqn.function_generators.losses import squared_loss
from owlqn.optimizers.numeric.objective import ObjectiveEvaluator, evaluate, pseudo_gradient


def test_pseudo_gradient_clips_inside_subdifferential():
    x = np.zeros(4)
    g = np.array([0.5, -0.5, 1.0, -1.0])
    assert_allclose(pseudo_gradient(x, g, lam=1.0), np.zeros(4))


def test_pseudo_gradient_shrinks_outside_subdifferential():
    x = np.zeros(3)
    g = np.array([3.0, -2.5, 0.0])
    assert_allclose(pseudo_gradient(x, g, lam=1.0), [2.0, -1.5, 0.0])


def test_pseudo_gradient_untouched_off_zero():
    x = np.array([1.0, -2.0])
    g = np.array([0.3, -0.2])
    assert_allclose(pseudo_gradient(x, g, lam=5.0), g)


def test_evaluate_value_and_gradient():
    A = np.eye(3)
    t = np.array([2.0, -0.5, 0.0])
    x = np.array([1.0, 0.0, -1.0])
    lam = 1.0
    fval, pg = evaluate(squared_loss, x, A, t, lam)

    assert fval == pytest.approx(0.5 * (1.0 + 0.25 + 1.0) + 2.0)
    # smooth gradient x - t = [-1, 0.5, -1]; + lam*sign(x) off zero
    # at x_1 == 0: 0.5 lies within [-1, 1] -> 0
    assert_allclose(pg, [0.0, 0.0, -2.0])


def test_evaluate_rejects_bad_loss_gradient():
    def bad_loss(z, y):
        return 0.0, np.zeros(z.size + 1)

    with pytest.raises(ValueError):
        evaluate(bad_loss, np.zeros(2), np.eye(2), np.zeros(2), 0.1)


def test_evaluator_counts_calls():
    evaluator = ObjectiveEvaluator(squared_loss, np.eye(2), np.ones(2), 0.1)
    evaluator(np.zeros(2))
    evaluator(np.ones(2))
    assert evaluator.n_evaluations == 2
