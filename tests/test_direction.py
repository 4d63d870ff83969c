import numpy as np
from numpy.testing import assert_allclose

from owlqn.optimizers.numeric.direction import compute_direction, project_direction
from owlqn.optimizers.numeric.memory import LimitedMemoryStore


def test_empty_memory_gives_negative_pseudo_gradient():
    pg = np.array([1.0, -2.0, 0.0])
    store = LimitedMemoryStore(m=5, n=3)
    assert_allclose(compute_direction(pg, store), -pg)


def test_zero_capacity_degrades_to_steepest_descent():
    pg = np.array([0.5, -0.25])
    store = LimitedMemoryStore(m=0, n=2)
    store.push(np.ones(2), np.ones(2))
    assert_allclose(compute_direction(pg, store), -pg)


def test_quadratic_curvature_recovers_newton_step():
    # f(x) = 0.5 x^T H x with diagonal H; pairs along each axis make the
    # two-loop recursion reproduce H^{-1}
    H = np.diag([1.0, 4.0])
    store = LimitedMemoryStore(m=2, n=2)
    for s in (np.array([1.0, 0.0]), np.array([0.0, 1.0])):
        store.push(s, H @ s)
    g = np.array([2.0, -8.0])
    assert_allclose(compute_direction(g, store), -np.linalg.solve(H, g))


def test_projection_removes_non_descent_components():
    d = np.array([1.0, -1.0, 2.0, 0.0])
    pg = np.array([1.0, 1.0, 0.0, -3.0])
    assert_allclose(project_direction(d, pg), [0.0, -1.0, 0.0, 0.0])


def test_direction_is_descent_after_projection():
    rng = np.random.default_rng(3)
    n = 8
    store = LimitedMemoryStore(m=4, n=n)
    for _ in range(6):
        # arbitrary pairs, including indefinite curvature
        store.push(rng.normal(size=n), rng.normal(size=n))
    pg = rng.normal(size=n)
    d = compute_direction(pg, store)

    assert np.all(d * pg <= 0)
    assert np.all((d == 0) | (d * pg < 0))
    if np.any(d != 0):
        assert d.dot(pg) < 0
