import numpy as np

from owlqn.optimizers.numeric.memory import LimitedMemoryStore


def project_direction(d: np.ndarray, pg: np.ndarray) -> np.ndarray:
    """Zero every component of d that does not strictly oppose the pseudo-gradient."""
    return np.where(d * pg >= 0, 0.0, d)


def compute_direction(pg: np.ndarray, store: LimitedMemoryStore) -> np.ndarray:
    """
    L-BFGS two-loop recursion applied to the pseudo-gradient, followed by
    orthant projection.

    Parameters
    ----------
    pg : np.ndarray
        Pseudo-gradient at the current point.
    store : LimitedMemoryStore
        Recent curvature pairs.

    Returns
    -------
    np.ndarray
        Search direction d with d_i * pg_i < 0 or d_i == 0 for every i.
    """
    q = -np.asarray(pg, dtype=float)

    # first loop, newest -> oldest
    alphas = []
    for s, y, ys in store.iterate_newest_to_oldest():
        alpha = s.dot(q) / ys
        alphas.append(alpha)
        q = q - alpha * y

    # scaling of the initial inverse Hessian
    if len(store) > 0:
        _, y_last, ys_last = store.newest()
        gamma = ys_last / y_last.dot(y_last)
    else:
        gamma = 1.0
    q = q * gamma

    # second loop, oldest -> newest
    for (s, y, ys), alpha in zip(store.iterate_oldest_to_newest(), reversed(alphas)):
        beta = y.dot(q) / ys
        q = q + (alpha - beta) * s

    return project_direction(q, pg)
