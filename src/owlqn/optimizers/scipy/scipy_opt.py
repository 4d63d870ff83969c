import numpy as np
from typing import Annotated
from scipy.optimize import minimize as _scipy_minimize

from owlqn.optimizers.numeric.objective import LossFunction
from owlqn.utils import Interval


def minimize_lbfgsb_split(
    loss_fn: LossFunction,
    initial_guess: np.ndarray,
    A,
    y: np.ndarray,
    lam: float,
    m: Annotated[int, Interval(low=3, high=30)] = 10,
    tol: float = 1e-10,
    maxiter: int = 15000
) -> np.ndarray:
    """
    L1-regularized minimization through scipy's L-BFGS-B.

    Writes x = u - v with u, v >= 0 so that ||x||_1 = sum(u + v) becomes a
    smooth term under simple bounds.

    Parameters
    ----------
    loss_fn : Callable[[np.ndarray, np.ndarray], Tuple[float, np.ndarray]]
        Smooth loss of the prediction A x.
    initial_guess : np.ndarray
        Starting point (shape (n_dim,)).
    A, y, lam
        Design matrix, targets and L1 strength.
    m : int
        Number of corrections to store in the limited-memory matrix (history size).
    tol : float
        Convergence tolerance on the projected gradient.
    maxiter : int
        Maximum number of iterations.

    Returns
    -------
    np.ndarray
        Estimated minimizer.
    """
    x0 = np.asarray(initial_guess, dtype=float)
    n = x0.size

    def _fun(w: np.ndarray):
        u, v = w[:n], w[n:]
        val, grad_z = loss_fn(A @ (u - v), y)
        g = np.asarray(A.T @ grad_z, dtype=float).ravel()
        return val + lam * np.sum(w), np.concatenate([g + lam, -g + lam])

    w0 = np.concatenate([np.maximum(x0, 0.0), np.maximum(-x0, 0.0)])
    res = _scipy_minimize(
        _fun,
        w0,
        method="L-BFGS-B",
        jac=True,
        bounds=[(0.0, None)] * (2 * n),
        tol=tol,
        options={
            "maxiter": maxiter,
            "maxcor": m,
            "ftol": tol,
            "gtol": tol
        }
    )

    return res.x[:n] - res.x[n:]
