import numpy as np
from typing import Callable, Tuple

LossFunction = Callable[[np.ndarray, np.ndarray], Tuple[float, np.ndarray]]


def pseudo_gradient(x: np.ndarray, g: np.ndarray, lam: float) -> np.ndarray:
    """
    Orthant-wise pseudo-gradient correction.

    Where x_i == 0 the L1 term is not differentiable; pick the element of
    the subdifferential [g_i - lam, g_i + lam] with the smallest magnitude,
    i.e. shrink g_i towards zero by lam and clip at zero.
    """
    at_zero = x == 0
    shrunk_pos = np.maximum(g - lam, 0.0)
    shrunk_neg = np.minimum(g + lam, 0.0)
    corrected = np.where(g > 0, shrunk_pos, np.where(g < 0, shrunk_neg, g))
    return np.where(at_zero, corrected, g)


def evaluate(
    loss_fn: LossFunction,
    x: np.ndarray,
    A,
    y: np.ndarray,
    lam: float
) -> Tuple[float, np.ndarray]:
    """
    Evaluate f(x) = loss(A x, y) + lam * ||x||_1 and its pseudo-gradient.

    Parameters
    ----------
    loss_fn : Callable[[np.ndarray, np.ndarray], Tuple[float, np.ndarray]]
        Smooth loss of the linear prediction; returns (value, gradient
        with respect to the prediction).
    x : np.ndarray
        Current point, shape (n,).
    A : np.ndarray or scipy.sparse matrix
        Design matrix, shape (k, n).
    y : np.ndarray
        Targets passed through to `loss_fn`.
    lam : float
        L1 regularization strength.

    Returns
    -------
    fval : float
    pseudo_gradient : np.ndarray
    """
    z = A @ x
    smooth_val, smooth_grad = loss_fn(z, y)
    smooth_grad = np.asarray(smooth_grad, dtype=float)
    if smooth_grad.shape != np.shape(z):
        raise ValueError(f"Loss gradient shape {smooth_grad.shape} does not match prediction shape {np.shape(z)}")

    fval = float(smooth_val) + lam * np.sum(np.abs(x))
    g = np.asarray(A.T @ smooth_grad, dtype=float).ravel() + lam * np.sign(x)
    return fval, pseudo_gradient(x, g, lam)


class ObjectiveEvaluator:
    """Binds a loss, design matrix, targets and lam into a function of x only."""

    def __init__(self, loss_fn: LossFunction, A, y: np.ndarray, lam: float):
        self.loss_fn = loss_fn
        self.A = A
        self.y = y
        self.lam = lam
        self.n_evaluations = 0

    def __call__(self, x: np.ndarray) -> Tuple[float, np.ndarray]:
        self.n_evaluations += 1
        return evaluate(self.loss_fn, x, self.A, self.y, self.lam)
