import numpy as np
from typing import Callable, Tuple
from scipy.optimize import check_grad
from scipy.special import expit


def squared_loss(z: np.ndarray, y: np.ndarray) -> Tuple[float, np.ndarray]:
    r = z - y
    return 0.5 * float(r.dot(r)), r


def logistic_loss(z: np.ndarray, y: np.ndarray) -> Tuple[float, np.ndarray]:
    """Logistic loss for labels in {-1, +1}."""
    yz = y * z
    val = float(np.sum(np.logaddexp(0.0, -yz)))
    return val, -y * expit(-yz)


def squared_hinge_loss(z: np.ndarray, y: np.ndarray) -> Tuple[float, np.ndarray]:
    margin = np.maximum(0.0, 1.0 - y * z)
    return float(margin.dot(margin)), -2.0 * y * margin


LOSSES = {
    "squared": squared_loss,
    "logistic": logistic_loss,
    "squared_hinge": squared_hinge_loss,
}


def check_loss_gradient(
    loss: Callable[[np.ndarray, np.ndarray], Tuple[float, np.ndarray]],
    z: np.ndarray,
    y: np.ndarray
) -> float:
    """Return the norm of the difference between the analytic and a finite-difference gradient."""
    return check_grad(lambda v: loss(v, y)[0], lambda v: loss(v, y)[1], np.asarray(z, dtype=float))
