import numpy as np
import scipy.sparse as sp
from typing import Callable, Optional


def generate_sparse_signal(n_features: int, n_informative: int, rng: np.random.Generator) -> np.ndarray:
    x = np.zeros(n_features)
    support = rng.choice(n_features, size=min(n_informative, n_features), replace=False)
    x[support] = rng.uniform(1.0, 3.0, size=support.size) * rng.choice([-1.0, 1.0], size=support.size)
    return x


def make_design(n_samples: int, n_features: int, rng: np.random.Generator, density: Optional[float] = None):
    if density is None:
        return rng.normal(size=(n_samples, n_features)) / np.sqrt(n_samples)
    # Sparse design, scaled so column norms are comparable to the dense case
    return sp.random(n_samples, n_features, density=density, format="csr",
                     random_state=rng, data_rvs=rng.standard_normal) / np.sqrt(n_samples * density)


def make_lasso_problem(n_samples: int, n_features: int, n_informative: int = 5,
                       noise: float = 0.01, seed: Optional[int] = None, density: Optional[float] = None):
    """
    Linear regression problem with a sparse ground truth.

    Returns
    -------
    A : np.ndarray or scipy.sparse.csr_matrix, shape (n_samples, n_features)
    y : np.ndarray, shape (n_samples,)
    x_true : np.ndarray, shape (n_features,)
    """
    rng = np.random.default_rng(seed)
    A = make_design(n_samples, n_features, rng, density)
    x_true = generate_sparse_signal(n_features, n_informative, rng)
    y = A @ x_true + noise * rng.standard_normal(n_samples)
    return A, y, x_true


def make_classification_problem(n_samples: int, n_features: int, n_informative: int = 5,
                                 flip: float = 0.05, seed: Optional[int] = None):
    """Linear classifier with a sparse weight vector; labels in {-1, +1}, a fraction `flip` flipped."""
    rng = np.random.default_rng(seed)
    A = rng.normal(size=(n_samples, n_features))
    x_true = generate_sparse_signal(n_features, n_informative, rng)
    y = np.where(A @ x_true >= 0, 1.0, -1.0)
    y = np.where(rng.random(n_samples) < flip, -y, y)
    return A, y, x_true


def soft_threshold(t: np.ndarray, lam: float) -> np.ndarray:
    """argmin_x 0.5 * ||x - t||^2 + lam * ||x||_1"""
    return np.sign(t) * np.maximum(np.abs(t) - lam, 0.0)


def l1_objective(loss: Callable, x: np.ndarray, A, y: np.ndarray, lam: float) -> float:
    val, _ = loss(A @ x, y)
    return float(val) + lam * float(np.sum(np.abs(x)))
