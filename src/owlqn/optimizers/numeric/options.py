from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional, List

import numpy as np


class ReturnCode(IntEnum):
    """Termination status of an OWL-QN run"""
    SUCCESS = 0
    CONVERGED = 0
    NOT_DESCENT = -1
    LINESEARCH_FAILED = -2
    MAX_ITERATIONS = -3


@dataclass(frozen=True)
class Options:
    """
    Settings for a single OWL-QN run.

    Parameters
    ----------
    m : int
        Number of curvature pairs kept in limited memory. 0 disables the
        quasi-Newton update (scaled steepest descent).
    ftol : float
        Armijo sufficient-decrease coefficient.
    maxiter : int
        Iteration cap. 0 means unbounded.
    max_linesearch : int
        Trial steps per line search before giving up.
    display : int
        Verbosity of the progress log (0 silent, 1 terminal messages,
        2 per-iteration lines, 3 line-search trials).
    epsg : float
        Stop when the pseudo-gradient norm falls below this value.
    tol : float, optional
        Stop when the objective falls below this value. Overrides `epsg`.
    w0 : np.ndarray, optional
        Reference point; only used to record distances.
    skip_nonpositive_curvature : bool
        Drop curvature pairs with y.s <= 0 instead of storing them.
    """
    m: int = 6
    ftol: float = 1e-5
    maxiter: int = 0
    max_linesearch: int = 50
    display: int = 0
    epsg: float = 1e-5
    tol: Optional[float] = None
    w0: Optional[np.ndarray] = None
    skip_nonpositive_curvature: bool = False

    def __post_init__(self):
        if self.m < 0:
            raise ValueError(f"m must be non-negative, got {self.m}")
        if self.maxiter < 0:
            raise ValueError(f"maxiter must be non-negative, got {self.maxiter}")
        if self.max_linesearch < 1:
            raise ValueError(f"max_linesearch must be at least 1, got {self.max_linesearch}")
        if not 0.0 < self.ftol < 1.0:
            raise ValueError(f"ftol must lie in (0, 1), got {self.ftol}")
        if self.epsg < 0:
            raise ValueError(f"epsg must be non-negative, got {self.epsg}")
        if self.w0 is not None:
            # frozen dataclass: bypass __setattr__ to normalise the array
            object.__setattr__(self, 'w0', np.asarray(self.w0, dtype=float))


@dataclass
class OptimizerState:
    x: np.ndarray
    fval: float
    pseudo_gradient: np.ndarray
    iteration: int = 0


@dataclass(frozen=True)
class IterationSnapshot:
    """
    What the progress observer sees once per outer iteration.

    `step` is the step accepted by the previous line search; at iteration 0
    it is the initial trial step.
    """
    iteration: int
    fval: float
    gnorm: float
    step: float
    distance: Optional[float] = None


@dataclass
class Result:
    return_code: ReturnCode
    iterations: int
    fval_history: List[float]
    final_pseudo_gradient: np.ndarray
    time_history: List[float]
    options: Options
    distance_history: Optional[List[float]] = None
    x: Optional[np.ndarray] = field(default=None, repr=False)

    @property
    def fval(self) -> float:
        return self.fval_history[-1]
