"""
Orthant-Wise Limited-memory Quasi-Newton (OWL-QN).

Minimizes f(x) = loss(A x, y) + lam * ||x||_1 with an L-BFGS model built
from pseudo-gradients, keeping every line-search step inside the orthant
of the point it starts from.

References
----------
J. Nocedal. Updating Quasi-Newton Matrices with Limited Storage.
Mathematics of Computation 35(151), 773-782, 1980.

G. Andrew and J. Gao. Scalable training of L1-regularized log-linear
models. ICML 2007, 33-40.
"""
import logging
import time
from dataclasses import replace
from typing import Annotated, Callable, Optional, Tuple

import numpy as np

from owlqn.optimizers.numeric.direction import compute_direction
from owlqn.optimizers.numeric.linesearch import backtracking_line_search
from owlqn.optimizers.numeric.memory import LimitedMemoryStore
from owlqn.optimizers.numeric.objective import LossFunction, ObjectiveEvaluator
from owlqn.optimizers.numeric.options import (
    IterationSnapshot, Options, OptimizerState, Result, ReturnCode
)
from owlqn.utils import Interval

logger = logging.getLogger(__name__)

Observer = Callable[[IterationSnapshot], None]


def _check_inputs(x0: np.ndarray, A, y: np.ndarray, lam: float, options: Options):
    if x0.ndim != 1:
        raise ValueError(f"Initial point must be 1-D, got shape {x0.shape}")
    if A.ndim != 2 or A.shape[1] != x0.size:
        raise ValueError(f"Design matrix shape {A.shape} incompatible with {x0.size} parameters")
    if np.shape(y)[0] != A.shape[0]:
        raise ValueError(f"Targets of length {np.shape(y)[0]} do not match {A.shape[0]} rows of A")
    if lam < 0:
        raise ValueError(f"Regularization constant must be non-negative, got {lam}")
    if options.w0 is not None and options.w0.shape != x0.shape:
        raise ValueError(f"Reference point shape {options.w0.shape} does not match {x0.shape}")


class _Diagnostics:
    """Per-iteration histories collected for the Result."""

    def __init__(self, w0: Optional[np.ndarray]):
        self.w0 = w0
        self.time0 = time.process_time()
        self.fval = []
        self.time = []
        self.distance = [] if w0 is not None else None

    def record(self, state: OptimizerState) -> Optional[float]:
        self.fval.append(state.fval)
        self.time.append(time.process_time() - self.time0)
        if self.w0 is None:
            return None
        dist = float(np.linalg.norm(state.x - self.w0))
        self.distance.append(dist)
        return dist


def _log_progress(snapshot: IterationSnapshot):
    if snapshot.distance is not None:
        logger.info("[%d] fval=%g gnorm=%g dist=%g step=%g", snapshot.iteration, snapshot.fval,
                    snapshot.gnorm, snapshot.distance, snapshot.step)
    else:
        logger.info("[%d] fval=%g gnorm=%g step=%g", snapshot.iteration, snapshot.fval,
                    snapshot.gnorm, snapshot.step)


def optimize(
    loss_fn: LossFunction,
    x0: np.ndarray,
    A,
    y: np.ndarray,
    lam: float,
    options: Optional[Options] = None,
    callback: Optional[Observer] = None,
    **overrides
) -> Tuple[np.ndarray, Result]:
    """
    Run OWL-QN from x0.

    Parameters
    ----------
    loss_fn : Callable[[np.ndarray, np.ndarray], Tuple[float, np.ndarray]]
        Smooth loss of the prediction A x and targets y; returns its value
        and gradient with respect to the prediction.
    x0 : np.ndarray
        Starting point, shape (n,).
    A : np.ndarray or scipy.sparse matrix
        Design matrix, shape (k, n).
    y : np.ndarray
        Targets, length k.
    lam : float
        L1 regularization strength.
    options : Options, optional
        Run settings; defaults to Options().
    callback : Callable[[IterationSnapshot], None], optional
        Observer invoked once per outer iteration.
    **overrides
        Individual Options fields, applied on top of `options`.

    Returns
    -------
    x : np.ndarray
        Final point.
    result : Result
        Return code and diagnostics.
    """
    options = replace(options or Options(), **overrides)
    x = np.array(x0, dtype=float)
    _check_inputs(x, A, y, lam, options)

    evaluator = ObjectiveEvaluator(loss_fn, A, y, lam)
    store = LimitedMemoryStore(options.m, x.size)
    diagnostics = _Diagnostics(options.w0)

    fval, pg = evaluator(x)
    state = OptimizerState(x=x, fval=fval, pseudo_gradient=pg, iteration=0)

    # The initial direction is the negative pseudo-gradient, with the first
    # trial step scaled to unit length.
    d = -pg
    dnorm = np.linalg.norm(d)
    trial_step = 1.0 / dnorm if dnorm > 0 else 1.0
    # step reported to observers: the accepted step of the last line search
    step = trial_step

    while True:
        distance = diagnostics.record(state)
        gnorm = float(np.linalg.norm(state.pseudo_gradient))

        snapshot = IterationSnapshot(state.iteration, state.fval, gnorm, step, distance)
        if options.display > 1:
            _log_progress(snapshot)
        if callback is not None:
            callback(snapshot)

        if options.tol is not None:
            converged = state.fval < options.tol
        else:
            converged = gnorm < options.epsg
        if converged:
            ret = ReturnCode.SUCCESS
            if options.display > 1:
                logger.info("Optimization success! gnorm=%g", gnorm)
            break

        if options.maxiter > 0 and state.iteration == options.maxiter - 1:
            ret = ReturnCode.MAX_ITERATIONS
            if options.display > 0:
                logger.info("Maximum #iterations=%d reached.", state.iteration)
            break

        search = backtracking_line_search(
            evaluator, state.x, state.fval, state.pseudo_gradient, d, step=trial_step, options=options
        )
        if search.return_code != ReturnCode.SUCCESS:
            ret = search.return_code
            state = OptimizerState(search.x, search.fval, search.pseudo_gradient, state.iteration)
            break

        s = search.x - state.x
        yk = search.pseudo_gradient - state.pseudo_gradient
        if options.skip_nonpositive_curvature and yk.dot(s) <= 0:
            if options.display > 2:
                logger.debug("Skipping curvature pair with y.s=%g", yk.dot(s))
        else:
            store.push(s, yk)

        d = compute_direction(search.pseudo_gradient, store)
        state = OptimizerState(search.x, search.fval, search.pseudo_gradient, state.iteration + 1)
        step = search.step
        trial_step = 1.0

    diagnostics.record(state)
    result = Result(
        return_code=ret,
        iterations=state.iteration,
        fval_history=diagnostics.fval,
        final_pseudo_gradient=state.pseudo_gradient,
        time_history=diagnostics.time,
        options=options,
        distance_history=diagnostics.distance,
        x=state.x,
    )
    return state.x, result


def minimize_owlqn(
    loss_fn: LossFunction,
    initial_guess: np.ndarray,
    A,
    y: np.ndarray,
    lam: float,
    m: Annotated[int, Interval(low=0, high=30)] = 6,
    ftol: Annotated[float, Interval(low=1e-6, high=1e-1, log=True)] = 1e-5,
    max_linesearch: Annotated[int, Interval(low=10, high=100, step=10)] = 50,
    epsg: float = 1e-5,
    maxiter: int = 1000
) -> np.ndarray:
    """
    OWL-QN minimizer returning only the final point.

    Parameters
    ----------
    loss_fn : Callable[[np.ndarray, np.ndarray], Tuple[float, np.ndarray]]
        Smooth loss of the prediction.
    initial_guess : np.ndarray
        Starting point.
    A, y, lam
        Design matrix, targets and L1 strength.
    m : int
        History size (number of (s, y) pairs to keep).
    ftol : float
        Armijo coefficient.
    max_linesearch : int
        Trial steps per line search.
    epsg : float
        Convergence tolerance on the pseudo-gradient norm.
    maxiter : int
        Maximum number of iterations (0 for unbounded).

    Returns
    -------
    np.ndarray
        The approximate minimizer.
    """
    x, _ = optimize(loss_fn, initial_guess, A, y, lam, m=m, ftol=ftol,
                    max_linesearch=max_linesearch, epsg=epsg, maxiter=maxiter)
    return x
