import logging
from typing import Callable, NamedTuple, Tuple

import numpy as np

from owlqn.optimizers.numeric.options import Options, ReturnCode

logger = logging.getLogger(__name__)


class LineSearchResult(NamedTuple):
    return_code: ReturnCode
    x: np.ndarray
    fval: float
    pseudo_gradient: np.ndarray
    step: float


def project_orthant(x: np.ndarray, x0: np.ndarray) -> np.ndarray:
    """Set to zero every coordinate of x whose sign flipped relative to x0."""
    return np.where(x * x0 < 0, 0.0, x)


def backtracking_line_search(
    evaluator: Callable[[np.ndarray], Tuple[float, np.ndarray]],
    x0: np.ndarray,
    f0: float,
    g0: np.ndarray,
    d: np.ndarray,
    step: float = 1.0,
    options: Options = Options()
) -> LineSearchResult:
    """
    Orthant-constrained backtracking-Armijo line search:
      find step in {step0 * 2^-k} such that
      f(P(x0 + step d)) <= f0 + ftol * step * g0^T d
    where P zeroes coordinates that would cross into another orthant.

    On failure the point is restored to x0 (and re-evaluated there).
    """
    dginit = g0.dot(d)
    if dginit >= 0:
        if options.display > 0:
            logger.warning("dg=%g is not a descending direction!", dginit)
        return LineSearchResult(ReturnCode.NOT_DESCENT, x0, f0, g0, 0.0)

    if options.display > 2:
        logger.debug("finit=%.20f", f0)

    for trial in range(options.max_linesearch):
        ftest = f0 + options.ftol * step * dginit
        x = project_orthant(x0 + step * d, x0)
        fval, g = evaluator(x)
        if fval <= ftest:
            return LineSearchResult(ReturnCode.SUCCESS, x, fval, g, step)

        if options.display > 2:
            logger.debug("[%d] step=%g fval=%.20f > ftest=%.20f", trial, step, fval, ftest)
        step = step / 2

    if options.display > 0:
        logger.warning("Maximum linesearch=%d reached", options.max_linesearch)
    fval, g = evaluator(x0)
    return LineSearchResult(ReturnCode.LINESEARCH_FAILED, x0, fval, g, 0.0)
