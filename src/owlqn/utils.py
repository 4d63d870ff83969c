import numpy as np
from typing import Callable, Annotated, get_origin, get_args
from owlqn.function_generators import lasso, losses

# Problem-defining arguments shared by every registered optimizer
PROBLEM_ARGS = ('loss_fn', 'initial_guess', 'A', 'y', 'lam')


def check_optimizer_annotations(optimizer: Callable):
    import inspect
    sig = inspect.signature(optimizer)

    has_annotated_param = False
    for param_name, param in sig.parameters.items():
        if param_name in PROBLEM_ARGS:
            continue

        anno = param.annotation
        if get_origin(anno) is Annotated:
            args = get_args(anno)
            if len(args) >= 2 and isinstance(args[1], Interval):
                has_annotated_param = True
                break

    if not has_annotated_param:
        raise ValueError(f"No Annotated parameters with Interval")


def check_optimizer_function(optimizer: Callable):
    n_dims = 10
    A, y, _ = lasso.make_lasso_problem(n_samples=30, n_features=n_dims, n_informative=3, seed=0)
    lam = 0.1
    result_x = optimizer(loss_fn=losses.squared_loss, initial_guess=np.zeros(n_dims), A=A, y=y, lam=lam)
    result_f = lasso.l1_objective(losses.squared_loss, result_x, A, y, lam)
    assert result_x is not None, f"Returned None"
    assert isinstance(result_x, np.ndarray), f"Didn't return numpy array"
    assert result_x.shape == (n_dims,), f"Returned wrong shape"

    # Check for inf values in result
    assert not np.any(np.isinf(result_x)), f"Returned inf values in x estimate"
    assert not np.any(np.isnan(result_x)), f"Returned NaN values in x estimate"

    # Check function value at result
    assert not np.isinf(result_f), f"Produced solution with inf function value"
    assert not np.isnan(result_f), f"Produced solution with NaN function value"
    assert result_f <= lasso.l1_objective(losses.squared_loss, np.zeros(n_dims), A, y, lam), \
        f"Objective increased from the starting point"


class Interval:
    """
    Optuna metadata class for use with parameter annotations using typing.Annotated
    Low and high are required, and must be numeric.
    Step is optional, and should be None if log=True.
    """
    def __init__(self, low: int | float, high: int | float, step: int | float | None=None, log: bool=False):
        self.low = low
        self.high = high
        self.step = step
        self.log = log
