from .scipy_opt import minimize_lbfgsb_split

__all__ = ['minimize_lbfgsb_split']
