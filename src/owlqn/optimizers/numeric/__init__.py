from .owlqn import minimize_owlqn as minimize_owlqn
from .owlqn import optimize
from .options import Options, Result, ReturnCode, IterationSnapshot

__all__ = [
    'minimize_owlqn',
]
