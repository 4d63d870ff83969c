from owlqn.optimizers.numeric.owlqn import optimize, minimize_owlqn
from owlqn.optimizers.numeric.options import Options, Result, ReturnCode, IterationSnapshot

__all__ = ['optimize', 'minimize_owlqn', 'Options', 'Result', 'ReturnCode', 'IterationSnapshot']
