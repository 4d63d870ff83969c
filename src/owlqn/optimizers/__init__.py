# Import all optimizers from subdirectories
from .numeric import *
from .scipy import *

# Combine all __all__ lists from subdirectories
__all__ = []

from owlqn.optimizers.numeric import __all__ as numeric_all
__all__.extend(numeric_all)

from owlqn.optimizers.scipy import __all__ as scipy_all
__all__.extend(scipy_all)

# Create a mapping of optimizer names to functions
OPTIMIZERS = {}

# Build the mapping from the imported functions
for name in __all__:
    if name.startswith('minimize_'):
        OPTIMIZERS[name] = globals()[name]

# from owlqn.optimizers import minimize_owlqn, minimize_lbfgsb_split
# Or access the mapping: from owlqn.optimizers import OPTIMIZERS
