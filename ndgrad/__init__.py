"""
ndgrad: N-dimensional Arrays with Reverse-Mode Autodiff
=======================================================

ndgrad pairs a small strided array engine with an explicit computation
graph. Arrays broadcast like NumPy; Variables wrap Arrays and record every
operation in a Graph so gradients can be computed in one backward sweep.

Example:
    >>> import ndgrad as nd
    >>> g = nd.Graph()
    >>> w = g.param(nd.array([[1.0], [2.0]]))
    >>> x = g.input(nd.array([[3.0, 4.0]]))
    >>> loss = (x @ w).sum()
    >>> grads = loss.backward()
    >>> grads[w].tolist()
    [[3.0], [4.0]]
"""

__version__ = "0.1.0"

# Array engine
from .core import (
    Array,
    Shape,
    broadcast_shape,
    DType,
    float32,
    float64,
    array,
    from_rows,
    from_flat,
    zeros,
    ones,
    full,
    scalar,
    eye,
    arange,
    linspace,
    rand,
    randn,
    concatenate,
    stack,
)

# Errors
from .core.errors import (
    TensorError,
    ShapeMismatch,
    DimensionMismatch,
    InvalidAxis,
    IndexOutOfBounds,
    GraphError,
    StaleNodeError,
    GraphInvariantError,
)

# Configuration
from .config import get_default_dtype, set_default_dtype, default_dtype

# Autodiff
from .autograd import (
    Graph,
    NodeId,
    Op,
    OpKind,
    Variable,
    Parameter,
    GradientMap,
    backward,
    check_gradients,
)

from . import nn

__all__ = [
    # Arrays
    'Array',
    'Shape',
    'broadcast_shape',
    'DType',
    'float32',
    'float64',
    'array',
    'from_rows',
    'from_flat',
    'zeros',
    'ones',
    'full',
    'scalar',
    'eye',
    'arange',
    'linspace',
    'rand',
    'randn',
    'concatenate',
    'stack',

    # Errors
    'TensorError',
    'ShapeMismatch',
    'DimensionMismatch',
    'InvalidAxis',
    'IndexOutOfBounds',
    'GraphError',
    'StaleNodeError',
    'GraphInvariantError',

    # Config
    'get_default_dtype',
    'set_default_dtype',
    'default_dtype',

    # Autodiff
    'Graph',
    'NodeId',
    'Op',
    'OpKind',
    'Variable',
    'Parameter',
    'GradientMap',
    'backward',
    'check_gradients',

    # Layers
    'nn',
]
