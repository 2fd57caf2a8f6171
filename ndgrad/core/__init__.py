"""Array engine for ndgrad: shapes, scalar types, and the Array itself."""

from .dtype import DType, float32, float64
from .errors import (
    TensorError,
    ShapeMismatch,
    DimensionMismatch,
    InvalidAxis,
    IndexOutOfBounds,
    GraphError,
    StaleNodeError,
    GraphInvariantError,
)
from .shape import Shape, broadcast_shape
from .array import (
    Array,
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

__all__ = [
    'DType',
    'float32',
    'float64',
    'TensorError',
    'ShapeMismatch',
    'DimensionMismatch',
    'InvalidAxis',
    'IndexOutOfBounds',
    'GraphError',
    'StaleNodeError',
    'GraphInvariantError',
    'Shape',
    'broadcast_shape',
    'Array',
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
]
