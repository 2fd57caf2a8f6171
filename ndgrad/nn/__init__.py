"""
ndgrad Neural Network Module
============================

Layers built from differentiable Variable operations.

- Linear: affine map with Xavier-initialized weights
- ReLU, Sigmoid, Tanh: elementwise activations
- Sequential: fixed ordered composition
"""

from .module import Module, Parameter
from .linear import Linear
from .activation import ReLU, Sigmoid, Tanh
from .container import Sequential

__all__ = [
    # Base
    'Module',
    'Parameter',

    # Linear
    'Linear',

    # Activation
    'ReLU',
    'Sigmoid',
    'Tanh',

    # Container
    'Sequential',
]
