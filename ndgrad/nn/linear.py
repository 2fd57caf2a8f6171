"""
ndgrad NN - Linear Layer
========================

Affine map y = x @ W + b.
"""

from __future__ import annotations
import math
from typing import Optional, Union

from ..autograd.graph import Graph
from ..autograd.variable import Parameter, Variable
from ..core.array import rand, zeros
from ..core.dtype import DType
from .module import Module


class Linear(Module):
    """
    Fully connected layer: y = x @ W + b

    ``W`` has shape ``(in_features, out_features)`` and ``b`` shape
    ``(1, out_features)``, so a batch ``(n, in_features)`` maps to
    ``(n, out_features)`` with the bias broadcast over rows.

    Weights use Xavier/Glorot uniform initialization.
    """

    def __init__(
        self,
        in_features: int,
        out_features: int,
        graph: Graph,
        bias: bool = True,
        seed: Optional[int] = None,
        dtype: Optional[Union[DType, str]] = None,
    ):
        super().__init__()

        self.in_features = in_features
        self.out_features = out_features

        # Xavier initialization
        limit = math.sqrt(6.0 / (in_features + out_features))
        w = rand(in_features, out_features, seed=seed, dtype=dtype).mul(2.0 * limit).sub(limit)
        self.weight = Parameter(w, graph=graph, name="weight")

        if bias:
            self.bias = Parameter(zeros(1, out_features, dtype=dtype), graph=graph, name="bias")
        else:
            self.bias = None

    def forward(self, x: Variable) -> Variable:
        """
        Args:
            x: (n, in_features)

        Returns:
            (n, out_features)
        """
        y = x @ self.weight
        if self.bias is not None:
            y = y + self.bias
        return y

    def __repr__(self) -> str:
        return f"Linear({self.in_features}, {self.out_features}, bias={self.bias is not None})"
