"""
ndgrad NN - Activation Functions
================================

Parameter-free elementwise layers.
"""

from __future__ import annotations

from ..autograd.variable import Variable
from .module import Module


class ReLU(Module):
    """max(x, 0)."""

    def forward(self, x: Variable) -> Variable:
        return x.relu()


class Sigmoid(Module):
    """Sigmoid activation."""

    def forward(self, x: Variable) -> Variable:
        return x.sigmoid()


class Tanh(Module):
    """Tanh activation."""

    def forward(self, x: Variable) -> Variable:
        return x.tanh()
