"""
ndgrad NN - Container Modules
=============================

Sequential composition of layers.
"""

from __future__ import annotations
from typing import Iterator, Sequence

from ..autograd.variable import Variable
from .module import Module


class Sequential(Module):
    """
    Applies layers in order.

    The layer list is fixed at construction.

    Example:
        >>> model = Sequential([Linear(4, 8, graph), ReLU(), Linear(8, 1, graph)])
        >>> y = model(x)
    """

    def __init__(self, layers: Sequence[Module]):
        super().__init__()
        for i, layer in enumerate(layers):
            if not isinstance(layer, Module):
                raise TypeError(f"Sequential expects Modules, got {type(layer).__name__} at position {i}")
            self._modules[str(i)] = layer

    def forward(self, x: Variable) -> Variable:
        for layer in self._modules.values():
            x = layer(x)
        return x

    def __getitem__(self, idx: int) -> Module:
        return list(self._modules.values())[idx]

    def __len__(self) -> int:
        return len(self._modules)

    def __iter__(self) -> Iterator[Module]:
        return iter(self._modules.values())

    def __repr__(self) -> str:
        lines = ["Sequential("]
        for name, module in self._modules.items():
            lines.append(f"  ({name}): {module}")
        lines.append(")")
        return "\n".join(lines)
