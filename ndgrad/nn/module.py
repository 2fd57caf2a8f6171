"""
ndgrad NN - Base Module and Parameters
======================================

Base class for layers. Parameters are the persistent leaves defined in
``ndgrad.autograd``; a Module only collects them.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List, Tuple

from ..autograd.variable import Parameter, Variable


class Module(ABC):
    """
    Base class for all layers.

    - Contains parameters
    - Defines forward pass
    - Tracks submodules

    Attributes holding a Parameter or a Module are registered on
    assignment, in assignment order.
    """

    def __init__(self):
        self._parameters: Dict[str, Parameter] = {}
        self._modules: Dict[str, 'Module'] = {}

    def __setattr__(self, name: str, value: Any):
        if name.startswith('_'):
            super().__setattr__(name, value)
            return
        if isinstance(value, Parameter):
            if not hasattr(self, '_parameters'):
                super().__setattr__('_parameters', {})
            self._parameters[name] = value
        elif isinstance(value, Module):
            if not hasattr(self, '_modules'):
                super().__setattr__('_modules', {})
            self._modules[name] = value
        super().__setattr__(name, value)

    def parameters(self, recurse: bool = True) -> List[Parameter]:
        """Return all parameters."""
        params = list(self._parameters.values())
        if recurse:
            for module in self._modules.values():
                params.extend(module.parameters(recurse=True))
        return params

    def named_parameters(self, prefix: str = '') -> Iterator[Tuple[str, Parameter]]:
        for name, param in self._parameters.items():
            yield prefix + name, param
        for name, module in self._modules.items():
            yield from module.named_parameters(prefix=f"{prefix}{name}.")

    def num_parameters(self) -> int:
        return sum(p.numel for p in self.parameters())

    @abstractmethod
    def forward(self, x: Variable) -> Variable:
        """Forward pass - must be implemented by subclasses."""
        ...

    def __call__(self, x: Variable) -> Variable:
        """Call forward()."""
        return self.forward(x)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


__all__ = ['Module', 'Parameter']
