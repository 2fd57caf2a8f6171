"""
ndgrad Autograd Module
======================

Reverse-mode automatic differentiation over an explicit computation graph.

A Graph records every operation on tracked Variables as a node in an
append-only arena. backward() walks that arena once, from the terminal down
to the first node, applying each op's adjoint and summing contributions
back down to the shape of every input.
"""

from .graph import Graph, Node, NodeId, Op, OpKind
from .variable import Variable, Parameter
from .grad_fn import ADJOINTS, adjoint
from .engine import GradientMap, backward
from .gradcheck import check_gradients

__all__ = [
    # Graph
    'Graph',
    'Node',
    'NodeId',
    'Op',
    'OpKind',

    # Values
    'Variable',
    'Parameter',

    # Backward
    'ADJOINTS',
    'adjoint',
    'GradientMap',
    'backward',
    'check_gradients',
]
