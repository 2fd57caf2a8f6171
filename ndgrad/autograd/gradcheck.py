"""
ndgrad Autograd - Numerical Gradient Check
==========================================

Compare backward() against central finite differences.
"""

from __future__ import annotations
from typing import Callable, List, Sequence

import numpy as np

from ..core.array import Array
from ..core.dtype import float64
from .engine import backward
from .graph import Graph
from .variable import Variable


def check_gradients(
    func: Callable[..., Variable],
    inputs: Sequence[Array],
    eps: float = 1e-6,
    atol: float = 1e-5,
    rtol: float = 1e-4,
) -> bool:
    """
    Verify gradients numerically.

    Parameters
    ----------
    func : Callable
        Takes one Variable per input and returns a single-element Variable.
    inputs : Sequence[Array]
        Points at which to differentiate. Evaluated in float64.
    eps : float
        Finite difference step size
    atol, rtol : float
        Absolute and relative tolerance

    Returns
    -------
    True if gradients match, raises AssertionError otherwise
    """
    arrays = [a.astype(float64) for a in inputs]

    graph = Graph(name="gradcheck")
    leaves = [graph.leaf(a, requires_grad=True) for a in arrays]
    grads = backward(func(*leaves))
    analytical = [grads.get_or_zeros(v).numpy() for v in leaves]

    def evaluate(values: List[Array]) -> float:
        return func(*[Variable(v) for v in values]).item()

    for i, base in enumerate(arrays):
        flat, dims = base.to_flat()
        numerical = np.zeros(len(flat))
        for j, original in enumerate(flat):
            plus, minus = list(flat), list(flat)
            plus[j] = original + eps
            minus[j] = original - eps
            values = list(arrays)
            values[i] = Array.from_flat(plus, dims, dtype=float64)
            f_plus = evaluate(values)
            values[i] = Array.from_flat(minus, dims, dtype=float64)
            f_minus = evaluate(values)
            numerical[j] = (f_plus - f_minus) / (2 * eps)

        numerical = numerical.reshape(dims)
        if not np.allclose(analytical[i], numerical, atol=atol, rtol=rtol):
            diff = np.abs(analytical[i] - numerical)
            worst = np.unravel_index(np.argmax(diff), diff.shape) if diff.ndim else ()
            raise AssertionError(
                f"Gradient mismatch for input {i} at {tuple(int(k) for k in worst)}: "
                f"analytical={analytical[i][worst]:.6g}, numerical={numerical[worst]:.6g}"
            )

    return True
