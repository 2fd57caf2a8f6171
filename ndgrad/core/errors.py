"""
ndgrad Core: Errors
===================

Recoverable failures raised by array operations, plus the two graph-level
faults.

Every recoverable error derives from ``TensorError`` and from the builtin
exception a caller would naturally catch (``ValueError`` for shape and axis
problems, ``IndexError`` for element access).
"""

from __future__ import annotations
from typing import Optional, Sequence


class TensorError(Exception):
    """Base class for recoverable array failures."""


class ShapeMismatch(TensorError, ValueError):
    """Data length disagrees with a declared shape, or shapes cannot broadcast."""

    def __init__(self, expected: Sequence[int], got: Sequence[int], message: Optional[str] = None):
        self.expected = tuple(expected)
        self.got = tuple(got)
        if message is None:
            message = f"Shape mismatch: expected {self.expected}, got {self.got}"
        super().__init__(message)


class DimensionMismatch(TensorError, ValueError):
    """Matmul inner dimensions disagree, or an operand has the wrong rank."""


class InvalidAxis(TensorError, ValueError):
    """Axis out of range, or a reduction over a zero-length axis."""

    def __init__(self, axis: Optional[int], ndim: int, reason: Optional[str] = None):
        self.axis = axis
        self.ndim = ndim
        message = f"Invalid axis: {axis} for array with {ndim} dimensions"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class IndexOutOfBounds(TensorError, IndexError):
    """Element access outside the array's shape."""

    def __init__(self, index: int, axis: int, size: int):
        self.index = index
        self.axis = axis
        self.size = size
        super().__init__(
            f"Index out of bounds: index {index} for axis {axis} with size {size}"
        )


class GraphError(RuntimeError):
    """A Variable or node id was used against the wrong graph."""


class StaleNodeError(GraphError):
    """A node id issued before the last ``Graph.reset()`` was used."""


class GraphInvariantError(AssertionError):
    """
    The backward pass met a shape it cannot reconcile.

    The forward pass validates every shape, so this only fires when the
    recorded graph and the adjoint rules disagree. It is not meant to be
    caught.
    """
