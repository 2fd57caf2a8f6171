"""
ndgrad Core: Shape
==================

Dimension sizes, row-major strides, and the broadcasting rule.

A Shape is immutable. Every reshaping operation builds a new one.
"""

from __future__ import annotations
import math
import operator
from numbers import Integral
from typing import Iterable, Iterator, Sequence, Tuple, Union

from .errors import DimensionMismatch, IndexOutOfBounds, InvalidAxis, ShapeMismatch

ShapeLike = Union['Shape', Sequence[int], int]


def _dim(d) -> int:
    try:
        return operator.index(d)
    except TypeError as exc:
        raise ShapeMismatch((), (), f"Dimension sizes must be integers, got {d!r}") from exc


class Shape:
    """
    Ordered sequence of non-negative dimension sizes.

    Strides are counted in elements, not bytes: ``strides[i]`` is how far to
    move in the flat buffer to advance one step along axis ``i``.

    Example:
        >>> s = Shape((3, 4, 5))
        >>> s.numel, s.strides
        (60, (20, 5, 1))
        >>> s.offset((1, 2, 3))
        33
    """

    __slots__ = ("_dims", "_strides", "_numel")

    def __init__(self, dims: Iterable[int] = ()):
        dims = tuple(_dim(d) for d in dims)
        for i, d in enumerate(dims):
            if d < 0:
                raise ShapeMismatch(dims, dims, f"Negative dimension {d} at axis {i} in shape {dims}")
        self._dims = dims
        self._numel = math.prod(dims)
        self._strides = self._compute_strides(dims)

    @staticmethod
    def _compute_strides(dims: Tuple[int, ...]) -> Tuple[int, ...]:
        if len(dims) == 0:
            return ()
        strides = [1]
        for dim in reversed(dims[1:]):
            strides.append(strides[-1] * dim)
        return tuple(reversed(strides))

    @classmethod
    def of(cls, shape: ShapeLike) -> 'Shape':
        """Coerce a Shape, a sequence of ints, or a single int."""
        if isinstance(shape, Shape):
            return shape
        if isinstance(shape, Integral):
            return cls((shape,))
        return cls(shape)

    @classmethod
    def scalar(cls) -> 'Shape':
        return cls(())

    # -- basic queries -----------------------------------------------------

    @property
    def dims(self) -> Tuple[int, ...]:
        return self._dims

    @property
    def ndim(self) -> int:
        return len(self._dims)

    @property
    def numel(self) -> int:
        return self._numel

    @property
    def strides(self) -> Tuple[int, ...]:
        return self._strides

    @property
    def is_scalar(self) -> bool:
        return len(self._dims) == 0

    def normalize_axis(self, axis: int) -> int:
        """Map a possibly negative axis into ``[0, ndim)``."""
        ndim = len(self._dims)
        if not isinstance(axis, int) or isinstance(axis, bool):
            raise InvalidAxis(axis, ndim, "axis must be an int")
        if axis < -ndim or axis >= ndim:
            raise InvalidAxis(axis, ndim)
        return axis + ndim if axis < 0 else axis

    def dim(self, axis: int) -> int:
        """Size along ``axis``."""
        return self._dims[self.normalize_axis(axis)]

    # -- indexing ----------------------------------------------------------

    def offset(self, index: Sequence[int]) -> int:
        """Flat offset of a multi-index: ``sum(index[i] * strides[i])``."""
        if len(index) != len(self._dims):
            raise DimensionMismatch(
                f"Expected {len(self._dims)} indices for shape {self._dims}, got {len(index)}"
            )
        flat = 0
        for axis, (i, size, stride) in enumerate(zip(index, self._dims, self._strides)):
            if i < 0 or i >= size:
                raise IndexOutOfBounds(i, axis, size)
            flat += i * stride
        return flat

    def unravel(self, flat: int) -> Tuple[int, ...]:
        """Multi-index of a flat offset."""
        if flat < 0 or flat >= self._numel:
            raise IndexOutOfBounds(flat, 0, self._numel)
        index = []
        for stride in self._strides:
            index.append(flat // stride)
            flat %= stride
        return tuple(index)

    def split(self, axis: int) -> Tuple[int, int, int]:
        """
        Three-level decomposition around ``axis``.

        Returns ``(outer, n, inner)`` where ``outer`` is the product of the
        dimensions before ``axis``, ``n`` its length, and ``inner`` the
        product of the dimensions after it. Flat offset of
        ``(o, a, i)`` is ``(o * n + a) * inner + i``.
        """
        axis = self.normalize_axis(axis)
        outer = math.prod(self._dims[:axis])
        inner = math.prod(self._dims[axis + 1:])
        return outer, self._dims[axis], inner

    # -- derived shapes ----------------------------------------------------

    def without(self, axis: int) -> 'Shape':
        axis = self.normalize_axis(axis)
        return Shape(self._dims[:axis] + self._dims[axis + 1:])

    def with_axis(self, axis: int, size: int) -> 'Shape':
        """Replace the size of ``axis``."""
        axis = self.normalize_axis(axis)
        return Shape(self._dims[:axis] + (size,) + self._dims[axis + 1:])

    def inserted(self, axis: int, size: int = 1) -> 'Shape':
        """Insert a new axis at ``axis`` (``0 <= axis <= ndim``)."""
        ndim = len(self._dims)
        if axis < 0:
            axis += ndim + 1
        if axis < 0 or axis > ndim:
            raise InvalidAxis(axis, ndim)
        return Shape(self._dims[:axis] + (size,) + self._dims[axis:])

    def permuted(self, axes: Sequence[int]) -> 'Shape':
        return Shape(self._dims[a] for a in axes)

    # -- broadcasting ------------------------------------------------------

    @staticmethod
    def broadcast(a: ShapeLike, b: ShapeLike) -> 'Shape':
        """
        NumPy broadcasting of two shapes.

        Shapes are aligned from the trailing dimension; each aligned pair must
        be equal or contain a 1. Missing leading dimensions count as 1.
        """
        a, b = Shape.of(a), Shape.of(b)
        if a == b:
            return a
        ndim = max(a.ndim, b.ndim)
        da = (1,) * (ndim - a.ndim) + a.dims
        db = (1,) * (ndim - b.ndim) + b.dims
        result = []
        for x, y in zip(da, db):
            if x == y or y == 1:
                result.append(x)
            elif x == 1:
                result.append(y)
            else:
                raise ShapeMismatch(
                    a.dims, b.dims, f"Cannot broadcast shapes {a.dims} and {b.dims}"
                )
        return Shape(result)

    def broadcast_strides(self, target: ShapeLike) -> Tuple[int, ...]:
        """
        Strides that read this shape's buffer as ``target``.

        Stretched and missing leading axes get stride 0, so every position
        along them reads the same element.
        """
        target = Shape.of(target)
        lead = target.ndim - self.ndim
        if lead < 0:
            raise ShapeMismatch(target.dims, self._dims, f"Cannot broadcast {self._dims} to {target.dims}")
        strides = [0] * lead
        for size, stride, want in zip(self._dims, self._strides, target.dims[lead:]):
            if size == want:
                strides.append(stride if size != 1 else 0)
            elif size == 1:
                strides.append(0)
            else:
                raise ShapeMismatch(target.dims, self._dims, f"Cannot broadcast {self._dims} to {target.dims}")
        return tuple(strides)

    def reduced_axes(self, target: ShapeLike) -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
        """
        Axes of this (broadcast) shape that collapse onto ``target``.

        Returns ``(leading, stretched)``: leading axes that ``target`` lacks,
        and the remaining axes where ``target`` has size 1 but this shape
        does not. Raises ShapeMismatch if ``target`` does not broadcast to
        this shape.
        """
        target = Shape.of(target)
        target.broadcast_strides(self)
        lead = self.ndim - target.ndim
        leading = tuple(range(lead))
        stretched = tuple(
            lead + i
            for i, (t, s) in enumerate(zip(target.dims, self._dims[lead:]))
            if t == 1 and s != 1
        )
        return leading, stretched

    # -- dunder ------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._dims)

    def __iter__(self) -> Iterator[int]:
        return iter(self._dims)

    def __getitem__(self, i):
        return self._dims[i]

    def __eq__(self, other) -> bool:
        if isinstance(other, Shape):
            return self._dims == other._dims
        if isinstance(other, (tuple, list)):
            return self._dims == tuple(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._dims)

    def __repr__(self) -> str:
        return f"Shape{self._dims}"

    def __str__(self) -> str:
        return "(" + ", ".join(str(d) for d in self._dims) + ")"


def broadcast_shape(a: ShapeLike, b: ShapeLike) -> Shape:
    """Result shape of broadcasting ``a`` against ``b``."""
    return Shape.broadcast(a, b)
