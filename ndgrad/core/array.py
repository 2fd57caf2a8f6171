"""
ndgrad Core: Array
==================

N-dimensional array backed by a flat, contiguous numpy buffer plus a Shape.

The buffer always holds exactly ``shape.numel`` elements in row-major
order. Arrays behave as values: every operation returns a new Array, and
only ``set()`` and ``fill_()`` write into an existing one.

Broadcast operands are read through zero strides computed from their
Shape, so a size-1 axis is never copied per stretched position.
Reductions reshape the buffer to ``(outer, axis, inner)`` and accumulate
over the middle level.
"""

from __future__ import annotations
import math
from numbers import Integral
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np
from numpy.lib.stride_tricks import as_strided

from .. import config
from .dtype import DType
from .errors import DimensionMismatch, IndexOutOfBounds, InvalidAxis, ShapeMismatch
from .shape import Shape, ShapeLike

Scalar = Union[int, float]
Operand = Union['Array', Scalar]


def _ieee():
    """Let inf/NaN propagate without numpy warnings."""
    return np.errstate(divide="ignore", invalid="ignore", over="ignore", under="ignore")


def _shape_args(shape: Tuple) -> Shape:
    # zeros(2, 3), zeros((2, 3)) and zeros(Shape(...)) are all accepted
    if len(shape) == 1 and not isinstance(shape[0], Integral):
        return Shape.of(shape[0])
    return Shape(shape)


def _resolve_dtype(dtype: Optional[Union[DType, str]]) -> DType:
    if dtype is None:
        return config.get_default_dtype()
    return DType.from_any(dtype)


class Array:
    """
    Dense N-dimensional array of float32 or float64.

    Example:
        >>> a = Array([1, 2, 3, 4], (2, 2))
        >>> b = Array.from_rows([[5, 6], [7, 8]])
        >>> a.matmul(b).tolist()
        [[19.0, 22.0], [43.0, 50.0]]
    """

    __slots__ = ("_data", "_shape", "_dtype")

    # Python operators on numpy scalars defer to our reflected methods
    __array_ufunc__ = None

    def __init__(
        self,
        data: Union[Sequence, np.ndarray, Scalar],
        shape: Optional[ShapeLike] = None,
        dtype: Optional[Union[DType, str]] = None,
    ):
        """
        Create an Array from a flat sequence and a shape.

        Args:
            data: flat sequence of numbers (a numpy array of any rank is
                accepted and read in row-major order), or a single number
            shape: dimension sizes; defaults to the numpy shape of ``data``
            dtype: float32 / float64; inferred from a float numpy input,
                otherwise the configured default

        Raises:
            ShapeMismatch: if the element count disagrees with ``shape``, or
                nested ``data`` is ragged
        """
        if dtype is None and isinstance(data, np.ndarray) and data.dtype in (np.float32, np.float64):
            dtype = DType.from_any(data.dtype)
        dtype = _resolve_dtype(dtype)

        try:
            raw = np.array(data, dtype=dtype.numpy_dtype)
        except ValueError as exc:
            raise ShapeMismatch((), (), "Ragged nested data cannot form an array") from exc
        if shape is None:
            shape = Shape(raw.shape)
        else:
            shape = Shape.of(shape)
        buffer = raw.reshape(-1)
        if buffer.size != shape.numel:
            raise ShapeMismatch(
                shape.dims, (buffer.size,),
                f"Shape mismatch: shape {shape.dims} needs {shape.numel} elements, got {buffer.size}",
            )
        self._data = buffer
        self._shape = shape
        self._dtype = dtype

    @classmethod
    def _wrap(cls, buffer: np.ndarray, shape: Shape, dtype: DType) -> 'Array':
        """Adopt an owned flat buffer without validation."""
        out = cls.__new__(cls)
        out._data = buffer
        out._shape = shape
        out._dtype = dtype
        return out

    # -- construction ------------------------------------------------------

    @classmethod
    def from_rows(cls, rows: Sequence[Sequence[Scalar]], dtype: Optional[Union[DType, str]] = None) -> 'Array':
        """
        Rank-2 array from nested row data.

        Raises:
            ShapeMismatch: if the rows have different lengths
        """
        rows = [list(r) for r in rows]
        cols = len(rows[0]) if rows else 0
        for r in rows:
            if len(r) != cols:
                raise ShapeMismatch(
                    (len(rows), cols), (len(rows), len(r)),
                    f"Ragged rows: expected {cols} columns, got a row with {len(r)}",
                )
        flat = [x for r in rows for x in r]
        return cls(flat, (len(rows), cols), dtype)

    @classmethod
    def from_flat(cls, data: Sequence[Scalar], shape: ShapeLike, dtype: Optional[Union[DType, str]] = None) -> 'Array':
        """Rebuild an Array from the pair produced by ``to_flat()``."""
        return cls(list(data), shape, dtype)

    @classmethod
    def from_dict(cls, payload: dict) -> 'Array':
        """Rebuild an Array from ``to_dict()`` output."""
        return cls(payload["data"], tuple(payload["shape"]), payload.get("dtype"))

    @classmethod
    def zeros(cls, *shape, dtype: Optional[Union[DType, str]] = None) -> 'Array':
        shape = _shape_args(shape)
        dtype = _resolve_dtype(dtype)
        return cls._wrap(np.zeros(shape.numel, dtype=dtype.numpy_dtype), shape, dtype)

    @classmethod
    def ones(cls, *shape, dtype: Optional[Union[DType, str]] = None) -> 'Array':
        shape = _shape_args(shape)
        dtype = _resolve_dtype(dtype)
        return cls._wrap(np.ones(shape.numel, dtype=dtype.numpy_dtype), shape, dtype)

    @classmethod
    def full(cls, shape: ShapeLike, value: Scalar, dtype: Optional[Union[DType, str]] = None) -> 'Array':
        shape = Shape.of(shape)
        dtype = _resolve_dtype(dtype)
        return cls._wrap(np.full(shape.numel, value, dtype=dtype.numpy_dtype), shape, dtype)

    @classmethod
    def scalar(cls, value: Scalar, dtype: Optional[Union[DType, str]] = None) -> 'Array':
        """Rank-0 array."""
        return cls.full((), value, dtype)

    # -- basic properties --------------------------------------------------

    @property
    def shape(self) -> Shape:
        return self._shape

    @property
    def dtype(self) -> DType:
        return self._dtype

    @property
    def ndim(self) -> int:
        return self._shape.ndim

    @property
    def numel(self) -> int:
        return self._shape.numel

    size = numel

    @property
    def strides(self) -> Tuple[int, ...]:
        return self._shape.strides

    @property
    def data(self) -> np.ndarray:
        """Read-only view of the flat buffer."""
        view = self._data.view()
        view.flags.writeable = False
        return view

    def numpy(self) -> np.ndarray:
        """Copy shaped as a numpy array."""
        return self._data.reshape(self._shape.dims).copy()

    def tolist(self):
        return self.numpy().tolist()

    def to_flat(self) -> Tuple[List[float], Tuple[int, ...]]:
        """Export as ``(flat values, shape)``."""
        return self._data.tolist(), self._shape.dims

    def to_dict(self) -> dict:
        return {"data": self._data.tolist(), "shape": list(self._shape.dims), "dtype": self._dtype.name_str}

    def item(self) -> float:
        """The single element of a one-element array."""
        if self.numel != 1:
            raise ShapeMismatch((), self._shape.dims, f"item() needs exactly one element, array has shape {self._shape.dims}")
        return float(self._data[0])

    def copy(self) -> 'Array':
        return Array._wrap(self._data.copy(), self._shape, self._dtype)

    def astype(self, dtype: Union[DType, str]) -> 'Array':
        dtype = DType.from_any(dtype)
        if dtype is self._dtype:
            return self.copy()
        return Array._wrap(self._data.astype(dtype.numpy_dtype), self._shape, dtype)

    # -- element access ----------------------------------------------------

    def get(self, index: Union[int, Sequence[int]]) -> float:
        """Element at a multi-index."""
        if isinstance(index, Integral):
            index = (index,)
        return float(self._data[self._shape.offset(index)])

    def set(self, index: Union[int, Sequence[int]], value: Scalar) -> None:
        """Write one element in place."""
        if isinstance(index, Integral):
            index = (index,)
        self._data[self._shape.offset(index)] = value

    def fill_(self, value: Scalar) -> 'Array':
        """Overwrite every element in place."""
        self._data[:] = value
        return self

    def __getitem__(self, index):
        if isinstance(index, tuple) and len(index) == self.ndim and all(isinstance(i, Integral) for i in index):
            return self.get(index)
        if isinstance(index, Integral):
            if self.ndim == 1:
                return self.get(index)
            return self.take(0, index)
        raise TypeError(
            f"Array indices must be integers or tuples of integers, not {type(index).__name__}; use slice() for ranges"
        )

    def __setitem__(self, index, value):
        self.set(index, value)

    # -- broadcasting ------------------------------------------------------

    def _view_as(self, shape: Shape) -> np.ndarray:
        """Zero-copy numpy view of this buffer broadcast to ``shape``."""
        itemsize = self._data.itemsize
        strides = tuple(s * itemsize for s in self._shape.broadcast_strides(shape))
        return as_strided(self._data, shape=shape.dims, strides=strides, writeable=False)

    def broadcast_to(self, shape: ShapeLike) -> 'Array':
        shape = Shape.of(shape)
        return Array._wrap(np.array(self._view_as(shape)).reshape(-1), shape, self._dtype)

    def sum_to(self, shape: ShapeLike) -> 'Array':
        """
        Sum this array down to ``shape``, undoing a broadcast.

        Leading axes that ``shape`` lacks are summed away; axes where
        ``shape`` has size 1 are summed with the axis kept.
        """
        shape = Shape.of(shape)
        if shape == self._shape:
            return self.copy()
        leading, stretched = self._shape.reduced_axes(shape)
        axes = leading + stretched
        buf = self._data.reshape(self._shape.dims).sum(axis=axes, keepdims=True)
        return Array._wrap(np.ascontiguousarray(buf, dtype=self._dtype.numpy_dtype).reshape(-1), shape, self._dtype)

    def _binary(self, other: Operand, fn: Callable) -> 'Array':
        other = _as_array(other, self._dtype)
        dtype = DType.promote(self._dtype, other._dtype)
        if self._shape == other._shape:
            out_shape = self._shape
            a, b = self._data, other._data
        else:
            out_shape = Shape.broadcast(self._shape, other._shape)
            a, b = self._view_as(out_shape), other._view_as(out_shape)
        with _ieee():
            result = fn(a, b)
        result = np.asarray(result, dtype=dtype.numpy_dtype).reshape(-1)
        return Array._wrap(result, out_shape, dtype)

    # -- elementwise binary ------------------------------------------------

    def add(self, other: Operand) -> 'Array':
        return self._binary(other, np.add)

    def sub(self, other: Operand) -> 'Array':
        return self._binary(other, np.subtract)

    def mul(self, other: Operand) -> 'Array':
        return self._binary(other, np.multiply)

    def div(self, other: Operand) -> 'Array':
        """Elementwise division; zero divisors give inf or NaN."""
        return self._binary(other, np.divide)

    def maximum(self, other: Operand) -> 'Array':
        return self._binary(other, np.maximum)

    def minimum(self, other: Operand) -> 'Array':
        return self._binary(other, np.minimum)

    def eq(self, other: Operand) -> 'Array':
        """1.0 where equal, 0.0 elsewhere."""
        return self._binary(other, np.equal)

    def gt(self, other: Operand) -> 'Array':
        return self._binary(other, np.greater)

    def ge(self, other: Operand) -> 'Array':
        return self._binary(other, np.greater_equal)

    def lt(self, other: Operand) -> 'Array':
        return self._binary(other, np.less)

    def le(self, other: Operand) -> 'Array':
        return self._binary(other, np.less_equal)

    def where(self, mask: 'Array', other: Operand) -> 'Array':
        """This array where ``mask`` is nonzero, ``other`` elsewhere."""
        mask = _as_array(mask, self._dtype)
        other = _as_array(other, self._dtype)
        dtype = DType.promote(self._dtype, other._dtype)
        shape = Shape.broadcast(Shape.broadcast(self._shape, other._shape), mask._shape)
        out = np.where(mask._view_as(shape) != 0, self._view_as(shape), other._view_as(shape))
        return Array._wrap(np.asarray(out, dtype=dtype.numpy_dtype).reshape(-1), shape, dtype)

    # -- elementwise unary -------------------------------------------------

    def apply(self, fn: Callable[[float], float]) -> 'Array':
        """Apply a scalar function to every element."""
        out = np.fromiter((fn(float(x)) for x in self._data), dtype=self._dtype.numpy_dtype, count=self.numel)
        return Array._wrap(out, self._shape, self._dtype)

    def _unary(self, fn: Callable[[np.ndarray], np.ndarray]) -> 'Array':
        with _ieee():
            out = np.asarray(fn(self._data), dtype=self._dtype.numpy_dtype).reshape(-1)
        return Array._wrap(out, self._shape, self._dtype)

    def neg(self) -> 'Array':
        return self._unary(np.negative)

    def abs(self) -> 'Array':
        return self._unary(self._dtype.abs)

    def exp(self) -> 'Array':
        return self._unary(self._dtype.exp)

    def ln(self) -> 'Array':
        return self._unary(self._dtype.ln)

    log = ln

    def sqrt(self) -> 'Array':
        return self._unary(self._dtype.sqrt)

    def pow(self, exponent: Scalar) -> 'Array':
        return self._unary(lambda x: self._dtype.power(x, exponent))

    def relu(self) -> 'Array':
        return self._unary(lambda x: self._dtype.maximum(x, self._dtype.zero))

    def sigmoid(self) -> 'Array':
        return self._unary(self._dtype.sigmoid)

    def tanh(self) -> 'Array':
        return self._unary(self._dtype.tanh)

    def clip(self, low: Optional[Scalar], high: Optional[Scalar]) -> 'Array':
        return self._unary(lambda x: np.clip(x, low, high))

    def positive_mask(self) -> 'Array':
        """1.0 where the element is strictly positive, 0.0 elsewhere."""
        return self._unary(lambda x: self._dtype.greater(x, self._dtype.zero))

    # -- matrix products ---------------------------------------------------

    def matmul(self, other: 'Array') -> 'Array':
        """
        Matrix product of two rank-2 arrays: ``[m, k] @ [k, n] -> [m, n]``.

        Raises:
            DimensionMismatch: if either operand is not rank 2, or the
                inner dimensions differ
        """
        if not isinstance(other, Array):
            raise TypeError(f"matmul expects an Array, got {type(other).__name__}")
        if self.ndim != 2 or other.ndim != 2:
            raise DimensionMismatch(
                f"matmul requires two rank-2 arrays, got shapes {self._shape.dims} and {other._shape.dims}"
            )
        m, k = self._shape.dims
        k2, n = other._shape.dims
        if k != k2:
            raise DimensionMismatch(
                f"matmul inner dimensions must match, got {self._shape.dims} and {other._shape.dims}"
            )
        dtype = DType.promote(self._dtype, other._dtype)
        a = self._data.reshape(m, k).astype(dtype.numpy_dtype, copy=False)
        b = other._data.reshape(k, n).astype(dtype.numpy_dtype, copy=False)
        with _ieee():
            out = np.matmul(a, b)
        return Array._wrap(np.ascontiguousarray(out).reshape(-1), Shape((m, n)), dtype)

    def dot(self, other: 'Array') -> float:
        """Inner product of two rank-1 arrays."""
        if self.ndim != 1 or other.ndim != 1:
            raise DimensionMismatch(
                f"dot requires two rank-1 arrays, got shapes {self._shape.dims} and {other._shape.dims}"
            )
        if self.numel != other.numel:
            raise ShapeMismatch(self._shape.dims, other._shape.dims)
        return float(np.dot(self._data, other._data))

    def outer(self, other: 'Array') -> 'Array':
        """Outer product of two rank-1 arrays."""
        if self.ndim != 1 or other.ndim != 1:
            raise DimensionMismatch(
                f"outer requires two rank-1 arrays, got shapes {self._shape.dims} and {other._shape.dims}"
            )
        return self.reshape(self.numel, 1).mul(other.reshape(1, other.numel))

    # -- reductions --------------------------------------------------------

    def _reduce(
        self,
        axis: Optional[int],
        keepdims: bool,
        fn: Callable[[np.ndarray], np.ndarray],
        name: str,
        allow_empty: bool = False,
    ) -> 'Array':
        """
        Reduce over ``axis`` using the ``(outer, axis, inner)`` layout.

        ``fn`` receives a ``(outer, n, inner)`` view and must reduce its
        middle level, returning ``(outer, inner)``.
        """
        shape = self._shape
        if axis is None:
            outer, n, inner = 1, shape.numel, 1
            out_shape = Shape((1,) * shape.ndim) if keepdims else Shape.scalar()
        else:
            axis = shape.normalize_axis(axis)
            outer, n, inner = shape.split(axis)
            out_shape = shape.with_axis(axis, 1) if keepdims else shape.without(axis)
        if n == 0 and not allow_empty:
            raise InvalidAxis(axis, shape.ndim, f"{name} over a zero-length axis")
        view = self._data.reshape(outer, n, inner)
        with _ieee():
            out = fn(view)
        out = np.asarray(out, dtype=self._dtype.numpy_dtype).reshape(-1)
        return Array._wrap(out, out_shape, self._dtype)

    def sum(self, axis: Optional[int] = None, keepdims: bool = False) -> 'Array':
        return self._reduce(axis, keepdims, lambda v: v.sum(axis=1), "sum", allow_empty=True)

    def mean(self, axis: Optional[int] = None, keepdims: bool = False) -> 'Array':
        return self._reduce(axis, keepdims, lambda v: v.sum(axis=1) / v.shape[1], "mean")

    def var(self, axis: Optional[int] = None, keepdims: bool = False) -> 'Array':
        """Population variance (divides by the axis length)."""

        def _var(v):
            mu = v.sum(axis=1, keepdims=True) / v.shape[1]
            return ((v - mu) ** 2).sum(axis=1) / v.shape[1]

        return self._reduce(axis, keepdims, _var, "var")

    variance = var

    def std(self, axis: Optional[int] = None, keepdims: bool = False) -> 'Array':
        return self.var(axis, keepdims).sqrt()

    def max(self, axis: Optional[int] = None, keepdims: bool = False) -> 'Array':
        return self._reduce(axis, keepdims, lambda v: v.max(axis=1), "max")

    def min(self, axis: Optional[int] = None, keepdims: bool = False) -> 'Array':
        return self._reduce(axis, keepdims, lambda v: v.min(axis=1), "min")

    def argmax(self, axis: Optional[int] = None, keepdims: bool = False) -> 'Array':
        """Index of the largest element along ``axis``; ties go to the lowest index."""
        return self._reduce(axis, keepdims, lambda v: v.argmax(axis=1), "argmax")

    def argmin(self, axis: Optional[int] = None, keepdims: bool = False) -> 'Array':
        """Index of the smallest element along ``axis``; ties go to the lowest index."""
        return self._reduce(axis, keepdims, lambda v: v.argmin(axis=1), "argmin")

    def softmax(self, axis: int = -1) -> 'Array':
        shifted = self.sub(self.max(axis, keepdims=True))
        e = shifted.exp()
        return e.div(e.sum(axis, keepdims=True))

    def log_softmax(self, axis: int = -1) -> 'Array':
        shifted = self.sub(self.max(axis, keepdims=True))
        return shifted.sub(shifted.exp().sum(axis, keepdims=True).ln())

    def norm(self) -> float:
        """Euclidean norm of all elements."""
        return float(np.sqrt(np.dot(self._data, self._data)))

    def norm_l1(self) -> float:
        """Sum of absolute values of all elements."""
        return float(np.abs(self._data).sum())

    def prod(self, axis: Optional[int] = None, keepdims: bool = False) -> 'Array':
        """Product along ``axis``; a zero-length axis gives ones."""
        return self._reduce(axis, keepdims, lambda v: v.prod(axis=1), "prod", allow_empty=True)

    def prod_all(self) -> float:
        return float(self._data.prod())

    def cumsum(self, axis: int = 0) -> 'Array':
        """Running sum along ``axis``. The shape is unchanged."""
        axis = self._shape.normalize_axis(axis)
        outer, n, inner = self._shape.split(axis)
        with _ieee():
            out = self._data.reshape(outer, n, inner).cumsum(axis=1)
        return Array._wrap(np.asarray(out, dtype=self._dtype.numpy_dtype).reshape(-1), self._shape, self._dtype)

    def topk(self, k: int, axis: int = -1) -> Tuple['Array', 'Array']:
        """
        The ``k`` largest elements along ``axis``, largest first.

        Returns ``(values, indices)``, both shaped like this array with
        ``axis`` cut to ``min(k, dim)``. Equal values keep their order, so
        ties go to the lowest index as in ``argmax``.
        """
        if k < 0:
            raise ValueError(f"topk needs k >= 0, got {k}")
        axis = self._shape.normalize_axis(axis)
        outer, n, inner = self._shape.split(axis)
        k = min(k, n)
        view = self._data.reshape(outer, n, inner)
        order = np.argsort(-view, axis=1, kind="stable")[:, :k, :]
        values = np.take_along_axis(view, order, axis=1)
        out_shape = self._shape.with_axis(axis, k)
        dt = self._dtype.numpy_dtype
        return (
            Array._wrap(np.ascontiguousarray(values).reshape(-1), out_shape, self._dtype),
            Array._wrap(order.astype(dt).reshape(-1), out_shape, self._dtype),
        )

    def one_hot(self, n_classes: int) -> 'Array':
        """
        Encode rank-1 class labels as an ``(n, n_classes)`` indicator matrix.

        Labels are rounded to the nearest integer. A label outside
        ``[0, n_classes)`` gives an all-zero row.
        """
        if self.ndim != 1:
            raise DimensionMismatch(f"one_hot requires a rank-1 array, got shape {self._shape.dims}")
        labels = np.round(self._data)
        hits = labels[:, None] == np.arange(n_classes)[None, :]
        return Array._wrap(hits.astype(self._dtype.numpy_dtype).reshape(-1), Shape((self.numel, n_classes)), self._dtype)

    def nan_to_num(self, replacement: Scalar = 0.0) -> 'Array':
        """Replace NaN elements; infinities are kept."""
        return self._unary(lambda x: np.where(np.isnan(x), replacement, x))

    def repeat_axis(self, axis: int, n: int) -> 'Array':
        """``n`` copies of this array joined along ``axis``."""
        if n < 0:
            raise ValueError(f"repeat_axis needs n >= 0, got {n}")
        axis = self._shape.normalize_axis(axis)
        outer, size, inner = self._shape.split(axis)
        out = np.tile(self._data.reshape(outer, size, inner), (1, n, 1))
        return Array._wrap(out.reshape(-1), self._shape.with_axis(axis, size * n), self._dtype)

    # -- structural --------------------------------------------------------

    def reshape(self, *shape) -> 'Array':
        """
        Same elements under a new shape; one dimension may be -1.

        Raises:
            ShapeMismatch: if the element count would change
        """
        if len(shape) == 1 and not isinstance(shape[0], int):
            dims = list(Shape.of(shape[0]).dims) if isinstance(shape[0], Shape) else list(shape[0])
        else:
            dims = list(shape)
        if dims.count(-1) > 1:
            raise ShapeMismatch(dims, self._shape.dims, "Only one dimension can be -1")
        if -1 in dims:
            known = math.prod(d for d in dims if d != -1)
            if known == 0 or self.numel % known != 0:
                raise ShapeMismatch(dims, self._shape.dims, f"Cannot reshape {self._shape.dims} to {tuple(dims)}")
            dims[dims.index(-1)] = self.numel // known
        new_shape = Shape(dims)
        if new_shape.numel != self.numel:
            raise ShapeMismatch(new_shape.dims, self._shape.dims, f"Cannot reshape {self._shape.dims} to {new_shape.dims}")
        return Array._wrap(self._data.copy(), new_shape, self._dtype)

    def flatten(self) -> 'Array':
        return self.reshape(self.numel)

    def unsqueeze(self, axis: int) -> 'Array':
        return Array._wrap(self._data.copy(), self._shape.inserted(axis), self._dtype)

    def squeeze(self, axis: Optional[int] = None) -> 'Array':
        """Drop size-1 axes (all of them, or just ``axis``)."""
        if axis is None:
            dims = tuple(d for d in self._shape.dims if d != 1)
            return Array._wrap(self._data.copy(), Shape(dims), self._dtype)
        axis = self._shape.normalize_axis(axis)
        if self._shape.dims[axis] != 1:
            raise InvalidAxis(axis, self.ndim, f"cannot squeeze axis of size {self._shape.dims[axis]}")
        return Array._wrap(self._data.copy(), self._shape.without(axis), self._dtype)

    def transpose(self, axes: Optional[Sequence[int]] = None) -> 'Array':
        """
        Permute axes.

        With no ``axes`` the last two axes are swapped, and arrays of rank
        below 2 are returned unchanged. The permutation is applied to the
        strides, then the result is laid out contiguously.
        """
        ndim = self.ndim
        if axes is None:
            if ndim < 2:
                return self.copy()
            axes = tuple(range(ndim - 2)) + (ndim - 1, ndim - 2)
        else:
            axes = tuple(self._shape.normalize_axis(a) for a in axes)
            if sorted(axes) != list(range(ndim)):
                raise InvalidAxis(None, ndim, f"axes {tuple(axes)} are not a permutation of {ndim} axes")
        itemsize = self._data.itemsize
        new_shape = self._shape.permuted(axes)
        strides = tuple(self._shape.strides[a] * itemsize for a in axes)
        view = as_strided(self._data, shape=new_shape.dims, strides=strides, writeable=False)
        return Array._wrap(np.ascontiguousarray(view).reshape(-1), new_shape, self._dtype)

    @property
    def T(self) -> 'Array':
        return self.transpose()

    def slice(self, axis: int, start: int, stop: int) -> 'Array':
        """
        Contiguous range ``[start, stop)`` along ``axis``.

        Raises:
            InvalidAxis: if ``axis`` is out of range
            IndexOutOfBounds: unless ``0 <= start <= stop <= dim``
        """
        axis = self._shape.normalize_axis(axis)
        outer, n, inner = self._shape.split(axis)
        if start < 0 or start > n:
            raise IndexOutOfBounds(start, axis, n)
        if stop < start or stop > n:
            raise IndexOutOfBounds(stop, axis, n)
        view = self._data.reshape(outer, n, inner)[:, start:stop, :]
        return Array._wrap(np.ascontiguousarray(view).reshape(-1), self._shape.with_axis(axis, stop - start), self._dtype)

    def take(self, axis: int, index: int) -> 'Array':
        """The sub-array at ``index`` along ``axis``, with that axis removed."""
        axis = self._shape.normalize_axis(axis)
        size = self._shape.dims[axis]
        if index < 0 or index >= size:
            raise IndexOutOfBounds(index, axis, size)
        part = self.slice(axis, index, index + 1)
        return Array._wrap(part._data, self._shape.without(axis), self._dtype)

    def row(self, i: int) -> 'Array':
        if self.ndim != 2:
            raise DimensionMismatch(f"row() requires a rank-2 array, got shape {self._shape.dims}")
        return self.take(0, i)

    def col(self, j: int) -> 'Array':
        if self.ndim != 2:
            raise DimensionMismatch(f"col() requires a rank-2 array, got shape {self._shape.dims}")
        return self.take(1, j)

    # -- comparison helpers ------------------------------------------------

    def array_equal(self, other: 'Array') -> bool:
        """Same shape and same values (dtype is not compared)."""
        return (
            isinstance(other, Array)
            and self._shape == other._shape
            and bool(np.array_equal(self._data, other._data))
        )

    def allclose(self, other: 'Array', rtol: float = 1e-5, atol: float = 1e-8) -> bool:
        return (
            isinstance(other, Array)
            and self._shape == other._shape
            and bool(np.allclose(self._data, other._data, rtol=rtol, atol=atol))
        )

    def has_nan(self) -> bool:
        return bool(np.isnan(self._data).any())

    # -- dunder ------------------------------------------------------------

    def __add__(self, other):
        if not _is_operand(other):
            return NotImplemented
        return self.add(other)

    def __radd__(self, other):
        if not _is_operand(other):
            return NotImplemented
        return _as_array(other, self._dtype).add(self)

    def __sub__(self, other):
        if not _is_operand(other):
            return NotImplemented
        return self.sub(other)

    def __rsub__(self, other):
        if not _is_operand(other):
            return NotImplemented
        return _as_array(other, self._dtype).sub(self)

    def __mul__(self, other):
        if not _is_operand(other):
            return NotImplemented
        return self.mul(other)

    def __rmul__(self, other):
        if not _is_operand(other):
            return NotImplemented
        return _as_array(other, self._dtype).mul(self)

    def __truediv__(self, other):
        if not _is_operand(other):
            return NotImplemented
        return self.div(other)

    def __rtruediv__(self, other):
        if not _is_operand(other):
            return NotImplemented
        return _as_array(other, self._dtype).div(self)

    def __matmul__(self, other):
        if not isinstance(other, Array):
            return NotImplemented
        return self.matmul(other)

    def __neg__(self):
        return self.neg()

    def __pow__(self, exponent):
        if isinstance(exponent, Array):
            return NotImplemented
        return self.pow(exponent)

    def __eq__(self, other):
        if not isinstance(other, Array):
            return NotImplemented
        return self.array_equal(other)

    __hash__ = None

    def __len__(self) -> int:
        if self.ndim == 0:
            raise TypeError("len() of a rank-0 array")
        return self._shape.dims[0]

    def __array__(self, dtype=None, copy=None):
        out = self.numpy()
        return out if dtype is None else out.astype(dtype)

    def __repr__(self) -> str:
        data_str = np.array2string(self._data.reshape(self._shape.dims), precision=4, suppress_small=True)
        return f"array({data_str}, dtype={self._dtype.name_str})"


def _is_operand(value) -> bool:
    return isinstance(value, (Array, int, float, np.integer, np.floating)) and not isinstance(value, bool)


def _as_array(value: Operand, dtype: DType) -> Array:
    """Promote a Python number to a rank-0 Array of ``dtype``."""
    if isinstance(value, Array):
        return value
    if isinstance(value, (int, float, np.integer, np.floating)) and not isinstance(value, bool):
        return Array._wrap(np.array([value], dtype=dtype.numpy_dtype), Shape.scalar(), dtype)
    raise TypeError(f"Cannot use {type(value).__name__} as an array operand")


# =============================================================================
# Factory functions
# =============================================================================

def array(data, dtype: Optional[Union[DType, str]] = None) -> Array:
    """
    Array from a number or (nested) sequence; rank follows the nesting.

    Float numpy input keeps its precision unless ``dtype`` is given;
    Python data takes the configured default.
    """
    if isinstance(data, Array):
        return data.copy() if dtype is None else data.astype(dtype)
    if dtype is None and not isinstance(data, np.ndarray):
        dtype = _resolve_dtype(None)
    try:
        arr = np.asarray(data)
    except ValueError as exc:
        raise ShapeMismatch((), (), "Ragged nested data cannot form an array") from exc
    if arr.dtype == object:
        raise ShapeMismatch((), (), "Ragged nested data cannot form an array")
    return Array(arr, arr.shape, dtype)


def from_rows(rows: Sequence[Sequence[Scalar]], dtype: Optional[Union[DType, str]] = None) -> Array:
    return Array.from_rows(rows, dtype)


def from_flat(data: Sequence[Scalar], shape: ShapeLike, dtype: Optional[Union[DType, str]] = None) -> Array:
    return Array.from_flat(data, shape, dtype)


def zeros(*shape, dtype: Optional[Union[DType, str]] = None) -> Array:
    return Array.zeros(*shape, dtype=dtype)


def ones(*shape, dtype: Optional[Union[DType, str]] = None) -> Array:
    return Array.ones(*shape, dtype=dtype)


def full(shape: ShapeLike, value: Scalar, dtype: Optional[Union[DType, str]] = None) -> Array:
    return Array.full(shape, value, dtype)


def scalar(value: Scalar, dtype: Optional[Union[DType, str]] = None) -> Array:
    return Array.scalar(value, dtype)


def eye(n: int, dtype: Optional[Union[DType, str]] = None) -> Array:
    dtype = _resolve_dtype(dtype)
    return Array._wrap(np.eye(n, dtype=dtype.numpy_dtype).reshape(-1), Shape((n, n)), dtype)


def arange(start: Scalar, stop: Optional[Scalar] = None, step: Scalar = 1,
           dtype: Optional[Union[DType, str]] = None) -> Array:
    if stop is None:
        start, stop = 0, start
    dtype = _resolve_dtype(dtype)
    buf = np.arange(start, stop, step, dtype=dtype.numpy_dtype)
    return Array._wrap(buf, Shape((buf.size,)), dtype)


def linspace(start: Scalar, stop: Scalar, num: int, dtype: Optional[Union[DType, str]] = None) -> Array:
    dtype = _resolve_dtype(dtype)
    buf = np.linspace(start, stop, num, dtype=dtype.numpy_dtype)
    return Array._wrap(buf, Shape((num,)), dtype)


def rand(*shape, seed: Optional[int] = None, dtype: Optional[Union[DType, str]] = None) -> Array:
    """Uniform samples in ``[0, 1)``."""
    shape = _shape_args(shape)
    dtype = _resolve_dtype(dtype)
    rng = np.random.default_rng(seed)
    return Array._wrap(rng.random(shape.numel).astype(dtype.numpy_dtype), shape, dtype)


def randn(*shape, seed: Optional[int] = None, dtype: Optional[Union[DType, str]] = None) -> Array:
    """Standard normal samples."""
    shape = _shape_args(shape)
    dtype = _resolve_dtype(dtype)
    rng = np.random.default_rng(seed)
    return Array._wrap(rng.standard_normal(shape.numel).astype(dtype.numpy_dtype), shape, dtype)


def concatenate(arrays: Sequence[Array], axis: int = 0) -> Array:
    """
    Join arrays along an existing axis.

    Raises:
        DimensionMismatch: on an empty sequence or differing ranks
        ShapeMismatch: if any non-joined dimension differs
    """
    arrays = list(arrays)
    if not arrays:
        raise DimensionMismatch("concatenate needs at least one array")
    ref = arrays[0].shape
    axis = ref.normalize_axis(axis)
    for a in arrays[1:]:
        if a.ndim != ref.ndim:
            raise DimensionMismatch(
                f"concatenate: all arrays need rank {ref.ndim}, got shape {a.shape.dims}"
            )
        if a.shape.without(axis) != ref.without(axis):
            raise ShapeMismatch(ref.dims, a.shape.dims)
    dtype = arrays[0].dtype
    for a in arrays[1:]:
        dtype = DType.promote(dtype, a.dtype)
    parts = []
    total = 0
    for a in arrays:
        outer, n, inner = a.shape.split(axis)
        parts.append(a._data.reshape(outer, n, inner).astype(dtype.numpy_dtype, copy=False))
        total += n
    joined = np.concatenate(parts, axis=1)
    return Array._wrap(joined.reshape(-1), ref.with_axis(axis, total), dtype)


def stack(arrays: Sequence[Array], axis: int = 0) -> Array:
    """Join same-shaped arrays along a new axis."""
    arrays = list(arrays)
    if not arrays:
        raise DimensionMismatch("stack needs at least one array")
    for a in arrays[1:]:
        if a.shape != arrays[0].shape:
            raise ShapeMismatch(arrays[0].shape.dims, a.shape.dims)
    return concatenate([a.unsqueeze(axis) for a in arrays], axis=axis)
