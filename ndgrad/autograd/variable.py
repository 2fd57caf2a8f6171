"""
ndgrad Autograd - Variable
==========================

An Array value paired with an optional node in a Graph.

A Variable with a node id is *tracked*: operations on it are recorded so
gradients can later flow back to it. A Variable without one is a constant.
Variables are plain values: copying one copies the reference to its node,
it never duplicates the node.
"""

from __future__ import annotations
import logging
from numbers import Number
from typing import TYPE_CHECKING, Optional, Sequence, Union

from ..core.array import Array, array as _to_array
from ..core.dtype import DType
from ..core.errors import GraphError, ShapeMismatch
from ..core.shape import Shape
from .graph import Graph, NodeId, Op, OpKind

if TYPE_CHECKING:
    from .engine import GradientMap

logger = logging.getLogger(__name__)

Operand = Union['Variable', Array, Number]


def _graph_of(*operands: 'Variable') -> Optional[Graph]:
    """The single graph shared by the tracked operands, if any."""
    graph = None
    for v in operands:
        if v.node_id is None:
            continue
        if graph is None:
            graph = v.graph
        elif v.graph is not graph:
            raise GraphError(
                f"Cannot combine Variables from {graph.name} and {v.graph.name}"
            )
    return graph


class Variable:
    """
    A value in a computation.

    Parameters
    ----------
    value : Array or array-like
        The wrapped value. Non-Arrays are converted with ``ndgrad.array``.
    requires_grad : bool
        If True, record a leaf node in ``graph`` so gradients flow here.
    graph : Graph, optional
        Required when ``requires_grad`` is True.

    Example:
        >>> g = Graph()
        >>> x = Variable(ndgrad.array([3.0]), requires_grad=True, graph=g)
        >>> y = (x * x).sum()
        >>> y.backward()[x].tolist()
        [6.0]
    """

    def __init__(
        self,
        value,
        requires_grad: bool = False,
        graph: Optional[Graph] = None,
        node_id: Optional[NodeId] = None,
    ):
        if not isinstance(value, Array):
            value = _to_array(value)
        self.value = value
        self.graph = graph
        self.node_id = node_id
        self.requires_grad = requires_grad or node_id is not None
        if self.requires_grad and node_id is None:
            if graph is None:
                raise GraphError("A Variable that requires gradients needs a graph")
            self.node_id = graph.add_node(Op.input(), (), value, requires_grad=True)

    @classmethod
    def _tracked(cls, value: Array, graph: Graph, node_id: NodeId) -> 'Variable':
        return cls(value, graph=graph, node_id=node_id)

    # -- queries -----------------------------------------------------------

    @property
    def is_tracked(self) -> bool:
        return self.node_id is not None

    @property
    def data(self) -> Array:
        return self.value

    @property
    def shape(self) -> Shape:
        return self.value.shape

    @property
    def dtype(self) -> DType:
        return self.value.dtype

    @property
    def ndim(self) -> int:
        return self.value.ndim

    @property
    def numel(self) -> int:
        return self.value.numel

    def item(self) -> float:
        return self.value.item()

    def numpy(self):
        return self.value.numpy()

    def detach(self) -> 'Variable':
        """Same value, no node."""
        return Variable(self.value)

    def _node_ids(self) -> tuple:
        """Ids this value answers to in a GradientMap, newest first."""
        return () if self.node_id is None else (self.node_id,)

    # -- recording ---------------------------------------------------------

    def _lift(self, other: Operand) -> 'Variable':
        if isinstance(other, Variable):
            return other
        if isinstance(other, Array):
            return Variable(other)
        if isinstance(other, Number) and not isinstance(other, bool):
            return Variable(Array.scalar(other, dtype=self.dtype))
        raise TypeError(f"unsupported operand type for Variable: {type(other).__name__}")

    @staticmethod
    def _record(op: Op, operands: Sequence['Variable'], value: Array) -> 'Variable':
        """
        Record ``op`` if any operand is tracked and the graph is recording.

        Untracked operands of a recorded op are stored as INPUT nodes that
        do not require gradients, so the adjoint can read their values.
        """
        graph = _graph_of(*operands)
        if graph is None or not graph.recording:
            return Variable(value)
        inputs = []
        for v in operands:
            if v.node_id is not None:
                inputs.append(graph.check(v.node_id))
            else:
                inputs.append(graph.add_node(Op.input(), (), v.value, requires_grad=False))
        node_id = graph.add_node(op, inputs, value, requires_grad=True)
        return Variable._tracked(value, graph, node_id)

    def _binary(self, other: Operand, kind: OpKind, fn) -> 'Variable':
        other = self._lift(other)
        return Variable._record(Op(kind), (self, other), fn(self.value, other.value))

    def _unary(self, op: Op, value: Array) -> 'Variable':
        return Variable._record(op, (self,), value)

    # -- operations --------------------------------------------------------

    def add(self, other: Operand) -> 'Variable':
        return self._binary(other, OpKind.ADD, Array.add)

    def sub(self, other: Operand) -> 'Variable':
        return self._binary(other, OpKind.SUB, Array.sub)

    def mul(self, other: Operand) -> 'Variable':
        return self._binary(other, OpKind.MUL, Array.mul)

    def div(self, other: Operand) -> 'Variable':
        return self._binary(other, OpKind.DIV, Array.div)

    def matmul(self, other: Operand) -> 'Variable':
        return self._binary(other, OpKind.MATMUL, Array.matmul)

    def neg(self) -> 'Variable':
        return self.mul(-1.0)

    def exp(self) -> 'Variable':
        return self._unary(Op(OpKind.EXP), self.value.exp())

    def ln(self) -> 'Variable':
        return self._unary(Op(OpKind.LN), self.value.ln())

    log = ln

    def pow(self, exponent: float) -> 'Variable':
        if isinstance(exponent, (Variable, Array)) or isinstance(exponent, bool):
            raise TypeError("pow() exponent must be a Python number")
        return self._unary(Op.pow(exponent), self.value.pow(exponent))

    def square(self) -> 'Variable':
        return self.pow(2.0)

    def relu(self) -> 'Variable':
        return self._unary(Op(OpKind.RELU), self.value.relu())

    def sigmoid(self) -> 'Variable':
        return self._unary(Op(OpKind.SIGMOID), self.value.sigmoid())

    def tanh(self) -> 'Variable':
        return self._unary(Op(OpKind.TANH), self.value.tanh())

    def sum(self, axis: Optional[int] = None, keepdims: bool = False) -> 'Variable':
        if axis is not None:
            axis = self.shape.normalize_axis(axis)
        return self._unary(Op.sum(axis, keepdims), self.value.sum(axis, keepdims))

    def mean(self, axis: Optional[int] = None, keepdims: bool = False) -> 'Variable':
        if axis is not None:
            axis = self.shape.normalize_axis(axis)
        return self._unary(Op.mean(axis, keepdims), self.value.mean(axis, keepdims))

    def transpose(self, axes: Optional[Sequence[int]] = None) -> 'Variable':
        ndim = self.ndim
        if axes is None:
            axes = tuple(range(ndim - 2)) + (ndim - 1, ndim - 2) if ndim >= 2 else tuple(range(ndim))
        else:
            axes = tuple(self.shape.normalize_axis(a) for a in axes)
        return self._unary(Op.transpose(axes), self.value.transpose(axes))

    @property
    def T(self) -> 'Variable':
        return self.transpose()

    # -- gradients ---------------------------------------------------------

    def backward(self) -> 'GradientMap':
        """Gradients of this single-element Variable w.r.t. every tracked node."""
        from .engine import backward
        return backward(self)

    # -- operators ---------------------------------------------------------

    def __add__(self, other):
        return self.add(other)

    def __radd__(self, other):
        return self._lift(other).add(self)

    def __sub__(self, other):
        return self.sub(other)

    def __rsub__(self, other):
        return self._lift(other).sub(self)

    def __mul__(self, other):
        return self.mul(other)

    def __rmul__(self, other):
        return self._lift(other).mul(self)

    def __truediv__(self, other):
        return self.div(other)

    def __rtruediv__(self, other):
        return self._lift(other).div(self)

    def __matmul__(self, other):
        return self.matmul(other)

    def __rmatmul__(self, other):
        return self._lift(other).matmul(self)

    def __neg__(self):
        return self.neg()

    def __pow__(self, exponent):
        return self.pow(exponent)

    def __repr__(self) -> str:
        tag = f", node={self.node_id.index}" if self.node_id is not None else ""
        return f"Variable(shape={self.shape.dims}, dtype={self.dtype.name_str}{tag})"


class Parameter(Variable):
    """
    A trainable leaf that outlives ``Graph.reset()``.

    The graph keeps a weak reference to every Parameter it created and
    records each one again as a fresh leaf after a reset, so the same
    object can be used across training steps.
    """

    def __init__(self, value, graph: Graph, name: Optional[str] = None):
        super().__init__(value)
        if graph is None:
            raise GraphError("A Parameter needs a graph")
        self.graph = graph
        self.name = name
        self.requires_grad = True
        self._earlier_ids = []
        graph._register_parameter(self)

    def _bind(self, keep_earlier: bool = False) -> None:
        if keep_earlier and self.node_id is not None:
            self._earlier_ids.append(self.node_id)
        else:
            self._earlier_ids = []
        self.node_id = self.graph.add_node(Op.input(), (), self.value, requires_grad=True)
        logger.debug("Bound parameter %s to %r", self.name or "<unnamed>", self.node_id)

    def _node_ids(self) -> tuple:
        return (self.node_id,) + tuple(reversed(self._earlier_ids))

    def assign(self, value) -> None:
        """
        Replace the value, keeping shape and dtype.

        A new leaf node is recorded for later operations. Until the next
        ``Graph.reset()`` the Parameter also answers to its earlier leaves
        in a GradientMap, so ``grads[param]`` still finds the gradient of a
        pass recorded before the assignment.
        """
        if not isinstance(value, Array):
            value = _to_array(value, dtype=self.dtype)
        if value.shape != self.shape:
            raise ShapeMismatch(
                self.shape.dims, value.shape.dims,
                f"Cannot assign shape {value.shape.dims} to parameter of shape {self.shape.dims}",
            )
        self.value = value.astype(self.dtype) if value.dtype is not self.dtype else value.copy()
        self._bind(keep_earlier=True)

    def __repr__(self) -> str:
        label = f"{self.name}, " if self.name else ""
        return f"Parameter({label}shape={self.shape.dims}, dtype={self.dtype.name_str})"
