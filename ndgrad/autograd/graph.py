"""
ndgrad Autograd - Graph
=======================

Append-only arena of computation nodes.

Nodes reference their inputs by position in the arena, never by object, so
the graph cannot contain cycles: a node can only name nodes created before
it, and creation order is already a topological order.

Every execution context owns its own Graph. Nothing here is global.

Usage:
    graph = Graph()
    w = graph.param(ndgrad.randn(3, 1, seed=0))
    x = graph.input(ndgrad.ones(4, 3))
    loss = (x @ w).sum()
    grads = graph.backward(loss)
    grads[w]            # Array of shape (3, 1)

    graph.reset()       # drop every node; parameters are re-registered
"""

from __future__ import annotations
import itertools
import logging
import weakref
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Iterator, List, Optional, Sequence, Tuple

from ..core.array import Array
from ..core.errors import GraphError, StaleNodeError

if TYPE_CHECKING:
    from .variable import Variable, Parameter
    from .engine import GradientMap

logger = logging.getLogger(__name__)


class OpKind(Enum):
    """Closed set of recorded operations."""
    INPUT = "input"
    ADD = "add"
    SUB = "sub"
    MUL = "mul"
    DIV = "div"
    MATMUL = "matmul"
    EXP = "exp"
    LN = "ln"
    POW = "pow"
    RELU = "relu"
    SIGMOID = "sigmoid"
    TANH = "tanh"
    SUM = "sum"
    MEAN = "mean"
    TRANSPOSE = "transpose"


_BINARY = frozenset({OpKind.ADD, OpKind.SUB, OpKind.MUL, OpKind.DIV, OpKind.MATMUL})


@dataclass(frozen=True)
class Op:
    """
    An operation tag plus the parameters its adjoint needs.

    ``exponent`` is set for POW, ``axis``/``keepdims`` for SUM and MEAN
    (``axis=None`` reduces every element), ``axes`` for TRANSPOSE (the full
    permutation that was applied).
    """
    kind: OpKind
    exponent: Optional[float] = None
    axis: Optional[int] = None
    keepdims: bool = False
    axes: Optional[Tuple[int, ...]] = None

    @property
    def arity(self) -> int:
        if self.kind is OpKind.INPUT:
            return 0
        return 2 if self.kind in _BINARY else 1

    @classmethod
    def input(cls) -> 'Op':
        return cls(OpKind.INPUT)

    @classmethod
    def pow(cls, exponent: float) -> 'Op':
        return cls(OpKind.POW, exponent=float(exponent))

    @classmethod
    def sum(cls, axis: Optional[int] = None, keepdims: bool = False) -> 'Op':
        return cls(OpKind.SUM, axis=axis, keepdims=keepdims)

    @classmethod
    def mean(cls, axis: Optional[int] = None, keepdims: bool = False) -> 'Op':
        return cls(OpKind.MEAN, axis=axis, keepdims=keepdims)

    @classmethod
    def transpose(cls, axes: Sequence[int]) -> 'Op':
        return cls(OpKind.TRANSPOSE, axes=tuple(axes))

    def __repr__(self) -> str:
        name = self.kind.name.title().replace("_", "")
        if self.kind is OpKind.POW:
            return f"{name}({self.exponent})"
        if self.kind in (OpKind.SUM, OpKind.MEAN):
            return f"{name}(axis={self.axis}, keepdims={self.keepdims})"
        if self.kind is OpKind.TRANSPOSE:
            return f"{name}({self.axes})"
        return name


@dataclass(frozen=True)
class NodeId:
    """
    Position of a node in its graph's arena.

    Carries the graph's identity and generation so an id that outlived a
    ``reset()``, or that belongs to another graph, is rejected instead of
    resolving to an unrelated node.
    """
    index: int
    generation: int
    graph_uid: int

    def __index__(self) -> int:
        return self.index

    def __repr__(self) -> str:
        return f"NodeId({self.index})"


@dataclass
class Node:
    id: NodeId
    op: Op
    inputs: Tuple[NodeId, ...]
    value: Array
    requires_grad: bool

    @property
    def shape(self):
        return self.value.shape

    def __repr__(self) -> str:
        ins = ", ".join(str(i.index) for i in self.inputs)
        return f"Node({self.id.index}: {self.op!r}[{ins}] shape={self.shape.dims})"


class Graph:
    """
    Computation graph for one execution context.

    Growing is the only mutation besides ``reset()``, which discards all
    nodes, advances the generation, and re-registers persistent
    parameters as fresh leaves.
    """

    _uids = itertools.count(1)

    def __init__(self, name: Optional[str] = None):
        self.uid = next(Graph._uids)
        self.name = name or f"graph-{self.uid}"
        self.generation = 0
        self._nodes: List[Node] = []
        self._recording = True
        self._parameters: List[weakref.ref] = []

    # -- arena -------------------------------------------------------------

    def add_node(
        self,
        op: Op,
        inputs: Sequence[NodeId],
        value: Array,
        requires_grad: bool = True,
    ) -> NodeId:
        """Append a node and return its id."""
        inputs = tuple(inputs)
        for node_id in inputs:
            self.check(node_id)
        if len(inputs) != op.arity:
            raise GraphError(f"{op!r} takes {op.arity} inputs, got {len(inputs)}")
        node_id = NodeId(len(self._nodes), self.generation, self.uid)
        self._nodes.append(Node(node_id, op, inputs, value, requires_grad))
        return node_id

    def check(self, node_id: NodeId) -> NodeId:
        """Validate that ``node_id`` was issued by this graph in this generation."""
        if node_id.graph_uid != self.uid:
            raise GraphError(f"{node_id!r} belongs to a different graph than {self.name}")
        if node_id.generation != self.generation or node_id.index >= len(self._nodes):
            raise StaleNodeError(
                f"{node_id!r} was issued before {self.name} was reset "
                f"(generation {node_id.generation}, current {self.generation})"
            )
        return node_id

    def node(self, node_id: NodeId) -> Node:
        return self._nodes[self.check(node_id).index]

    __getitem__ = node

    @property
    def nodes(self) -> Tuple[Node, ...]:
        return tuple(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(self._nodes)

    def reset(self) -> None:
        """
        Discard every node.

        All previously issued node ids become stale. Parameters created
        with ``param()`` stay usable: each is recorded again as a leaf.
        """
        dropped = len(self._nodes)
        self._nodes = []
        self.generation += 1
        alive = []
        for ref in self._parameters:
            param = ref()
            if param is not None:
                param._bind()
                alive.append(ref)
        self._parameters = alive
        logger.debug(
            "Reset %s: dropped %d nodes, re-bound %d parameters (generation %d)",
            self.name, dropped, len(alive), self.generation,
        )

    # -- recording control -------------------------------------------------

    @property
    def recording(self) -> bool:
        return self._recording

    @contextmanager
    def no_grad(self) -> Iterator['Graph']:
        """Operations inside the block return untracked Variables."""
        previous = self._recording
        self._recording = False
        try:
            yield self
        finally:
            self._recording = previous

    # -- leaves ------------------------------------------------------------

    def leaf(self, value, requires_grad: bool = True) -> 'Variable':
        """
        Wrap an Array as a leaf Variable.

        With ``requires_grad=False`` the result is an untracked constant
        and no node is recorded.
        """
        from .variable import Variable
        return Variable(value, requires_grad=requires_grad, graph=self)

    def input(self, value) -> 'Variable':
        """Fixed data: an untracked constant."""
        return self.leaf(value, requires_grad=False)

    def param(self, value, name: Optional[str] = None) -> 'Parameter':
        """Trainable leaf that survives ``reset()``."""
        from .variable import Parameter
        return Parameter(value, graph=self, name=name)

    def _register_parameter(self, param: 'Parameter') -> None:
        self._parameters.append(weakref.ref(param))
        param._bind()

    # -- gradients ---------------------------------------------------------

    def backward(self, terminal: 'Variable') -> 'GradientMap':
        from .engine import backward
        if terminal.graph is not None and terminal.graph is not self:
            raise GraphError(f"Terminal belongs to {terminal.graph.name}, not {self.name}")
        return backward(terminal)

    def __repr__(self) -> str:
        return f"Graph({self.name}, nodes={len(self._nodes)}, generation={self.generation})"
