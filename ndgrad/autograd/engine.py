"""
ndgrad Autograd - Engine
========================

Reverse-mode backward pass over a Graph.

Node ids are issued in creation order, so walking indices from the terminal
down to zero visits every node after all of its consumers. No explicit
topological sort is needed.
"""

from __future__ import annotations
import logging
from typing import Dict, Iterator, List, Mapping, Optional, Union

from ..core.array import Array
from ..core.errors import GraphInvariantError, ShapeMismatch, TensorError
from .grad_fn import adjoint
from .graph import Graph, Node, NodeId, OpKind
from .variable import Variable

logger = logging.getLogger(__name__)

Key = Union[NodeId, Variable]


class GradientMap(Mapping):
    """
    Gradients keyed by node id.

    Indexing also accepts a tracked Variable. Nodes that did not receive
    a gradient are absent; treat absence as zero (see ``get_or_zeros``).

    Usage:
        grads = backward(loss)
        grads[w]                 # by Variable
        grads[w.node_id]         # by id
        gw, gb = grads.wrt(w, b)
    """

    def __init__(self, graph: Optional[Graph], grads: Dict[NodeId, Array]):
        self.graph = graph
        self._grads = grads

    def _key(self, key: Key) -> NodeId:
        if isinstance(key, Variable):
            if key.node_id is None:
                raise KeyError(f"{key!r} is not tracked")
            # a Parameter reassigned since the forward pass still finds
            # the gradient of the leaf that was used
            for node_id in key._node_ids():
                if node_id in self._grads:
                    return node_id
            return key.node_id
        return key

    def __getitem__(self, key: Key) -> Array:
        return self._grads[self._key(key)]

    def __contains__(self, key) -> bool:
        if isinstance(key, Variable) and key.node_id is None:
            return False
        return self._key(key) in self._grads

    def __iter__(self) -> Iterator[NodeId]:
        return iter(self._grads)

    def __len__(self) -> int:
        return len(self._grads)

    def get_or_zeros(self, variable: Variable) -> Array:
        if variable in self:
            return self[variable]
        return Array.zeros(variable.shape, dtype=variable.dtype)

    def wrt(self, *variables: Variable) -> List[Optional[Array]]:
        """Gradients for ``variables`` in order, None where absent."""
        return [self.get(v) for v in variables]

    def __repr__(self) -> str:
        entries = ", ".join(f"{k.index}: {v.shape.dims}" for k, v in self._grads.items())
        return f"GradientMap({{{entries}}})"


def _fit(grad: Array, target: Node, consumer: Node) -> Array:
    """Reduce a contribution to ``target``'s shape and precision."""
    try:
        grad = grad.sum_to(target.shape)
    except TensorError as exc:
        raise GraphInvariantError(
            f"Gradient of shape {grad.shape.dims} from {consumer!r} "
            f"cannot be reduced to {target!r}"
        ) from exc
    if grad.shape != target.shape:
        raise GraphInvariantError(
            f"Gradient for {target!r} has shape {grad.shape.dims}, expected {target.shape.dims}"
        )
    if grad.dtype is not target.value.dtype:
        grad = grad.astype(target.value.dtype)
    return grad


def backward(terminal: Variable) -> GradientMap:
    """
    Compute d(terminal)/d(node) for every tracked node that reaches it.

    Parameters
    ----------
    terminal : Variable
        Must hold exactly one element.

    Returns
    -------
    GradientMap with an entry per node that requires gradients and lies on
    a path to ``terminal``. Untracked terminals give an empty map.

    Raises
    ------
    ShapeMismatch
        If ``terminal`` has more than one element.
    StaleNodeError
        If ``terminal`` was recorded before its graph was reset.
    """
    if terminal.numel != 1:
        raise ShapeMismatch(
            (), terminal.shape.dims,
            f"backward() needs a single-element terminal, got shape {terminal.shape.dims}",
        )
    if terminal.node_id is None:
        return GradientMap(terminal.graph, {})

    graph = terminal.graph
    start = graph.check(terminal.node_id)
    nodes = graph.nodes
    grads: Dict[int, Array] = {
        start.index: Array.ones(terminal.shape, dtype=terminal.dtype)
    }

    for index in range(start.index, -1, -1):
        grad = grads.get(index)
        if grad is None:
            continue
        node = nodes[index]
        if node.op.kind is OpKind.INPUT:
            continue
        inputs = tuple(nodes[i.index].value for i in node.inputs)
        try:
            contributions = adjoint(node.op, grad, inputs, node.value)
        except TensorError as exc:
            raise GraphInvariantError(f"Adjoint of {node!r} failed: {exc}") from exc
        for input_id, contribution in zip(node.inputs, contributions):
            parent = nodes[input_id.index]
            if not parent.requires_grad:
                continue
            contribution = _fit(contribution, parent, node)
            existing = grads.get(input_id.index)
            grads[input_id.index] = contribution if existing is None else existing.add(contribution)

    result = {nodes[i].id: g for i, g in grads.items() if nodes[i].requires_grad}
    logger.debug(
        "Backward from %r on %s: %d nodes visited, %d gradients",
        start, graph.name, start.index + 1, len(result),
    )
    return GradientMap(graph, result)
