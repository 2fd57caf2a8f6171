"""
ndgrad Autograd - Gradient Functions
====================================

The adjoint of every recorded operation, in one table.

Each rule receives the op, the gradient of the loss w.r.t. the op's output,
the values of the op's inputs, and the op's output value. It returns one
gradient per input, shaped like the op's output (broadcasting is undone by
the engine, not here).
"""

from __future__ import annotations
from typing import Callable, Dict, Tuple

from ..core.array import Array
from ..core.shape import Shape
from .graph import Op, OpKind

Adjoint = Callable[[Op, Array, Tuple[Array, ...], Array], Tuple[Array, ...]]


def _add_backward(op, grad, inputs, out):
    # ∂L/∂x = ∂L/∂z, ∂L/∂y = ∂L/∂z
    return grad, grad


def _sub_backward(op, grad, inputs, out):
    return grad, grad.neg()


def _mul_backward(op, grad, inputs, out):
    x, y = inputs
    return grad.mul(y), grad.mul(x)


def _div_backward(op, grad, inputs, out):
    x, y = inputs
    # z = x / y
    # ∂L/∂x = ∂L/∂z / y
    # ∂L/∂y = -∂L/∂z * x / y²
    return grad.div(y), grad.neg().mul(x).div(y.mul(y))


def _matmul_backward(op, grad, inputs, out):
    x, y = inputs
    # ∂L/∂x = ∂L/∂z @ yᵀ, ∂L/∂y = xᵀ @ ∂L/∂z
    return grad.matmul(y.transpose()), x.transpose().matmul(grad)


def _exp_backward(op, grad, inputs, out):
    # d/dx exp(x) = exp(x), already computed as the output
    return (grad.mul(out),)


def _ln_backward(op, grad, inputs, out):
    (x,) = inputs
    return (grad.div(x),)


def _pow_backward(op, grad, inputs, out):
    (x,) = inputs
    p = op.exponent
    return (grad.mul(x.pow(p - 1.0).mul(p)),)


def _relu_backward(op, grad, inputs, out):
    (x,) = inputs
    # subgradient 0 at x == 0
    return (grad.mul(x.positive_mask()),)


def _sigmoid_backward(op, grad, inputs, out):
    # σ' = σ(1 - σ)
    return (grad.mul(out).mul(out.neg().add(1.0)),)


def _tanh_backward(op, grad, inputs, out):
    # tanh' = 1 - tanh²
    return (grad.mul(out.mul(out).neg().add(1.0)),)


def _expand(grad: Array, op: Op, shape: Shape) -> Array:
    """Spread a reduced gradient back over the reduced axis."""
    if op.axis is not None and not op.keepdims:
        grad = grad.reshape(shape.with_axis(op.axis, 1))
    return grad.broadcast_to(shape)


def _sum_backward(op, grad, inputs, out):
    (x,) = inputs
    return (_expand(grad, op, x.shape),)


def _mean_backward(op, grad, inputs, out):
    (x,) = inputs
    n = x.numel if op.axis is None else x.shape.dims[op.axis]
    return (_expand(grad, op, x.shape).div(float(n)),)


def _transpose_backward(op, grad, inputs, out):
    inverse = [0] * len(op.axes)
    for i, a in enumerate(op.axes):
        inverse[a] = i
    return (grad.transpose(inverse),)


ADJOINTS: Dict[OpKind, Adjoint] = {
    OpKind.ADD: _add_backward,
    OpKind.SUB: _sub_backward,
    OpKind.MUL: _mul_backward,
    OpKind.DIV: _div_backward,
    OpKind.MATMUL: _matmul_backward,
    OpKind.EXP: _exp_backward,
    OpKind.LN: _ln_backward,
    OpKind.POW: _pow_backward,
    OpKind.RELU: _relu_backward,
    OpKind.SIGMOID: _sigmoid_backward,
    OpKind.TANH: _tanh_backward,
    OpKind.SUM: _sum_backward,
    OpKind.MEAN: _mean_backward,
    OpKind.TRANSPOSE: _transpose_backward,
}

# every non-leaf op must have exactly one rule
_missing = set(OpKind) - set(ADJOINTS) - {OpKind.INPUT}
if _missing:
    raise ImportError(f"No adjoint registered for {sorted(k.name for k in _missing)}")


def adjoint(op: Op, grad: Array, inputs: Tuple[Array, ...], out: Array) -> Tuple[Array, ...]:
    """Gradients w.r.t. the inputs of ``op`` given ``grad`` w.r.t. its output."""
    return ADJOINTS[op.kind](op, grad, inputs, out)
