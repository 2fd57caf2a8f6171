"""Cross-check gradients against PyTorch when it is installed."""

import pytest
import numpy as np

import ndgrad as nd

torch = pytest.importorskip("torch")


def _torch_grads(fn, arrays):
    leaves = [torch.tensor(a.numpy(), dtype=torch.float64, requires_grad=True) for a in arrays]
    fn(*leaves).backward()
    return [leaf.grad.numpy() for leaf in leaves]


def _ndgrad_grads(fn, arrays):
    graph = nd.Graph()
    leaves = [graph.leaf(a) for a in arrays]
    grads = fn(*leaves).backward()
    return [grads[leaf].numpy() for leaf in leaves]


class TestAgainstTorch:
    """Same expression, same gradients."""

    @pytest.mark.parametrize("fn,shapes", [
        (lambda a, b: (a * b + a).sum(), [(3, 1), (1, 4)]),
        (lambda a, b: (a @ b).tanh().mean(), [(4, 3), (3, 2)]),
        (lambda a: (a.sigmoid() * a.exp()).sum(), [(2, 5)]),
        (lambda a: (a.relu() ** 2).sum(), [(6,)]),
        (lambda a, b: (a - b).pow(2).mean(), [(5, 2), (2,)]),
    ])
    def test_matches(self, fn, shapes):
        arrays = [nd.randn(*shape, seed=10 + i) for i, shape in enumerate(shapes)]
        expected = _torch_grads(fn, arrays)
        actual = _ndgrad_grads(fn, arrays)
        for e, a in zip(expected, actual):
            np.testing.assert_allclose(a, e, rtol=1e-10, atol=1e-12)

    def test_mlp(self):
        x = nd.randn(8, 4, seed=0)
        w1 = nd.randn(4, 6, seed=1)
        b1 = nd.randn(1, 6, seed=2)
        w2 = nd.randn(6, 1, seed=3)

        def loss(x, w1, b1, w2):
            return ((x @ w1 + b1).tanh() @ w2).sigmoid().mean()

        for e, a in zip(_torch_grads(loss, [x, w1, b1, w2]), _ndgrad_grads(loss, [x, w1, b1, w2])):
            np.testing.assert_allclose(a, e, rtol=1e-10, atol=1e-12)
