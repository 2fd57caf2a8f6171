"""Tests for layers and persistent parameters."""

import pytest
import numpy as np

import ndgrad as nd
from ndgrad import nn, ShapeMismatch


class TestParameter:
    """Persistent leaves."""

    def test_parameter_is_tracked_leaf(self, graph):
        p = graph.param(nd.ones(2, 2), name="w")
        assert p.is_tracked
        assert p.requires_grad
        assert graph.node(p.node_id).op.kind is nd.OpKind.INPUT

    def test_assign_rebinds(self, graph):
        p = graph.param(nd.ones(2))
        old = p.node_id
        p.assign(nd.array([3.0, 4.0]))
        assert p.node_id != old
        assert p.value.tolist() == [3.0, 4.0]
        grads = (p * p).sum().backward()
        assert grads[p].tolist() == [6.0, 8.0]

    def test_assign_keeps_dtype(self, graph):
        p = graph.param(nd.ones(2, dtype=nd.float32))
        p.assign(nd.array([1.5, 2.5]))
        assert p.dtype is nd.float32

    def test_assign_shape_mismatch(self, graph):
        p = graph.param(nd.ones(2))
        with pytest.raises(ShapeMismatch):
            p.assign(nd.ones(3))

    def test_assign_after_forward_keeps_gradient(self, graph):
        """Updating between forward and backward still finds the recorded leaf."""
        p = graph.param(nd.array([1.0, 2.0]))
        loss = (p * p).sum()
        p.assign(nd.array([5.0, 5.0]))
        grads = loss.backward()
        assert p in grads
        assert grads[p].tolist() == [2.0, 4.0]

    def test_reset_forgets_earlier_leaves(self, graph):
        p = graph.param(nd.ones(2))
        p.assign(nd.zeros(2))
        graph.reset()
        assert p._node_ids() == (p.node_id,)


class TestLinear:
    """Affine layer."""

    def test_output_shape(self, graph):
        layer = nn.Linear(3, 5, graph, seed=0)
        x = graph.input(nd.ones(4, 3))
        assert layer(x).shape == (4, 5)

    def test_parameter_shapes(self, graph):
        layer = nn.Linear(3, 5, graph, seed=0)
        weight, bias = layer.parameters()
        assert weight.shape == (3, 5)
        assert bias.shape == (1, 5)
        assert layer.num_parameters() == 20

    def test_xavier_bounds(self, graph):
        layer = nn.Linear(10, 20, graph, seed=3)
        limit = np.sqrt(6.0 / 30)
        w = layer.weight.numpy()
        assert np.all(np.abs(w) <= limit)
        np.testing.assert_array_equal(layer.bias.numpy(), np.zeros((1, 20)))

    def test_no_bias(self, graph):
        layer = nn.Linear(2, 2, graph, bias=False)
        assert layer.bias is None
        assert len(layer.parameters()) == 1

    def test_forward_values(self, graph):
        layer = nn.Linear(2, 1, graph)
        layer.weight.assign(nd.array([[1.0], [2.0]]))
        layer.bias.assign(nd.array([[0.5]]))
        y = layer(graph.input(nd.from_rows([[1.0, 1.0], [3.0, 4.0]])))
        assert y.value.tolist() == [[3.5], [11.5]]

    def test_gradients_reach_parameters(self, graph):
        layer = nn.Linear(3, 2, graph, seed=1)
        x = graph.input(nd.randn(5, 3, seed=2))
        grads = layer(x).sum().backward()
        assert grads[layer.weight].shape == (3, 2)
        # bias gradient sums over the batch
        np.testing.assert_array_equal(grads[layer.bias].numpy(), np.full((1, 2), 5.0))


class TestSequential:
    """Fixed composition."""

    def test_forward_order(self, graph):
        model = nn.Sequential([nn.Linear(4, 8, graph, seed=0), nn.ReLU(), nn.Linear(8, 1, graph, seed=1)])
        y = model(graph.input(nd.randn(6, 4, seed=2)))
        assert y.shape == (6, 1)
        assert len(model) == 3
        assert isinstance(model[1], nn.ReLU)

    def test_collects_parameters(self, graph):
        model = nn.Sequential([nn.Linear(4, 8, graph), nn.Tanh(), nn.Linear(8, 2, graph), nn.Sigmoid()])
        assert len(model.parameters()) == 4
        names = [name for name, _ in model.named_parameters()]
        assert names == ["0.weight", "0.bias", "2.weight", "2.bias"]

    def test_rejects_non_modules(self):
        with pytest.raises(TypeError):
            nn.Sequential([lambda x: x])

    def test_activations(self, graph):
        x = graph.leaf(nd.array([-1.0, 0.5]))
        np.testing.assert_array_equal(nn.ReLU()(x).value.numpy(), [0.0, 0.5])
        np.testing.assert_allclose(nn.Tanh()(x).value.numpy(), np.tanh([-1.0, 0.5]))
        np.testing.assert_allclose(nn.Sigmoid()(x).value.numpy(), 1 / (1 + np.exp([1.0, -0.5])))


class TestTraining:
    """Gradient descent across graph resets."""

    def test_regression_loss_decreases(self, graph):
        rng = np.random.default_rng(0)
        x_data = rng.normal(size=(32, 3))
        y_data = x_data @ np.array([[1.0], [-2.0], [0.5]]) + 0.3

        model = nn.Sequential([nn.Linear(3, 1, graph, seed=0)])
        x = nd.array(x_data)
        y = nd.array(y_data)
        lr = 0.1
        losses = []
        for _ in range(200):
            graph.reset()
            pred = model(graph.input(x))
            loss = ((pred - y) ** 2).mean()
            grads = loss.backward()
            for p in model.parameters():
                p.assign(p.value.sub(grads[p].mul(lr)))
            losses.append(loss.item())

        assert losses[-1] < losses[0] * 0.01
        np.testing.assert_allclose(model[0].weight.numpy().ravel(), [1.0, -2.0, 0.5], atol=1e-2)
