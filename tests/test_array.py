"""Tests for the Array engine."""

import math

import pytest
import numpy as np

import ndgrad as nd
from ndgrad import Array, ShapeMismatch, DimensionMismatch, InvalidAxis, IndexOutOfBounds


class TestConstruction:
    """Factories and validation."""

    def test_flat_with_shape(self):
        """Element count must match the shape."""
        a = Array([1, 2, 3, 4, 5, 6], (2, 3))
        assert a.shape == (2, 3)
        assert a.get((1, 2)) == 6.0
        with pytest.raises(ShapeMismatch):
            Array([1, 2, 3], (2, 2))

    def test_from_rows(self, matrix_2x2):
        assert matrix_2x2.shape == (2, 2)
        np.testing.assert_array_equal(matrix_2x2.numpy(), [[1.0, 2.0], [3.0, 4.0]])

    def test_from_rows_ragged(self):
        with pytest.raises(ShapeMismatch):
            nd.from_rows([[1.0, 2.0], [3.0]])

    def test_constructor_ragged(self):
        """Ragged nested data is a shape error, not a bare numpy ValueError."""
        with pytest.raises(ShapeMismatch):
            Array([[1, 2], [3]], (3,))

    def test_array_from_nested(self):
        a = nd.array([[[1.0], [2.0]], [[3.0], [4.0]]])
        assert a.shape == (2, 2, 1)
        with pytest.raises(ShapeMismatch):
            nd.array([[1.0, 2.0], [3.0]])

    def test_zeros_ones_full(self):
        np.testing.assert_array_equal(nd.zeros(2, 3).numpy(), np.zeros((2, 3)))
        np.testing.assert_array_equal(nd.ones((2, 3)).numpy(), np.ones((2, 3)))
        np.testing.assert_array_equal(nd.full((2,), 7.5).numpy(), [7.5, 7.5])

    def test_scalar(self):
        s = nd.scalar(3.0)
        assert s.shape == ()
        assert s.numel == 1
        assert s.item() == 3.0

    def test_eye_arange_linspace(self):
        np.testing.assert_array_equal(nd.eye(3).numpy(), np.eye(3))
        np.testing.assert_array_equal(nd.arange(4).numpy(), [0.0, 1.0, 2.0, 3.0])
        np.testing.assert_allclose(nd.linspace(0.0, 1.0, 5).numpy(), [0.0, 0.25, 0.5, 0.75, 1.0])

    def test_random_is_seeded(self):
        a = nd.randn(3, 4, seed=7)
        b = nd.randn(3, 4, seed=7)
        assert a == b
        u = nd.rand(100, seed=1)
        assert u.min().item() >= 0.0
        assert u.max().item() < 1.0

    def test_data_is_read_only(self):
        a = nd.ones(3)
        with pytest.raises(ValueError):
            a.data[0] = 5.0

    def test_item_requires_single_element(self):
        with pytest.raises(ShapeMismatch):
            nd.ones(2).item()


class TestElementAccess:
    """get / set / indexing."""

    def test_get_set(self):
        a = nd.zeros(2, 3)
        a.set((1, 2), 4.0)
        assert a.get((1, 2)) == 4.0
        assert a[1, 2] == 4.0

    def test_get_wrong_rank(self):
        with pytest.raises(DimensionMismatch):
            nd.zeros(2, 3).get((1,))

    def test_get_out_of_bounds(self):
        with pytest.raises(IndexOutOfBounds):
            nd.zeros(2, 3).get((2, 0))

    def test_integer_index_takes_row(self, matrix_2x2):
        np.testing.assert_array_equal(matrix_2x2[1].numpy(), [3.0, 4.0])

    def test_numpy_integer_index(self):
        a = nd.array([1.0, 2.0, 3.0])
        assert a.get(np.int64(1)) == 2.0
        a.set(np.int32(2), 7.0)
        assert a[np.int64(2)] == 7.0
        m = nd.zeros(2, 2)
        m[np.int64(1), np.int64(0)] = 5.0
        assert m.get((1, 0)) == 5.0

    def test_unsupported_index_type(self, matrix_2x2):
        with pytest.raises(TypeError):
            matrix_2x2["a"]
        with pytest.raises(TypeError):
            matrix_2x2[0:1]


class TestElementwise:
    """Binary and unary elementwise operations."""

    def test_same_shape_add(self, matrix_2x2):
        out = matrix_2x2 + matrix_2x2
        np.testing.assert_array_equal(out.numpy(), [[2.0, 4.0], [6.0, 8.0]])

    def test_broadcast_add(self):
        """[3,1] + [1,4] -> [3,4]"""
        a = nd.array([[1.0], [2.0], [3.0]])
        b = nd.array([[10.0, 20.0, 30.0, 40.0]])
        out = a + b
        assert out.shape == (3, 4)
        np.testing.assert_array_equal(out.numpy(), a.numpy() + b.numpy())

    def test_broadcast_is_symmetric(self):
        a = nd.randn(3, 1, seed=0)
        b = nd.randn(4, seed=1)
        np.testing.assert_allclose((a + b).numpy(), (b + a).numpy())

    def test_incompatible_shapes(self):
        with pytest.raises(ShapeMismatch):
            nd.ones(3, 2) + nd.ones(4, 2)

    def test_scalar_operands(self, matrix_2x2):
        np.testing.assert_array_equal((matrix_2x2 * 2).numpy(), [[2.0, 4.0], [6.0, 8.0]])
        np.testing.assert_array_equal((1 - matrix_2x2).numpy(), [[0.0, -1.0], [-2.0, -3.0]])
        np.testing.assert_array_equal((12 / matrix_2x2).numpy(), [[12.0, 6.0], [4.0, 3.0]])

    def test_division_by_zero(self):
        """inf and NaN propagate without raising."""
        out = nd.array([1.0, -1.0, 0.0]) / nd.zeros(3)
        values = out.numpy()
        assert values[0] == math.inf
        assert values[1] == -math.inf
        assert math.isnan(values[2])
        assert out.has_nan()

    def test_unary(self):
        x = nd.array([-1.0, 0.0, 2.0])
        np.testing.assert_array_equal(x.relu().numpy(), [0.0, 0.0, 2.0])
        np.testing.assert_allclose(x.exp().numpy(), np.exp([-1.0, 0.0, 2.0]))
        np.testing.assert_allclose(x.tanh().numpy(), np.tanh([-1.0, 0.0, 2.0]))
        np.testing.assert_allclose(x.sigmoid().numpy(), 1 / (1 + np.exp([1.0, 0.0, -2.0])))
        np.testing.assert_array_equal(x.abs().numpy(), [1.0, 0.0, 2.0])
        np.testing.assert_array_equal((x ** 2).numpy(), [1.0, 0.0, 4.0])

    def test_sigmoid_extremes(self):
        """No overflow for large magnitudes."""
        out = nd.array([-1000.0, 1000.0]).sigmoid().numpy()
        np.testing.assert_allclose(out, [0.0, 1.0])

    def test_ln_of_zero(self):
        assert nd.array([0.0]).ln().item() == -math.inf

    def test_comparisons_and_where(self):
        x = nd.array([1.0, 5.0, 3.0])
        mask = x.gt(2.0)
        np.testing.assert_array_equal(mask.numpy(), [0.0, 1.0, 1.0])
        np.testing.assert_array_equal(x.where(mask, 0.0).numpy(), [0.0, 5.0, 3.0])


class TestMatmul:
    """Matrix products."""

    def test_known_product(self, matrix_2x2):
        """[[1,2],[3,4]] @ [[5,6],[7,8]] == [[19,22],[43,50]]"""
        b = nd.from_rows([[5.0, 6.0], [7.0, 8.0]])
        out = matrix_2x2 @ b
        np.testing.assert_array_equal(out.numpy(), [[19.0, 22.0], [43.0, 50.0]])

    def test_result_shape(self):
        out = nd.ones(3, 5).matmul(nd.ones(5, 2))
        assert out.shape == (3, 2)
        np.testing.assert_array_equal(out.numpy(), np.full((3, 2), 5.0))

    def test_inner_mismatch(self):
        with pytest.raises(DimensionMismatch):
            nd.ones(2, 3) @ nd.ones(2, 3)

    def test_rank_mismatch(self):
        with pytest.raises(DimensionMismatch):
            nd.ones(3).matmul(nd.ones(3, 2))

    def test_dot_and_outer(self):
        a = nd.array([1.0, 2.0, 3.0])
        assert a.dot(a) == 14.0
        assert a.outer(nd.array([1.0, 2.0])).shape == (3, 2)


class TestReductions:
    """sum / mean / max and friends."""

    def test_sum_axes(self):
        a = nd.arange(6).reshape(2, 3)
        np.testing.assert_array_equal(a.sum(0).numpy(), [3.0, 5.0, 7.0])
        np.testing.assert_array_equal(a.sum(1).numpy(), [3.0, 12.0])
        np.testing.assert_array_equal(a.sum(-1, keepdims=True).numpy(), [[3.0], [12.0]])
        assert a.sum().item() == 15.0
        assert a.sum().shape == ()

    def test_sum_over_len_is_mean(self):
        a = nd.randn(4, 5, seed=3)
        np.testing.assert_allclose(a.sum(0).div(4.0).numpy(), a.mean(0).numpy())
        np.testing.assert_allclose(a.sum(1).div(5.0).numpy(), a.mean(1).numpy())

    def test_reduce_only_axis_gives_scalar(self):
        out = nd.array([1.0, 2.0, 3.0]).sum(0)
        assert out.shape == ()
        assert out.item() == 6.0

    def test_middle_axis(self):
        a = nd.randn(2, 3, 4, seed=5)
        np.testing.assert_allclose(a.sum(1).numpy(), a.numpy().sum(axis=1))
        np.testing.assert_allclose(a.max(1).numpy(), a.numpy().max(axis=1))

    def test_invalid_axis(self):
        with pytest.raises(InvalidAxis):
            nd.ones(2, 3).sum(2)

    def test_empty_axis(self):
        empty = nd.zeros(0, 3)
        np.testing.assert_array_equal(empty.sum(0).numpy(), [0.0, 0.0, 0.0])
        with pytest.raises(InvalidAxis):
            empty.mean(0)
        with pytest.raises(InvalidAxis):
            empty.max(0)
        with pytest.raises(InvalidAxis):
            empty.var(0)
        with pytest.raises(InvalidAxis):
            empty.variance(0)

    def test_var_std_argmax(self):
        a = nd.array([[1.0, 3.0], [5.0, 2.0]])
        np.testing.assert_allclose(a.var(0).numpy(), [4.0, 0.25])
        np.testing.assert_allclose(a.std(0).numpy(), [2.0, 0.5])
        np.testing.assert_array_equal(a.argmax(1).numpy(), [1.0, 0.0])

    def test_argmax_ties_go_to_lowest_index(self):
        a = nd.array([[2.0, 5.0, 5.0], [7.0, 7.0, 1.0]])
        np.testing.assert_array_equal(a.argmax(1).numpy(), [1.0, 0.0])
        np.testing.assert_array_equal(a.argmin(0).numpy(), [0.0, 0.0, 1.0])
        assert nd.array([3.0, 3.0, 3.0]).argmax().item() == 0.0

    def test_softmax_rows_sum_to_one(self):
        out = nd.randn(3, 4, seed=2).softmax(axis=-1)
        np.testing.assert_allclose(out.sum(-1).numpy(), np.ones(3))


class TestStructural:
    """reshape / transpose / slicing / joining."""

    def test_reshape(self):
        a = nd.arange(12)
        assert a.reshape(3, 4).shape == (3, 4)
        assert a.reshape(2, -1).shape == (2, 6)
        with pytest.raises(ShapeMismatch):
            a.reshape(5, 2)

    def test_transpose_twice(self):
        """transpose(transpose(a)) == a"""
        a = nd.randn(3, 5, seed=0)
        assert a.transpose().transpose() == a
        assert a.T.shape == (5, 3)

    def test_transpose_values(self):
        a = nd.arange(6).reshape(2, 3)
        np.testing.assert_array_equal(a.T.numpy(), a.numpy().T)

    def test_transpose_permutation(self):
        a = nd.randn(2, 3, 4, seed=1)
        out = a.transpose((2, 0, 1))
        np.testing.assert_array_equal(out.numpy(), np.transpose(a.numpy(), (2, 0, 1)))
        with pytest.raises(InvalidAxis):
            a.transpose((0, 0, 1))

    def test_slice_and_take(self):
        a = nd.arange(12).reshape(3, 4)
        np.testing.assert_array_equal(a.slice(1, 1, 3).numpy(), a.numpy()[:, 1:3])
        np.testing.assert_array_equal(a.col(2).numpy(), [2.0, 6.0, 10.0])
        np.testing.assert_array_equal(a.row(1).numpy(), [4.0, 5.0, 6.0, 7.0])
        with pytest.raises(IndexOutOfBounds):
            a.slice(0, 2, 5)

    def test_squeeze_unsqueeze(self):
        a = nd.ones(3)
        assert a.unsqueeze(0).shape == (1, 3)
        assert a.unsqueeze(-1).shape == (3, 1)
        assert nd.ones(1, 3, 1).squeeze().shape == (3,)
        with pytest.raises(InvalidAxis):
            nd.ones(2, 3).squeeze(0)

    def test_concatenate_and_stack(self):
        a = nd.ones(2, 3)
        b = nd.zeros(1, 3)
        out = nd.concatenate([a, b], axis=0)
        assert out.shape == (3, 3)
        np.testing.assert_array_equal(out.numpy(), np.concatenate([np.ones((2, 3)), np.zeros((1, 3))]))
        assert nd.stack([a, a], axis=0).shape == (2, 2, 3)
        with pytest.raises(ShapeMismatch):
            nd.concatenate([a, nd.ones(2, 2)], axis=0)

    def test_broadcast_to_and_sum_to(self):
        a = nd.array([[1.0], [2.0]])
        wide = a.broadcast_to((3, 2, 4))
        assert wide.shape == (3, 2, 4)
        back = wide.sum_to((2, 1))
        np.testing.assert_array_equal(back.numpy(), [[12.0], [24.0]])


class TestSerialization:
    """Flat export boundary."""

    def test_flat_round_trip(self):
        a = nd.randn(2, 3, 4, seed=11)
        data, shape = a.to_flat()
        assert shape == (2, 3, 4)
        assert len(data) == 24
        assert nd.from_flat(data, shape) == a

    def test_dict_keeps_dtype(self):
        a = nd.ones(2, dtype="float32")
        payload = a.to_dict()
        assert payload["dtype"] == "float32"
        b = Array.from_dict(payload)
        assert b.dtype is nd.float32
        assert b == a


class TestPrecision:
    """float32 / float64 handling."""

    def test_default_is_float64(self):
        assert nd.zeros(2).dtype is nd.float64

    def test_mixed_precision_promotes(self):
        a = nd.ones(2, dtype=nd.float32)
        b = nd.ones(2, dtype=nd.float64)
        assert (a + b).dtype is nd.float64
        assert (b + a).dtype is nd.float64
        m32 = nd.ones(2, 2, dtype=nd.float32)
        assert (m32 @ m32).dtype is nd.float32
        assert (m32 @ nd.ones(2, 2)).dtype is nd.float64

    def test_python_scalar_keeps_dtype(self):
        a = nd.ones(2, dtype=nd.float32)
        assert (a * 2.5).dtype is nd.float32
        assert (2.5 * a).dtype is nd.float32

    def test_astype(self):
        a = nd.array([1.5, 2.5]).astype("float32")
        assert a.dtype is nd.float32
        assert a.numpy().dtype == np.float32


class TestUtilities:
    """Label encoding, ranking, running sums and cleanup helpers."""

    def test_one_hot(self):
        labels = nd.array([0.0, 2.0, 1.0])
        np.testing.assert_array_equal(
            labels.one_hot(3).numpy(),
            [[1.0, 0.0, 0.0], [0.0, 0.0, 1.0], [0.0, 1.0, 0.0]],
        )

    def test_one_hot_out_of_range_row_is_zero(self):
        out = nd.array([1.0, 4.0, -1.0]).one_hot(2)
        np.testing.assert_array_equal(out.numpy(), [[0.0, 1.0], [0.0, 0.0], [0.0, 0.0]])

    def test_one_hot_needs_rank_one(self):
        with pytest.raises(DimensionMismatch):
            nd.zeros(2, 2).one_hot(3)

    def test_topk_rows(self):
        a = nd.array([[1.0, 9.0, 5.0, 9.0], [4.0, 3.0, 2.0, 1.0]])
        values, indices = a.topk(2)
        assert values.shape == (2, 2)
        np.testing.assert_array_equal(values.numpy(), [[9.0, 9.0], [4.0, 3.0]])
        # equal values keep the lower index first
        np.testing.assert_array_equal(indices.numpy(), [[1.0, 3.0], [0.0, 1.0]])

    def test_topk_clamps_k(self):
        values, indices = nd.array([2.0, 7.0, 4.0]).topk(10)
        assert values.tolist() == [7.0, 4.0, 2.0]
        assert indices.tolist() == [1.0, 2.0, 0.0]

    def test_topk_along_first_axis(self):
        a = nd.array([[1.0, 6.0], [3.0, 2.0], [5.0, 4.0]])
        values, indices = a.topk(1, axis=0)
        assert values.tolist() == [[5.0, 6.0]]
        assert indices.tolist() == [[2.0, 0.0]]

    def test_cumsum(self):
        np.testing.assert_array_equal(nd.array([1.0, 2.0, 3.0]).cumsum().numpy(), [1.0, 3.0, 6.0])
        m = nd.array([[1.0, 2.0], [3.0, 4.0]])
        np.testing.assert_array_equal(m.cumsum().numpy(), [[1.0, 2.0], [4.0, 6.0]])
        np.testing.assert_array_equal(m.cumsum(axis=1).numpy(), [[1.0, 3.0], [3.0, 7.0]])

    def test_repeat_axis(self):
        m = nd.array([[1.0, 2.0]])
        out = m.repeat_axis(0, 3)
        assert out.shape == (3, 2)
        assert out.array_equal(nd.concatenate([m, m, m], axis=0))
        assert m.repeat_axis(1, 2).tolist() == [[1.0, 2.0, 1.0, 2.0]]
        assert m.repeat_axis(0, 0).shape == (0, 2)

    def test_nan_to_num(self):
        a = nd.array([1.0, math.nan, math.inf])
        out = a.nan_to_num(-1.0)
        assert out.tolist() == [1.0, -1.0, math.inf]
        assert not out.has_nan()
        assert a.has_nan()

    def test_prod(self):
        m = nd.array([[1.0, 2.0], [3.0, 4.0]])
        assert m.prod_all() == 24.0
        assert m.prod(0).tolist() == [3.0, 8.0]
        assert m.prod(1, keepdims=True).tolist() == [[2.0], [12.0]]
        assert nd.zeros(0, 2).prod(0).tolist() == [1.0, 1.0]

    def test_norm_l1(self):
        assert nd.array([[-1.0, 2.0], [-3.0, 0.5]]).norm_l1() == 6.5
