"""Pytest configuration and fixtures."""

import pytest

import ndgrad as nd


@pytest.fixture
def graph():
    """Fresh computation graph."""
    return nd.Graph(name="test")


@pytest.fixture
def matrix_2x2():
    """[[1, 2], [3, 4]]"""
    return nd.from_rows([[1.0, 2.0], [3.0, 4.0]])


@pytest.fixture(autouse=True)
def restore_default_dtype():
    """Undo any default-dtype change a test makes."""
    previous = nd.get_default_dtype()
    yield
    nd.set_default_dtype(previous)
