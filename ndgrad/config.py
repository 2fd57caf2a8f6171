"""
ndgrad Configuration
====================

Process-wide defaults.

Usage:
    import ndgrad
    ndgrad.set_default_dtype("float32")

    with ndgrad.default_dtype("float64"):
        x = ndgrad.zeros(3)   # float64

The initial default comes from the ``NDGRAD_DEFAULT_DTYPE`` environment
variable when it is set, and is ``float64`` otherwise.
"""

from __future__ import annotations
import os
import logging
from contextlib import contextmanager
from typing import Iterator, Union

from .core.dtype import DType, float64

logger = logging.getLogger(__name__)

ENV_DEFAULT_DTYPE = "NDGRAD_DEFAULT_DTYPE"


def _initial_dtype() -> DType:
    name = os.environ.get(ENV_DEFAULT_DTYPE)
    if not name:
        return float64
    try:
        return DType.from_any(name)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a supported dtype", ENV_DEFAULT_DTYPE, name)
        return float64


_default_dtype: DType = _initial_dtype()


def get_default_dtype() -> DType:
    """Dtype used by constructors when none is given."""
    return _default_dtype


def set_default_dtype(dtype: Union[DType, str]) -> None:
    """
    Set the default dtype.

    Args:
        dtype: DType member or its name ('float32' / 'float64')
    """
    global _default_dtype
    _default_dtype = DType.from_any(dtype)
    logger.debug("Default dtype set to %s", _default_dtype.name_str)


@contextmanager
def default_dtype(dtype: Union[DType, str]) -> Iterator[DType]:
    """Temporarily change the default dtype."""
    previous = get_default_dtype()
    set_default_dtype(dtype)
    try:
        yield get_default_dtype()
    finally:
        set_default_dtype(previous)
