"""
ndgrad Core: Scalar Types
=========================

The numeric capability every array operation is written against: the two
supported floating-point precisions, their constants, and the elementary
functions evaluated in that precision.
"""

from __future__ import annotations
from enum import Enum
from typing import Any, Union

import numpy as np
from scipy import special


class DType(Enum):
    FLOAT32 = ("float32", np.float32, 4)
    FLOAT64 = ("float64", np.float64, 8)

    def __init__(self, name: str, numpy_dtype, size: int):
        self.name_str = name
        self.numpy_dtype = numpy_dtype
        self.itemsize = size

    def __repr__(self) -> str:
        return f"ndgrad.{self.name_str}"

    @staticmethod
    def from_any(value: Union['DType', str, Any]) -> 'DType':
        """Resolve a DType, a name, or a numpy dtype to a DType member."""
        if isinstance(value, DType):
            return value
        if isinstance(value, str):
            for member in DType:
                if member.name_str == value.lower():
                    return member
            raise ValueError(f"Unsupported dtype {value!r}; expected 'float32' or 'float64'")
        try:
            np_dtype = np.dtype(value)
        except TypeError as exc:
            raise ValueError(f"Unsupported dtype {value!r}") from exc
        for member in DType:
            if np_dtype == member.numpy_dtype:
                return member
        raise ValueError(f"Unsupported dtype {np_dtype}; expected float32 or float64")

    @staticmethod
    def promote(a: 'DType', b: 'DType') -> 'DType':
        """The wider of two precisions."""
        return a if a.itemsize >= b.itemsize else b

    # -- constants ---------------------------------------------------------

    @property
    def zero(self):
        return self.numpy_dtype(0.0)

    @property
    def one(self):
        return self.numpy_dtype(1.0)

    @property
    def epsilon(self):
        return np.finfo(self.numpy_dtype).eps

    @property
    def inf(self):
        return self.numpy_dtype(np.inf)

    def cast(self, value) -> np.ndarray:
        """Convert a scalar or buffer to this precision."""
        return np.asarray(value, dtype=self.numpy_dtype)

    # -- elementary functions ----------------------------------------------

    def sqrt(self, x):
        return np.sqrt(self.cast(x))

    def exp(self, x):
        return np.exp(self.cast(x))

    def ln(self, x):
        return np.log(self.cast(x))

    def abs(self, x):
        return np.abs(self.cast(x))

    def power(self, x, p):
        return np.power(self.cast(x), self.numpy_dtype(p))

    def tanh(self, x):
        return np.tanh(self.cast(x))

    def sigmoid(self, x):
        # overflow-free for large |x|
        return special.expit(self.cast(x)).astype(self.numpy_dtype, copy=False)

    def maximum(self, x, y):
        return np.maximum(self.cast(x), self.cast(y))

    def minimum(self, x, y):
        return np.minimum(self.cast(x), self.cast(y))

    def greater(self, x, y):
        return np.greater(self.cast(x), self.cast(y))


float32 = DType.FLOAT32
float64 = DType.FLOAT64
