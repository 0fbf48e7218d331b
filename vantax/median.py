"""Median selection for vantage-point splits."""

from __future__ import annotations

import numpy as np


def median_rank(count: int) -> int:
    """Return the rank of the split median among ``count`` distances."""

    if count < 1:
        raise ValueError(f"count must be >= 1, received {count}")
    return count // 2


def select_median(distances: np.ndarray) -> float:
    """Return the distance of rank ``len(distances) // 2``.

    Uses ``numpy.partition`` (introselect), which runs in linear time and
    leaves the input untouched.
    """

    values = np.asarray(distances, dtype=np.float64)
    if values.ndim != 1:
        raise ValueError(f"distances must be 1D; received ndim={values.ndim}")
    kth = median_rank(int(values.shape[0]))
    return float(np.partition(values, kth)[kth])


__all__ = ["median_rank", "select_median"]
