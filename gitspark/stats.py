"""
.. module:: stats
   :synopsis: Small numeric helpers shared by the scorers

Degenerate inputs (empty samples, zero means, zero totals) return 0 instead of NaN.
"""

import numpy as np


def clamp(value, low=0.0, high=1.0):
    return float(min(max(value, low), high))


def mean(values):
    values = list(values)
    if not values:
        return 0.0
    return float(np.mean(values))


def percentile(values, q):
    """Percentile ``q`` (0-100) using linear interpolation between order statistics.

    Args:
        values: Iterable of numbers, in any order.
        q: Percentile to compute.

    Returns:
        float: The interpolated percentile, or 0.0 for an empty sample.
    """
    values = list(values)
    if not values:
        return 0.0
    return float(np.percentile(np.asarray(values, dtype=float), q, method="linear"))


def coefficient_of_variation(values):
    """Population standard deviation over mean. 0.0 when there are no values or the mean is 0."""
    values = np.asarray(list(values), dtype=float)
    if values.size == 0:
        return 0.0
    avg = values.mean()
    if avg == 0:
        return 0.0
    return float(values.std() / avg)


def gini_coefficient(values):
    """Gini coefficient of a distribution of non-negative counts.

    0 means perfectly even, values approaching 1 mean concentrated in one member.
    Empty input or a zero total yields 0.0.
    """
    values = np.sort(np.asarray(list(values), dtype=float))
    n = values.size
    total = values.sum()
    if n == 0 or total == 0:
        return 0.0
    ranks = np.arange(n)
    return float(((2 * ranks - n + 1) * values).sum() / (n * total))


def shannon_entropy(shares):
    """Entropy in bits of a share distribution. Zero shares are ignored."""
    shares = np.asarray([s for s in shares if s > 0], dtype=float)
    if shares.size == 0:
        return 0.0
    return float(-(shares * np.log2(shares)).sum())
