"""
statistics.py - Small statistics helpers used across the analysis stages.
"""

import math
from typing import Sequence

import numpy as np
from scipy import special


def erf(x: float) -> float:
    """Gauss error function."""
    return float(special.erf(x))


def phi(z: float, mean: float = 0.0, sd: float = 1.0) -> float:
    """Cumulative distribution function of the normal distribution.

    Args:
        z: Value to evaluate.
        mean: Mean of the distribution.
        sd: Standard deviation of the distribution.

    Returns:
        P(X <= z) for X ~ N(mean, sd²). A zero ``sd`` gives a step at ``mean``.
    """
    if sd == 0:
        return 1.0 if z >= mean else 0.0
    return 0.5 * (1.0 + erf((z - mean) / (sd * math.sqrt(2.0))))


def std_deviation(values: Sequence[float]) -> float:
    """Sample standard deviation (n - 1 denominator)."""
    values = np.asarray(values, dtype=np.float64)
    if values.size < 2:
        return float("nan")
    return float(np.std(values, ddof=1))


def clamp(value, lower, upper):
    """Clamp ``value`` into [lower, upper].

    The lower bound wins if the range is empty.
    """
    if value > upper:
        value = upper
    if value < lower:
        value = lower
    return value
