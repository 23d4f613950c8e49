"""
pearsons.py - Pearson's correlation coefficient over masked pixel pairs

Two computations are available: ``classic`` centres every pair on the
channel means of the whole mask before summing, ``fast`` derives the same
value from one pass of raw sums. Both can be restricted to pixels below or
above a threshold pair.

Usage:
    from coloctools.algorithms.pearsons import fast_pearsons, ThresholdMode

    r = fast_pearsons(pairs)
    r_below = fast_pearsons(pairs, thresholds=(t1, t2), mode=ThresholdMode.BELOW)
"""

import logging
import math
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from coloctools.algorithms.base import Algorithm
from coloctools.core.accumulator import Accumulator
from coloctools.core.descriptor import Descriptor
from coloctools.core.pairs import MaskedPairIterator
from coloctools.errors import MissingPreconditionError
from coloctools.results import ResultHandler

logger = logging.getLogger(__name__)


class ThresholdMode(Enum):
    NONE = "none"
    BELOW = "below"
    ABOVE = "above"


class Implementation(Enum):
    CLASSIC = "classic"
    FAST = "fast"


def threshold_predicate(thresholds: Optional[Tuple[float, float]],
                        mode: ThresholdMode,
                        mode2: Optional[ThresholdMode] = None):
    """Build the accept predicate for a thresholded computation.

    Each channel is gated on its own: BELOW keeps values <= threshold,
    ABOVE keeps values >= threshold, NONE keeps everything. A pair passes
    when both channels pass.

    Args:
        thresholds: (threshold ch1, threshold ch2).
        mode: Gate of channel 1 (and of channel 2 unless ``mode2`` is given).
        mode2: Separate gate for channel 2.
    """
    if mode2 is None:
        mode2 = mode
    if mode == ThresholdMode.NONE and mode2 == ThresholdMode.NONE:
        return None
    if thresholds is None:
        raise ValueError(f"Threshold mode {mode.value} needs a threshold pair")
    t1, t2 = thresholds

    def gate(values, threshold, gate_mode):
        if gate_mode == ThresholdMode.BELOW:
            return values <= threshold
        if gate_mode == ThresholdMode.ABOVE:
            return values >= threshold
        return np.ones(values.shape, dtype=bool)

    def accept(x, y):
        return gate(x, t1, mode) & gate(y, t2, mode2)

    return accept


def _check_sanity(denominator: float, count: int):
    if not denominator > 0.0 or math.isnan(denominator):
        raise MissingPreconditionError(
            "Pearson's calculation: denominator must not be zero or NaN.")
    if count < 3:
        raise MissingPreconditionError(
            "Pearson's calculation: too few samples (need at least 3).")


def classic_pearsons(pairs: MaskedPairIterator, mean1: float, mean2: float,
                     thresholds: Optional[Tuple[float, float]] = None,
                     mode: ThresholdMode = ThresholdMode.NONE,
                     mode2: Optional[ThresholdMode] = None) -> float:
    """Pearson's r from pairs centred on precomputed channel means.

    Raises:
        MissingPreconditionError: Zero denominator or fewer than 3 pairs.
    """
    acc = Accumulator(pairs, accept=threshold_predicate(thresholds, mode, mode2),
                      offsets=(mean1, mean2))
    denominator = math.sqrt(acc.xx * acc.yy)
    _check_sanity(denominator, acc.count)
    return acc.xy / denominator


def fast_pearsons(pairs: MaskedPairIterator,
                  thresholds: Optional[Tuple[float, float]] = None,
                  mode: ThresholdMode = ThresholdMode.NONE,
                  mode2: Optional[ThresholdMode] = None) -> float:
    """Pearson's r from a single pass of raw sums.

    Raises:
        MissingPreconditionError: Zero denominator or fewer than 3 pairs.
    """
    acc = Accumulator(pairs, accept=threshold_predicate(thresholds, mode, mode2))
    n = acc.count
    if n < 3:
        raise MissingPreconditionError(
            "Pearson's calculation: too few samples (need at least 3).")
    numerator = acc.xy - acc.x * acc.y / n
    var1 = acc.xx - acc.x * acc.x / n
    var2 = acc.yy - acc.y * acc.y / n
    # Rounding can push a constant channel's variance slightly negative
    denominator = math.sqrt(max(var1, 0.0)) * math.sqrt(max(var2, 0.0))
    _check_sanity(denominator, n)
    return numerator / denominator


class PearsonsCorrelation(Algorithm):
    """Pearson's r without threshold, and below/above the auto-threshold."""

    def __init__(self, implementation: Implementation = Implementation.FAST):
        super().__init__("Pearson correlation")
        self.implementation = implementation
        self.r_value = float("nan")
        self.r_below = None
        self.r_above = None

    def calculate(self, container: Descriptor,
                  thresholds: Optional[Tuple[float, float]] = None,
                  mode: ThresholdMode = ThresholdMode.NONE) -> float:
        """Pearson's r of the container's pairs with the chosen implementation."""
        pairs = container.pairs()
        if self.implementation == Implementation.CLASSIC:
            return classic_pearsons(pairs, container.mean1, container.mean2,
                                    thresholds, mode)
        return fast_pearsons(pairs, thresholds, mode)

    def execute(self, container: Descriptor):
        self.r_value = self.calculate(container)

        threshold = container.threshold
        if threshold is None:
            return
        pair = (threshold.ch1_max, threshold.ch2_max)
        try:
            self.r_below = self.calculate(container, pair, ThresholdMode.BELOW)
        except MissingPreconditionError as e:
            self.add_warning("Pearson's R below threshold not available", str(e))
        try:
            self.r_above = self.calculate(container, pair, ThresholdMode.ABOVE)
        except MissingPreconditionError as e:
            self.add_warning("Pearson's R above threshold not available", str(e))

    def report_values(self, handler: ResultHandler):
        handler.handle_value("Pearson's R value (no threshold)", self.r_value, 2)
        if self.r_below is not None:
            handler.handle_value("Pearson's R value (below threshold)", self.r_below, 2)
        if self.r_above is not None:
            handler.handle_value("Pearson's R value (above threshold)", self.r_above, 2)
