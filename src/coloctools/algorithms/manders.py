"""
manders.py - Manders' split colocalization coefficients

M1 is the fraction of channel 1 intensity found where channel 2 is present
(non-zero); M2 the reverse. The thresholded variants tM1/tM2 only count
partner pixels that are also at or above the auto-threshold.
"""

import logging
from typing import Optional, Tuple

from coloctools.algorithms.base import Algorithm
from coloctools.core.accumulator import Accumulator
from coloctools.core.descriptor import Descriptor
from coloctools.core.pairs import MaskedPairIterator
from coloctools.errors import MissingPreconditionError
from coloctools.results import ResultHandler

logger = logging.getLogger(__name__)


def manders_coefficients(pairs: MaskedPairIterator,
                         thresholds: Optional[Tuple[float, float]] = None
                         ) -> Tuple[float, float]:
    """Compute (M1, M2), or (tM1, tM2) when ``thresholds`` is given.

    Args:
        pairs: Masked channel pairs.
        thresholds: (threshold ch1, threshold ch2) partner cut-offs.

    Returns:
        (M1, M2) tuple.

    Raises:
        MissingPreconditionError: A channel has zero total intensity.
    """
    total = Accumulator(pairs)
    if total.x == 0 or total.y == 0:
        raise MissingPreconditionError(
            "Manders' coefficients: a channel has zero total intensity.")

    if thresholds is None:
        m1_acc = Accumulator(pairs, accept=lambda x, y: y > 0)
        m2_acc = Accumulator(pairs, accept=lambda x, y: x > 0)
    else:
        t1, t2 = thresholds
        m1_acc = Accumulator(pairs, accept=lambda x, y: (y > 0) & (y >= t2))
        m2_acc = Accumulator(pairs, accept=lambda x, y: (x > 0) & (x >= t1))

    return m1_acc.x / total.x, m2_acc.y / total.y


class MandersColocalization(Algorithm):

    def __init__(self):
        super().__init__("Manders correlation")
        self.m1 = float("nan")
        self.m2 = float("nan")
        self.tm1 = None
        self.tm2 = None

    def execute(self, container: Descriptor):
        self.m1, self.m2 = manders_coefficients(container.pairs())
        threshold = container.threshold
        if threshold is not None:
            self.tm1, self.tm2 = manders_coefficients(
                container.pairs(), (threshold.ch1_max, threshold.ch2_max))

    def report_values(self, handler: ResultHandler):
        handler.handle_value("Manders' M1 (Above zero intensity of Ch2)", self.m1)
        handler.handle_value("Manders' M2 (Above zero intensity of Ch1)", self.m2)
        if self.tm1 is not None:
            handler.handle_value("Manders' tM1 (Above autothreshold of Ch2)", self.tm1)
            handler.handle_value("Manders' tM2 (Above autothreshold of Ch1)", self.tm2)
