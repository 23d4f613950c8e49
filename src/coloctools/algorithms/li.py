"""
li.py - Li's intensity correlation quotient (ICQ)

For every pixel the product (mean1 - x) * (mean2 - y) is positive when both
channels deviate from their means in the same direction. The ICQ is the
fraction of such pixels minus 0.5, ranging from -0.5 (segregated) through 0
(random) to +0.5 (dependent).
"""

import numpy as np

from coloctools.algorithms.base import Algorithm
from coloctools.core.descriptor import Descriptor
from coloctools.core.pairs import MaskedPairIterator
from coloctools.results import ResultHandler


def li_icq(pairs: MaskedPairIterator, mean1: float, mean2: float) -> float:
    """Li's ICQ of the masked pairs.

    Products of exactly zero are counted with the positive ones.
    """
    x, y = pairs.values()
    if x.size == 0:
        return float("nan")
    products = (mean1 - x) * (mean2 - y)
    negative = int(np.count_nonzero(products < 0))
    positive = x.size - negative
    return positive / float(x.size) - 0.5


class LiICQ(Algorithm):

    def __init__(self):
        super().__init__("Li ICQ calculation")
        self.icq_value = float("nan")

    def execute(self, container: Descriptor):
        self.icq_value = li_icq(container.pairs(), container.mean1, container.mean2)

    def report_values(self, handler: ResultHandler):
        handler.handle_value("Li's ICQ value", self.icq_value)
