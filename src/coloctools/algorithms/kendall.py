"""
kendall.py - Maximum normalised Kendall tau over high-intensity rank windows

Colocalization usually lives in the bright pixels of both channels. This
stage ranks both channels, finds an Otsu split of each, then grows a window
of top ranks above the split in geometric steps and keeps the largest
normalised Kendall tau found. Its significance comes from spatially block
shuffling channel 1 and repeating the search.

Usage:
    from coloctools.algorithms.kendall import MaxKendallTau

    stage = MaxKendallTau(randomisations=10, rng=np.random.default_rng(0))
    stage.execute(descriptor)
    stage.max_tau, stage.p_value
"""

import logging
import math
from typing import Optional

import numpy as np

from coloctools.algorithms.base import Algorithm
from coloctools.algorithms.rank import count_inversions
from coloctools.core.blocks import block_origins, shuffle_blocks
from coloctools.core.descriptor import Descriptor
from coloctools.core.pairs import MaskedPairIterator
from coloctools.errors import MissingPreconditionError
from coloctools.results import ResultHandler

logger = logging.getLogger(__name__)

DEFAULT_RANDOMISATIONS = 10


def otsu_rank_threshold(values: np.ndarray) -> int:
    """Number of samples below the Otsu split of ``values``.

    Maximises the between-group variance ``n_low * n_high * (mean_high -
    mean_low)^2`` over every split between distinct values. The result is
    never below half the sample count.
    """
    values = np.sort(np.asarray(values, dtype=np.float64))
    length = values.size
    floor = length // 2
    if length < 2:
        return floor

    unique, counts = np.unique(values, return_counts=True)
    if unique.size < 2:
        return floor
    n_low = np.cumsum(counts)[:-1]
    sum_low = np.cumsum(unique * counts)[:-1]
    n_high = length - n_low
    sum_high = values.sum() - sum_low
    with np.errstate(divide="ignore", invalid="ignore"):
        diff = sum_high / n_high - sum_low / n_low
        variance = n_low * n_high * diff * diff
    if not np.any(np.isfinite(variance)):
        return floor
    best = int(n_low[int(np.nanargmax(variance))])
    return max(best, floor)


def random_tie_ranks(values: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    """Ranks 1..n with ties broken at random."""
    values = np.asarray(values)
    order = np.lexsort((rng.random(values.size), values))
    ranks = np.empty(values.size, dtype=np.int64)
    ranks[order] = np.arange(1, values.size + 1)
    return ranks


def normalised_tau(rank1: np.ndarray, rank2: np.ndarray) -> float:
    """Kendall tau of untied ranks divided by its asymptotic std. deviation."""
    n = rank1.size
    order = np.argsort(rank1, kind="mergesort")
    swaps = count_inversions(rank2[order])
    n0 = n * (n - 1) / 2.0
    tau = (n0 - 2.0 * swaps) / n0
    sd = math.sqrt(2.0 * (2.0 * n + 5.0) / 9.0 / n / (n - 1.0))
    return tau / sd


def max_kendall_tau(x: np.ndarray, y: np.ndarray, rng: np.random.Generator) -> float:
    """Largest normalised tau over growing windows of top ranks.

    Raises:
        MissingPreconditionError: Fewer than three pairs.
    """
    n = x.size
    if n < 3:
        raise MissingPreconditionError("Max Kendall tau needs at least three pairs.")

    threshold1 = otsu_rank_threshold(x)
    threshold2 = otsu_rank_threshold(y)
    rank1 = random_tie_ranks(x, rng)
    rank2 = random_tie_ranks(y, rng)

    keep = (rank1 >= threshold1) & (rank2 >= threshold2)
    rank1, rank2 = rank1[keep], rank2[keep]

    step = 1.0 + 1.0 / math.log(math.log(n))
    best = 0.0
    offset1 = 1.0
    while offset1 * step + threshold1 < n:
        offset1 *= step
        offset2 = 1.0
        while offset2 * step + threshold2 < n:
            offset2 *= step
            active = (rank1 >= n - offset1) & (rank2 >= n - offset2)
            count = int(np.count_nonzero(active))
            if count > 1:
                best = max(best, normalised_tau(rank1[active], rank2[active]))
    return best


class MaxKendallTau(Algorithm):
    """Max normalised Kendall tau and its block-shuffle p-value.

    Args:
        randomisations: Number of shuffled images for the p-value.
        rng: Random generator (tie-breaking and shuffling).
    """

    def __init__(self, randomisations: int = DEFAULT_RANDOMISATIONS,
                 rng: Optional[np.random.Generator] = None):
        super().__init__("Kendall's Tau Correlation")
        if randomisations < 1:
            raise ValueError(f"randomisations must be >= 1, got {randomisations}")
        self.randomisations = randomisations
        self.rng = rng if rng is not None else np.random.default_rng()
        self.max_tau = float("nan")
        self.p_value = float("nan")
        self.shuffled_taus = []

    def execute(self, container: Descriptor):
        x, y = container.pairs().values()
        self.max_tau = max_kendall_tau(x, y, self.rng)

        shape = container.channel1.shape
        block_shape = [max(1, int(math.floor(math.sqrt(s)))) for s in shape]
        origins = block_origins((0,) * len(shape), shape, block_shape)
        shuffled = np.zeros(shape, dtype=np.float64)

        self.shuffled_taus = []
        for _ in range(self.randomisations):
            shuffle_blocks(container.channel1, shuffled, origins, block_shape,
                           self.rng, zero_first=True)
            pairs = MaskedPairIterator(shuffled, container.channel2, container.mask)
            sx, sy = pairs.values()
            self.shuffled_taus.append(max_kendall_tau(sx, sy, self.rng))

        exceeding = sum(1 for tau in self.shuffled_taus if tau > self.max_tau)
        self.p_value = exceeding / float(self.randomisations)
        logger.info("Max Kendall tau %.4f, p=%.3f over %d shuffles",
                    self.max_tau, self.p_value, self.randomisations)

    def report_values(self, handler: ResultHandler):
        handler.handle_value("Max Kendall Tau", self.max_tau, 4)
        handler.handle_value("Max Kendall Tau p-value", self.p_value, 3)
