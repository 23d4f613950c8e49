"""
rank.py - Rank correlations: Spearman's rho and Kendall's tau-b

Kendall's tau uses Knight's O(n log n) algorithm: sort the pairs by the
first variable, then count the swaps a merge sort needs to order the
second variable. ``count_inversions`` is shared with the max Kendall tau
stage.

Usage:
    from coloctools.algorithms.rank import spearman_rho, kendall_tau

    rho, t, df = spearman_rho(x, y)
    tau = kendall_tau(x, y)
"""

import logging
import math
from typing import Tuple

import numpy as np
from scipy import stats

from coloctools.algorithms.base import Algorithm
from coloctools.core.accumulator import Accumulator
from coloctools.core.descriptor import Descriptor
from coloctools.core.statistics import clamp
from coloctools.errors import MissingPreconditionError
from coloctools.results import ResultHandler

logger = logging.getLogger(__name__)


# ============================================================================
# INVERSION COUNTING
# ============================================================================

def count_inversions(values: np.ndarray) -> int:
    """Number of pairs i < j with values[i] > values[j].

    Bottom-up merge sort where each level merges all run pairs at once:
    runs are tagged with their pair index so one global sort performs every
    merge, and a binary search per right-run element counts the left-run
    elements that jump over it. Equal values never count as swapped.
    """
    values = np.asarray(values)
    n = values.size
    if n < 2:
        return 0

    # Dense integer ranks keep the tagged keys exact
    keys = stats.rankdata(values, method="dense").astype(np.int64)
    span = int(keys.max()) + 1
    index = np.arange(n)
    swaps = 0
    width = 1
    while width < n:
        pair_id = index // (2 * width)
        in_right = (index // width) % 2 == 1
        tagged = keys + pair_id * span

        left = tagged[~in_right]
        right = tagged[in_right]
        right_pair = pair_id[in_right]
        end_of_left = np.searchsorted(left, (right_pair + 1) * span, side="left")
        not_greater = np.searchsorted(left, right, side="right")
        swaps += int((end_of_left - not_greater).sum())

        keys = np.sort(tagged, kind="mergesort") - pair_id * span
        width *= 2
    return swaps


def _tie_pairs(values: np.ndarray) -> int:
    _, counts = np.unique(values, return_counts=True)
    return int((counts * (counts - 1) // 2).sum())


def _run_tie_pairs(same_as_previous: np.ndarray) -> int:
    """Tied pairs within runs of a sorted sequence."""
    run_id = np.cumsum(~same_as_previous)
    counts = np.bincount(run_id)
    return int((counts * (counts - 1) // 2).sum())


def kendall_tau(x: np.ndarray, y: np.ndarray) -> float:
    """Kendall's tau-b with tie correction.

    Raises:
        MissingPreconditionError: Fewer than two pairs or a constant input.
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    n = x.size
    if n < 2:
        raise MissingPreconditionError("Kendall's tau needs at least two pairs.")

    order = np.lexsort((y, x))
    xs, ys = x[order], y[order]
    n0 = n * (n - 1) // 2
    same_x = np.concatenate(([False], xs[1:] == xs[:-1]))
    same_xy = same_x & np.concatenate(([False], ys[1:] == ys[:-1]))
    n1 = _run_tie_pairs(same_x)
    n2 = _tie_pairs(ys)
    n3 = _run_tie_pairs(same_xy)
    swaps = count_inversions(ys)

    denominator = math.sqrt(float(n0 - n1) * float(n0 - n2))
    if denominator == 0:
        raise MissingPreconditionError("Kendall's tau is undefined for constant data.")
    return (n0 - n1 - n2 + n3 - 2 * swaps) / denominator


# ============================================================================
# SPEARMAN
# ============================================================================

def spearman_rho(x: np.ndarray, y: np.ndarray) -> Tuple[float, float, int]:
    """Spearman's rank correlation.

    Tied values share their average rank.

    Returns:
        (rho, t statistic, degrees of freedom) tuple.

    Raises:
        MissingPreconditionError: Fewer than three pairs or constant ranks.
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    n = x.size
    if n < 3:
        raise MissingPreconditionError("Spearman's rank correlation needs at least three pairs.")

    rank_x = stats.rankdata(x, method="average")
    rank_y = stats.rankdata(y, method="average")
    acc = Accumulator()
    acc.add(rank_x, rank_y)
    numerator = acc.xy - acc.x * acc.y / n
    denominator = (math.sqrt(max(acc.xx - acc.x ** 2 / n, 0.0))
                   * math.sqrt(max(acc.yy - acc.y ** 2 / n, 0.0)))
    if not denominator > 0:
        raise MissingPreconditionError("Spearman's rank correlation: ranks are constant.")
    rho = clamp(numerator / denominator, -1.0, 1.0)

    df = n - 2
    if 1.0 - rho * rho <= 1e-12:
        t = math.copysign(math.inf, rho)
    else:
        t = rho * math.sqrt(df / (1.0 - rho * rho))
    return rho, t, df


class SpearmanRankCorrelation(Algorithm):

    def __init__(self):
        super().__init__("Spearman's Rank Correlation calculation")
        self.rho = float("nan")
        self.t_statistic = float("nan")
        self.degrees_of_freedom = 0

    def execute(self, container: Descriptor):
        x, y = container.pairs().values()
        self.rho, self.t_statistic, self.degrees_of_freedom = spearman_rho(x, y)

    def report_values(self, handler: ResultHandler):
        handler.handle_value("Spearman's rank correlation value", self.rho, 8)
        handler.handle_value("Spearman's correlation t-statistic", self.t_statistic, 4)
        handler.handle_value("t-statistic's degrees of freedom", self.degrees_of_freedom, 0)


class KendallTauRankCorrelation(Algorithm):

    def __init__(self):
        super().__init__("Kendall's Tau-b Rank Correlation calculation")
        self.tau = float("nan")

    def execute(self, container: Descriptor):
        x, y = container.pairs().values()
        self.tau = kendall_tau(x, y)

    def report_values(self, handler: ResultHandler):
        handler.handle_value("Kendall's Tau-b rank correlation value", self.tau, 4)
