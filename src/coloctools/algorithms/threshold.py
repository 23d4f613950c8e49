"""
threshold.py - Automatic threshold search along the channel regression line

Fits an orthogonal regression line through the (ch1, ch2) scatter, then
walks a working threshold along that line until Pearson's r of the pixels
below both thresholds reaches zero. Those pixels are the uncorrelated
background; the resulting threshold pair is published on the Descriptor.

Two search strategies exist, each a small state machine:
    BisectionStepper  - halve the interval (default, converges in ~log2(max))
    SimpleStepper     - step down by one from the channel maximum (Costes)

Usage:
    from coloctools.algorithms.threshold import AutoThresholdRegression

    atr = AutoThresholdRegression(strategy="bisection")
    atr.execute(descriptor)
    descriptor.threshold.ch1_max, descriptor.threshold.ch2_max
"""

import logging
import math
from typing import Callable, Tuple

import numpy as np

from coloctools.algorithms.base import Algorithm
from coloctools.algorithms.pearsons import (
    Implementation, PearsonsCorrelation, ThresholdMode,
)
from coloctools.core.accumulator import Accumulator
from coloctools.core.descriptor import Descriptor
from coloctools.core.statistics import clamp
from coloctools.errors import MissingPreconditionError
from coloctools.results import ResultHandler

logger = logging.getLogger(__name__)

STRATEGY_BISECTION = "bisection"
STRATEGY_COSTES = "costes"
STRATEGIES = (STRATEGY_BISECTION, STRATEGY_COSTES)

# Covariance below this (relative to the channel spread) has no usable line
MIN_RELATIVE_COVARIANCE = 1e-12


# ============================================================================
# THRESHOLD STEPPERS
# ============================================================================

class ThresholdStepper:
    """State machine proposing thresholds from Pearson's r feedback."""

    def current_value(self) -> float:
        raise NotImplementedError

    def advance(self, feedback: float):
        raise NotImplementedError

    def is_done(self) -> bool:
        raise NotImplementedError


class BisectionStepper(ThresholdStepper):
    """Halve the gap between the current and the previous threshold.

    A NaN or negative r means too few background pixels: move up. A
    positive r means still correlated: move down. Stops once the gap is
    below 1 or after ``max_iterations`` steps.
    """

    def __init__(self, threshold1: float, threshold2: float,
                 max_iterations: int = 100):
        self.threshold1 = float(threshold1)
        self.threshold2 = float(threshold2)
        self.diff = abs(self.threshold1 - self.threshold2)
        self.max_iterations = max_iterations
        self.iterations = 0

    def current_value(self) -> float:
        return self.threshold1

    def advance(self, feedback: float):
        self.threshold2 = self.threshold1
        if math.isnan(feedback) or feedback < 0.0:
            self.threshold1 = self.threshold1 + self.diff * 0.5
        elif feedback > 0.0:
            self.threshold1 = self.threshold1 - self.diff * 0.5
        self.diff = abs(self.threshold1 - self.threshold2)
        self.iterations += 1

    def is_done(self) -> bool:
        return self.iterations > self.max_iterations or self.diff < 1.0


class SimpleStepper(ThresholdStepper):
    """Decrease the threshold by one until r stops decreasing towards zero."""

    def __init__(self, threshold: float):
        self.threshold = float(threshold)
        self.current = 1.0
        self.last = math.inf
        self.finished = False

    def current_value(self) -> float:
        return self.threshold

    def advance(self, feedback: float):
        self.last = self.current
        self.current = feedback
        self.threshold -= 1.0
        self.finished = (math.isnan(self.current)
                         or self.threshold < 1.0
                         or self.current < 0.0001
                         or self.current > self.last)

    def is_done(self) -> bool:
        return self.finished


# ============================================================================
# REGRESSION
# ============================================================================

def regression_line(container: Descriptor) -> Tuple[float, float]:
    """Orthogonal least-squares line ``ch2 = m * ch1 + b``.

    Covariance comes from the variance of the channel sum:
    Var(X+Y) = Var(X) + Var(Y) + 2 Cov(X, Y).

    Raises:
        MissingPreconditionError: Too few pixels or (near) zero covariance.
    """
    x, y = container.pairs().values()
    n = x.size
    if n < 2:
        raise MissingPreconditionError("Regression needs at least two pixels.")
    mean1, mean2 = container.mean1, container.mean2

    acc = Accumulator(container.pairs(), offsets=(mean1, mean2))
    combined = x + y - (mean1 + mean2)
    var1 = acc.xx / (n - 1)
    var2 = acc.yy / (n - 1)
    var_combined = float(np.dot(combined, combined)) / (n - 1)
    covariance = 0.5 * (var_combined - (var1 + var2))

    if not var1 > 0 or not var2 > 0:
        raise MissingPreconditionError(
            "A channel is constant, no regression line can be fitted.")
    if (not math.isfinite(covariance)
            or abs(covariance) <= MIN_RELATIVE_COVARIANCE * (var1 + var2)):
        raise MissingPreconditionError(
            "Channels have no covariance, no regression line can be fitted.")

    denom = 2.0 * covariance
    slope = ((var2 - var1) + math.sqrt((var2 - var1) ** 2 + 4.0 * covariance ** 2)) / denom
    intercept = mean2 - slope * mean1
    return slope, intercept


def _round_half_up(value: float) -> float:
    return float(math.floor(value + 0.5))


class AutoThresholdRegression(Algorithm):
    """Find the threshold pair below which the channels are uncorrelated."""

    def __init__(self, strategy: str = STRATEGY_BISECTION,
                 pearsons: PearsonsCorrelation = None):
        super().__init__("Threshold regression")
        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown threshold search strategy: {strategy}. "
                             f"Valid: {STRATEGIES}")
        self.strategy = strategy
        self.pearsons = pearsons or PearsonsCorrelation(Implementation.FAST)
        self.slope = float("nan")
        self.intercept = float("nan")
        self.b_to_y_mean_ratio = float("nan")
        self.ch1_min_threshold = float("nan")
        self.ch1_max_threshold = float("nan")
        self.ch2_min_threshold = float("nan")
        self.ch2_max_threshold = float("nan")
        self.iterations = 0

    def _mapper(self, container: Descriptor) -> Tuple[
            Callable[[float], float], Callable[[float], float], float, float]:
        """Threshold-to-channel mapping plus start/end of the driving channel."""
        m, b = self.slope, self.intercept
        if -1.0 < m < 1.0:
            # Line is flat: drive on channel 1
            return (lambda t: t,
                    lambda t: t * m + b,
                    abs(container.max1 + container.min1) * 0.5,
                    container.max1)
        return (lambda t: (t - b) / m,
                lambda t: t,
                abs(container.max2 + container.min2) * 0.5,
                container.max2)

    def _make_stepper(self, start: float, end: float) -> ThresholdStepper:
        if self.strategy == STRATEGY_BISECTION:
            return BisectionStepper(start, end)
        return SimpleStepper(end)

    def execute(self, container: Descriptor):
        self.slope, self.intercept = regression_line(container)
        to_ch1, to_ch2, start, end = self._mapper(container)
        lo1, hi1 = container.range1
        lo2, hi2 = container.range2

        stepper = self._make_stepper(start, end)
        ch1_thresh, ch2_thresh = container.max1, container.max2
        self.iterations = 0
        # The first trial always runs, even when the start gap is below 1
        while True:
            ch1_thresh = _round_half_up(to_ch1(stepper.current_value()))
            ch2_thresh = _round_half_up(to_ch2(stepper.current_value()))
            pair = (clamp(ch1_thresh, lo1, hi1), clamp(ch2_thresh, lo2, hi2))
            try:
                r = self.pearsons.calculate(container, pair, ThresholdMode.BELOW)
            except MissingPreconditionError:
                r = float("nan")
            stepper.advance(r)
            self.iterations += 1
            logger.debug("threshold %.2f -> (%g, %g), r=%g",
                         stepper.current_value(), pair[0], pair[1], r)
            if stepper.is_done():
                break

        logger.info("Threshold search (%s) finished after %d iterations",
                    self.strategy, self.iterations)

        self.ch1_min_threshold = lo1
        self.ch2_min_threshold = lo2
        self.ch1_max_threshold = clamp(ch1_thresh, lo1, hi1)
        self.ch2_max_threshold = clamp(ch2_thresh, lo2, hi2)
        self.b_to_y_mean_ratio = (self.intercept / container.mean2
                                  if container.mean2 != 0 else float("nan"))

        if abs(self.b_to_y_mean_ratio) > 0.01:
            self.add_warning(
                "y-intercept far from zero",
                "The ratio of the y-intercept of the auto threshold regression "
                "line to the mean value of Channel 2 is high. This means the "
                "y-intercept is far from zero, implying a significant positive "
                "or negative zero offset in the image data intensities. Maybe "
                "you should use a ROI. Maybe do a background subtraction in "
                "both channels. Make sure you have not saturated the image.")
        if self.ch1_max_threshold > container.mean1:
            self.add_warning(
                "Threshold of ch. 1 too high",
                "Too few pixels are taken into account for above-threshold "
                "calculations. The threshold is above the channel's mean.")
        if self.ch2_max_threshold > container.mean2:
            self.add_warning(
                "Threshold of ch. 2 too high",
                "Too few pixels are taken into account for above-threshold "
                "calculations. The threshold is above the channel's mean.")
        if ch1_thresh < container.min1 or ch2_thresh < container.min2:
            self.add_warning(
                "thresholds too low",
                "The auto threshold method could not find a positive threshold, "
                "so thresholded results are meaningless.")

        container.set_threshold(self.ch1_max_threshold, self.ch2_max_threshold)

    def report_values(self, handler: ResultHandler):
        handler.handle_value("m (slope)", self.slope, 3)
        handler.handle_value("b (y-intercept)", self.intercept, 3)
        handler.handle_value("b to y-mean ratio", self.b_to_y_mean_ratio, 3)
        handler.handle_value("Ch1 Max Threshold", self.ch1_max_threshold, 2)
        handler.handle_value("Ch2 Max Threshold", self.ch2_max_threshold, 2)
        handler.handle_value("Threshold regression", self.strategy)
