import math

import numpy as np
import pytest

from coloctools.algorithms.threshold import (
    AutoThresholdRegression, BisectionStepper, SimpleStepper, regression_line,
)
from coloctools.core.descriptor import Descriptor
from coloctools.errors import MissingPreconditionError
from coloctools.results import AnalysisResults


# ============================================================================
# Steppers
# ============================================================================

def test_bisection_moves_up_on_negative_or_nan_and_down_on_positive():
    stepper = BisectionStepper(50, 100)
    assert stepper.current_value() == 50
    stepper.advance(-0.2)
    assert stepper.current_value() == 75
    stepper.advance(0.4)
    assert stepper.current_value() == 62.5
    stepper.advance(float("nan"))
    assert stepper.current_value() == 68.75
    assert not stepper.is_done()


def test_bisection_finishes_when_gap_closes():
    stepper = BisectionStepper(50, 100)
    steps = 0
    while not stepper.is_done():
        stepper.advance(0.5)
        steps += 1
    assert stepper.diff < 1
    assert steps < 10


def test_bisection_finishes_on_zero_r():
    stepper = BisectionStepper(50, 100)
    stepper.advance(0.0)
    assert stepper.is_done()


def test_bisection_iteration_cap():
    stepper = BisectionStepper(0, 1e300, max_iterations=5)
    for _ in range(6):
        stepper.advance(-1.0)
    assert stepper.is_done()


def test_simple_stepper_stops_when_r_increases():
    stepper = SimpleStepper(10)
    stepper.advance(0.5)
    assert stepper.current_value() == 9
    assert not stepper.is_done()
    stepper.advance(0.4)
    assert not stepper.is_done()
    stepper.advance(0.6)
    assert stepper.is_done()


@pytest.mark.parametrize("feedback", [float("nan"), 0.00001, -0.3])
def test_simple_stepper_stops_on_nan_or_small_r(feedback):
    stepper = SimpleStepper(10)
    stepper.advance(feedback)
    assert stepper.is_done()


def test_simple_stepper_stops_below_one():
    stepper = SimpleStepper(1)
    stepper.advance(0.5)
    assert stepper.is_done()


# ============================================================================
# Regression
# ============================================================================

def test_regression_of_exact_line():
    ch1 = np.arange(100, dtype=float).reshape(10, 10)
    ch2 = 2 * ch1 + 5
    slope, intercept = regression_line(Descriptor(ch1, ch2))
    assert slope == pytest.approx(2.0)
    assert intercept == pytest.approx(5.0)


def test_regression_negative_slope():
    ch1 = np.arange(100, dtype=float).reshape(10, 10)
    ch2 = 200 - ch1
    slope, intercept = regression_line(Descriptor(ch1, ch2))
    assert slope == pytest.approx(-1.0)
    assert intercept == pytest.approx(200.0)


def test_regression_constant_channel_has_no_line():
    ch1 = np.arange(100, dtype=float).reshape(10, 10)
    ch2 = np.full((10, 10), 7.0)
    with pytest.raises(MissingPreconditionError):
        regression_line(Descriptor(ch1, ch2))


def test_regression_uncorrelated_channels_have_no_line():
    ch1 = np.array([1.0, -1.0, 1.0, -1.0])
    ch2 = np.array([1.0, 1.0, -1.0, -1.0])
    with pytest.raises(MissingPreconditionError):
        regression_line(Descriptor(ch1, ch2))


# ============================================================================
# AutoThresholdRegression
# ============================================================================

@pytest.mark.parametrize("strategy", ["bisection", "costes"])
def test_auto_threshold_publishes_threshold_pair(correlated_descriptor, strategy):
    d = correlated_descriptor
    atr = AutoThresholdRegression(strategy)
    atr.execute(d)

    assert d.threshold is not None
    assert d.threshold.ch1_max == atr.ch1_max_threshold
    assert d.threshold.ch2_max == atr.ch2_max_threshold
    assert d.threshold.ch1_min == 0
    assert 0 <= atr.ch1_max_threshold <= 255
    assert 0 <= atr.ch2_max_threshold <= 255
    assert atr.slope == pytest.approx(0.5, abs=0.1)
    assert not math.isnan(atr.b_to_y_mean_ratio)


def test_auto_threshold_is_commutative(correlated_pair):
    ch1, ch2 = correlated_pair
    forward = AutoThresholdRegression()
    forward.execute(Descriptor(ch1, ch2))
    backward = AutoThresholdRegression()
    backward.execute(Descriptor(ch2, ch1))

    assert forward.ch1_max_threshold == pytest.approx(backward.ch2_max_threshold, abs=1)
    assert forward.ch2_max_threshold == pytest.approx(backward.ch1_max_threshold, abs=1)


def test_auto_threshold_reports_named_values(correlated_descriptor):
    atr = AutoThresholdRegression()
    atr.execute(correlated_descriptor)
    results = AnalysisResults()
    atr.process_results(results)
    for name in ("m (slope)", "b (y-intercept)", "b to y-mean ratio",
                 "Ch1 Max Threshold", "Ch2 Max Threshold"):
        assert name in results.names()


def test_auto_threshold_warns_about_far_intercept(correlated_descriptor):
    # ch2 = 0.5 * ch1 + 20 has an intercept well away from zero
    atr = AutoThresholdRegression()
    atr.execute(correlated_descriptor)
    assert "y-intercept far from zero" in [w.short_message for w in atr.warnings]


def test_threshold_can_only_be_set_once(correlated_descriptor):
    AutoThresholdRegression().execute(correlated_descriptor)
    with pytest.raises(RuntimeError):
        AutoThresholdRegression().execute(correlated_descriptor)


def test_unknown_strategy():
    with pytest.raises(ValueError):
        AutoThresholdRegression("newton")


def test_search_runs_a_trial_when_start_gap_is_small(rng):
    # Intensities in [0, 1]: the bisection gap starts below 1
    ch1 = rng.random((32, 32))
    ch2 = 0.5 * ch1 + rng.normal(0.0, 0.05, size=ch1.shape)
    atr = AutoThresholdRegression("bisection")
    atr.execute(Descriptor(ch1, ch2))
    assert atr.iterations == 1
