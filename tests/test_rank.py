import numpy as np
import pytest
from scipy import stats

from coloctools.algorithms.rank import (
    KendallTauRankCorrelation, SpearmanRankCorrelation, count_inversions,
    kendall_tau, spearman_rho,
)
from coloctools.errors import MissingPreconditionError
from coloctools.results import AnalysisResults

SPEARMAN_DATA = np.array([
    [1, 113], [2, 43], [3, 11], [6, 86], [5, 59], [8, 47], [4, 92], [0, 152],
    [6, 23], [4, 9], [7, 33], [3, 69], [2, 75], [9, 135], [3, 30],
], dtype=float)


def _brute_force_inversions(values):
    n = len(values)
    return sum(1 for i in range(n) for j in range(i + 1, n) if values[i] > values[j])


# ============================================================================
# Inversion counting / Kendall
# ============================================================================

@pytest.mark.parametrize("values,expected", [
    ([1, 2, 3], 0),
    ([3, 2, 1], 3),
    ([2, 1, 3, 1], 3),
    ([1, 1, 1], 0),
    ([5], 0),
])
def test_count_inversions_small(values, expected):
    assert count_inversions(values) == expected


def test_count_inversions_matches_brute_force(rng):
    for size in (2, 7, 64, 101):
        values = rng.integers(0, 20, size=size)
        assert count_inversions(values) == _brute_force_inversions(list(values))


def test_kendall_tau_concordant_and_discordant():
    x = np.arange(50, dtype=float)
    assert kendall_tau(x, 3 * x + 1) == pytest.approx(1.0)
    assert kendall_tau(x, -x) == pytest.approx(-1.0)


def test_kendall_tau_small_example():
    x = np.array([1, 2, 3, 4, 5], dtype=float)
    y = np.array([3, 4, 1, 2, 5], dtype=float)
    assert kendall_tau(x, y) == pytest.approx(0.2)


def test_kendall_tau_b_with_ties_matches_scipy(rng):
    x = rng.integers(0, 10, size=300)
    y = x + rng.integers(0, 6, size=300)
    expected, _ = stats.kendalltau(x, y)
    assert kendall_tau(x, y) == pytest.approx(expected, abs=1e-10)


def test_kendall_tau_constant_input_fails():
    with pytest.raises(MissingPreconditionError):
        kendall_tau(np.arange(5.0), np.ones(5))


# ============================================================================
# Spearman
# ============================================================================

def test_spearman_reference_data():
    rho, t, df = spearman_rho(SPEARMAN_DATA[:, 0], SPEARMAN_DATA[:, 1])
    assert rho == pytest.approx(-0.1743, abs=1e-4)
    assert t == pytest.approx(-0.6382, abs=1e-4)
    assert df == 13


def test_spearman_is_symmetric(correlated_pair):
    ch1, ch2 = correlated_pair
    rho12, _, _ = spearman_rho(ch1.ravel(), ch2.ravel())
    rho21, _, _ = spearman_rho(ch2.ravel(), ch1.ravel())
    assert rho12 == pytest.approx(rho21, abs=1e-4)


def test_spearman_perfect_rank_agreement():
    x = np.arange(10.0)
    rho, t, _ = spearman_rho(x, x ** 3)
    assert rho == pytest.approx(1.0)
    assert t == float("inf")


def test_spearman_too_few_pairs():
    with pytest.raises(MissingPreconditionError):
        spearman_rho(np.array([1.0, 2.0]), np.array([2.0, 1.0]))


def test_rank_stages_report_values(correlated_descriptor):
    results = AnalysisResults()
    for stage in (SpearmanRankCorrelation(), KendallTauRankCorrelation()):
        stage.execute(correlated_descriptor)
        stage.process_results(results)
    assert results.names() == ["Spearman's rank correlation value",
                               "Spearman's correlation t-statistic",
                               "t-statistic's degrees of freedom",
                               "Kendall's Tau-b rank correlation value"]
    assert results.get("t-statistic's degrees of freedom") == 48 * 48 - 2
    assert 0.5 < results.get("Kendall's Tau-b rank correlation value") < 1.0
