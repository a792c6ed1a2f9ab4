"""
Unit Tests for Finite-Sample Corrected Quantiles
================================================
"""

import numpy as np
import pytest

from conformalmodels.exceptions import ConfigurationError, UncalibratedStateError
from conformalmodels.quantile import coverage_bounds, qminus, qplus, quantile_rank


# ============================================================================
# Test 1: Rank Arithmetic
# ============================================================================

def test_rank_five_scores_at_80_percent():
    """ceil(6 * 0.8) = 5, the maximum of five scores."""
    assert quantile_rank(5, 0.8) == 5
    assert qplus([1, 2, 3, 4, 5], 0.8) == 5


def test_rank_clipped_to_n_near_full_coverage():
    """Coverage close to 1 asks for rank n+1, which is clipped to n."""
    assert quantile_rank(5, 0.999) == 5
    assert qplus([4, 1, 5, 3, 2], 0.999) == 5


def test_rank_clipped_to_one_at_low_coverage():
    """Coverage below 1/(n+1) gives the smallest score."""
    assert quantile_rank(5, 0.01) == 1
    assert qplus([4, 1, 5, 3, 2], 0.01) == 1


def test_rank_at_one_over_n():
    """coverage = 1/n: ceil((n+1)/n) = 2."""
    assert quantile_rank(5, 1 / 5) == 2
    assert qplus([10, 20, 30, 40, 50], 1 / 5) == 20


def test_median_rank():
    """Nine scores at 50% coverage use the 5th smallest."""
    scores = np.arange(9, 0, -1)
    assert quantile_rank(9, 0.5) == 5
    assert qplus(scores, 0.5) == 5


def test_ties_are_returned_as_is():
    """Tied scores do not change the selected order statistic."""
    assert qplus([2, 2, 2, 1], 0.5) == 2


def test_single_score():
    """A single score is always the threshold."""
    assert qplus([0.7], 0.9) == pytest.approx(0.7)
    assert qplus([0.7], 0.1) == pytest.approx(0.7)


# ============================================================================
# Test 2: Lower Quantile
# ============================================================================

def test_qminus_mirrors_qplus():
    """The lower quantile at 80% of 1..5 is the minimum."""
    assert qminus([1, 2, 3, 4, 5], 0.8) == 1


def test_qminus_is_at_most_qplus():
    """Lower and upper corrected quantiles bracket each other."""
    rng = np.random.default_rng(3)
    scores = rng.normal(size=51)
    assert qminus(scores, 0.9) <= qplus(scores, 0.9)


# ============================================================================
# Test 3: Errors
# ============================================================================

def test_empty_scores_raise():
    """An empty score set can never produce a threshold."""
    with pytest.raises(UncalibratedStateError):
        qplus([], 0.9)


@pytest.mark.parametrize("coverage", [0.0, 1.0, -0.1, 1.5])
def test_invalid_coverage_raises(coverage):
    """Coverage must lie strictly between 0 and 1."""
    with pytest.raises(ConfigurationError):
        qplus([1, 2, 3], coverage)


# ============================================================================
# Test 4: Coverage Distribution
# ============================================================================

def test_coverage_bounds_bracket_target():
    """The Beta band for n=100 at 90% brackets the target coverage."""
    lower, upper = coverage_bounds(100, 0.9)

    assert 0 < lower < 0.9 < upper < 1


def test_coverage_bounds_narrow_with_more_scores():
    """More calibration scores give a tighter band."""
    small = coverage_bounds(50, 0.9)
    large = coverage_bounds(5000, 0.9)

    assert (large[1] - large[0]) < (small[1] - small[0])


def test_coverage_bounds_invalid_confidence():
    with pytest.raises(ConfigurationError):
        coverage_bounds(100, 0.9, confidence=1.0)
