"""
Finite-Sample Corrected Quantiles

Threshold computation shared by every conformal model. The empirical
quantile level is inflated from the raw coverage to ``ceil((n+1)*coverage)/n``
so that the resulting regions have marginal coverage of at least
``coverage`` for any finite number of calibration scores.
"""

from typing import Tuple

import numpy as np
from numpy.typing import ArrayLike
from scipy import stats

from .exceptions import ConfigurationError, UncalibratedStateError


def check_coverage(coverage: float) -> float:
    """Validate a coverage level, returning it as a float."""
    if not 0 < coverage < 1:
        raise ConfigurationError(f"coverage must be in (0,1), got {coverage}")
    return float(coverage)


def quantile_rank(n: int, coverage: float) -> int:
    """
    Return the 1-based order statistic used as the threshold.

    Parameters
    ----------
    n : int
        Number of calibration scores.
    coverage : float
        Target coverage in (0,1).

    Returns
    -------
    k : int
        ``ceil((n+1)*coverage)`` clipped to ``[1, n]``.

    Examples
    --------
    >>> quantile_rank(5, 0.8)
    5
    >>> quantile_rank(9, 0.5)
    5
    """
    if n < 1:
        raise UncalibratedStateError(
            "Cannot compute a conformal quantile from an empty score set."
        )
    coverage = check_coverage(coverage)

    k = int(np.ceil((n + 1) * coverage))
    return min(max(k, 1), n)


def qplus(scores: ArrayLike, coverage: float) -> float:
    """
    Upper finite-sample corrected quantile of ``scores``.

    Parameters
    ----------
    scores : array-like, shape (n,)
        Nonconformity scores.
    coverage : float
        Target coverage in (0,1).

    Returns
    -------
    q_hat : float
        The k-th smallest score, with k given by :func:`quantile_rank`.
    """
    scores = np.asarray(scores, dtype=float).ravel()
    k = quantile_rank(scores.size, coverage)

    sorted_scores = np.sort(scores, kind='stable')
    return float(sorted_scores[k - 1])


def qminus(scores: ArrayLike, coverage: float) -> float:
    """
    Lower finite-sample corrected quantile of ``scores``.

    Mirror image of :func:`qplus`: ``-qplus(-scores)``. Used for the lower
    endpoint of Jackknife+ and CV+ intervals.
    """
    scores = np.asarray(scores, dtype=float).ravel()
    return -qplus(-scores, coverage)


def coverage_bounds(
    n: int,
    coverage: float,
    confidence: float = 0.95
) -> Tuple[float, float]:
    """
    Range of conditional coverage expected from a split conformal model.

    Conditional on its calibration set, the coverage of a split conformal
    predictor follows ``Beta(k, n + 1 - k)`` with ``k`` from
    :func:`quantile_rank`. The central ``confidence`` interval of that
    distribution is what a single test-set validation should fall into.

    Parameters
    ----------
    n : int
        Number of calibration scores.
    coverage : float
        Target coverage in (0,1).
    confidence : float, optional (default=0.95)
        Mass of the returned interval.

    Returns
    -------
    lower, upper : float
    """
    if not 0 < confidence < 1:
        raise ConfigurationError(f"confidence must be in (0,1), got {confidence}")

    k = quantile_rank(n, coverage)
    tail = (1 - confidence) / 2
    distribution = stats.beta(k, n + 1 - k)

    return float(distribution.ppf(tail)), float(distribution.ppf(1 - tail))
