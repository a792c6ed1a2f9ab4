"""
Prediction Region Diagnostics

Coverage and efficiency metrics for collections of prediction regions, and
export of regions to pandas.
"""

from typing import Any, Dict, Optional, Sequence, Union

import numpy as np
import pandas as pd
from numpy.typing import ArrayLike

from .quantile import coverage_bounds
from .regions import Interval, PredictionSet

Region = Union[Interval, PredictionSet]


def _check_lengths(regions: Sequence[Region], y_true: ArrayLike) -> np.ndarray:
    y_true = np.asarray(y_true).ravel()
    if len(y_true) != len(regions):
        raise ValueError(
            f"Length mismatch: y_true ({len(y_true)}) vs "
            f"regions ({len(regions)})"
        )
    return y_true


def _is_interval_list(regions: Sequence[Region]) -> bool:
    return len(regions) > 0 and isinstance(regions[0], Interval)


def empirical_coverage(regions: Sequence[Region], y_true: ArrayLike) -> float:
    """
    Fraction of observations whose region contains the true value.

    Examples
    --------
    >>> empirical_coverage([Interval(0, 1), Interval(2, 3)], [0.5, 5.0])
    0.5
    """
    y_true = _check_lengths(regions, y_true)
    if len(regions) == 0:
        return float('nan')

    covered = [y in region for y, region in zip(y_true.tolist(), regions)]
    return float(np.mean(covered))


def set_size(regions: Sequence[PredictionSet]) -> np.ndarray:
    """Number of labels in each prediction set."""
    return np.array([len(region) for region in regions], dtype=int)


def interval_width(regions: Sequence[Interval]) -> np.ndarray:
    """Width of each prediction interval."""
    return np.array([region.width for region in regions], dtype=float)


def compute_region_metrics(
    regions: Sequence[Region],
    y_true: Optional[ArrayLike] = None
) -> Dict[str, float]:
    """
    Compute aggregate metrics for a collection of prediction regions.

    Parameters
    ----------
    regions : list of Interval or list of PredictionSet
    y_true : array-like, optional
        True values for the coverage calculation.

    Returns
    -------
    metrics : dict
        For intervals: 'mean_width', 'median_width', 'max_width'.
        For sets: 'avg_size', 'singleton_fraction', 'empty_fraction'.
        'coverage' if y_true is provided.
    """
    if _is_interval_list(regions):
        widths = interval_width(regions)
        metrics = {
            'mean_width': float(widths.mean()),
            'median_width': float(np.median(widths)),
            'max_width': float(widths.max()),
        }
    else:
        sizes = set_size(regions)
        metrics = {
            'avg_size': float(sizes.mean()) if len(sizes) else float('nan'),
            'singleton_fraction': float(np.mean(sizes == 1)) if len(sizes) else float('nan'),
            'empty_fraction': float(np.mean(sizes == 0)) if len(sizes) else float('nan'),
        }

    if y_true is not None:
        metrics['coverage'] = empirical_coverage(regions, y_true)

    return metrics


def validate_coverage(
    conf_model: Any,
    X_test: Any,
    y_test: ArrayLike,
    confidence: float = 0.95,
    verbose: bool = True
) -> Dict[str, Any]:
    """
    Validate the coverage of a fitted conformal model on a test set.

    The acceptable range is the central ``confidence`` interval of the
    conditional coverage distribution of a split conformal predictor with the
    same number of calibration scores (see
    :func:`~conformalmodels.quantile.coverage_bounds`). Transductive methods
    are usually tighter than this band.

    Parameters
    ----------
    conf_model : ConformalModel
        Fitted conformal model.
    X_test : array-like or pd.DataFrame
    y_test : array-like
    confidence : float, optional (default=0.95)
    verbose : bool, optional (default=True)
        Print validation results.

    Returns
    -------
    metrics : dict
        Region metrics plus 'target_coverage', 'acceptable_range' and
        'valid_coverage' (coverage not below the lower end of the range).
    """
    regions = conf_model.predict(X_test)
    metrics = compute_region_metrics(regions, y_test)

    lower_bound, upper_bound = coverage_bounds(
        conf_model.n_calib_, conf_model.coverage, confidence
    )
    coverage = metrics['coverage']
    valid_coverage = bool(coverage >= lower_bound)

    metrics.update({
        'target_coverage': conf_model.coverage,
        'acceptable_range': [lower_bound, upper_bound],
        'valid_coverage': valid_coverage,
    })

    if verbose:
        print(f"\n{'='*60}")
        print("COVERAGE VALIDATION")
        print(f"{'='*60}")
        print(f"Test samples: {len(regions)}")
        print(f"\nCoverage results:")
        print(f"  Empirical coverage: {coverage:.3f}")
        print(f"  Target coverage:    {conf_model.coverage:.3f}")
        print(f"  Acceptable range:   [{lower_bound:.3f}, {upper_bound:.3f}]")
        print(f"  Status: {'✓ PASS' if valid_coverage else '✗ FAIL'}")

        if 'mean_width' in metrics:
            print(f"\nInterval statistics:")
            print(f"  Mean width:   {metrics['mean_width']:.4f}")
            print(f"  Median width: {metrics['median_width']:.4f}")
        else:
            print(f"\nPrediction set statistics:")
            print(f"  Average set size: {metrics['avg_size']:.2f}")
            print(f"  Singleton sets:   {metrics['singleton_fraction']:.1%}")
            print(f"  Empty sets:       {metrics['empty_fraction']:.1%}")

        if coverage > upper_bound:
            print(f"\n⚠ NOTE: Over-coverage (acceptable but inefficient)")

    return metrics


def regions_to_frame(
    regions: Sequence[Region],
    index: Optional[Any] = None
) -> pd.DataFrame:
    """
    Convert prediction regions to a DataFrame.

    Intervals give columns ``lower``, ``upper`` and ``width``; label sets give
    ``prediction_set`` (list of included labels) and ``set_size``.
    """
    if _is_interval_list(regions):
        data = {
            'lower': [region.lower for region in regions],
            'upper': [region.upper for region in regions],
            'width': [region.width for region in regions],
        }
    else:
        data = {
            'prediction_set': [region.labels for region in regions],
            'set_size': [len(region) for region in regions],
        }

    return pd.DataFrame(data, index=index)
