"""
Prediction Regions

Turns a calibrated threshold (or, for Jackknife+/CV+, the per-point
leave-out margins) and new predictions into concrete regions: intervals for
regression and label sets for classification.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, NamedTuple

import numpy as np
from numpy.typing import ArrayLike

from .quantile import qminus, qplus
from .scores import AdaptiveScore, ClassificationScore, SimpleScore


class Interval(NamedTuple):
    """Closed prediction interval [lower, upper]."""

    lower: float
    upper: float

    @property
    def width(self) -> float:
        return self.upper - self.lower

    def __contains__(self, value) -> bool:
        return self.lower <= value <= self.upper


@dataclass
class PredictionSet:
    """
    Conformal prediction set over a finite label space.

    Attributes
    ----------
    membership : dict
        Every candidate label mapped to True (included) or False, in the
        order of the model's label space.
    probabilities : dict
        Predicted probability of every candidate label.

    Examples
    --------
    >>> s = PredictionSet({'A': True, 'B': False}, {'A': 0.9, 'B': 0.1})
    >>> s.labels
    ['A']
    >>> 'B' in s
    False
    """

    membership: Dict[Any, bool]
    probabilities: Dict[Any, float] = field(default_factory=dict)

    @property
    def labels(self) -> List[Any]:
        """Included labels."""
        return [label for label, included in self.membership.items() if included]

    @property
    def is_empty(self) -> bool:
        return not any(self.membership.values())

    def __contains__(self, label) -> bool:
        return bool(self.membership.get(label, False))

    def __len__(self) -> int:
        return len(self.labels)

    def __iter__(self):
        return iter(self.labels)


def symmetric_intervals(y_hat: ArrayLike, q_hat: float) -> List[Interval]:
    """
    Intervals ``[ŷ - q̂, ŷ + q̂]`` for naive, split, jackknife and CV models.

    Examples
    --------
    >>> symmetric_intervals([10.0], 2.0)
    [Interval(lower=8.0, upper=12.0)]
    """
    y_hat = np.asarray(y_hat, dtype=float).ravel()
    return [Interval(float(p - q_hat), float(p + q_hat)) for p in y_hat]


def plus_intervals(
    loo_predictions: ArrayLike,
    residuals: ArrayLike,
    coverage: float
) -> List[Interval]:
    """
    Jackknife+/CV+ intervals.

    For every new point, the lower bound is the lower corrected quantile of
    ``ŷ_i - r_i`` and the upper bound the upper corrected quantile of
    ``ŷ_i + r_i``, pooled over all calibration points i.

    Parameters
    ----------
    loo_predictions : array-like, shape (n_calib, n_new)
        Row i holds the predictions, for the new points, of the model that
        did not see calibration point i.
    residuals : array-like, shape (n_calib,)
        Held-out absolute residual of each calibration point.
    coverage : float
        Target coverage in (0,1).
    """
    loo_predictions = np.atleast_2d(np.asarray(loo_predictions, dtype=float))
    residuals = np.asarray(residuals, dtype=float).reshape(-1, 1)

    if loo_predictions.shape[0] != residuals.shape[0]:
        raise ValueError(
            f"Length mismatch: {loo_predictions.shape[0]} leave-out predictions "
            f"vs {residuals.shape[0]} residuals"
        )

    lower = loo_predictions - residuals
    upper = loo_predictions + residuals

    return [
        Interval(qminus(lower[:, j], coverage), qplus(upper[:, j], coverage))
        for j in range(loo_predictions.shape[1])
    ]


def minmax_intervals(model_predictions: ArrayLike, q_hat: float) -> List[Interval]:
    """
    Intervals ``[min_i ŷ_i - q̂, max_i ŷ_i + q̂]`` over all partition models.

    Parameters
    ----------
    model_predictions : array-like, shape (n_models, n_new)
    q_hat : float
    """
    model_predictions = np.atleast_2d(np.asarray(model_predictions, dtype=float))
    lows = model_predictions.min(axis=0) - q_hat
    highs = model_predictions.max(axis=0) + q_hat

    return [Interval(float(lo), float(hi)) for lo, hi in zip(lows, highs)]


def label_sets(
    scorer: ClassificationScore,
    probabilities: ArrayLike,
    classes: ArrayLike,
    q_hat: float
) -> List[PredictionSet]:
    """Include every label whose score under `scorer` is <= q̂."""
    probabilities = np.atleast_2d(np.asarray(probabilities, dtype=float))
    label_scores = scorer.label_scores(probabilities)
    classes = list(np.asarray(classes).tolist())

    # NaN scores compare False, so undefined labels are excluded
    with np.errstate(invalid='ignore'):
        included = label_scores <= q_hat

    return [
        PredictionSet(
            membership=dict(zip(classes, (bool(v) for v in row_included))),
            probabilities=dict(zip(classes, (float(p) for p in row_probs)))
        )
        for row_included, row_probs in zip(included, probabilities)
    ]


def simple_sets(
    probabilities: ArrayLike,
    classes: ArrayLike,
    q_hat: float
) -> List[PredictionSet]:
    """
    Include label ℓ iff ``1 - p̂(ℓ) <= q̂``.

    Examples
    --------
    >>> s = simple_sets([[0.9, 0.08, 0.02]], ['A', 'B', 'C'], 0.15)[0]
    >>> s.labels
    ['A']
    """
    return label_sets(SimpleScore(), probabilities, classes, q_hat)


def adaptive_sets(
    probabilities: ArrayLike,
    classes: ArrayLike,
    q_hat: float
) -> List[PredictionSet]:
    """Include label ℓ iff the cumulative mass up to ℓ's rank is <= q̂."""
    return label_sets(AdaptiveScore(), probabilities, classes, q_hat)
