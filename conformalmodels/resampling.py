"""
Resampling Strategies

Decides how calibration scores are generated from the training data and how
many base models are fit: none (naive, in-sample), a single split,
leave-one-out (jackknife family) or K-fold (CV family).

Every partition is independent: models are cloned from the user's estimator,
fit on their own training indices and never share state, so the fits are
dispatched through joblib.
"""

import warnings
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, NamedTuple, Optional, Union

import numpy as np
from joblib import Parallel, delayed
from numpy.typing import ArrayLike
from sklearn.base import BaseEstimator, clone
from sklearn.model_selection import KFold, LeaveOneOut, train_test_split

from .exceptions import (
    BasePredictorFailure,
    ConfigurationError,
    InsufficientDataError,
)


class Method(str, Enum):
    """Resampling methods available to conformal models."""

    NAIVE = 'naive'
    SPLIT = 'split'
    JACKKNIFE = 'jackknife'
    JACKKNIFE_PLUS = 'jackknife_plus'
    JACKKNIFE_MINMAX = 'jackknife_minmax'
    CV = 'cv'
    CV_PLUS = 'cv_plus'
    CV_MINMAX = 'cv_minmax'

    @classmethod
    def parse(cls, value: Union[str, 'Method']) -> 'Method':
        """
        Accept enum members and common spellings.

        Examples
        --------
        >>> Method.parse('jackknife+')
        <Method.JACKKNIFE_PLUS: 'jackknife_plus'>
        >>> Method.parse('cv-minmax')
        <Method.CV_MINMAX: 'cv_minmax'>
        """
        if isinstance(value, cls):
            return value

        key = str(value).strip().lower().replace('+', '_plus').replace('-', '_')
        if key in ('inductive', 'simple_inductive'):
            key = 'split'
        try:
            return cls(key)
        except ValueError:
            raise ConfigurationError(
                f"Unknown resampling method {value!r}. "
                f"Available: {[m.value for m in cls]}"
            ) from None


JACKKNIFE_FAMILY = (Method.JACKKNIFE, Method.JACKKNIFE_PLUS, Method.JACKKNIFE_MINMAX)
CV_FAMILY = (Method.CV, Method.CV_PLUS, Method.CV_MINMAX)


class Partition(NamedTuple):
    """Training and held-out indices of one base model."""

    name: Union[int, str]
    train_idx: np.ndarray
    calib_idx: np.ndarray


@dataclass(frozen=True)
class ResamplingStrategy:
    """
    Resampling configuration of a conformal model.

    Parameters
    ----------
    method : str or Method, optional (default='split')
        One of naive, split, jackknife, jackknife+, jackknife-minmax,
        cv, cv+, cv-minmax.
    train_ratio : float, optional (default=0.5)
        Fraction of observations used to train the base model
        (split method only).
    n_folds : int, optional (default=5)
        Number of folds K (CV methods only).
    random_seed : int, optional (default=42)
        Seed for the split shuffle and the fold assignment.
    """

    method: Union[str, Method] = Method.SPLIT
    train_ratio: float = 0.5
    n_folds: int = 5
    random_seed: Optional[int] = 42

    def __post_init__(self):
        object.__setattr__(self, 'method', Method.parse(self.method))

        if not 0 < self.train_ratio < 1:
            raise ConfigurationError(
                f"train_ratio must be in (0,1), got {self.train_ratio}"
            )
        if int(self.n_folds) != self.n_folds or self.n_folds < 2:
            raise ConfigurationError(
                f"n_folds must be an integer >= 2, got {self.n_folds}"
            )
        object.__setattr__(self, 'n_folds', int(self.n_folds))

    @property
    def is_asymmetric(self) -> bool:
        """Jackknife+ and CV+ build intervals from per-point bounds."""
        return self.method in (Method.JACKKNIFE_PLUS, Method.CV_PLUS)

    @property
    def is_minmax(self) -> bool:
        return self.method in (Method.JACKKNIFE_MINMAX, Method.CV_MINMAX)

    @property
    def needs_full_model(self) -> bool:
        """Symmetric resampling methods predict with a model fit on all data."""
        return self.method in (Method.NAIVE, Method.JACKKNIFE, Method.CV)

    def partitions(self, n: int) -> List[Partition]:
        """
        Generate the partitions used to compute calibration scores.

        Parameters
        ----------
        n : int
            Number of observations.

        Returns
        -------
        partitions : list of Partition
            One entry per base model that produces calibration scores.

        Raises
        ------
        InsufficientDataError
            If ``n < 2``, or ``n < n_folds`` for the CV methods.
        """
        if n < 2:
            raise InsufficientDataError(
                f"At least 2 observations are required, got {n}"
            )

        indices = np.arange(n)

        if self.method == Method.NAIVE:
            warnings.warn(
                "The naive method scores the training data in-sample and does "
                "not guarantee nominal coverage. Use it only as a baseline."
            )
            return [Partition('full', indices, indices)]

        if self.method == Method.SPLIT:
            n_train = min(max(int(round(self.train_ratio * n)), 1), n - 1)
            train_idx, calib_idx = train_test_split(
                indices,
                train_size=n_train,
                random_state=self.random_seed,
                shuffle=True
            )
            return [Partition('train', np.sort(train_idx), np.sort(calib_idx))]

        if self.method in JACKKNIFE_FAMILY:
            splitter = LeaveOneOut()
            return [
                Partition(int(calib_idx[0]), train_idx, calib_idx)
                for train_idx, calib_idx in splitter.split(indices)
            ]

        if n < self.n_folds:
            raise InsufficientDataError(
                f"{self.method.value} with {self.n_folds} folds needs at least "
                f"{self.n_folds} observations, got {n}"
            )
        splitter = KFold(
            n_splits=self.n_folds,
            shuffle=True,
            random_state=self.random_seed
        )
        return [
            Partition(fold, train_idx, calib_idx)
            for fold, (train_idx, calib_idx) in enumerate(splitter.split(indices))
        ]


def take_rows(X: Any, idx: np.ndarray) -> Any:
    """Select rows of a DataFrame or array-like."""
    if hasattr(X, 'iloc'):
        return X.iloc[idx]
    return np.asarray(X)[idx]


def fit_estimator(
    estimator: BaseEstimator,
    X: Any,
    y: ArrayLike,
    partition: Union[int, str] = 'full'
) -> BaseEstimator:
    """
    Clone and fit a base estimator, tagging failures with the partition.

    Raises
    ------
    BasePredictorFailure
        If the estimator's ``fit`` raises.
    """
    try:
        return clone(estimator).fit(X, y)
    except Exception as exc:
        raise BasePredictorFailure(
            f"{type(exc).__name__}: {exc}", stage='fit', partition=partition
        ) from exc


def predict_estimator(
    fitresult: BaseEstimator,
    X: Any,
    partition: Union[int, str] = 'full',
    proba: bool = False
) -> np.ndarray:
    """
    Point predictions (or class probabilities) of a fitted base estimator.

    Raises
    ------
    BasePredictorFailure
        If the estimator's ``predict``/``predict_proba`` raises.
    """
    try:
        if proba:
            return np.asarray(fitresult.predict_proba(X), dtype=float)
        return np.asarray(fitresult.predict(X), dtype=float).ravel()
    except Exception as exc:
        raise BasePredictorFailure(
            f"{type(exc).__name__}: {exc}", stage='predict', partition=partition
        ) from exc


def _fit_and_predict(estimator, X, y, partition, proba):
    fitresult = fit_estimator(
        estimator,
        take_rows(X, partition.train_idx),
        y[partition.train_idx],
        partition=partition.name
    )
    predicted = predict_estimator(
        fitresult,
        take_rows(X, partition.calib_idx),
        partition=partition.name,
        proba=proba
    )
    return fitresult, predicted


def fit_partitions(
    estimator: BaseEstimator,
    X: Any,
    y: np.ndarray,
    partitions: List[Partition],
    proba: bool = False,
    n_jobs: Optional[int] = None
) -> List[tuple]:
    """
    Fit one base model per partition and predict its held-out rows.

    Parameters
    ----------
    estimator : BaseEstimator
        Unfitted template; cloned for every partition.
    X : array-like or pd.DataFrame, shape (n, p)
    y : np.ndarray, shape (n,)
    partitions : list of Partition
    proba : bool, optional (default=False)
        Predict class probabilities instead of point values.
    n_jobs : int, optional
        Number of joblib workers. None runs sequentially.

    Returns
    -------
    results : list of (fitted_estimator, held_out_predictions)
        In the order of ``partitions``.
    """
    return Parallel(n_jobs=n_jobs)(
        delayed(_fit_and_predict)(estimator, X, y, partition, proba)
        for partition in partitions
    )
