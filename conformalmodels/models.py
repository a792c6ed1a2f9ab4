"""
Conformal Models

Wrap any scikit-learn compatible estimator to produce prediction regions
with a finite-sample marginal coverage guarantee: intervals for regression,
label sets for classification.

A model owns two entry points. ``fit`` trains the base model(s) chosen by
the resampling strategy and derives the calibration scores; ``predict``
turns new predictions and the calibrated threshold into regions. Nothing is
mutated after ``fit``, so predictions can be made concurrently.
"""

import warnings
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union

import numpy as np
import pandas as pd
from numpy.typing import ArrayLike
from sklearn.base import BaseEstimator, is_classifier

from .evaluation import regions_to_frame, validate_coverage
from .exceptions import (
    ConfigurationError,
    InsufficientDataError,
    UncalibratedStateError,
)
from .quantile import check_coverage, qplus
from .regions import (
    Interval,
    PredictionSet,
    label_sets,
    minmax_intervals,
    plus_intervals,
    symmetric_intervals,
)
from .resampling import (
    Method,
    ResamplingStrategy,
    fit_estimator,
    fit_partitions,
    predict_estimator,
)
from .scores import NonconformityScore, get_heuristic

# Calibration sets smaller than this give unstable thresholds
MIN_CALIBRATION_SIZE = 30


class ConformalModel(ABC):
    """
    Base class for conformal models.

    Parameters
    ----------
    model : BaseEstimator
        Unfitted scikit-learn compatible estimator. It is cloned for every
        base model, never fitted in place.
    coverage : float, optional (default=0.95)
        Target marginal coverage in (0,1).
    method : str, optional (default='split')
        Resampling method, see :class:`~conformalmodels.resampling.Method`.
    heuristic : str or NonconformityScore, optional
        Nonconformity score. Defaults to the task's standard score.
    train_ratio : float, optional (default=0.5)
        Fraction of data used to train the base model (split method).
    n_folds : int, optional (default=5)
        Number of folds (CV methods).
    random_seed : int, optional (default=42)
        Random seed for the split and the fold assignment.
    n_jobs : int, optional (default=None)
        joblib workers used to fit partition models. None is sequential.
    verbose : bool, optional (default=False)
        Print calibration details.

    Attributes
    ----------
    scores_ : np.ndarray
        Calibration nonconformity scores, one per held-out observation.
    q_hat_ : float
        Finite-sample corrected quantile of ``scores_``.
    n_calib_ : int
        Number of calibration scores.
    fitresults_ : list
        Base models fit on each resampling partition.
    model_ : BaseEstimator
        Base model used for point predictions of symmetric methods.
    calibration_metadata_ : dict
        Summary of the last calibration.
    """

    task: str = None
    available_methods = ()
    default_heuristic: str = None

    def __init__(
        self,
        model: BaseEstimator,
        coverage: float = 0.95,
        method: Union[str, Method] = 'split',
        heuristic: Optional[Union[str, NonconformityScore]] = None,
        train_ratio: float = 0.5,
        n_folds: int = 5,
        random_seed: Optional[int] = 42,
        n_jobs: Optional[int] = None,
        verbose: bool = False
    ):
        self.model = model
        self.coverage = check_coverage(coverage)
        self.resampling = ResamplingStrategy(
            method=method,
            train_ratio=train_ratio,
            n_folds=n_folds,
            random_seed=random_seed
        )
        if self.resampling.method not in self.available_methods:
            raise ConfigurationError(
                f"Method {self.resampling.method.value!r} is not available for "
                f"{self.task}. Available: {[m.value for m in self.available_methods]}"
            )
        self.heuristic = get_heuristic(
            heuristic if heuristic is not None else self.default_heuristic,
            self.task
        )
        self.n_jobs = n_jobs
        self.verbose = verbose

        self._reset()

    def _reset(self):
        self.scores_ = None
        self.q_hat_ = None
        self.n_calib_ = None
        self.fitresults_ = None
        self.partition_names_ = None
        self.calib_owner_ = None
        self.model_ = None
        self.calibration_metadata_ = {}

    @property
    def method(self) -> Method:
        return self.resampling.method

    @property
    def is_calibrated(self) -> bool:
        return self.scores_ is not None and len(self.scores_) > 0

    def __repr__(self):
        return (
            f"{self.__class__.__name__}(model={self.model!r}, "
            f"coverage={self.coverage}, method={self.method.value!r}, "
            f"heuristic={self.heuristic.name!r})"
        )

    def fit(self, X: Any, y: ArrayLike) -> 'ConformalModel':
        """
        Fit the base model(s) and compute the calibration scores.

        Every call re-derives the calibrated state from scratch.

        Parameters
        ----------
        X : array-like or pd.DataFrame, shape (n, p)
            Training features.
        y : array-like, shape (n,)
            Training targets or labels.

        Returns
        -------
        self : ConformalModel
            Calibrated model.

        Raises
        ------
        InsufficientDataError
            Too few observations for the resampling strategy.
        BasePredictorFailure
            The base estimator failed on one of the partitions.
        """
        self._reset()

        y = np.asarray(y).ravel()
        n = _n_rows(X)
        if n != len(y):
            raise InsufficientDataError(
                f"Length mismatch: X ({n}) vs y ({len(y)})"
            )

        partitions = self.resampling.partitions(n)
        results = fit_partitions(
            self.model,
            X,
            y,
            partitions,
            proba=self.task == 'classification',
            n_jobs=self.n_jobs
        )

        fitresults = []
        scores = []
        owners = []
        for i, (partition, (fitresult, predicted)) in enumerate(zip(partitions, results)):
            fitresults.append(fitresult)
            scores.append(self._score(y[partition.calib_idx], predicted, fitresult))
            owners.append(np.full(len(partition.calib_idx), i))

        if self.method in (Method.NAIVE, Method.SPLIT):
            model_ = fitresults[0]
        elif self.resampling.needs_full_model:
            model_ = fit_estimator(self.model, X, y, partition='full')
        else:
            model_ = None

        scores = np.concatenate(scores)
        scores.setflags(write=False)

        self.fitresults_ = fitresults
        self.partition_names_ = [p.name for p in partitions]
        self.calib_owner_ = np.concatenate(owners)
        self.model_ = model_
        self.scores_ = scores
        self.n_calib_ = len(scores)
        self.q_hat_ = qplus(scores, self.coverage)

        self._report_calibration()
        return self

    @abstractmethod
    def predict(self, X: Any) -> list:
        """
        Construct one prediction region per row of ``X``, in input order.

        Raises
        ------
        UncalibratedStateError
            If the model has not been fit.
        """

    def predict_frame(self, X: Any) -> pd.DataFrame:
        """Prediction regions as a DataFrame, indexed like ``X`` when possible."""
        regions = self.predict(X)
        return regions_to_frame(regions, index=getattr(X, 'index', None))

    def validate_coverage(
        self,
        X_test: Any,
        y_test: ArrayLike,
        confidence: float = 0.95,
        verbose: bool = True
    ) -> Dict[str, Any]:
        """Empirical coverage on held-out data, see :func:`validate_coverage`."""
        return validate_coverage(
            self, X_test, y_test, confidence=confidence, verbose=verbose
        )

    def _score(self, y_true, predicted, fitresult):
        return self.heuristic.score(y_true, predicted)

    def _check_calibrated(self):
        if not self.is_calibrated:
            raise UncalibratedStateError(
                f"{self.__class__.__name__} not calibrated. Call .fit() first."
            )

    def _report_calibration(self):
        """Store calibration metadata and print it when verbose."""
        scores = self.scores_
        self.calibration_metadata_ = {
            'method': self.method.value,
            'heuristic': self.heuristic.name,
            'coverage': self.coverage,
            'n_calib': self.n_calib_,
            'n_models': len(self.fitresults_),
            'q_hat': self.q_hat_,
        }

        if self.n_calib_ < MIN_CALIBRATION_SIZE:
            warnings.warn(
                f"Only {self.n_calib_} calibration scores. Thresholds from fewer "
                f"than {MIN_CALIBRATION_SIZE} scores are highly variable."
            )

        if self.verbose:
            print(f"\n{'='*60}")
            print(f"CONFORMAL CALIBRATION ({self.method.value})")
            print(f"{'='*60}")
            print(f"Target coverage: {self.coverage:.1%}")
            print(f"Heuristic: {self.heuristic.name}")
            print(f"Base models fitted: {len(self.fitresults_)}")
            print(f"Calibration scores: {self.n_calib_}")

            print(f"\nNonconformity score statistics:")
            print(f"  Min:    {scores.min():.4f}")
            print(f"  Median: {np.median(scores):.4f}")
            print(f"  Max:    {scores.max():.4f}")
            print(f"\n✓ q̂ = {self.q_hat_:.4f}")


class ConformalRegressor(ConformalModel):
    """
    Conformal prediction intervals around a regressor.

    Methods
    -------
    naive, split, jackknife, cv
        Symmetric intervals ``[ŷ - q̂, ŷ + q̂]``; ``ŷ`` comes from the model
        fit on the training subset (split) or on all data (others).
    jackknife+, cv+
        Asymmetric intervals from the pooled leave-out predictions and
        residuals of every calibration point.
    jackknife-minmax, cv-minmax
        ``[min ŷ_i - q̂, max ŷ_i + q̂]`` over the partition models.

    Examples
    --------
    >>> from sklearn.linear_model import LinearRegression
    >>> conf_model = ConformalRegressor(LinearRegression(), coverage=0.9,
    ...                                 method='jackknife+')
    >>> conf_model.fit(X_train, y_train)
    >>> intervals = conf_model.predict(X_test)
    >>> intervals[0].lower, intervals[0].upper
    """

    task = 'regression'
    available_methods = tuple(Method)
    default_heuristic = 'absolute_residual'

    def predict(self, X: Any) -> List[Interval]:
        self._check_calibrated()

        if self.resampling.is_asymmetric or self.resampling.is_minmax:
            model_predictions = np.vstack([
                predict_estimator(fitresult, X, partition=name)
                for fitresult, name in zip(self.fitresults_, self.partition_names_)
            ])
            if self.resampling.is_minmax:
                return minmax_intervals(model_predictions, self.q_hat_)
            return plus_intervals(
                model_predictions[self.calib_owner_], self.scores_, self.coverage
            )

        partition = 'train' if self.method == Method.SPLIT else 'full'
        y_hat = predict_estimator(self.model_, X, partition=partition)
        return symmetric_intervals(y_hat, self.q_hat_)


class ConformalClassifier(ConformalModel):
    """
    Conformal prediction sets around a probabilistic classifier.

    The base estimator must implement ``predict_proba`` and expose
    ``classes_``. With the ``'simple'`` heuristic a label is kept when one
    minus its probability is below the threshold; with ``'adaptive'`` the
    cumulative mass up to the label's rank is compared instead, which makes
    sets grow where the classifier is unsure.

    Sets may be empty at low coverage levels; that is a valid outcome.

    Examples
    --------
    >>> from sklearn.linear_model import LogisticRegression
    >>> conf_model = ConformalClassifier(LogisticRegression(), coverage=0.9,
    ...                                  heuristic='adaptive')
    >>> conf_model.fit(X_train, y_train)
    >>> conf_model.predict(X_test)[0].labels
    """

    task = 'classification'
    available_methods = (Method.NAIVE, Method.SPLIT)
    default_heuristic = 'simple'

    @property
    def classes_(self) -> np.ndarray:
        self._check_calibrated()
        return self.model_.classes_

    def _score(self, y_true, predicted, fitresult):
        return self.heuristic.score(y_true, predicted, classes=fitresult.classes_)

    def predict(self, X: Any) -> List[PredictionSet]:
        self._check_calibrated()

        partition = 'train' if self.method == Method.SPLIT else 'full'
        probabilities = predict_estimator(self.model_, X, partition=partition, proba=True)
        return label_sets(self.heuristic, probabilities, self.classes_, self.q_hat_)


AVAILABLE_MODELS = {
    'regression': {
        'transductive': {
            'naive': (ConformalRegressor, {'method': 'naive'}),
            'jackknife': (ConformalRegressor, {'method': 'jackknife'}),
            'jackknife_plus': (ConformalRegressor, {'method': 'jackknife_plus'}),
            'jackknife_minmax': (ConformalRegressor, {'method': 'jackknife_minmax'}),
            'cv': (ConformalRegressor, {'method': 'cv'}),
            'cv_plus': (ConformalRegressor, {'method': 'cv_plus'}),
            'cv_minmax': (ConformalRegressor, {'method': 'cv_minmax'}),
        },
        'inductive': {
            'simple_inductive': (ConformalRegressor, {'method': 'split'}),
        },
    },
    'classification': {
        'transductive': {
            'naive': (ConformalClassifier, {'method': 'naive'}),
        },
        'inductive': {
            'simple_inductive': (
                ConformalClassifier, {'method': 'split', 'heuristic': 'simple'}
            ),
            'adaptive_inductive': (
                ConformalClassifier, {'method': 'split', 'heuristic': 'adaptive'}
            ),
        },
    },
}


def conformal_model(
    model: BaseEstimator,
    coverage: float = 0.95,
    method: Optional[str] = None,
    **kwargs
) -> ConformalModel:
    """
    Build the conformal model matching an estimator and a method name.

    Parameters
    ----------
    model : BaseEstimator
        Classifiers (per ``sklearn.base.is_classifier``) get a
        :class:`ConformalClassifier`, anything else a
        :class:`ConformalRegressor`.
    coverage : float, optional (default=0.95)
    method : str, optional
        A resampling method (``'split'``, ``'jackknife+'``, ...) or a name
        from :data:`AVAILABLE_MODELS` (``'adaptive_inductive'``, ...).
        Defaults to ``'simple_inductive'``.
    **kwargs
        Forwarded to the model constructor; they override registry defaults.

    Examples
    --------
    >>> from sklearn.linear_model import LinearRegression
    >>> conformal_model(LinearRegression(), method='cv+')
    ConformalRegressor(model=LinearRegression(), coverage=0.95, method='cv_plus', heuristic='absolute_residual')
    """
    task = 'classification' if is_classifier(model) else 'regression'
    registry = {
        name: entry
        for family in AVAILABLE_MODELS[task].values()
        for name, entry in family.items()
    }

    if method is None:
        method = 'simple_inductive'

    key = str(method)
    if key not in registry:
        key = Method.parse(method).value
        if key == Method.SPLIT.value:
            key = 'simple_inductive'
    if key not in registry:
        raise ConfigurationError(
            f"Method {method!r} is not available for {task}. "
            f"Available: {sorted(registry)}"
        )

    cls, defaults = registry[key]
    options = {**defaults, **kwargs}
    return cls(model, coverage=coverage, **options)


def _n_rows(X: Any) -> int:
    if hasattr(X, 'shape'):
        return int(X.shape[0])
    return len(X)
