"""
Nonconformity Scores

Pluggable scoring rules mapping a (true value, prediction) pair to a scalar
"strangeness". Every scorer shares the same call contract so that a model can
pick one by name at construction time.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional, Type, Union

import numpy as np
from numpy.typing import ArrayLike

from .exceptions import ConfigurationError


class NonconformityScore(ABC):
    """Abstract base class for nonconformity scores."""

    name: str = None
    task: str = None

    @abstractmethod
    def score(
        self,
        y_true: ArrayLike,
        predicted: ArrayLike,
        classes: Optional[ArrayLike] = None
    ) -> np.ndarray:
        """
        Compute one nonconformity score per observation.

        Parameters
        ----------
        y_true : array-like, shape (n,)
            True targets or labels.
        predicted : array-like
            Point predictions, shape (n,), or class probabilities,
            shape (n, n_classes).
        classes : array-like, shape (n_classes,), optional
            Label order of the probability columns (classification only).

        Returns
        -------
        scores : np.ndarray, shape (n,)
        """

    def __repr__(self):
        return f"{self.__class__.__name__}()"


class AbsoluteResidual(NonconformityScore):
    """Absolute residual score for regression: |y - ŷ|."""

    name = 'absolute_residual'
    task = 'regression'

    def score(self, y_true, predicted, classes=None):
        y_true = np.asarray(y_true, dtype=float).ravel()
        predicted = np.asarray(predicted, dtype=float).ravel()

        if y_true.shape != predicted.shape:
            raise ValueError(
                f"Length mismatch: y_true ({len(y_true)}) vs "
                f"predicted ({len(predicted)})"
            )
        return np.abs(y_true - predicted)


class ClassificationScore(NonconformityScore):
    """
    Base for scores over a finite label space.

    Subclasses define :meth:`label_scores`, the score every candidate label
    would get; the score of the true label is read off that matrix. True
    labels the model cannot score (unknown to the model, or with an undefined
    probability) get the maximal score 1.0.
    """

    task = 'classification'

    @abstractmethod
    def label_scores(self, probabilities: ArrayLike) -> np.ndarray:
        """Score of every candidate label, shape (n, n_classes). NaN if undefined."""

    def score(self, y_true, predicted, classes=None):
        if classes is None:
            raise ValueError("classes are required to score class probabilities")

        probabilities = _as_probability_matrix(predicted)
        y_true = np.asarray(y_true).ravel()
        if len(y_true) != probabilities.shape[0]:
            raise ValueError(
                f"Length mismatch: y_true ({len(y_true)}) vs "
                f"predicted ({probabilities.shape[0]})"
            )

        column = {label: j for j, label in enumerate(np.asarray(classes).tolist())}
        all_scores = self.label_scores(probabilities)

        scores = np.ones(len(y_true))
        for i, label in enumerate(y_true.tolist()):
            j = column.get(label)
            if j is not None and not np.isnan(all_scores[i, j]):
                scores[i] = all_scores[i, j]

        return scores


class SimpleScore(ClassificationScore):
    """One minus the probability assigned to the label: 1 - p̂(y)."""

    name = 'simple'

    def label_scores(self, probabilities):
        return 1.0 - _as_probability_matrix(probabilities)


class AdaptiveScore(ClassificationScore):
    """
    Cumulative (APS-style) score.

    Class probabilities are sorted in descending order and summed up to and
    including the label's rank. Equal probabilities keep the order of the
    label space (a stable sort over ``classes_``, which scikit-learn keeps
    sorted), so ties are resolved lexicographically by label.
    """

    name = 'adaptive'

    def label_scores(self, probabilities):
        probabilities = _as_probability_matrix(probabilities)
        undefined = np.isnan(probabilities)
        filled = np.where(undefined, 0.0, probabilities)

        order = np.argsort(-filled, axis=1, kind='stable')
        cumulative = np.cumsum(np.take_along_axis(filled, order, axis=1), axis=1)

        scores = np.empty_like(cumulative)
        np.put_along_axis(scores, order, cumulative, axis=1)
        scores[undefined] = np.nan

        return scores


HEURISTICS: Dict[str, Type[NonconformityScore]] = {
    'absolute_residual': AbsoluteResidual,
    'simple': SimpleScore,
    'adaptive': AdaptiveScore,
}


def get_heuristic(
    heuristic: Union[str, NonconformityScore],
    task: str
) -> NonconformityScore:
    """
    Resolve a heuristic name (or instance) for the given task.

    Raises
    ------
    ConfigurationError
        If the name is unknown or the heuristic belongs to another task.
    """
    if isinstance(heuristic, NonconformityScore):
        scorer = heuristic
    elif heuristic in HEURISTICS:
        scorer = HEURISTICS[heuristic]()
    else:
        raise ConfigurationError(
            f"Unknown heuristic {heuristic!r}. "
            f"Available: {sorted(HEURISTICS)}"
        )

    if scorer.task != task:
        raise ConfigurationError(
            f"Heuristic {scorer.name!r} is for {scorer.task}, not {task}"
        )
    return scorer


def _as_probability_matrix(predicted: ArrayLike) -> np.ndarray:
    probabilities = np.asarray(predicted, dtype=float)
    if probabilities.ndim == 1:
        probabilities = probabilities.reshape(1, -1)
    if probabilities.ndim != 2:
        raise ValueError(
            f"Expected probabilities of shape (n, n_classes), "
            f"got {probabilities.shape}"
        )
    return probabilities
