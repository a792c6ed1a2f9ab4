"""Shared fixtures and stub estimators for the conformalmodels test suite."""

import numpy as np
import pandas as pd
import pytest
from sklearn.base import BaseEstimator, ClassifierMixin, RegressorMixin
from sklearn.datasets import make_blobs


class PassthroughProbaClassifier(ClassifierMixin, BaseEstimator):
    """Classifier whose predicted probabilities are the input rows themselves."""

    def __init__(self, classes=('A', 'B', 'C')):
        self.classes = classes

    def fit(self, X, y):
        self.classes_ = np.asarray(self.classes)
        return self

    def predict_proba(self, X):
        return np.asarray(X, dtype=float)

    def predict(self, X):
        return self.classes_[np.nanargmax(self.predict_proba(X), axis=1)]


class FailingRegressor(RegressorMixin, BaseEstimator):
    """Regressor that fails to fit when it sees fewer rows than `min_rows`."""

    def __init__(self, min_rows=10**6):
        self.min_rows = min_rows

    def fit(self, X, y):
        if len(y) < self.min_rows:
            raise ValueError(f"need {self.min_rows} rows, got {len(y)}")
        self.mean_ = float(np.mean(y))
        return self

    def predict(self, X):
        return np.full(len(X), self.mean_)


def generate_linear_data(n, seed=0, noise=1.0):
    """y = X @ beta + N(0, noise^2) with 3 standard normal features."""
    rng = np.random.default_rng(seed)
    X = rng.normal(size=(n, 3))
    beta = np.array([1.5, -2.0, 0.5])
    y = X @ beta + rng.normal(scale=noise, size=n)
    return X, y


@pytest.fixture
def linear_data():
    """100 training and 50 test observations from a linear model."""
    X, y = generate_linear_data(150, seed=42)
    return X[:100], y[:100], X[100:], y[100:]


@pytest.fixture
def linear_frame(linear_data):
    """The training data of `linear_data` as a DataFrame with a custom index."""
    X_train, y_train, X_test, _ = linear_data
    columns = ['x1', 'x2', 'x3']
    train = pd.DataFrame(X_train, columns=columns, index=np.arange(100) + 1000)
    test = pd.DataFrame(X_test, columns=columns, index=np.arange(50) + 5000)
    return train, pd.Series(y_train, index=train.index), test


@pytest.fixture
def blob_data():
    """Three overlapping Gaussian classes: 300 training and 100 test points."""
    X, y = make_blobs(
        n_samples=400, centers=3, cluster_std=2.5, random_state=7
    )
    return X[:300], y[:300], X[300:], y[300:]
