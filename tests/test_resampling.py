"""
Unit Tests for Resampling Strategies
====================================
"""

import pickle

import numpy as np
import pytest
from sklearn.linear_model import LinearRegression

from conformalmodels.exceptions import (
    BasePredictorFailure,
    ConfigurationError,
    InsufficientDataError,
)
from conformalmodels.resampling import (
    Method,
    ResamplingStrategy,
    fit_estimator,
    fit_partitions,
)

from conftest import FailingRegressor


# ============================================================================
# Test 1: Method Names
# ============================================================================

@pytest.mark.parametrize("name,expected", [
    ('naive', Method.NAIVE),
    ('split', Method.SPLIT),
    ('simple_inductive', Method.SPLIT),
    ('jackknife', Method.JACKKNIFE),
    ('jackknife+', Method.JACKKNIFE_PLUS),
    ('jackknife-minmax', Method.JACKKNIFE_MINMAX),
    ('cv+', Method.CV_PLUS),
    ('cv-minmax', Method.CV_MINMAX),
    ('CV_PLUS', Method.CV_PLUS),
])
def test_method_parse(name, expected):
    assert Method.parse(name) is expected


def test_method_parse_unknown():
    with pytest.raises(ConfigurationError):
        Method.parse('bootstrap')


# ============================================================================
# Test 2: Configuration
# ============================================================================

@pytest.mark.parametrize("train_ratio", [0.0, 1.0, -0.5, 1.5])
def test_invalid_train_ratio(train_ratio):
    with pytest.raises(ConfigurationError):
        ResamplingStrategy('split', train_ratio=train_ratio)


@pytest.mark.parametrize("n_folds", [0, 1, 2.5])
def test_invalid_fold_count(n_folds):
    with pytest.raises(ConfigurationError):
        ResamplingStrategy('cv_plus', n_folds=n_folds)


def test_strategy_is_immutable():
    strategy = ResamplingStrategy('split')

    with pytest.raises(AttributeError):
        strategy.train_ratio = 0.8


def test_strategy_flags():
    assert ResamplingStrategy('jackknife+').is_asymmetric
    assert ResamplingStrategy('cv-minmax').is_minmax
    assert ResamplingStrategy('cv').needs_full_model
    assert not ResamplingStrategy('split').needs_full_model


# ============================================================================
# Test 3: Partitions
# ============================================================================

def test_split_partition_is_disjoint_and_complete():
    """Training and calibration indices cover every row exactly once."""
    partition, = ResamplingStrategy('split', train_ratio=0.7).partitions(20)

    assert len(partition.train_idx) == 14
    assert len(partition.calib_idx) == 6
    assert set(partition.train_idx).isdisjoint(partition.calib_idx)
    assert sorted(np.concatenate([partition.train_idx, partition.calib_idx])) == list(range(20))


def test_split_partition_is_seeded():
    first, = ResamplingStrategy('split', random_seed=1).partitions(30)
    second, = ResamplingStrategy('split', random_seed=1).partitions(30)

    np.testing.assert_array_equal(first.calib_idx, second.calib_idx)


def test_split_keeps_one_row_on_each_side():
    """Extreme ratios on tiny data still leave a training and a calibration row."""
    partition, = ResamplingStrategy('split', train_ratio=0.01).partitions(2)

    assert len(partition.train_idx) == 1
    assert len(partition.calib_idx) == 1


def test_jackknife_partitions_leave_one_out():
    partitions = ResamplingStrategy('jackknife+').partitions(5)

    assert len(partitions) == 5
    for i, partition in enumerate(partitions):
        assert partition.name == i
        assert list(partition.calib_idx) == [i]
        assert i not in partition.train_idx
        assert len(partition.train_idx) == 4


def test_cv_partitions_cover_every_row_once():
    partitions = ResamplingStrategy('cv_plus', n_folds=4).partitions(10)

    held_out = np.concatenate([p.calib_idx for p in partitions])
    assert len(partitions) == 4
    assert sorted(held_out) == list(range(10))
    assert [p.name for p in partitions] == [0, 1, 2, 3]


def test_naive_partition_is_in_sample():
    with pytest.warns(UserWarning, match="does not guarantee"):
        partition, = ResamplingStrategy('naive').partitions(6)

    np.testing.assert_array_equal(partition.train_idx, partition.calib_idx)


@pytest.mark.parametrize("method", ['naive', 'split', 'jackknife', 'cv_plus'])
def test_single_observation_is_insufficient(method):
    with pytest.raises(InsufficientDataError):
        ResamplingStrategy(method).partitions(1)


def test_fewer_rows_than_folds_is_insufficient():
    with pytest.raises(InsufficientDataError, match="5 folds"):
        ResamplingStrategy('cv_minmax', n_folds=5).partitions(4)


# ============================================================================
# Test 4: Base Predictor Boundary
# ============================================================================

def test_fit_estimator_clones():
    """The template estimator is never fitted in place."""
    template = LinearRegression()
    X = np.arange(10, dtype=float).reshape(-1, 1)

    fitted = fit_estimator(template, X, 2 * X.ravel())

    assert fitted is not template
    assert not hasattr(template, 'coef_')
    assert fitted.coef_[0] == pytest.approx(2.0)


def test_fit_failure_names_partition():
    X = np.zeros((4, 1))

    with pytest.raises(BasePredictorFailure) as excinfo:
        fit_estimator(FailingRegressor(), X, np.zeros(4), partition=3)

    assert excinfo.value.stage == 'fit'
    assert excinfo.value.partition == 3
    assert isinstance(excinfo.value.__cause__, ValueError)


def test_fit_partitions_aborts_on_failing_fold():
    """One degenerate partition fails the whole fit."""
    X = np.zeros((10, 1))
    y = np.zeros(10)
    partitions = ResamplingStrategy('cv_plus', n_folds=5).partitions(10)

    with pytest.raises(BasePredictorFailure, match="stage=fit"):
        fit_partitions(FailingRegressor(min_rows=9), X, y, partitions)


def test_fit_partitions_parallel_matches_sequential():
    rng = np.random.default_rng(0)
    X = rng.normal(size=(30, 2))
    y = X @ np.array([1.0, -1.0]) + rng.normal(size=30)
    partitions = ResamplingStrategy('cv_plus', n_folds=3).partitions(30)

    sequential = fit_partitions(LinearRegression(), X, y, partitions)
    parallel = fit_partitions(LinearRegression(), X, y, partitions, n_jobs=2)

    for (_, expected), (_, actual) in zip(sequential, parallel):
        np.testing.assert_allclose(actual, expected)


def test_base_predictor_failure_survives_pickling():
    """Worker processes send failures back pickled."""
    error = BasePredictorFailure("boom", stage='predict', partition='train')

    restored = pickle.loads(pickle.dumps(error))

    assert restored.stage == 'predict'
    assert restored.partition == 'train'
    assert str(restored) == str(error)
