"""
conformalmodels: Distribution-Free Conformal Prediction

Wrap any scikit-learn compatible regressor or classifier to obtain prediction
intervals or label sets that contain the true outcome with a chosen marginal
probability, assuming only exchangeable data.
"""

from .version import __version__, __author__, __description__
from .exceptions import (
    BasePredictorFailure,
    ConfigurationError,
    ConformalError,
    InsufficientDataError,
    UncalibratedStateError,
)
from .models import (
    AVAILABLE_MODELS,
    ConformalClassifier,
    ConformalModel,
    ConformalRegressor,
    conformal_model,
)
from .regions import Interval, PredictionSet
from .resampling import Method, ResamplingStrategy

__all__ = [
    'ConformalModel',
    'ConformalRegressor',
    'ConformalClassifier',
    'conformal_model',
    'AVAILABLE_MODELS',
    'Interval',
    'PredictionSet',
    'Method',
    'ResamplingStrategy',
    'ConformalError',
    'ConfigurationError',
    'InsufficientDataError',
    'UncalibratedStateError',
    'BasePredictorFailure',
    '__version__',
    '__author__',
    '__description__',
]
