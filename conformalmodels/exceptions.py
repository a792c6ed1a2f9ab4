"""
Exceptions raised by conformal models.

Each error subclasses the builtin it refines, so code written against
``ValueError``/``RuntimeError`` keeps working.
"""

from typing import Optional, Union


class ConformalError(Exception):
    """Base class for all conformalmodels errors."""


class ConfigurationError(ConformalError, ValueError):
    """Invalid construction-time configuration (coverage, folds, ratio, method)."""


class InsufficientDataError(ConformalError, ValueError):
    """Too few observations for the chosen resampling strategy."""


class UncalibratedStateError(ConformalError, RuntimeError):
    """Prediction requested before a calibration score set exists."""


class BasePredictorFailure(ConformalError, RuntimeError):
    """
    Failure raised by the underlying predictor during fit or predict.

    Parameters
    ----------
    message : str
        Description of the failure, usually the original error text.
    stage : str, optional
        Lifecycle stage that failed, ``'fit'`` or ``'predict'``.
    partition : int or str, optional
        Partition whose model failed (fold number, left-out index,
        ``'train'`` or ``'full'``).
    """

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        partition: Optional[Union[int, str]] = None
    ):
        self.message = message
        self.stage = stage
        self.partition = partition

        context = []
        if stage is not None:
            context.append(f"stage={stage}")
        if partition is not None:
            context.append(f"partition={partition}")

        if context:
            super().__init__(f"Base predictor failed ({', '.join(context)}): {message}")
        else:
            super().__init__(f"Base predictor failed: {message}")

    def __reduce__(self):
        # joblib ships worker exceptions back by pickling them
        return (self.__class__, (self.message, self.stage, self.partition))
