"""Version information for conformalmodels."""

__version__ = "0.1.0"
__author__ = "conformalmodels contributors"
__email__ = "conformalmodels@users.noreply.github.com"
__description__ = (
    "Distribution-free conformal prediction regions around any "
    "scikit-learn compatible predictor"
)
__url__ = "https://github.com/conformalmodels/conformalmodels"
