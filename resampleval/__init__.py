"""
resampleval: Resampling evaluation of regression and smoothing models.

Repeated train/test splits, k-fold and bootstrap resampling drive a harness
that fits named model specifications to each resample and collects one
metric per (trial, model) pair for model selection and variability
estimates.
"""

__all__ = [
    "Config",
    "RANDOM_SEED",
    "__version__",
    # Errors
    "ConfigurationError",
    "FitFailure",
    "ScoringError",
    # Data and resampling (eager imports; lightweight)
    "Dataset",
    "Schema",
    "SplitStrategy",
    "BootstrapStrategy",
    "KFoldStrategy",
    # Harness and models (lazy-imported via __getattr__)
    "run_harness",
    "HarnessResult",
    "OrdinaryLeastSquares",
    "SplineRegression",
    "MeanBaseline",
    "rmse",
    "summarize_results",
]

__version__ = "0.1.0"

from typing import Any

from resampleval.config import Config, RANDOM_SEED
from resampleval.errors import ConfigurationError, FitFailure, ScoringError
from resampleval.dataset import Dataset, Schema
from resampleval.resampling import SplitStrategy, BootstrapStrategy, KFoldStrategy


def __getattr__(name: str) -> Any:  # lazy attribute access to avoid importing scikit-learn eagerly
    if name in {"run_harness", "HarnessResult"}:
        from resampleval import harness as _harness

        return getattr(_harness, name)
    if name in {"OrdinaryLeastSquares", "MeanBaseline"}:
        from resampleval.models import linear as _linear

        return getattr(_linear, name)
    if name == "SplineRegression":
        from resampleval.models.smoothing import SplineRegression as _SR

        return _SR
    if name == "rmse":
        from resampleval.scoring import rmse as _rmse

        return _rmse
    if name == "summarize_results":
        from resampleval.summary import summarize_results as _sr

        return _sr
    raise AttributeError(f"module 'resampleval' has no attribute {name!r}")
