"""Centralized configuration for reproducible resampling experiments.

Defines immutable defaults for random seeds, trial counts, resampling
strategies, spline smoothing, and output paths so that every run of the
harness is deterministic across environments.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class Config:
    """Immutable configuration defaults for the project."""

    # Random seeds
    RANDOM_SEED: int = 42

    # Harness defaults
    DEFAULT_N_TRIALS: int = 100
    DEFAULT_FAILURE_POLICY: str = "skip"
    DEFAULT_EXECUTOR: str = "sequential"

    # Resampling strategies
    DEFAULT_STRATEGY: str = "split"
    DEFAULT_SPLIT_FRACTION: float = 0.8
    DEFAULT_N_FOLDS: int = 5
    ROW_ID_COLUMN: str = "row_id"

    # Spline smoother hyperparameters
    DEFAULT_SPLINE_KNOTS: int = 5
    DEFAULT_SPLINE_DEGREE: int = 3
    DEFAULT_SPLINE_ALPHA: float = 1e-3

    # Summary settings
    DEFAULT_CONFIDENCE_LEVEL: float = 0.95
    DEFAULT_SCORE: str = "rmse"

    # Output paths
    RESULTS_DIR: Path = Path("results")


# Convenience re-exports and constants
RANDOM_SEED: int = Config.RANDOM_SEED
FAILURE_POLICIES: tuple[str, ...] = ("skip", "abort")
EXECUTORS: tuple[str, ...] = ("sequential", "thread", "process")
STRATEGIES: tuple[str, ...] = ("split", "bootstrap", "kfold")


_CONFIG_SINGLETON: Optional[Config] = None


def get_config() -> Config:
    """Return a singleton `Config` instance."""

    global _CONFIG_SINGLETON
    if _CONFIG_SINGLETON is None:
        _CONFIG_SINGLETON = Config()
    return _CONFIG_SINGLETON
