"""Resampling strategies: repeated random splits, bootstrap, and k-fold.

Each strategy turns a `Dataset` into a fresh (train, evaluation) pair for one
trial. Randomness is never shared between trials: every trial draws from its
own generator seeded with ``(seed, trial)``, so a run is reproducible no
matter which order (or which worker) the trials execute in.

Rounding rule
-------------
Split sizes round half up: ``floor(n * fraction + 0.5)``. A 221-row dataset
with ``fraction=0.8`` trains on 177 rows and evaluates on 44.

References
----------
- Efron, B., & Tibshirani, R. J. (1993). An Introduction to the Bootstrap.
- James, G., Witten, D., Hastie, T., & Tibshirani, R. (2013). An Introduction
  to Statistical Learning, ch. 5.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any
import math

import numpy as np
import pandas as pd

from resampleval.config import Config
from resampleval.dataset import Dataset
from resampleval.errors import ConfigurationError


@dataclass(frozen=True)
class Resample:
    """Training and evaluation subsets drawn for a single trial."""

    trial: int
    train: pd.DataFrame
    evaluation: pd.DataFrame


def trial_rng(seed: int, trial: int) -> np.random.Generator:
    """Return the independent random generator for ``trial`` under ``seed``."""

    return np.random.default_rng([int(seed), int(trial)])


def split_size(n_rows: int, fraction: float) -> int:
    """Number of training rows for a ``fraction`` split (round half up)."""

    return int(math.floor(n_rows * fraction + 0.5))


class ResamplingStrategy(ABC):
    """Abstract base class for resampling strategies."""

    name: str = "strategy"

    def validate(self, dataset: Dataset) -> None:
        """Check that the strategy can be applied to ``dataset``.

        Raises
        ------
        ConfigurationError
            If the strategy parameters are incompatible with the dataset.
        """

    @abstractmethod
    def resample(self, dataset: Dataset, *, seed: int, trial: int) -> Resample:
        """Draw the (train, evaluation) pair for ``trial``."""

    def to_dict(self) -> dict[str, Any]:
        return {"strategy": self.name}


@dataclass(frozen=True)
class SplitStrategy(ResamplingStrategy):
    """Simple random sample without replacement; evaluate on the complement.

    Parameters
    ----------
    fraction:
        Share of rows used for training, in (0, 1).
    """

    fraction: float = Config.DEFAULT_SPLIT_FRACTION
    name: str = "split"

    def validate(self, dataset: Dataset) -> None:
        if not (0.0 < self.fraction < 1.0):
            raise ConfigurationError(f"Split fraction must be in (0, 1), got {self.fraction}")
        n = len(dataset)
        k = split_size(n, self.fraction)
        if k < 1 or k > n - 1:
            raise ConfigurationError(
                f"Split fraction {self.fraction} leaves an empty train or evaluation set for {n} rows."
            )

    def resample(self, dataset: Dataset, *, seed: int, trial: int) -> Resample:
        rng = trial_rng(seed, trial)
        frame = dataset.frame
        positions = rng.choice(len(frame), size=split_size(len(frame), self.fraction), replace=False)
        train = frame.iloc[positions].reset_index(drop=True)
        held_out = ~dataset.ids.isin(train[dataset.id_column])
        evaluation = frame.loc[held_out].reset_index(drop=True)
        return Resample(trial=trial, train=train, evaluation=evaluation)

    def to_dict(self) -> dict[str, Any]:
        return {"strategy": self.name, "fraction": self.fraction, "rounding": "half_up"}


@dataclass(frozen=True)
class BootstrapStrategy(ResamplingStrategy):
    """Draw ``len(dataset)`` rows with replacement.

    Parameters
    ----------
    holdout:
        Optional independent evaluation set. When omitted the full original
        dataset is the evaluation set, which is the usual setting for
        estimating the variability of a statistic.
    """

    holdout: Dataset | None = None
    name: str = "bootstrap"

    def validate(self, dataset: Dataset) -> None:
        if self.holdout is not None:
            dataset.check_compatible(self.holdout)

    def resample(self, dataset: Dataset, *, seed: int, trial: int) -> Resample:
        rng = trial_rng(seed, trial)
        frame = dataset.frame
        positions = rng.integers(0, len(frame), size=len(frame))
        train = frame.iloc[positions].reset_index(drop=True)
        source = self.holdout.frame if self.holdout is not None else frame
        return Resample(trial=trial, train=train, evaluation=source.copy())

    def to_dict(self) -> dict[str, Any]:
        return {"strategy": self.name, "holdout": self.holdout is not None}


@dataclass(frozen=True)
class KFoldStrategy(ResamplingStrategy):
    """Repeated k-fold cross-validation, one fold per trial.

    Trial ``t`` (1-based) evaluates on fold ``(t - 1) % n_folds`` of the
    permutation drawn for repeat ``(t - 1) // n_folds``. Any trial can be
    reproduced on its own from ``(seed, t)``.
    """

    n_folds: int = Config.DEFAULT_N_FOLDS
    name: str = "kfold"

    def validate(self, dataset: Dataset) -> None:
        if int(self.n_folds) != self.n_folds or self.n_folds < 2:
            raise ConfigurationError(f"n_folds must be an integer >= 2, got {self.n_folds}")
        if self.n_folds > len(dataset):
            raise ConfigurationError(
                f"n_folds ({self.n_folds}) cannot exceed the number of rows ({len(dataset)})."
            )

    def resample(self, dataset: Dataset, *, seed: int, trial: int) -> Resample:
        repeat, fold = divmod(trial - 1, self.n_folds)
        # Folds of one repeat share a permutation, keyed by repeat not trial
        rng = np.random.default_rng([int(seed), int(repeat), int(self.n_folds)])
        frame = dataset.frame
        folds = np.array_split(rng.permutation(len(frame)), self.n_folds)
        eval_positions = np.sort(folds[fold])
        train_positions = np.sort(np.concatenate([f for i, f in enumerate(folds) if i != fold]))
        return Resample(
            trial=trial,
            train=frame.iloc[train_positions].reset_index(drop=True),
            evaluation=frame.iloc[eval_positions].reset_index(drop=True),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"strategy": self.name, "n_folds": self.n_folds}


def make_strategy(
    name: str,
    *,
    fraction: float | None = None,
    n_folds: int | None = None,
    holdout: Dataset | None = None,
) -> ResamplingStrategy:
    """Build a strategy by name (``split``, ``bootstrap`` or ``kfold``)."""

    key = name.strip().lower()
    if key == "split":
        return SplitStrategy(fraction=fraction if fraction is not None else Config.DEFAULT_SPLIT_FRACTION)
    if key == "bootstrap":
        return BootstrapStrategy(holdout=holdout)
    if key == "kfold":
        return KFoldStrategy(n_folds=n_folds if n_folds is not None else Config.DEFAULT_N_FOLDS)
    raise ConfigurationError(f"Unknown resampling strategy: {name!r}")


__all__ = [
    "Resample",
    "ResamplingStrategy",
    "SplitStrategy",
    "BootstrapStrategy",
    "KFoldStrategy",
    "trial_rng",
    "split_size",
    "make_strategy",
]
