"""Scoring functions ``(fitted_model, evaluation_frame) -> float``.

Error metrics compare predictions with the observed response on the
evaluation set. `Coefficient` instead reads a fitted parameter, which turns
the bootstrap harness into a sampling-variability estimator for regression
coefficients.

Every scorer validates the evaluation frame first: an empty set, or one that
lacks a column the fitted model needs, raises `ScoringError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import numpy as np
import pandas as pd
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score

from resampleval.errors import ConfigurationError, ScoringError
from resampleval.models.base import FittedModel


Scorer = Callable[[FittedModel, pd.DataFrame], float]


def check_evaluation_frame(model: FittedModel, evaluation: pd.DataFrame) -> None:
    """Raise `ScoringError` if ``evaluation`` cannot be scored for ``model``."""

    if evaluation is None or len(evaluation) == 0:
        raise ScoringError("Evaluation set is empty.")
    missing = [c for c in model.required_columns if c not in evaluation.columns]
    if missing:
        raise ScoringError(f"Evaluation set is missing columns required by {model.name!r}: {missing}")


def _observed_and_predicted(model: FittedModel, evaluation: pd.DataFrame) -> tuple[np.ndarray, np.ndarray]:
    check_evaluation_frame(model, evaluation)
    observed = evaluation[model.target].to_numpy(dtype=float)
    predicted = np.asarray(model.predict(evaluation), dtype=float)
    return observed, predicted


def rmse(model: FittedModel, evaluation: pd.DataFrame) -> float:
    """Root-mean-squared error of predictions on ``evaluation``."""

    observed, predicted = _observed_and_predicted(model, evaluation)
    return float(np.sqrt(mean_squared_error(observed, predicted)))


def mae(model: FittedModel, evaluation: pd.DataFrame) -> float:
    """Mean absolute error of predictions on ``evaluation``."""

    observed, predicted = _observed_and_predicted(model, evaluation)
    return float(mean_absolute_error(observed, predicted))


def r_squared(model: FittedModel, evaluation: pd.DataFrame) -> float:
    """Coefficient of determination on ``evaluation`` (needs >= 2 rows)."""

    observed, predicted = _observed_and_predicted(model, evaluation)
    if len(observed) < 2:
        raise ValueError("R^2 is undefined for fewer than two evaluation rows.")
    return float(r2_score(observed, predicted))


@dataclass(frozen=True)
class Coefficient:
    """Read the fitted parameter ``name`` (e.g. ``"x"`` or ``"intercept"``).

    The evaluation set is still validated so that a misconfigured run fails
    the same way for every scorer.
    """

    name: str

    @property
    def label(self) -> str:
        return f"coef:{self.name}"

    def __call__(self, model: FittedModel, evaluation: pd.DataFrame) -> float:
        check_evaluation_frame(model, evaluation)
        params = model.params
        if self.name not in params:
            raise KeyError(f"Model {model.name!r} has no parameter {self.name!r}; available: {sorted(params)}")
        return float(params[self.name])


SCORERS: dict[str, Scorer] = {
    "rmse": rmse,
    "mae": mae,
    "r2": r_squared,
}


def get_scorer(name: str) -> Scorer:
    """Resolve ``rmse``, ``mae``, ``r2`` or ``coef:<parameter>``."""

    key = name.strip()
    if key.lower().startswith("coef:"):
        param = key.split(":", 1)[1].strip()
        if not param:
            raise ConfigurationError("coef scorer needs a parameter name, e.g. coef:x")
        return Coefficient(param)
    scorer = SCORERS.get(key.lower())
    if scorer is None:
        raise ConfigurationError(f"Unknown scorer {name!r}; choose from {sorted(SCORERS)} or coef:<name>")
    return scorer


def scorer_name(scorer: Scorer) -> str:
    """Label used for the metric in reports."""

    if isinstance(scorer, Coefficient):
        return scorer.label
    return str(getattr(scorer, "__name__", type(scorer).__name__))


__all__ = [
    "Scorer",
    "check_evaluation_frame",
    "rmse",
    "mae",
    "r_squared",
    "Coefficient",
    "get_scorer",
    "scorer_name",
]
