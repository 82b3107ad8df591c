"""Abstract interfaces for model specifications and fitted models.

A model specification is a named, pure callable that turns a training
DataFrame into a `FittedModel`. Specifications hold only their configuration
(formula and hyperparameters), never state from a previous fit, so the same
specification object can be reused by every trial and shipped to worker
processes.

Example
-------
```python
class MedianBaseline(ModelSpec):
    name = "median"

    def fit(self, train: pd.DataFrame) -> FittedModel:
        ...
```
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Sequence
import re

import numpy as np
import pandas as pd

from resampleval.errors import ConfigurationError


_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")


def parse_formula(formula: str) -> tuple[str, tuple[str, ...]]:
    """Split an R-style formula ``"y ~ x1 + x2"`` into target and features.

    ``"y ~ 1"`` denotes an intercept-only model with no features.

    Raises
    ------
    ConfigurationError
        If the formula is malformed.
    """

    if formula.count("~") != 1:
        raise ConfigurationError(f"Formula must contain exactly one '~': {formula!r}")
    lhs, rhs = (part.strip() for part in formula.split("~"))
    if not _IDENTIFIER.match(lhs):
        raise ConfigurationError(f"Invalid response in formula {formula!r}")
    if rhs == "1":
        return lhs, ()
    terms = [t.strip() for t in rhs.split("+")]
    if not terms or any(not _IDENTIFIER.match(t) for t in terms):
        raise ConfigurationError(f"Invalid predictors in formula {formula!r}")
    if lhs in terms:
        raise ConfigurationError(f"Response {lhs!r} also appears as a predictor")
    if len(set(terms)) != len(terms):
        raise ConfigurationError(f"Duplicate predictors in formula {formula!r}")
    return lhs, tuple(terms)


def design_matrix(
    frame: pd.DataFrame,
    features: Sequence[str],
    columns: Sequence[str] | None = None,
) -> pd.DataFrame:
    """Return the float design matrix for ``features``.

    Categorical features are one-hot encoded with the first level dropped.
    When ``columns`` is given (the training design's columns) the result is
    aligned to it, filling absent dummy columns with zeros; the baseline
    level then falls out in the alignment.
    """

    X = pd.get_dummies(frame.loc[:, list(features)], drop_first=columns is None, dtype=float)
    if columns is not None:
        X = X.reindex(columns=list(columns), fill_value=0.0)
    return X.astype(float)


class FittedModel(ABC):
    """Immutable handle to a model fitted on one training subset.

    Parameters
    ----------
    name:
        Model family identifier (e.g., "linear", "spline").
    target:
        Response column.
    features:
        Predictor columns used at fit time.
    n_train:
        Number of training rows.
    """

    def __init__(self, *, name: str, target: str, features: tuple[str, ...], n_train: int) -> None:
        self.name: str = name
        self.target: str = target
        self.features: tuple[str, ...] = features
        self.n_train: int = n_train

    @abstractmethod
    def predict(self, frame: pd.DataFrame) -> np.ndarray:
        """Return predictions of ``target`` for the rows of ``frame``."""

    @property
    def params(self) -> dict[str, float]:
        """Fitted parameters by name. Empty for non-parametric fits."""

        return {}

    @property
    def required_columns(self) -> tuple[str, ...]:
        return (self.target, *self.features)

    def to_dict(self) -> dict[str, Any]:
        return {
            "model_type": self.name,
            "target": self.target,
            "features": list(self.features),
            "n_train": self.n_train,
            "params": self.params,
        }


class ModelSpec(ABC):
    """Named model-fitting function ``(train) -> FittedModel``.

    Parameters
    ----------
    formula:
        R-style formula naming the response and predictors.
    """

    name: str = "model"
    requires_features: bool = True

    def __init__(self, formula: str) -> None:
        self.formula: str = formula
        self.target, self.features = parse_formula(formula)
        if self.requires_features and not self.features:
            raise ConfigurationError(f"{type(self).__name__} needs at least one predictor: {formula!r}")

    @abstractmethod
    def fit(self, train: pd.DataFrame) -> FittedModel:
        """Fit the model on ``train`` and return a new fitted handle."""

    def __call__(self, train: pd.DataFrame) -> FittedModel:
        return self.fit(train)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.formula!r})"

    def to_dict(self) -> dict[str, Any]:
        return {"model_type": self.name, "formula": self.formula}

    def _response(self, train: pd.DataFrame) -> np.ndarray:
        if len(train) == 0:
            raise ValueError("Training set is empty.")
        y = train[self.target].to_numpy(dtype=float)
        if not np.all(np.isfinite(y)):
            raise ValueError(f"Response {self.target!r} contains missing or non-finite values.")
        return y
