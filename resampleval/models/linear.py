"""Ordinary least squares and mean-baseline regression models.

OLS is fitted with scikit-learn's `LinearRegression`. Unlike the solver,
which silently returns a minimum-norm solution, `OrdinaryLeastSquares`
refuses rank-deficient designs so that a degenerate resample surfaces as a
fit failure instead of an arbitrary coefficient.
"""

from __future__ import annotations

from typing import Any

import numpy as np
import pandas as pd
from sklearn.linear_model import LinearRegression

from resampleval.models.base import FittedModel, ModelSpec, design_matrix


class LinearFit(FittedModel):
    """Fitted OLS model exposing intercept and slope coefficients."""

    def __init__(
        self,
        estimator: LinearRegression,
        *,
        target: str,
        features: tuple[str, ...],
        columns: tuple[str, ...],
        n_train: int,
    ) -> None:
        super().__init__(name="linear", target=target, features=features, n_train=n_train)
        self._estimator = estimator
        self.columns: tuple[str, ...] = columns

    def predict(self, frame: pd.DataFrame) -> np.ndarray:
        X = design_matrix(frame, self.features, self.columns)
        return self._estimator.predict(X.to_numpy())

    @property
    def params(self) -> dict[str, float]:
        out = {"intercept": float(self._estimator.intercept_)}
        for col, coef in zip(self.columns, np.ravel(self._estimator.coef_)):
            out[col] = float(coef)
        return out


class OrdinaryLeastSquares(ModelSpec):
    """OLS regression ``target ~ features`` with an intercept."""

    name = "linear"

    def fit(self, train: pd.DataFrame) -> LinearFit:
        y = self._response(train)
        X = design_matrix(train, self.features)
        n_params = X.shape[1] + 1
        if len(X) < n_params:
            raise ValueError(f"Insufficient data: {len(X)} rows for {n_params} parameters.")
        design = np.column_stack([np.ones(len(X)), X.to_numpy()])
        rank = int(np.linalg.matrix_rank(design))
        if rank < n_params:
            raise ValueError(f"Design matrix is rank deficient (rank {rank} < {n_params} parameters).")
        estimator = LinearRegression().fit(X.to_numpy(), y)
        return LinearFit(
            estimator,
            target=self.target,
            features=self.features,
            columns=tuple(X.columns),
            n_train=len(train),
        )


class MeanFit(FittedModel):
    """Constant prediction equal to the training mean of the response."""

    def __init__(self, mean: float, *, target: str, n_train: int) -> None:
        super().__init__(name="mean", target=target, features=(), n_train=n_train)
        self.mean: float = mean

    def predict(self, frame: pd.DataFrame) -> np.ndarray:
        return np.full(len(frame), self.mean, dtype=float)

    @property
    def params(self) -> dict[str, float]:
        return {"intercept": self.mean}


class MeanBaseline(ModelSpec):
    """Baseline predicting the training mean; predictors are ignored."""

    name = "mean"
    requires_features = False

    def fit(self, train: pd.DataFrame) -> MeanFit:
        y = self._response(train)
        return MeanFit(float(np.mean(y)), target=self.target, n_train=len(train))

    def to_dict(self) -> dict[str, Any]:
        return {"model_type": self.name, "formula": self.formula, "target": self.target}
