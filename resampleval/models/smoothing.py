"""Additive spline smoother (GAM-style) built from scikit-learn parts.

Each numeric predictor is expanded into a B-spline basis with
`SplineTransformer`; categorical predictors enter as dummy columns. The
expanded design is fitted with a lightly penalised `Ridge`, which keeps the
fit stable when knots outnumber the distinct values in a small resample.

The model is additive: there are no interaction terms between predictors,
mirroring ``y ~ s(x1) + s(x2)`` in a generalized additive model.
"""

from __future__ import annotations

from typing import Any

import numpy as np
import pandas as pd
from pandas.api import types as ptypes
from sklearn.compose import ColumnTransformer
from sklearn.linear_model import Ridge
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import SplineTransformer

from resampleval.config import Config
from resampleval.errors import ConfigurationError
from resampleval.models.base import FittedModel, ModelSpec, design_matrix


class SplineFit(FittedModel):
    """Fitted additive spline model."""

    def __init__(
        self,
        pipeline: Pipeline,
        *,
        target: str,
        features: tuple[str, ...],
        columns: tuple[str, ...],
        n_train: int,
    ) -> None:
        super().__init__(name="spline", target=target, features=features, n_train=n_train)
        self._pipeline = pipeline
        self.columns: tuple[str, ...] = columns

    def predict(self, frame: pd.DataFrame) -> np.ndarray:
        X = design_matrix(frame, self.features, self.columns)
        return self._pipeline.predict(X)

    @property
    def params(self) -> dict[str, float]:
        ridge: Ridge = self._pipeline.named_steps["ridge"]
        names = self._pipeline.named_steps["basis"].get_feature_names_out()
        out = {"intercept": float(ridge.intercept_)}
        for name, coef in zip(names, np.ravel(ridge.coef_)):
            out[str(name)] = float(coef)
        return out


class SplineRegression(ModelSpec):
    """Penalised regression spline ``target ~ s(x1) + ... + s(xk)``.

    Parameters
    ----------
    formula:
        R-style formula. Numeric predictors get a spline basis.
    n_knots:
        Number of uniformly spaced knots per numeric predictor (>= 2).
    degree:
        Polynomial degree of the B-spline pieces (3 for cubic).
    alpha:
        Ridge penalty on the basis coefficients.
    """

    name = "spline"

    def __init__(
        self,
        formula: str,
        *,
        n_knots: int = Config.DEFAULT_SPLINE_KNOTS,
        degree: int = Config.DEFAULT_SPLINE_DEGREE,
        alpha: float = Config.DEFAULT_SPLINE_ALPHA,
    ) -> None:
        super().__init__(formula)
        if n_knots < 2:
            raise ConfigurationError("n_knots must be >= 2")
        if degree < 1:
            raise ConfigurationError("degree must be >= 1")
        if alpha < 0.0:
            raise ConfigurationError("alpha must be >= 0")
        self.n_knots: int = int(n_knots)
        self.degree: int = int(degree)
        self.alpha: float = float(alpha)

    def fit(self, train: pd.DataFrame) -> SplineFit:
        y = self._response(train)
        numeric = [f for f in self.features if ptypes.is_numeric_dtype(train[f])]
        if not numeric:
            raise ValueError("Spline regression needs at least one numeric predictor.")
        for col in numeric:
            n_distinct = int(train[col].nunique())
            if n_distinct < self.degree + 1:
                raise ValueError(
                    f"Predictor {col!r} has {n_distinct} distinct values; degree {self.degree} needs {self.degree + 1}."
                )

        X = design_matrix(train, self.features)
        basis = ColumnTransformer(
            [
                (
                    "spline",
                    SplineTransformer(
                        n_knots=self.n_knots,
                        degree=self.degree,
                        extrapolation="linear",
                        include_bias=False,
                    ),
                    numeric,
                )
            ],
            remainder="passthrough",
        )
        pipeline = Pipeline([("basis", basis), ("ridge", Ridge(alpha=self.alpha))])
        pipeline.fit(X, y)
        return SplineFit(
            pipeline,
            target=self.target,
            features=self.features,
            columns=tuple(X.columns),
            n_train=len(train),
        )

    def __repr__(self) -> str:
        return f"SplineRegression({self.formula!r}, n_knots={self.n_knots}, degree={self.degree}, alpha={self.alpha})"

    def to_dict(self) -> dict[str, Any]:
        meta = super().to_dict()
        meta.update({"n_knots": self.n_knots, "degree": self.degree, "alpha": self.alpha})
        return meta
