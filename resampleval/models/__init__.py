"""Model specifications: ordinary least squares, additive splines, and a mean baseline."""

from __future__ import annotations

from typing import Any

__all__ = [
    "FittedModel",
    "ModelSpec",
    "OrdinaryLeastSquares",
    "SplineRegression",
    "MeanBaseline",
    "build_model_specs",
    "parse_formula",
]


def __getattr__(name: str) -> Any:  # lazy imports keep scikit-learn off the package import path
    if name in {"FittedModel", "ModelSpec", "parse_formula"}:
        from resampleval.models import base as _base

        return getattr(_base, name)
    if name in {"OrdinaryLeastSquares", "MeanBaseline"}:
        from resampleval.models import linear as _linear

        return getattr(_linear, name)
    if name == "SplineRegression":
        from resampleval.models.smoothing import SplineRegression as _SR

        return _SR
    if name == "build_model_specs":
        from resampleval.models.registry import build_model_specs as _bms

        return _bms
    raise AttributeError(f"module 'resampleval.models' has no attribute {name!r}")
