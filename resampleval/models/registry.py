"""Registry of built-in model specifications.

Maps short model names, as used on the command line, to specification
classes, and builds the name -> specification mapping the harness consumes.
"""

from __future__ import annotations

from typing import Any, Iterable

from resampleval.errors import ConfigurationError
from resampleval.models.base import ModelSpec
from resampleval.models.linear import MeanBaseline, OrdinaryLeastSquares
from resampleval.models.smoothing import SplineRegression


MODEL_REGISTRY: dict[str, type[ModelSpec]] = {
    "linear": OrdinaryLeastSquares,
    "spline": SplineRegression,
    "mean": MeanBaseline,
}


def build_model_specs(names: Iterable[str], formula: str, **spline_options: Any) -> dict[str, ModelSpec]:
    """Return ``{name: spec}`` for the requested built-in models.

    ``spline_options`` (``n_knots``, ``degree``, ``alpha``) apply to the
    spline model only.
    """

    specs: dict[str, ModelSpec] = {}
    for raw in names:
        name = str(raw).strip().lower()
        if name in specs:
            raise ConfigurationError(f"Model {name!r} requested more than once")
        cls = MODEL_REGISTRY.get(name)
        if cls is None:
            raise ConfigurationError(
                f"Unknown model {raw!r}; choose from {sorted(MODEL_REGISTRY)}"
            )
        if cls is SplineRegression:
            opts = {k: v for k, v in spline_options.items() if v is not None}
            specs[name] = SplineRegression(formula, **opts)
        else:
            specs[name] = cls(formula)
    return specs
