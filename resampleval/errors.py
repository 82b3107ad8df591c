"""Exception hierarchy for the resampling harness.

Configuration problems are raised before any trial runs. Per-trial fit
failures are recorded by default and only raised under the ``abort`` policy.
Scoring errors signal a misconfigured evaluation set and are always raised.
"""

from __future__ import annotations


class HarnessError(Exception):
    """Base class for all harness errors."""


class ConfigurationError(HarnessError, ValueError):
    """Invalid harness parameters or dataset layout."""


class ScoringError(HarnessError, ValueError):
    """Evaluation set is empty or lacks columns the fitted model needs."""


class FitFailure(HarnessError):
    """A model failed to fit (or score) on one trial's resample.

    Parameters
    ----------
    trial:
        Trial identifier (1-based).
    model_name:
        Name of the model specification that failed.
    stage:
        ``"fit"`` or ``"score"``.
    cause:
        Underlying exception message.
    """

    def __init__(self, trial: int, model_name: str, stage: str, cause: str) -> None:
        super().__init__(trial, model_name, stage, cause)
        self.trial = trial
        self.model_name = model_name
        self.stage = stage
        self.cause = cause

    def __str__(self) -> str:
        return f"trial {self.trial}: model {self.model_name!r} failed to {self.stage}: {self.cause}"


__all__ = [
    "HarnessError",
    "ConfigurationError",
    "ScoringError",
    "FitFailure",
]
