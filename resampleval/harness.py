"""Resampling evaluation harness.

Repeatedly resamples a dataset, fits every named model specification to each
training subset, and scores the fitted models on the matching evaluation
subset. The output is a tidy table with one row per (trial, model) pair plus
a list of recorded failures.

Trials share nothing: each one receives a `TrialContext` carrying the
dataset, strategy, seed, trial id, model specifications and scorer, and
derives its own random generator from ``(seed, trial)``. Trial ids are fixed
before dispatch, so sequential, threaded and multi-process runs produce the
same table.

Examples
--------
>>> import numpy as np, pandas as pd
>>> from resampleval.harness import run_harness
>>> from resampleval.models import OrdinaryLeastSquares
>>> from resampleval.resampling import SplitStrategy
>>> from resampleval.scoring import rmse
>>> x = np.linspace(0, 1, 50)
>>> frame = pd.DataFrame({"x": x, "y": 2 * x + 1})
>>> res = run_harness(frame, SplitStrategy(0.8), 10, {"linear": OrdinaryLeastSquares("y ~ x")}, rmse, seed=1)
>>> len(res.table)
10
"""

from __future__ import annotations

from concurrent.futures import (
    Executor,
    Future,
    ProcessPoolExecutor,
    ThreadPoolExecutor,
    TimeoutError as FuturesTimeoutError,
    as_completed,
)
from dataclasses import asdict, dataclass, field
from threading import Event
from typing import Any, Callable, Mapping
import logging
import math
import time

import numpy as np
import pandas as pd

from resampleval.config import Config, EXECUTORS, FAILURE_POLICIES
from resampleval.dataset import Dataset, as_dataset
from resampleval.errors import ConfigurationError, FitFailure, ScoringError
from resampleval.models.base import FittedModel
from resampleval.resampling import ResamplingStrategy
from resampleval.scoring import Scorer, rmse, scorer_name
from resampleval.summary import summarize_results


_LOGGER = logging.getLogger(__name__)

FitFunction = Callable[[pd.DataFrame], FittedModel]

RESULT_COLUMNS: tuple[str, ...] = ("trial", "model", "value")


@dataclass(frozen=True)
class TrialFailure:
    """A (trial, model) pair that produced no metric.

    Fields
    ------
    trial:
        Trial identifier.
    model:
        Model specification name.
    stage:
        ``"fit"`` or ``"score"``.
    error:
        Message of the underlying exception.
    error_type:
        Class name of the underlying exception.
    """

    trial: int
    model: str
    stage: str
    error: str
    error_type: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TrialContext:
    """Everything one trial needs; nothing is shared with other trials."""

    trial: int
    seed: int
    dataset: Dataset
    strategy: ResamplingStrategy
    model_specs: tuple[tuple[str, FitFunction], ...]
    scoring: Scorer
    stop_on_failure: bool = False


@dataclass(frozen=True)
class TrialOutcome:
    """Complete result of one trial."""

    trial: int
    rows: tuple[tuple[int, str, float], ...]
    failures: tuple[TrialFailure, ...]
    n_train: int
    n_evaluation: int


def run_trial(context: TrialContext) -> TrialOutcome:
    """Resample, fit and score a single trial.

    Exceptions raised by a fitting function or by the scorer are captured as
    `TrialFailure` records. `ScoringError` is never captured: it means the
    evaluation set itself is unusable.
    """

    trial = context.trial
    resample = context.strategy.resample(context.dataset, seed=context.seed, trial=trial)
    rows: list[tuple[int, str, float]] = []
    failures: list[TrialFailure] = []

    for name, fit_fn in context.model_specs:
        try:
            model = fit_fn(resample.train)
        except Exception as exc:
            failures.append(TrialFailure(trial, name, "fit", str(exc), type(exc).__name__))
            if context.stop_on_failure:
                break
            continue

        try:
            value = float(context.scoring(model, resample.evaluation))
        except ScoringError:
            raise
        except Exception as exc:
            failures.append(TrialFailure(trial, name, "score", str(exc), type(exc).__name__))
            if context.stop_on_failure:
                break
            continue

        if not math.isfinite(value):
            failures.append(TrialFailure(trial, name, "score", f"non-finite metric {value}", "ValueError"))
            if context.stop_on_failure:
                break
            continue
        rows.append((trial, name, value))

    return TrialOutcome(
        trial=trial,
        rows=tuple(rows),
        failures=tuple(failures),
        n_train=len(resample.train),
        n_evaluation=len(resample.evaluation),
    )


@dataclass
class HarnessResult:
    """Result table and failure list of one harness run."""

    table: pd.DataFrame
    failures: list[TrialFailure]
    n_trials: int
    n_completed: int
    model_names: tuple[str, ...]
    metric: str
    seed: int
    strategy: dict[str, Any] = field(default_factory=dict)
    cancelled: bool = False
    resample_sizes: pd.DataFrame = field(default_factory=pd.DataFrame)

    @property
    def succeeded(self) -> bool:
        """True when every trial ran and every pair produced a metric."""

        return not self.cancelled and not self.failures

    def failure_frame(self) -> pd.DataFrame:
        """Failures as a DataFrame (columns trial, model, stage, error, error_type)."""

        columns = ["trial", "model", "stage", "error", "error_type"]
        return pd.DataFrame([f.to_dict() for f in self.failures], columns=columns)

    def coverage(self) -> pd.DataFrame:
        """Per-model count of successful and attempted trials."""

        counts = self.table["model"].value_counts()
        records = []
        for name in self.model_names:
            ok = int(counts.get(name, 0))
            records.append(
                {
                    "model": name,
                    "succeeded": ok,
                    "attempted": self.n_completed,
                    "failed": self.n_completed - ok,
                }
            )
        return pd.DataFrame(records, columns=["model", "succeeded", "attempted", "failed"])

    def summary(self, confidence_level: float = Config.DEFAULT_CONFIDENCE_LEVEL) -> pd.DataFrame:
        """Mean, standard deviation and percentile interval per model."""

        return summarize_results(
            self.table,
            confidence_level,
            n_trials=self.n_completed,
            model_order=self.model_names,
        )

    def to_dict(self, confidence_level: float = Config.DEFAULT_CONFIDENCE_LEVEL) -> dict[str, Any]:
        summary = self.summary(confidence_level)
        return {
            "metric": self.metric,
            "seed": self.seed,
            "strategy": self.strategy,
            "n_trials": self.n_trials,
            "n_completed": self.n_completed,
            "cancelled": self.cancelled,
            "models": list(self.model_names),
            "confidence_level": confidence_level,
            "summary": summary.astype(object).where(summary.notna(), None).to_dict(orient="records"),
            "n_failures": len(self.failures),
            "failures": [f.to_dict() for f in self.failures],
        }


def _validate_configuration(
    dataset: Dataset | pd.DataFrame,
    strategy: ResamplingStrategy,
    n_trials: int,
    model_specs: Mapping[str, FitFunction],
    scoring: Scorer,
    seed: int,
    failure_policy: str,
    executor: str,
    max_workers: int | None,
    time_budget: float | None,
) -> Dataset:
    if isinstance(n_trials, bool) or not isinstance(n_trials, (int, np.integer)):
        raise ConfigurationError(f"n_trials must be an integer, got {n_trials!r}")
    if n_trials < 1:
        raise ConfigurationError(f"n_trials must be >= 1, got {n_trials}")
    if not model_specs:
        raise ConfigurationError("model_specs must contain at least one model")
    for name, fit_fn in model_specs.items():
        if not isinstance(name, str) or not name:
            raise ConfigurationError(f"Model names must be non-empty strings, got {name!r}")
        if not callable(fit_fn):
            raise ConfigurationError(f"Model spec {name!r} is not callable")
    if not callable(scoring):
        raise ConfigurationError("scoring must be callable")
    if isinstance(seed, bool) or not isinstance(seed, (int, np.integer)) or seed < 0:
        raise ConfigurationError(f"seed must be a non-negative integer, got {seed!r}")
    if failure_policy not in FAILURE_POLICIES:
        raise ConfigurationError(f"Unknown failure policy {failure_policy!r}; choose from {FAILURE_POLICIES}")
    if executor not in EXECUTORS:
        raise ConfigurationError(f"Unknown executor {executor!r}; choose from {EXECUTORS}")
    if max_workers is not None and (
        isinstance(max_workers, bool) or not isinstance(max_workers, (int, np.integer)) or max_workers < 1
    ):
        raise ConfigurationError(f"max_workers must be a positive integer, got {max_workers!r}")
    if time_budget is not None and time_budget <= 0:
        raise ConfigurationError(f"time_budget must be > 0 seconds, got {time_budget}")
    if not isinstance(strategy, ResamplingStrategy):
        raise ConfigurationError(f"strategy must be a ResamplingStrategy, got {type(strategy).__name__}")

    ds = as_dataset(dataset)
    strategy.validate(ds)
    return ds


def _raise_failure(failure: TrialFailure) -> None:
    raise FitFailure(failure.trial, failure.model, failure.stage, f"{failure.error_type}: {failure.error}")


def _log_outcome(outcome: TrialOutcome) -> None:
    _LOGGER.debug(
        "Trial %d: %d scored, %d failed (train=%d, eval=%d)",
        outcome.trial,
        len(outcome.rows),
        len(outcome.failures),
        outcome.n_train,
        outcome.n_evaluation,
    )
    for f in outcome.failures:
        _LOGGER.warning(
            "Trial %d: model %r failed to %s: %s: %s", f.trial, f.model, f.stage, f.error_type, f.error
        )


def _run_sequential(
    contexts: list[TrialContext],
    should_stop: Callable[[], bool],
    abort: bool,
) -> tuple[list[TrialOutcome], bool]:
    outcomes: list[TrialOutcome] = []
    for ctx in contexts:
        if should_stop():
            return outcomes, True
        outcome = run_trial(ctx)
        _log_outcome(outcome)
        if abort and outcome.failures:
            _raise_failure(outcome.failures[0])
        outcomes.append(outcome)
    return outcomes, False


def _run_pool(
    contexts: list[TrialContext],
    should_stop: Callable[[], bool],
    abort: bool,
    executor: str,
    max_workers: int | None,
    deadline: float | None,
) -> tuple[list[TrialOutcome], bool]:
    pool: Executor
    if executor == "thread":
        pool = ThreadPoolExecutor(max_workers=max_workers)
    else:
        pool = ProcessPoolExecutor(max_workers=max_workers)

    outcomes: list[TrialOutcome] = []
    cancelled = False
    try:
        futures: dict[Future[TrialOutcome], int] = {pool.submit(run_trial, ctx): ctx.trial for ctx in contexts}
        timeout = None if deadline is None else max(0.0, deadline - time.monotonic())
        try:
            for fut in as_completed(futures, timeout=timeout):
                outcome = fut.result()
                _log_outcome(outcome)
                if abort and outcome.failures:
                    _raise_failure(outcome.failures[0])
                # a finished trial is whole; keep it even when stopping
                outcomes.append(outcome)
                if len(outcomes) < len(contexts) and should_stop():
                    cancelled = True
                    break
        except FuturesTimeoutError:
            cancelled = True
    finally:
        pool.shutdown(wait=True, cancel_futures=True)
    return outcomes, cancelled


def run_harness(
    dataset: Dataset | pd.DataFrame,
    strategy: ResamplingStrategy,
    n_trials: int,
    model_specs: Mapping[str, FitFunction],
    scoring: Scorer = rmse,
    *,
    seed: int = Config.RANDOM_SEED,
    failure_policy: str = Config.DEFAULT_FAILURE_POLICY,
    executor: str = Config.DEFAULT_EXECUTOR,
    max_workers: int | None = None,
    time_budget: float | None = None,
    cancel_event: Event | None = None,
) -> HarnessResult:
    """Run ``n_trials`` resample-fit-score cycles and collect the metrics.

    Parameters
    ----------
    dataset:
        Source data. A DataFrame is wrapped in a `Dataset` (row ids are
        synthesized when missing).
    strategy:
        Resampling strategy producing each trial's (train, evaluation) pair.
    n_trials:
        Number of trials (>= 1).
    model_specs:
        Mapping of unique model names to pure fitting functions
        ``(train) -> FittedModel``. Must be picklable for ``executor="process"``.
    scoring:
        ``(fitted_model, evaluation) -> float``. Defaults to RMSE.
    seed:
        Harness-level seed; trial ``t`` draws from ``default_rng([seed, t])``.
    failure_policy:
        ``"skip"`` records fit/score failures and continues; ``"abort"``
        raises `FitFailure` on the first one.
    executor:
        ``"sequential"``, ``"thread"`` or ``"process"``.
    max_workers:
        Pool size for the parallel executors.
    time_budget:
        Seconds after which no further trial results are accepted.
    cancel_event:
        Set it to stop accepting trial results.

    Returns
    -------
    HarnessResult
        Table with columns ``trial, model, value`` sorted by trial and model
        order, plus the recorded failures.

    Raises
    ------
    ConfigurationError
        Before any trial runs, for invalid parameters.
    FitFailure
        Under the ``abort`` policy.
    ScoringError
        When the evaluation set is empty or lacks required columns.
    """

    ds = _validate_configuration(
        dataset, strategy, n_trials, model_specs, scoring, seed, failure_policy, executor, max_workers, time_budget
    )
    names = tuple(model_specs.keys())
    abort = failure_policy == "abort"
    specs = tuple((name, model_specs[name]) for name in names)
    contexts = [
        TrialContext(
            trial=t,
            seed=int(seed),
            dataset=ds,
            strategy=strategy,
            model_specs=specs,
            scoring=scoring,
            stop_on_failure=abort,
        )
        for t in range(1, int(n_trials) + 1)
    ]

    deadline = None if time_budget is None else time.monotonic() + float(time_budget)

    def should_stop() -> bool:
        if cancel_event is not None and cancel_event.is_set():
            return True
        return deadline is not None and time.monotonic() >= deadline

    metric = scorer_name(scoring)
    _LOGGER.info(
        "Running %d trials x %d models (strategy=%s, metric=%s, executor=%s, seed=%d)",
        n_trials,
        len(names),
        strategy.name,
        metric,
        executor,
        seed,
    )
    started = time.perf_counter()
    if executor == "sequential":
        outcomes, cancelled = _run_sequential(contexts, should_stop, abort)
    else:
        outcomes, cancelled = _run_pool(contexts, should_stop, abort, executor, max_workers, deadline)

    result = _assemble(outcomes, names, int(n_trials), metric, int(seed), strategy, cancelled)
    _LOGGER.info(
        "Completed %d/%d trials in %.2fs: %d rows, %d failures%s",
        result.n_completed,
        result.n_trials,
        time.perf_counter() - started,
        len(result.table),
        len(result.failures),
        " (cancelled)" if cancelled else "",
    )
    return result


def _assemble(
    outcomes: list[TrialOutcome],
    names: tuple[str, ...],
    n_trials: int,
    metric: str,
    seed: int,
    strategy: ResamplingStrategy,
    cancelled: bool,
) -> HarnessResult:
    order = {name: i for i, name in enumerate(names)}
    outcomes = sorted(outcomes, key=lambda o: o.trial)

    rows = [row for o in outcomes for row in o.rows]
    rows.sort(key=lambda r: (r[0], order[r[1]]))
    table = pd.DataFrame(rows, columns=list(RESULT_COLUMNS)).astype(
        {"trial": "int64", "model": "object", "value": "float64"}
    )

    failures = [f for o in outcomes for f in o.failures]
    failures.sort(key=lambda f: (f.trial, order[f.model]))

    sizes = pd.DataFrame(
        [(o.trial, o.n_train, o.n_evaluation) for o in outcomes],
        columns=["trial", "n_train", "n_evaluation"],
    )

    return HarnessResult(
        table=table,
        failures=failures,
        n_trials=n_trials,
        n_completed=len(outcomes),
        model_names=names,
        metric=metric,
        seed=seed,
        strategy=strategy.to_dict(),
        cancelled=cancelled,
        resample_sizes=sizes,
    )


__all__ = [
    "TrialFailure",
    "TrialContext",
    "TrialOutcome",
    "HarnessResult",
    "run_trial",
    "run_harness",
]
