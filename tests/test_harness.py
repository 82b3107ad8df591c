import json
from threading import Event
import time
from unittest.mock import patch

import numpy as np
import pandas as pd
import pytest

from resampleval.dataset import Dataset
from resampleval.errors import ConfigurationError, FitFailure, ScoringError
from resampleval.harness import HarnessResult, TrialContext, run_harness, run_trial
from resampleval.models.base import FittedModel
from resampleval.models.linear import MeanBaseline, OrdinaryLeastSquares
from resampleval.models.smoothing import SplineRegression
from resampleval.resampling import BootstrapStrategy, KFoldStrategy, SplitStrategy
from resampleval.scoring import Coefficient, rmse


@pytest.fixture
def noisy_line() -> pd.DataFrame:
    """221 rows of y = 1.5 x + 2 with Gaussian noise."""

    rng = np.random.default_rng(0)
    x = rng.uniform(0.0, 10.0, size=221)
    y = 1.5 * x + 2.0 + rng.normal(0.0, 1.0, size=221)
    return pd.DataFrame({"x": x, "y": y})


def needs_three_distinct_x(train: pd.DataFrame) -> FittedModel:
    """Fitting function that refuses degenerate resamples."""

    if train["x"].nunique() < 3:
        raise ValueError("need at least 3 distinct x values")
    return MeanBaseline("y ~ x")(train)


class _GhostColumnFit(FittedModel):
    def __init__(self) -> None:
        super().__init__(name="ghost", target="y", features=("z",), n_train=0)

    def predict(self, frame: pd.DataFrame) -> np.ndarray:
        return np.zeros(len(frame))


def ghost_column(train: pd.DataFrame) -> FittedModel:
    return _GhostColumnFit()


def test_single_split_trial_scenario(noisy_line: pd.DataFrame):
    """221 rows, 80% split, one trial, OLS y ~ x scored by RMSE."""

    res = run_harness(
        noisy_line,
        SplitStrategy(0.8),
        1,
        {"linear": OrdinaryLeastSquares("y ~ x")},
        rmse,
        seed=42,
    )
    assert isinstance(res, HarnessResult)
    assert len(res.table) == 1
    value = float(res.table["value"].iloc[0])
    assert np.isfinite(value) and value >= 0.0
    assert res.resample_sizes["n_train"].tolist() == [177]
    assert res.resample_sizes["n_evaluation"].tolist() == [44]
    assert res.failures == []
    assert res.succeeded


def test_row_count_is_trials_times_models(noisy_line: pd.DataFrame):
    specs = {
        "mean": MeanBaseline("y ~ x"),
        "linear": OrdinaryLeastSquares("y ~ x"),
        "spline": SplineRegression("y ~ x"),
    }
    res = run_harness(noisy_line, SplitStrategy(0.7), 12, specs, rmse, seed=5)
    assert len(res.table) == 12 * 3
    assert list(res.table.columns) == ["trial", "model", "value"]
    for name in specs:
        trials = res.table.loc[res.table["model"] == name, "trial"]
        assert trials.is_unique
        assert sorted(trials) == list(range(1, 13))


def test_linear_beats_mean_on_linear_data(noisy_line: pd.DataFrame):
    specs = {"mean": MeanBaseline("y ~ x"), "linear": OrdinaryLeastSquares("y ~ x")}
    res = run_harness(noisy_line, KFoldStrategy(5), 10, specs, rmse, seed=3)
    summary = res.summary().set_index("model")
    assert summary.loc["linear", "mean"] < summary.loc["mean", "mean"]
    assert summary.loc["linear", "mean"] == pytest.approx(1.0, abs=0.25)


def test_zero_trials_rejected_before_resampling(noisy_line: pd.DataFrame):
    with patch.object(SplitStrategy, "resample") as mock_resample:
        with pytest.raises(ConfigurationError):
            run_harness(noisy_line, SplitStrategy(0.8), 0, {"linear": OrdinaryLeastSquares("y ~ x")}, rmse)
    mock_resample.assert_not_called()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"n_trials": -3},
        {"n_trials": 2.5},
        {"model_specs": {}},
        {"seed": -1},
        {"failure_policy": "retry"},
        {"executor": "gpu"},
        {"time_budget": 0.0},
        {"executor": "thread", "max_workers": 0},
        {"executor": "process", "max_workers": -2},
        {"strategy": "split"},
        {"strategy": SplitStrategy(1.0)},
    ],
)
def test_configuration_errors(noisy_line: pd.DataFrame, kwargs: dict):
    params = {
        "strategy": SplitStrategy(0.8),
        "n_trials": 3,
        "model_specs": {"linear": OrdinaryLeastSquares("y ~ x")},
        "seed": 1,
        "failure_policy": "skip",
        "executor": "sequential",
        "max_workers": None,
        "time_budget": None,
    }
    params.update(kwargs)
    with pytest.raises(ConfigurationError):
        run_harness(
            noisy_line,
            params["strategy"],
            params["n_trials"],
            params["model_specs"],
            rmse,
            seed=params["seed"],
            failure_policy=params["failure_policy"],
            executor=params["executor"],
            max_workers=params["max_workers"],
            time_budget=params["time_budget"],
        )


def test_determinism_same_seed(noisy_line: pd.DataFrame):
    specs = {"linear": OrdinaryLeastSquares("y ~ x"), "spline": SplineRegression("y ~ x")}
    r1 = run_harness(noisy_line, BootstrapStrategy(), 15, specs, rmse, seed=123)
    r2 = run_harness(noisy_line, BootstrapStrategy(), 15, specs, rmse, seed=123)
    pd.testing.assert_frame_equal(r1.table, r2.table)
    r3 = run_harness(noisy_line, BootstrapStrategy(), 15, specs, rmse, seed=124)
    assert not r1.table["value"].equals(r3.table["value"])


@pytest.mark.parametrize("executor", ["thread", "process"])
def test_parallel_matches_sequential(noisy_line: pd.DataFrame, executor: str):
    specs = {"mean": MeanBaseline("y ~ x"), "linear": OrdinaryLeastSquares("y ~ x")}
    seq = run_harness(noisy_line, SplitStrategy(0.8), 8, specs, rmse, seed=77)
    par = run_harness(noisy_line, SplitStrategy(0.8), 8, specs, rmse, seed=77, executor=executor, max_workers=2)
    pd.testing.assert_frame_equal(seq.table, par.table)
    pd.testing.assert_frame_equal(seq.resample_sizes, par.resample_sizes)


def test_degenerate_resample_recorded_as_failure():
    """Two-row bootstrap resamples never have 3 distinct x values."""

    frame = pd.DataFrame({"x": [1.0, 2.0], "y": [1.0, 2.0]})
    specs = {"mean": MeanBaseline("y ~ x"), "picky": needs_three_distinct_x}
    res = run_harness(frame, BootstrapStrategy(), 5, specs, rmse, seed=1)
    assert res.n_completed == 5
    assert len(res.failures) == 5
    assert len(res.table) == 5 * 2 - len(res.failures)
    assert set(res.table["model"]) == {"mean"}
    failure = res.failures[0]
    assert failure.trial == 1
    assert failure.model == "picky"
    assert failure.stage == "fit"
    assert failure.error_type == "ValueError"
    assert "3 distinct" in failure.error
    coverage = res.coverage().set_index("model")
    assert coverage.loc["picky", "succeeded"] == 0
    assert coverage.loc["mean", "succeeded"] == 5
    assert not res.succeeded


def test_failure_frame_columns():
    frame = pd.DataFrame({"x": [1.0, 2.0], "y": [1.0, 2.0]})
    res = run_harness(frame, BootstrapStrategy(), 2, {"picky": needs_three_distinct_x}, rmse, seed=1)
    failures = res.failure_frame()
    assert list(failures.columns) == ["trial", "model", "stage", "error", "error_type"]
    assert failures["trial"].tolist() == [1, 2]
    assert res.table.empty


def test_abort_policy_raises_fit_failure():
    frame = pd.DataFrame({"x": [1.0, 2.0], "y": [1.0, 2.0]})
    with pytest.raises(FitFailure) as excinfo:
        run_harness(
            frame,
            BootstrapStrategy(),
            5,
            {"picky": needs_three_distinct_x},
            rmse,
            seed=1,
            failure_policy="abort",
        )
    assert excinfo.value.trial == 1
    assert excinfo.value.model_name == "picky"
    assert excinfo.value.stage == "fit"


def test_scoring_error_is_fatal_under_skip(noisy_line: pd.DataFrame):
    with pytest.raises(ScoringError):
        run_harness(noisy_line, SplitStrategy(0.8), 3, {"ghost": ghost_column}, rmse, seed=1)


def test_score_failure_recorded(noisy_line: pd.DataFrame):
    res = run_harness(
        noisy_line,
        SplitStrategy(0.8),
        3,
        {"mean": MeanBaseline("y ~ x"), "linear": OrdinaryLeastSquares("y ~ x")},
        Coefficient("x"),
        seed=1,
    )
    # the mean baseline has no slope
    assert len(res.table) == 3
    assert {f.stage for f in res.failures} == {"score"}
    assert {f.model for f in res.failures} == {"mean"}
    assert res.metric == "coef:x"


def test_bootstrap_coefficient_variability():
    x = np.linspace(0.0, 1.0, 50)
    frame = pd.DataFrame({"x": x, "y": 2.0 * x + 1.0})
    res = run_harness(frame, BootstrapStrategy(), 20, {"linear": OrdinaryLeastSquares("y ~ x")}, Coefficient("x"), seed=9)
    assert res.table["value"].to_numpy() == pytest.approx(np.full(20, 2.0))


def test_bootstrap_resample_sizes():
    frame = pd.DataFrame({"x": [1.0, 2.0, 3.0, 4.0, 5.0], "y": [1.0, 2.0, 3.0, 4.0, 5.0]})
    res = run_harness(frame, BootstrapStrategy(), 50, {"mean": MeanBaseline("y ~ x")}, rmse, seed=4)
    assert res.resample_sizes["n_train"].tolist() == [5] * 50
    assert res.resample_sizes["n_evaluation"].tolist() == [5] * 50


def test_cancel_event_before_start(noisy_line: pd.DataFrame):
    stop = Event()
    stop.set()
    res = run_harness(
        noisy_line, SplitStrategy(0.8), 10, {"linear": OrdinaryLeastSquares("y ~ x")}, rmse, cancel_event=stop
    )
    assert res.cancelled
    assert res.n_completed == 0
    assert res.table.empty


def test_cancel_at_trial_granularity(noisy_line: pd.DataFrame):
    stop = Event()
    calls = {"n": 0}

    def fit_then_stop(train: pd.DataFrame) -> FittedModel:
        calls["n"] += 1
        if calls["n"] == 3:
            stop.set()
        return MeanBaseline("y ~ x")(train)

    res = run_harness(noisy_line, SplitStrategy(0.8), 10, {"mean": fit_then_stop}, rmse, seed=1, cancel_event=stop)
    assert res.cancelled
    assert res.n_completed == 3
    assert res.table["trial"].tolist() == [1, 2, 3]


def test_dataset_instance_accepted(noisy_line: pd.DataFrame):
    ds = Dataset(noisy_line)
    res = run_harness(ds, SplitStrategy(0.5), 2, {"linear": OrdinaryLeastSquares("y ~ x")}, seed=0)
    assert res.metric == "rmse"
    assert res.resample_sizes["n_train"].tolist() == [111, 111]


def test_run_trial_directly(noisy_line: pd.DataFrame):
    ctx = TrialContext(
        trial=4,
        seed=10,
        dataset=Dataset(noisy_line),
        strategy=SplitStrategy(0.8),
        model_specs=(("linear", OrdinaryLeastSquares("y ~ x")),),
        scoring=rmse,
    )
    outcome = run_trial(ctx)
    assert outcome.trial == 4
    assert len(outcome.rows) == 1
    assert outcome.rows[0][:2] == (4, "linear")
    assert outcome.n_train == 177


def test_to_dict_is_json_serializable():
    frame = pd.DataFrame({"x": [1.0, 2.0], "y": [1.0, 2.0]})
    specs = {"mean": MeanBaseline("y ~ x"), "picky": needs_three_distinct_x}
    res = run_harness(frame, BootstrapStrategy(), 3, specs, rmse, seed=1)
    payload = json.loads(json.dumps(res.to_dict()))
    assert payload["n_trials"] == 3
    assert payload["n_failures"] == 3
    assert payload["models"] == ["mean", "picky"]
    picky = [s for s in payload["summary"] if s["model"] == "picky"][0]
    assert picky["n"] == 0
    assert picky["mean"] is None


def slow_mean(train: pd.DataFrame) -> FittedModel:
    time.sleep(0.05)
    return MeanBaseline("y ~ x")(train)


def _assert_whole_trials(res: HarnessResult, n_models: int) -> None:
    rows = res.table.groupby("trial").size()
    failed = res.failure_frame().groupby("trial").size()
    for trial in res.resample_sizes["trial"]:
        assert int(rows.get(trial, 0)) + int(failed.get(trial, 0)) == n_models


def test_thread_pool_cancel_keeps_whole_trials(noisy_line: pd.DataFrame):
    stop = Event()
    calls = {"n": 0}

    def fit_then_stop(train: pd.DataFrame) -> FittedModel:
        calls["n"] += 1
        if calls["n"] == 3:
            stop.set()
        return MeanBaseline("y ~ x")(train)

    specs = {"stopper": fit_then_stop, "linear": OrdinaryLeastSquares("y ~ x")}
    res = run_harness(
        noisy_line, SplitStrategy(0.8), 10, specs, rmse, seed=1, executor="thread", max_workers=1, cancel_event=stop
    )
    assert res.cancelled
    # the first finished trial is always kept; the event fires during trial 3
    assert 1 <= res.n_completed <= 3
    assert len(res.table) == 2 * res.n_completed
    _assert_whole_trials(res, len(specs))


def test_thread_pool_time_budget(noisy_line: pd.DataFrame):
    specs = {"slow": slow_mean, "mean": MeanBaseline("y ~ x")}
    res = run_harness(
        noisy_line, SplitStrategy(0.8), 40, specs, rmse, seed=2, executor="thread", max_workers=1, time_budget=0.3
    )
    assert res.cancelled
    assert res.n_completed < 40
    assert len(res.table) == 2 * res.n_completed
    _assert_whole_trials(res, len(specs))


def test_sequential_time_budget(noisy_line: pd.DataFrame):
    specs = {"slow": slow_mean, "linear": OrdinaryLeastSquares("y ~ x")}
    res = run_harness(noisy_line, SplitStrategy(0.8), 50, specs, rmse, seed=3, time_budget=0.3)
    assert res.cancelled
    assert 1 <= res.n_completed < 50
    assert len(res.table) == 2 * res.n_completed
    assert res.table["trial"].max() == res.n_completed
    _assert_whole_trials(res, len(specs))


def test_generous_time_budget_completes(noisy_line: pd.DataFrame):
    res = run_harness(
        noisy_line, SplitStrategy(0.8), 4, {"mean": MeanBaseline("y ~ x")}, rmse, executor="thread", time_budget=60.0
    )
    assert not res.cancelled
    assert res.n_completed == 4
