"""Run the resampling harness over a CSV dataset.

Examples
--------
  resampleval evaluate --data lidar.csv --formula "logratio ~ range" --model linear --model spline
  resampleval evaluate --data lidar.csv --formula "logratio ~ range" --model spline --strategy kfold --folds 10 --trials 50
  resampleval evaluate --data mtcars.csv --formula "mpg ~ wt" --model linear --strategy bootstrap --trials 1000 --score coef:wt
  resampleval evaluate --data train.csv --formula "y ~ x" --model linear --strategy bootstrap --holdout test.csv --executor process
"""

from __future__ import annotations

from pathlib import Path

import click

from resampleval.config import Config, EXECUTORS, FAILURE_POLICIES, STRATEGIES
from resampleval.dataset import Dataset
from resampleval.errors import ConfigurationError, FitFailure, ScoringError
from resampleval.harness import run_harness
from resampleval.models.registry import MODEL_REGISTRY, build_model_specs
from resampleval.resampling import make_strategy
from resampleval.scoring import get_scorer
from resampleval.summary import format_summary, select_best_model
from resampleval.utils import ensure_dir, write_json


@click.command(name="evaluate")
@click.option(
    "data",
    "--data",
    type=click.Path(path_type=Path),
    required=True,
    help="CSV file with the dataset",
)
@click.option(
    "formula",
    "--formula",
    type=str,
    required=True,
    help='Model formula, e.g. "y ~ x1 + x2"',
)
@click.option(
    "models",
    "--model",
    type=click.Choice(sorted(MODEL_REGISTRY), case_sensitive=False),
    multiple=True,
    required=True,
    help="Model to evaluate (repeat for several)",
)
@click.option(
    "strategy",
    "--strategy",
    type=click.Choice(list(STRATEGIES), case_sensitive=False),
    default=Config.DEFAULT_STRATEGY,
    show_default=True,
    help="Resampling strategy",
)
@click.option(
    "fraction",
    "--fraction",
    type=float,
    default=Config.DEFAULT_SPLIT_FRACTION,
    show_default=True,
    help="Training fraction for the split strategy (rounded half up)",
)
@click.option(
    "folds",
    "--folds",
    type=int,
    default=Config.DEFAULT_N_FOLDS,
    show_default=True,
    help="Number of folds for the kfold strategy",
)
@click.option(
    "holdout",
    "--holdout",
    type=click.Path(path_type=Path),
    required=False,
    help="Independent evaluation CSV for the bootstrap strategy",
)
@click.option(
    "id_column",
    "--id-column",
    type=str,
    default=Config.ROW_ID_COLUMN,
    show_default=True,
    help="Row identifier column (synthesized from position when absent)",
)
@click.option(
    "trials",
    "--trials",
    type=int,
    default=Config.DEFAULT_N_TRIALS,
    show_default=True,
    help="Number of resampling trials",
)
@click.option(
    "seed",
    "--seed",
    type=int,
    default=Config.RANDOM_SEED,
    show_default=True,
    help="Harness seed; trial t uses the generator seeded with (seed, t)",
)
@click.option(
    "score",
    "--score",
    type=str,
    default=Config.DEFAULT_SCORE,
    show_default=True,
    help="Scorer: rmse, mae, r2, or coef:<parameter>",
)
@click.option(
    "policy",
    "--policy",
    type=click.Choice(list(FAILURE_POLICIES), case_sensitive=False),
    default=Config.DEFAULT_FAILURE_POLICY,
    show_default=True,
    help="Fit failure policy: skip and record, or abort the run",
)
@click.option(
    "executor",
    "--executor",
    type=click.Choice(list(EXECUTORS), case_sensitive=False),
    default=Config.DEFAULT_EXECUTOR,
    show_default=True,
    help="Trial execution mode",
)
@click.option("workers", "--workers", type=int, required=False, help="Worker count for thread/process executors")
@click.option("time_budget", "--time-budget", type=float, required=False, help="Stop accepting trials after N seconds")
@click.option("n_knots", "--knots", type=int, default=Config.DEFAULT_SPLINE_KNOTS, show_default=True, help="Spline knots per predictor")
@click.option("degree", "--degree", type=int, default=Config.DEFAULT_SPLINE_DEGREE, show_default=True, help="Spline degree")
@click.option("alpha", "--alpha", type=float, default=Config.DEFAULT_SPLINE_ALPHA, show_default=True, help="Spline ridge penalty")
@click.option(
    "confidence_level",
    "--confidence-level",
    type=float,
    default=Config.DEFAULT_CONFIDENCE_LEVEL,
    show_default=True,
    help="Percentile interval level for the summary",
)
@click.option(
    "output",
    "--output",
    type=click.Path(path_type=Path),
    required=False,
    help="Output directory (default: results/resampling/<data>/<strategy>)",
)
@click.option(
    "fmt",
    "--format",
    type=click.Choice(["table", "markdown", "csv", "json"], case_sensitive=False),
    default="table",
    show_default=True,
    help="Summary output format",
)
@click.option("force", "--force", is_flag=True, help="Re-run even if results exist")
def evaluate(
    data: Path,
    formula: str,
    models: tuple[str, ...],
    strategy: str,
    fraction: float,
    folds: int,
    holdout: Path | None,
    id_column: str,
    trials: int,
    seed: int,
    score: str,
    policy: str,
    executor: str,
    workers: int | None,
    time_budget: float | None,
    n_knots: int,
    degree: int,
    alpha: float,
    confidence_level: float,
    output: Path | None,
    fmt: str,
    force: bool,
) -> None:
    """Fit models to repeated resamples of a dataset and summarize the scores."""

    strategy = strategy.lower()
    policy = policy.lower()
    executor = executor.lower()
    fmt = fmt.lower()

    if not (0.0 < confidence_level < 1.0):
        raise click.ClickException("--confidence-level must be between 0 and 1 (exclusive).")
    if holdout is not None and strategy != "bootstrap":
        click.secho("Warning: --holdout only applies to the bootstrap strategy; ignoring.", fg="yellow")
        holdout = None

    output_dir = output if output is not None else Config.RESULTS_DIR / "resampling" / data.stem / strategy
    trials_file = output_dir / "trials.csv"
    failures_file = output_dir / "failures.csv"
    summary_file = output_dir / "summary.json"

    if trials_file.exists() and not force:
        click.echo(f"Results exist: {trials_file}. Use --force to re-run.")
        if summary_file.exists():
            click.echo(summary_file.read_text(encoding="utf-8"))
        return

    try:
        dataset = Dataset.from_csv(data, id_column=id_column)
        holdout_ds = Dataset.from_csv(holdout, id_column=id_column) if holdout is not None else None
        resampler = make_strategy(strategy, fraction=fraction, n_folds=folds, holdout=holdout_ds)
        specs = build_model_specs(models, formula, n_knots=n_knots, degree=degree, alpha=alpha)
        scorer = get_scorer(score)
        first = next(iter(specs.values()))
        missing = [c for c in (first.target, *first.features) if c not in dataset.frame.columns]
        if missing:
            raise ConfigurationError(f"Formula references columns not in {data.name}: {missing}")

        click.echo(
            f"Dataset: {len(dataset)} rows | Strategy: {strategy} | Trials: {trials} | Models: {', '.join(specs)}"
        )
        result = run_harness(
            dataset,
            resampler,
            trials,
            specs,
            scorer,
            seed=seed,
            failure_policy=policy,
            executor=executor,
            max_workers=workers,
            time_budget=time_budget,
        )
    except FileNotFoundError as e:
        raise click.ClickException(str(e))
    except ConfigurationError as e:
        raise click.ClickException(f"Invalid configuration: {e}")
    except FitFailure as e:
        raise click.ClickException(f"Run aborted: {e}")
    except ScoringError as e:
        raise click.ClickException(f"Scoring failed: {e}")

    if result.cancelled:
        click.secho(
            f"Warning: run stopped early; {result.n_completed}/{result.n_trials} trials completed.",
            fg="yellow",
        )
    coverage = result.coverage()
    for rec in coverage.to_dict(orient="records"):
        if rec["failed"]:
            click.secho(
                f"Warning: {rec['succeeded']}/{rec['attempted']} trials succeeded for model {rec['model']}",
                fg="yellow",
            )

    summary = result.summary(confidence_level)
    click.echo(f"Metric: {result.metric}")
    rendered = format_summary(summary, fmt)
    click.echo(rendered)

    if score.lower() in {"rmse", "mae"} and len(specs) > 1:
        try:
            best = select_best_model(summary, lower_is_better=True)
            click.secho(f"Best model by mean {result.metric}: {best}", fg="green")
        except ValueError:
            click.secho("No model completed a trial; cannot select a best model.", fg="yellow")

    ensure_dir(output_dir)
    result.table.to_csv(trials_file, index=False)
    if result.failures:
        result.failure_frame().to_csv(failures_file, index=False)
    payload = result.to_dict(confidence_level)
    payload.update(
        {
            "data": str(data),
            "formula": formula,
            "model_specs": {name: spec.to_dict() for name, spec in specs.items()},
        }
    )
    write_json(summary_file, payload)
    click.echo(f"Results written to {output_dir}")
