from __future__ import annotations

from pathlib import Path

import click
import pandas as pd

from resampleval.config import Config
from resampleval.summary import format_summary, summarize_results
from resampleval.utils import read_json


@click.command(name="summarize")
@click.option("trials_file", "--trials", type=click.Path(path_type=Path), required=True, help="trials.csv written by 'resampleval evaluate'")
@click.option("confidence_level", "--confidence-level", type=float, default=Config.DEFAULT_CONFIDENCE_LEVEL, show_default=True, help="Percentile interval level")
@click.option("n_trials", "--n-trials", type=int, required=False, help="Completed trial count for coverage (default: from summary.json beside the file, else distinct trials)")
@click.option("fmt", "--format", type=click.Choice(["table", "markdown", "csv", "json"], case_sensitive=False), default="table", show_default=True, help="Output format")
def summarize(trials_file: Path, confidence_level: float, n_trials: int | None, fmt: str) -> None:
    """Summarize a saved result table per model.

    Examples:
      resampleval summarize --trials results/resampling/lidar/split/trials.csv
      resampleval summarize --trials trials.csv --confidence-level 0.9 --format markdown
    """

    try:
        if not trials_file.exists():
            raise FileNotFoundError(f"Missing trials file: {trials_file}")
        table = pd.read_csv(trials_file)
        model_order = None
        # trials where every model failed leave no row; the run metadata still counts them
        run_file = trials_file.parent / "summary.json"
        if run_file.exists():
            run = read_json(run_file)
            model_order = run.get("models")
            if n_trials is None:
                n_trials = run.get("n_completed")
        summary = summarize_results(table, confidence_level, n_trials=n_trials, model_order=model_order)
        click.echo(format_summary(summary, fmt.lower()))
    except FileNotFoundError as e:
        click.secho(str(e), fg="red", err=True)
        click.secho("Hint: run 'resampleval evaluate' to create results first.", fg="yellow")
        raise SystemExit(1)
    except ValueError as e:
        click.secho(str(e), fg="red", err=True)
        raise SystemExit(1)
