"""Aggregate a harness result table into per-model summaries.

For each model: number of successful trials, mean, sample standard deviation
(ddof=1), and the empirical percentile interval at the requested confidence
level (2.5/97.5 percentiles for 95%). Coverage is the share of completed
trials that produced a metric for the model.
"""

from __future__ import annotations

from typing import Any, Sequence
import json

import numpy as np
import pandas as pd

from resampleval.config import Config


SUMMARY_COLUMNS: list[str] = ["model", "n", "mean", "std", "ci_lower", "ci_upper", "coverage"]


def summarize_results(
    table: pd.DataFrame,
    confidence_level: float = Config.DEFAULT_CONFIDENCE_LEVEL,
    *,
    n_trials: int | None = None,
    model_order: Sequence[str] | None = None,
) -> pd.DataFrame:
    """Summarize a ``trial, model, value`` table per model.

    Parameters
    ----------
    table:
        Result table from the harness (or read back from ``trials.csv``).
    confidence_level:
        Interval level in (0, 1).
    n_trials:
        Completed trial count used as the coverage denominator. Defaults to
        the number of distinct trials in ``table``.
    model_order:
        Models to report, in order. Models without any successful trial are
        kept with ``n = 0`` and NaN statistics.
    """

    cl = float(confidence_level)
    if not (0.0 < cl < 1.0):
        raise ValueError("confidence_level must be in (0,1)")
    missing = [c for c in ("trial", "model", "value") if c not in table.columns]
    if missing:
        raise ValueError(f"Result table is missing columns: {missing}")

    denom = int(n_trials) if n_trials is not None else int(table["trial"].nunique())
    names = list(model_order) if model_order is not None else list(pd.unique(table["model"]))
    alpha = 1.0 - cl

    records: list[dict[str, Any]] = []
    for name in names:
        values = table.loc[table["model"] == name, "value"].to_numpy(dtype=float)
        n = len(values)
        if n == 0:
            records.append(
                {"model": name, "n": 0, "mean": np.nan, "std": np.nan, "ci_lower": np.nan, "ci_upper": np.nan, "coverage": 0.0}
            )
            continue
        records.append(
            {
                "model": name,
                "n": n,
                "mean": float(np.mean(values)),
                "std": float(np.std(values, ddof=1)) if n > 1 else 0.0,
                "ci_lower": float(np.percentile(values, 100.0 * (alpha / 2.0))),
                "ci_upper": float(np.percentile(values, 100.0 * (1.0 - alpha / 2.0))),
                "coverage": (n / denom) if denom > 0 else 0.0,
            }
        )
    return pd.DataFrame(records, columns=SUMMARY_COLUMNS)


def select_best_model(summary: pd.DataFrame, *, lower_is_better: bool = True) -> str:
    """Return the model with the best mean metric.

    Models with no successful trials are ignored. Ties resolve to the first
    model in ``summary`` order.
    """

    scored = summary[summary["n"] > 0]
    if scored.empty:
        raise ValueError("No model has a successful trial to compare.")
    idx = scored["mean"].idxmin() if lower_is_better else scored["mean"].idxmax()
    return str(scored.loc[idx, "model"])


def _fmt(value: Any, spec: str) -> str:
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return "-"
    return format(value, spec)


def format_summary(summary: pd.DataFrame, output_format: str = "table") -> str:
    """Format a summary as an ASCII table, Markdown, CSV, or JSON."""

    if output_format == "json":
        clean = summary.astype(object).where(summary.notna(), None)
        return json.dumps(clean.to_dict(orient="records"), indent=2)

    if output_format == "csv":
        return summary.to_csv(index=False).rstrip("\n")

    headers = ["Model", "N", "Mean", "Std", "CI lower", "CI upper", "Coverage (%)"]
    rows: list[list[str]] = []
    for rec in summary.to_dict(orient="records"):
        rows.append(
            [
                str(rec["model"]),
                str(int(rec["n"])),
                _fmt(rec["mean"], ".4f"),
                _fmt(rec["std"], ".4f"),
                _fmt(rec["ci_lower"], ".4f"),
                _fmt(rec["ci_upper"], ".4f"),
                _fmt(float(rec["coverage"]) * 100.0, ".1f"),
            ]
        )

    if output_format == "markdown":
        out_lines = ["| " + " | ".join(headers) + " |", "| " + " | ".join(["---"] * len(headers)) + " |"]
        for r in rows:
            out_lines.append("| " + " | ".join(r) + " |")
        return "\n".join(out_lines)

    if output_format != "table":
        raise ValueError(f"Unknown output format: {output_format!r}")

    widths = [max(len(h), *(len(r[i]) for r in rows)) if rows else len(h) for i, h in enumerate(headers)]

    def _fmt_row(cols: list[str]) -> str:
        return " | ".join(col.ljust(widths[i]) for i, col in enumerate(cols))

    sep = "-+-".join("-" * w for w in widths)
    lines = [_fmt_row(headers), sep]
    for r in rows:
        lines.append(_fmt_row(r))
    return "\n".join(lines)


__all__ = [
    "SUMMARY_COLUMNS",
    "summarize_results",
    "select_best_model",
    "format_summary",
]
