"""Command-line interface for resampleval using Click command groups."""

from __future__ import annotations

from typing import NoReturn
import logging

import click

from resampleval import __version__


@click.group()
@click.version_option(version=__version__)
@click.option("verbose", "-v", "--verbose", count=True, help="Increase log verbosity (-v info, -vv debug)")
def cli(verbose: int) -> None:
    """resampleval: resampling evaluation of regression and smoothing models."""

    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


# Register subcommands
from resampleval.commands.evaluate import evaluate  # noqa: E402
from resampleval.commands.summarize import summarize  # noqa: E402

cli.add_command(evaluate)
cli.add_command(summarize)


def main() -> NoReturn:
    """Entry point for the CLI."""
    cli()
