"""CLI entrypoint for file-processor."""

import logging
import os
from pathlib import Path

import rich_click as click

from file_processor import __version__
from file_processor.batch import BatchInputError
from file_processor.config import SUPPORTED_MODES
from file_processor.controllers import (
    FileProcessorCliController,
    InspectFileCommand,
    RunBatchCommand,
)

click.rich_click.USE_MARKDOWN = True
CONTROLLER = FileProcessorCliController()


@click.group()
@click.version_option(version=__version__, prog_name="file-processor")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Logging level. Defaults to FILE_PROCESSOR_LOG_LEVEL or WARNING.",
)
def file_processor(log_level: str | None) -> None:
    """Process sales CSV, user JSON and system LOG files in parallel."""

    level = (log_level or os.getenv("FILE_PROCESSOR_LOG_LEVEL", "WARNING")).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(processName)s %(name)s: %(message)s",
    )


@file_processor.command("run")
@click.argument(
    "paths",
    nargs=-1,
    required=True,
    type=click.Path(path_type=Path),
)
@click.option(
    "--mode",
    "-m",
    type=click.Choice(SUPPORTED_MODES, case_sensitive=False),
    default=None,
    help=(
        "Processing mode. Defaults to FILE_PROCESSOR_MODE or parallel. "
        "Unbounded mode reports each distinct path once, so repeated inputs are merged."
    ),
)
@click.option(
    "--timeout-ms",
    "-t",
    type=click.IntRange(min=1),
    default=None,
    help="Per-attempt timeout in milliseconds.",
)
@click.option(
    "--retries",
    "-r",
    type=click.IntRange(min=0),
    default=None,
    help="Additional attempts after a failed one.",
)
@click.option(
    "--max-workers",
    "-w",
    type=click.IntRange(min=1),
    default=None,
    help="Worker bound for parallel mode.",
)
@click.option(
    "--output",
    "-o",
    "output_dir",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Report output directory.",
)
@click.option(
    "--report/--no-report",
    "write_report",
    default=None,
    help="Write a text report to the output directory.",
)
@click.option("--quiet", "-q", is_flag=True, default=False, help="Hide progress lines.")
@click.option(
    "--strict",
    is_flag=True,
    default=False,
    help="Exit with an error when any file fails.",
)
def run(  # noqa: PLR0913
    paths: tuple[Path, ...],
    mode: str | None,
    timeout_ms: int | None,
    retries: int | None,
    max_workers: int | None,
    output_dir: Path | None,
    write_report: bool | None,
    quiet: bool,
    strict: bool,
) -> None:
    """Process a directory or a list of files and write a report."""

    try:
        result = CONTROLLER.run(
            RunBatchCommand(
                paths=paths,
                mode=mode,
                timeout_ms=timeout_ms,
                retries=retries,
                max_workers=max_workers,
                output_dir=output_dir,
                write_report=write_report,
                emit=None if quiet else click.echo,
            ),
        )
    except (BatchInputError, ValueError) as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(result.lines)
    if strict and not result.success:
        raise click.ClickException("Some files failed to process.")


@file_processor.command("inspect")
@click.argument("path", type=click.Path(path_type=Path, dir_okay=False))
@click.option("--timeout-ms", "-t", type=click.IntRange(min=1), default=None)
@click.option("--retries", "-r", type=click.IntRange(min=0), default=None)
def inspect(path: Path, timeout_ms: int | None, retries: int | None) -> None:
    """Process one file and show its metrics and line-level errors."""

    try:
        result = CONTROLLER.inspect(
            InspectFileCommand(path=path, timeout_ms=timeout_ms, retries=retries),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException(f"Could not process {path}.")


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    file_processor()
