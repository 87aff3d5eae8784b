"""CLI entrypoint for threadme."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import rich_click as click

from threadme import __version__
from threadme.controllers import RunCommand, RunnerCliController

click.rich_click.USE_MARKDOWN = True
RUNNER_CONTROLLER = RunnerCliController()
LOG_FORMAT = "%(asctime)s %(message)s"


@click.command()
@click.version_option(version=__version__, prog_name="threadme")
@click.option(
    "--cmd",
    "command",
    required=True,
    help="Command to execute. `{{N}}` is replaced by the job index, `{{LINE}}` by the line.",
)
@click.option(
    "-f",
    "--file",
    "file_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="File to read; one job per line, `{{LINE}}` is replaced by the line.",
)
@click.option(
    "-c",
    "--concurrency",
    type=int,
    default=None,
    help="Jobs running at once (must be > 1). Default: THREADME_CONCURRENCY or 5.",
)
@click.option(
    "-d",
    "--delay-ms",
    type=int,
    default=None,
    help="Delay after each completed job in milliseconds. Default: THREADME_DELAY_MS or 10.",
)
@click.option(
    "-t",
    "--timeout-ms",
    type=int,
    default=None,
    help="Time limit for a single job in milliseconds, 0 disables. "
    "Default: THREADME_TIMEOUT_MS or 60000.",
)
@click.option(
    "-n",
    "--count",
    type=int,
    default=None,
    help="How many jobs to run when no file is given. Default: THREADME_COUNT or 100.",
)
@click.option(
    "--stop-on",
    default=None,
    help="If any job output or error contains this text, all work stops.",
)
@click.option(
    "--while",
    "continue_while",
    default=None,
    help="Keep running only while every job output contains this text.",
)
@click.option(
    "--forever/--no-forever",
    default=False,
    show_default=True,
    help="Run jobs with ever-increasing `{{N}}` until stopped. Cannot be used with --file.",
)
@click.option(
    "--shell",
    "interpreter",
    default=None,
    help="Interpreter invoked as `<shell> -c <command>`. Default: THREADME_SHELL or /bin/sh.",
)
def threadme(  # noqa: PLR0913
    command: str,
    file_path: Path | None,
    concurrency: int | None,
    delay_ms: int | None,
    timeout_ms: int | None,
    count: int | None,
    stop_on: str | None,
    continue_while: str | None,
    forever: bool,
    interpreter: str | None,
) -> None:
    """Run a shell command template many times with bounded concurrency."""

    try:
        prepared = RUNNER_CONTROLLER.prepare(
            RunCommand(
                command=command,
                file_path=file_path,
                concurrency=concurrency,
                delay_ms=delay_ms,
                timeout_ms=timeout_ms,
                count=count,
                stop_on=stop_on,
                continue_while=continue_while,
                forever=forever,
                interpreter=interpreter,
            ),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error

    _emit_lines(prepared.banner)
    with _job_logging():
        report = RUNNER_CONTROLLER.execute(prepared)
    _emit_lines(report.lines)
    if report.exit_code:
        sys.exit(report.exit_code)


@contextmanager
def _job_logging() -> Iterator[None]:
    package_logger = logging.getLogger("threadme")
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    previous_level = package_logger.level
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.INFO)
    try:
        yield
    finally:
        package_logger.removeHandler(handler)
        package_logger.setLevel(previous_level)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    threadme()
