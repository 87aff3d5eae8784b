"""Controller for the job runner CLI command."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from threadme.config import RunnerSettings
from threadme.dispatch import DispatchSummary, dispatch
from threadme.executor import Executor, ShellExecutor
from threadme.pool import JobPolicy, JobPool
from threadme.source import JobSource, SourceMode

_SEPARATOR = "-" * 80


@dataclass(slots=True)
class RunCommand:
    """CLI input for one run; ``None`` means use the environment default."""

    command: str
    file_path: Path | None = None
    concurrency: int | None = None
    delay_ms: int | None = None
    timeout_ms: int | None = None
    count: int | None = None
    stop_on: str | None = None
    continue_while: str | None = None
    forever: bool = False
    interpreter: str | None = None


@dataclass(slots=True)
class PreparedRun:
    """Validated settings and job source, ready to dispatch."""

    settings: RunnerSettings
    source: JobSource
    banner: list[str]


@dataclass(slots=True)
class RunReport:
    """Run result to render in CLI."""

    lines: list[str]
    summary: DispatchSummary

    @property
    def exit_code(self) -> int:
        return 1 if self.summary.cancelled else 0


class RunnerCliController:
    """Validates CLI input, prints the banner and drives one dispatch run."""

    def prepare(self, command: RunCommand) -> PreparedRun:
        """Resolve settings and source; raises ValueError on configuration errors."""

        settings = _resolve_settings(command)
        settings.validate()

        if settings.forever:
            source = JobSource.forever()
        elif settings.file_path is not None:
            source = JobSource.from_file(settings.file_path)
        else:
            source = JobSource.from_count(settings.count)

        return PreparedRun(settings=settings, source=source, banner=_banner(settings, source))

    def execute(self, prepared: PreparedRun, executor: Executor | None = None) -> RunReport:
        settings = prepared.settings
        pool = JobPool(
            executor=executor or ShellExecutor(settings.interpreter),
            concurrency=settings.concurrency,
            policy=JobPolicy(
                timeout_seconds=settings.timeout_seconds,
                delay_seconds=settings.delay_seconds,
                stop_on=settings.stop_on or None,
                continue_while=settings.continue_while or None,
                total=prepared.source.total,
            ),
        )
        summary = dispatch(source=prepared.source, template=settings.command, pool=pool)

        lines = [
            f"> Duration: {summary.elapsed_seconds:.3f}s",
            "Run summary: "
            f"dispatched={summary.dispatched} succeeded={summary.jobs.succeeded} "
            f"failed={summary.jobs.failed} timed_out={summary.jobs.timed_out} "
            f"cancelled={'yes' if summary.cancelled else 'no'}",
        ]
        if summary.cancel_reason:
            lines.append(f"Stop reason: {summary.cancel_reason}")
        return RunReport(lines=lines, summary=summary)


def _resolve_settings(command: RunCommand) -> RunnerSettings:
    settings = RunnerSettings.from_env()
    settings.command = command.command
    settings.file_path = command.file_path
    settings.stop_on = command.stop_on
    settings.continue_while = command.continue_while
    settings.forever = command.forever
    if command.concurrency is not None:
        settings.concurrency = command.concurrency
    if command.delay_ms is not None:
        settings.delay_ms = command.delay_ms
    if command.timeout_ms is not None:
        settings.timeout_ms = command.timeout_ms
    if command.count is not None:
        settings.count = command.count
    if command.interpreter is not None:
        settings.interpreter = command.interpreter
    return settings


def _banner(settings: RunnerSettings, source: JobSource) -> list[str]:
    lines = [f"{'Command':>20}: [{settings.command}]"]
    if source.mode is SourceMode.FILE:
        lines.append(f"{'File to read':>20}: [{settings.file_path}]")
        lines.append(f"{'Lines in file':>20}: [{source.total}]")
    elif source.mode is SourceMode.FOREVER:
        lines.append(f"{'Job count to perform':>20}: [{source.total}]")
    else:
        lines.append(f"{'Job count to perform':>20}: [{settings.count}]")
    lines.append(f"{'Threads':>20}: [{settings.concurrency}]")
    lines.append(f"{'Delay':>20}: {round(settings.delay_seconds * 1000)} ms")
    lines.append(f"{'Timeout for single job':>20}: {settings.timeout_ms} ms")
    if settings.interpreter:
        lines.append(f"{'Interpreter':>20}: [{settings.interpreter}]")
    if settings.stop_on:
        lines.append(f"{'Stop if contains':>20}: '{settings.stop_on}'")
    if settings.continue_while:
        lines.append(f"{'Continue while':>20}: '{settings.continue_while}'")
    lines.append(_SEPARATOR)
    return lines
