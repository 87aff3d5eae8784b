"""Executor interface for running one materialized command."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class ExecutorError(RuntimeError):
    """Command could not be started at all."""


@dataclass(slots=True)
class ExecutionResult:
    """Buffered outcome of one command run."""

    stdout: bytes
    stderr: bytes
    exit_code: int | None
    timed_out: bool = False
    error: str | None = None


class Executor(Protocol):
    """Protocol implemented by command runners used by the job pool."""

    def execute(self, command: str, timeout_seconds: float) -> ExecutionResult:
        """Run the command to completion (or timeout) and return buffered output."""

    def terminate_all(self) -> int:
        """Kill every command still running and refuse to let new ones live."""
