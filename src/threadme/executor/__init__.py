"""Command executors."""

from threadme.executor.base import ExecutionResult, Executor, ExecutorError
from threadme.executor.shell import ShellExecutor

__all__ = [
    "ExecutionResult",
    "Executor",
    "ExecutorError",
    "ShellExecutor",
]
