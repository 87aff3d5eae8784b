"""Shared test fixtures."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field

import pytest

from threadme.executor import ExecutionResult


@dataclass
class RecordingExecutor:
    """In-process executor that echoes the command and tracks concurrency."""

    hold_seconds: float = 0.02
    outputs: dict[str, str] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    executed: list[str] = field(default_factory=list)
    max_active: int = 0
    terminate_calls: int = 0
    _active: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def execute(self, command: str, timeout_seconds: float) -> ExecutionResult:
        with self._lock:
            self._active += 1
            self.max_active = max(self.max_active, self._active)
            self.executed.append(command)
        try:
            time.sleep(self.hold_seconds)
        finally:
            with self._lock:
                self._active -= 1
        error = self.errors.get(command)
        return ExecutionResult(
            stdout=self.outputs.get(command, command).encode("utf-8"),
            stderr=b"",
            exit_code=1 if error else 0,
            error=error,
        )

    def terminate_all(self) -> int:
        with self._lock:
            self.terminate_calls += 1
            return self._active


@pytest.fixture()
def recording_executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture(autouse=True)
def _clean_threadme_env(monkeypatch):
    for name in (
        "THREADME_CONCURRENCY",
        "THREADME_DELAY_MS",
        "THREADME_TIMEOUT_MS",
        "THREADME_COUNT",
        "THREADME_SHELL",
    ):
        monkeypatch.delenv(name, raising=False)
