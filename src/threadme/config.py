"""Runtime configuration for the job runner."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_INTERPRETER = "/bin/sh"


@dataclass(slots=True)
class RunnerSettings:
    """Job runner settings resolved from environment and CLI overrides."""

    command: str = ""
    file_path: Path | None = None
    concurrency: int = 5
    delay_ms: int = 10
    timeout_ms: int = 60_000
    count: int = 100
    stop_on: str | None = None
    continue_while: str | None = None
    forever: bool = False
    interpreter: str = DEFAULT_INTERPRETER

    @classmethod
    def from_env(cls) -> RunnerSettings:
        """Load defaults from environment; CLI options are applied on top."""

        return cls(
            concurrency=_env_int("THREADME_CONCURRENCY", 5),
            delay_ms=_env_int("THREADME_DELAY_MS", 10),
            timeout_ms=_env_int("THREADME_TIMEOUT_MS", 60_000),
            count=_env_int("THREADME_COUNT", 100),
            interpreter=os.getenv("THREADME_SHELL", "").strip() or DEFAULT_INTERPRETER,
        )

    @property
    def delay_seconds(self) -> float:
        """Inter-completion delay; negative values are clamped to 1 ms."""

        if self.delay_ms < 0:
            return 0.001
        return self.delay_ms / 1000

    @property
    def timeout_seconds(self) -> float:
        return max(0, self.timeout_ms) / 1000

    def validate(self) -> None:
        """Raise configuration error before any job runs."""

        self.command = self.command.strip()
        if not self.command:
            raise ValueError(
                "Empty command. Example: threadme -c 5 --cmd 'echo \"{{N}}:{{LINE}}\"'",
            )
        if self.concurrency <= 1:
            raise ValueError(
                "Concurrency must be > 1 (THREADME_CONCURRENCY / --concurrency); "
                "a concurrency of 1 is plain sequential execution.",
            )
        if self.forever and self.file_path is not None:
            raise ValueError("--forever cannot be combined with --file.")
        if self.count < 0:
            raise ValueError("Job count must be >= 0 (THREADME_COUNT / --count).")
        if self.timeout_ms < 0:
            raise ValueError("Timeout must be >= 0 (THREADME_TIMEOUT_MS / --timeout-ms).")
        if not self.interpreter.strip():
            raise ValueError("Interpreter path is empty (THREADME_SHELL / --shell).")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error
