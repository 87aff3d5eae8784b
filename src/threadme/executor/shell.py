"""Subprocess executor with process-group timeout kill."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading

from threadme.config import DEFAULT_INTERPRETER
from threadme.executor.base import ExecutionResult, ExecutorError

logger = logging.getLogger(__name__)

_ABORT_SIGNAL = getattr(signal, "SIGKILL", signal.SIGTERM)


class ShellExecutor:
    """Run commands through ``<interpreter> -c <command>`` in a fresh process group."""

    def __init__(self, interpreter: str = DEFAULT_INTERPRETER) -> None:
        self.interpreter = interpreter
        self._running: set[subprocess.Popen[bytes]] = set()
        self._running_lock = threading.Lock()
        self._aborted = False

    def execute(self, command: str, timeout_seconds: float) -> ExecutionResult:
        run_args = [self.interpreter, "-c", self._strip_interpreter_prefix(command)]
        try:
            process = subprocess.Popen(  # noqa: S603
                run_args,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=True,
            )
        except FileNotFoundError as error:
            raise ExecutorError(f"Interpreter not found: {self.interpreter}") from error
        except OSError as error:
            raise ExecutorError(f"Failed to start command: {error}") from error

        with self._running_lock:
            self._running.add(process)
            aborted = self._aborted
        if aborted:
            _signal_process_group(process, _ABORT_SIGNAL)

        try:
            return self._wait_for(process, timeout_seconds)
        finally:
            with self._running_lock:
                self._running.discard(process)

    def terminate_all(self) -> int:
        """Kill the process groups of every running command; later spawns die at once.

        Returns how many groups were signalled.
        """

        with self._running_lock:
            self._aborted = True
            running = list(self._running)
        return sum(_signal_process_group(process, _ABORT_SIGNAL) for process in running)

    def _wait_for(
        self,
        process: subprocess.Popen[bytes],
        timeout_seconds: float,
    ) -> ExecutionResult:
        killed = threading.Event()
        timer: threading.Timer | None = None
        if timeout_seconds > 0:
            timer = threading.Timer(
                timeout_seconds,
                _terminate_process_group,
                kwargs={"process": process, "killed": killed},
            )
            timer.daemon = True
            timer.start()

        try:
            stdout, stderr = process.communicate()
        finally:
            if timer is not None:
                timer.cancel()

        timed_out = killed.is_set()
        return ExecutionResult(
            stdout=stdout,
            stderr=stderr,
            exit_code=process.returncode,
            timed_out=timed_out,
            error=_describe_exit(
                process.returncode,
                timed_out=timed_out,
                timeout_seconds=timeout_seconds,
            ),
        )

    def _strip_interpreter_prefix(self, command: str) -> str:
        return command.removeprefix(f"{self.interpreter} -c ")


def _terminate_process_group(
    *,
    process: subprocess.Popen[bytes],
    killed: threading.Event,
) -> None:
    if _signal_process_group(process, signal.SIGTERM):
        killed.set()


def _signal_process_group(process: subprocess.Popen[bytes], signum: int) -> bool:
    if not hasattr(os, "killpg"):
        try:
            process.kill()
        except OSError as error:
            logger.warning("(Warning: %s)", error)
            return False
        return True

    try:
        pgid = os.getpgid(process.pid)
        os.killpg(pgid, signum)
    except OSError as error:
        # Group already gone: the command finished right before the signal.
        logger.warning("(Warning: %s)", error)
        return False
    return True


def _describe_exit(returncode: int, *, timed_out: bool, timeout_seconds: float) -> str | None:
    if returncode == 0 and not timed_out:
        return None

    if returncode < 0:
        try:
            reason = f"signal: {signal.Signals(-returncode).name}"
        except ValueError:
            reason = f"signal: {-returncode}"
    else:
        reason = f"exit status {returncode}"

    if timed_out:
        return f"{reason} (timed out after {timeout_seconds:g}s)"
    return reason
