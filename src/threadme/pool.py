"""Bounded job pool with one-way cancellation."""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Iterator
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass

from threadme.executor import ExecutionResult, Executor, ExecutorError

logger = logging.getLogger(__name__)

_SLOT_POLL_SECONDS = 0.05


class JobPoolError(RuntimeError):
    """The pool machinery itself failed; individual job failures never raise this."""


@dataclass(frozen=True, slots=True)
class Job:
    """One materialized command bound to its source index."""

    index: int
    command: str


@dataclass(slots=True)
class JobPolicy:
    """Per-job execution and stop rules shared by all handlers."""

    timeout_seconds: float = 60.0
    delay_seconds: float = 0.01
    stop_on: str | None = None
    continue_while: str | None = None
    total: str = "?"


@dataclass(slots=True)
class PoolSummary:
    """Aggregate job counters for CLI reporting."""

    submitted: int = 0
    succeeded: int = 0
    failed: int = 0
    timed_out: int = 0


class JobPool:
    """Runs at most ``concurrency`` jobs at once and stops admitting on cancel.

    ``submit`` blocks while every slot is taken. Once cancelled, no further job
    is admitted; jobs already running finish on their own (subject to their
    timeout) and ``wait`` drains them.
    """

    def __init__(self, *, executor: Executor, concurrency: int, policy: JobPolicy) -> None:
        if concurrency <= 1:
            raise ValueError("JobPool concurrency must be > 1.")
        self.executor = executor
        self.concurrency = concurrency
        self.policy = policy
        self.summary = PoolSummary()
        self.cancel_reason: str | None = None
        self._slots = threading.BoundedSemaphore(concurrency)
        self._cancelled = threading.Event()
        self._cancel_lock = threading.RLock()
        self._counter_lock = threading.Lock()
        self._failures: list[BaseException] = []
        self._workers = ThreadPoolExecutor(
            max_workers=concurrency,
            thread_name_prefix="threadme-job",
        )

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self, reason: str) -> bool:
        """Trigger cancellation; returns False if it was already triggered."""

        with self._cancel_lock:
            if self._cancelled.is_set():
                return False
            self.cancel_reason = reason
            self._cancelled.set()
        logger.warning("> Stopping all workers! (%s)", reason)
        return True

    def submit(self, job: Job) -> bool:
        """Admit a job once a slot frees up; returns False if cancelled first."""

        while not self._slots.acquire(timeout=_SLOT_POLL_SECONDS):
            if self._cancelled.is_set():
                return False
        if self._cancelled.is_set():
            self._slots.release()
            return False

        try:
            future = self._workers.submit(self._run_job, job)
        except RuntimeError as error:
            self._slots.release()
            raise JobPoolError(f"Job pool is closed; cannot submit job {job.index}") from error

        with self._counter_lock:
            self.summary.submitted += 1
        future.add_done_callback(self._record_failure)
        return True

    def wait(self) -> None:
        """Block until every admitted job has finished."""

        self._workers.shutdown(wait=True)
        if self._failures:
            raise JobPoolError(
                f"{len(self._failures)} job handler(s) crashed: {self._failures[0]!r}",
            ) from self._failures[0]

    def abort(self, reason: str) -> int:
        """Cancel and kill the process groups of jobs still running."""

        self.cancel(reason)
        killed = self.executor.terminate_all()
        logger.warning("> Killed %d running job(s) (%s)", killed, reason)
        return killed

    @contextmanager
    def signal_handlers(self) -> Iterator[None]:
        """Turn SIGINT/SIGTERM into pool cancellation for the duration of a run.

        The first signal stops admission and lets running jobs finish. A second
        one kills their process groups and restores the previous handlers, so a
        third falls through to the default behaviour.
        """

        if not hasattr(signal, "SIGINT"):
            yield
            return

        original_sigint = signal.getsignal(signal.SIGINT)
        original_sigterm = signal.getsignal(signal.SIGTERM)

        def _restore() -> None:
            signal.signal(signal.SIGINT, original_sigint)
            signal.signal(signal.SIGTERM, original_sigterm)

        def _handler(signum: int, _: object | None) -> None:
            try:
                name = signal.Signals(signum).name
            except ValueError:
                name = str(signum)
            if self.cancel(f"received {name}"):
                return
            self.abort(f"received {name} again")
            _restore()

        try:
            signal.signal(signal.SIGINT, _handler)
            signal.signal(signal.SIGTERM, _handler)
        except ValueError:
            # Signal handlers can only be installed in main thread.
            yield
            return

        try:
            yield
        finally:
            _restore()

    def _run_job(self, job: Job) -> None:
        try:
            self._handle_job(job)
        finally:
            self._slots.release()

    def _handle_job(self, job: Job) -> None:
        policy = self.policy
        try:
            result = self.executor.execute(job.command, policy.timeout_seconds)
        except ExecutorError as error:
            result = ExecutionResult(stdout=b"", stderr=b"", exit_code=None, error=str(error))

        output = result.stdout.decode("utf-8", errors="replace").strip()
        error_text = _normalize_error(result)
        tag = f"[{job.index}/{policy.total}] [{job.command}]"

        if error_text:
            # Job failures stay local: logged, counted, never raised.
            logger.error("ERROR: %s ==> [%s]", tag, error_text)
            with self._counter_lock:
                self.summary.failed += 1
                if result.timed_out:
                    self.summary.timed_out += 1
        else:
            logger.info("%s ==> [%s]", tag, output)
            with self._counter_lock:
                self.summary.succeeded += 1

        if policy.continue_while and policy.continue_while not in output:
            logger.warning("> Required message missing: %s", output)
            self.cancel(f"job {job.index} output lacks {policy.continue_while!r}")
            return

        if policy.stop_on:
            need_to_stop = False
            if policy.stop_on in output:
                logger.warning("> Stop output message found: %s", output)
                need_to_stop = True
            if policy.stop_on in error_text:
                logger.warning("> Stop error message found: %s", error_text)
                need_to_stop = True
            if need_to_stop:
                self.cancel(f"job {job.index} matched {policy.stop_on!r}")
                return

        self._cancelled.wait(timeout=policy.delay_seconds)

    def _record_failure(self, future: Future[None]) -> None:
        error = future.exception()
        if error is None:
            return
        logger.error("Job handler crashed: %r", error)
        with self._counter_lock:
            self._failures.append(error)


def _normalize_error(result: ExecutionResult) -> str:
    parts: list[str] = []
    stderr = result.stderr.decode("utf-8", errors="replace").strip()
    if stderr:
        parts.append(stderr)
    if result.error and result.error.strip():
        parts.append(result.error.strip())
    return "; ".join(parts)
