"""Dispatch loop: turn source items into pool submissions."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from threadme.materialize import materialize
from threadme.pool import Job, JobPool, PoolSummary
from threadme.source import JobSource

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DispatchSummary:
    """Outcome of one run for CLI reporting."""

    dispatched: int
    cancelled: bool
    cancel_reason: str | None
    jobs: PoolSummary
    elapsed_seconds: float


def dispatch(*, source: JobSource, template: str, pool: JobPool) -> DispatchSummary:
    """Submit one job per source item until exhausted or cancelled, then drain."""

    started = time.monotonic()
    dispatched = 0
    with pool.signal_handlers():
        for item in source:
            if pool.cancelled:
                break
            job = Job(index=item.index, command=materialize(template, item.index, item.line))
            if not pool.submit(job):
                break
            dispatched += 1
        if pool.cancelled:
            logger.info("> Dispatch stopped after %d job(s); draining running jobs", dispatched)
        pool.wait()

    return DispatchSummary(
        dispatched=dispatched,
        cancelled=pool.cancelled,
        cancel_reason=pool.cancel_reason,
        jobs=pool.summary,
        elapsed_seconds=time.monotonic() - started,
    )
