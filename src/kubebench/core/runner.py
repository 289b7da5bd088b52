#!/usr/bin/env python3
"""
Job runner for the kube-bench job runner.

Submits a Job and blocks until it succeeds, fails, or the run context is
cancelled. A Job that is never retried has exactly two outcomes on the
cluster; cancellation is a third, local one.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from ..context import RunContext
from ..errors import ClusterAPIError, ExecutionFailure, ScanCancelled, SubmissionError
from ..infra.communicator import ClusterCommunicator
from ..models.job import JobDescriptor, JobState, JobStatus


LOGGER = logging.getLogger("kubebench.runner")


@dataclass(frozen=True)
class JobOutcome:
    """Terminal result of a successful run."""
    state: JobState
    elapsed_seconds: float


class JobRunner:
    """
    Runs a Job to completion.

    The runner does not delete the Job; see lifecycle.submitted_job.
    """

    def __init__(
        self,
        communicator: ClusterCommunicator,
        poll_interval: float = 2.0,
        request_timeout: Optional[float] = 30.0,
    ):
        """
        Initialize the runner.

        Args:
            communicator: Cluster communicator
            poll_interval: Seconds between Job status checks
            request_timeout: Per-request timeout in seconds
        """
        self.communicator = communicator
        self.poll_interval = poll_interval
        self.request_timeout = request_timeout

    def submit(self, ctx: RunContext, job: JobDescriptor) -> None:
        """
        Create the Job without waiting.

        Raises:
            ScanCancelled: If the context is already done
            SubmissionError: If the API server rejects the Job
        """
        ctx.check()
        try:
            self.communicator.submit_job(job, timeout=ctx.request_timeout(self.request_timeout))
        except ClusterAPIError as e:
            ctx.check(e)
            raise SubmissionError(f"job {job.ref} rejected: {e}", status=e.status) from e
        LOGGER.info("Submitted job %s", job.ref)

    def wait(self, ctx: RunContext, job: JobDescriptor) -> JobOutcome:
        """
        Poll the Job until it reaches a terminal state.

        Args:
            ctx: Run context; cancellation interrupts the wait
            job: Submitted Job

        Returns:
            JobOutcome for a succeeded Job

        Raises:
            ExecutionFailure: If the Job failed or disappeared
            ScanCancelled: If the context was cancelled first
        """
        start = time.monotonic()
        attempt = 0

        while True:
            ctx.check()
            attempt += 1
            status = self._read_status(ctx, job)
            LOGGER.debug("Job %s status (check %d): %s", job.ref, attempt, status.state.value)

            if status.state == JobState.SUCCEEDED:
                elapsed = time.monotonic() - start
                LOGGER.info("Job %s succeeded after %.1fs", job.ref, elapsed)
                return JobOutcome(state=JobState.SUCCEEDED, elapsed_seconds=elapsed)

            if status.state == JobState.FAILED:
                raise ExecutionFailure(
                    f"job {job.ref} failed: {status.reason or 'unknown reason'}"
                    + (f": {status.message}" if status.message else ""),
                    reason=status.reason,
                )

            if ctx.wait(self.poll_interval):
                raise ScanCancelled(
                    f"waiting for job {job.ref}: {ctx.reason or 'context cancelled'}"
                )

    def _read_status(self, ctx: RunContext, job: JobDescriptor) -> JobStatus:
        try:
            return ctx.call(
                self.communicator.get_job_status,
                job.name,
                job.namespace,
                timeout=ctx.request_timeout(self.request_timeout),
            )
        except ClusterAPIError as e:
            ctx.check(e)
            if e.not_found:
                raise ExecutionFailure(
                    f"job {job.ref} not found while waiting", reason="NotFound"
                ) from e
            raise ExecutionFailure(
                f"reading status of job {job.ref}: {e}", reason="StatusUnavailable"
            ) from e

    def run(self, ctx: RunContext, job: JobDescriptor) -> JobOutcome:
        """
        Submit the Job and wait for it to finish.

        Raises:
            SubmissionError, ExecutionFailure, ScanCancelled
        """
        self.submit(ctx, job)
        return self.wait(ctx, job)
