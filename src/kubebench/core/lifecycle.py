#!/usr/bin/env python3
"""
Lifecycle management for kube-bench Jobs.

The Job runs privileged with host mounts, so it must never outlive the scan.
submitted_job() brackets everything from submission to report parsing and
deletes the Job exactly once on the way out, whatever happened inside.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from ..errors import ClusterAPIError
from ..infra.communicator import PROPAGATION_BACKGROUND, ClusterCommunicator
from ..models.job import JobDescriptor


LOGGER = logging.getLogger("kubebench.lifecycle")


class JobCleanup:
    """
    Deletes one Job at most once.

    Deletion errors are logged and kept in `error`; they are never raised,
    so they cannot replace the scan's own result or exception.
    """

    def __init__(
        self,
        communicator: ClusterCommunicator,
        job: JobDescriptor,
        request_timeout: Optional[float] = 30.0,
    ):
        self.communicator = communicator
        self.job = job
        self.request_timeout = request_timeout
        self.done = False
        self.error: Optional[Exception] = None

    def delete(self) -> bool:
        """
        Delete the Job with background propagation.

        Returns:
            True if the Job was deleted or was already gone
        """
        if self.done:
            return self.error is None
        self.done = True

        LOGGER.debug("Deleting job: %s", self.job.ref)
        try:
            # Not bound to the run context: cancelled scans delete too.
            self.communicator.delete_job(
                self.job.name,
                self.job.namespace,
                propagation_policy=PROPAGATION_BACKGROUND,
                timeout=self.request_timeout,
            )
        except ClusterAPIError as e:
            if e.not_found:
                LOGGER.debug("Job %s already gone", self.job.ref)
                return True
            self.error = e
        except Exception as e:  # noqa: BLE001
            self.error = e

        if self.error is not None:
            LOGGER.warning("Failed to delete job %s: %s", self.job.ref, self.error)
            return False
        return True


@contextmanager
def submitted_job(
    communicator: ClusterCommunicator,
    job: JobDescriptor,
    request_timeout: Optional[float] = 30.0,
) -> Iterator[JobCleanup]:
    """
    Guarantee deletion of a Job submitted inside the block.

    Enter the block before submitting, so that a submission which partly
    succeeded is cleaned up too.

    Args:
        communicator: Cluster communicator
        job: Job that will be submitted inside the block
        request_timeout: Timeout of the delete request in seconds

    Yields:
        The JobCleanup, for inspecting cleanup errors afterwards
    """
    cleanup = JobCleanup(communicator, job, request_timeout)
    try:
        yield cleanup
    finally:
        cleanup.delete()
