#!/usr/bin/env python3
"""
Pod manager for the kube-bench job runner.

Finds the Pod a Job created and opens its container logs.
"""

import logging
from typing import Any, Optional

from ..context import RunContext
from ..errors import ClusterAPIError, LogStreamError, PodAmbiguityError, PodLookupError, PodNotFoundError
from ..infra.communicator import ClusterCommunicator
from ..models.job import JobDescriptor


LOGGER = logging.getLogger("kubebench.pods")


def container_started(pod: Any, container_name: str) -> bool:
    """
    Check whether a container of a Pod has ever started.

    Args:
        pod: kubernetes.client.V1Pod
        container_name: Container to look for

    Returns:
        True if the container is running or has terminated
    """
    statuses = (pod.status.container_statuses if pod.status else None) or []
    for status in statuses:
        if status.name != container_name:
            continue
        state = status.state
        if state is None:
            return False
        return state.running is not None or state.terminated is not None
    return False


class PodManager:
    """Looks up Job Pods and their logs through a ClusterCommunicator."""

    def __init__(self, communicator: ClusterCommunicator, request_timeout: Optional[float] = 30.0):
        self.communicator = communicator
        self.request_timeout = request_timeout

    def get_pod_by_job(self, ctx: RunContext, job: JobDescriptor) -> Any:
        """
        Get the single Pod controlled by a Job.

        Args:
            ctx: Run context
            job: Job whose Pod to find

        Returns:
            The Pod

        Raises:
            PodNotFoundError: If no Pod carries the Job's label
            PodAmbiguityError: If more than one does
            PodLookupError: If listing Pods failed
        """
        ctx.check()
        try:
            pods = ctx.call(
                self.communicator.list_job_pods,
                job.name,
                job.namespace,
                timeout=ctx.request_timeout(self.request_timeout),
            )
        except ClusterAPIError as e:
            ctx.check(e)
            raise PodLookupError(f"listing pods of job {job.ref}: {e}") from e

        if not pods:
            raise PodNotFoundError(f"no pods found for job {job.ref}")
        if len(pods) > 1:
            names = [p.metadata.name for p in pods]
            raise PodAmbiguityError(
                f"expected 1 pod for job {job.ref}, found {len(pods)}: {', '.join(names)}",
                pod_names=names,
            )

        pod = pods[0]
        LOGGER.debug("Job %s controls pod %s", job.ref, pod.metadata.name)
        return pod

    def get_pod_logs(self, ctx: RunContext, pod: Any, container: str) -> Any:
        """
        Open the log stream of a Pod container.

        The caller owns the returned stream and must close it.

        Args:
            ctx: Run context
            pod: Pod returned by get_pod_by_job
            container: Container name

        Returns:
            Readable stream over the container logs

        Raises:
            LogStreamError: If the container never started or the stream
                could not be opened
        """
        ctx.check()
        pod_ref = f"{pod.metadata.namespace}/{pod.metadata.name}"
        if not container_started(pod, container):
            raise LogStreamError(f"container {container} in pod {pod_ref} has not started")

        LOGGER.debug("Getting logs for %s container in pod: %s", container, pod_ref)
        try:
            return self.communicator.open_pod_logs(
                pod.metadata.name,
                pod.metadata.namespace,
                container,
                timeout=ctx.request_timeout(self.request_timeout),
            )
        except ClusterAPIError as e:
            ctx.check(e)
            raise LogStreamError(f"opening logs of {container} in pod {pod_ref}: {e}") from e
