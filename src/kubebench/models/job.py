#!/usr/bin/env python3
"""
Job descriptor model for the kube-bench job runner.

A JobDescriptor is an immutable description of the one-shot Kubernetes Job
that runs kube-bench. It is built by builders.job_builder and turned into a
Job manifest with to_manifest().
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class HostPathMount:
    """A host path volume together with its mount in the container."""
    name: str  # Volume name, also used by the volume mount
    host_path: str  # Path on the node
    mount_path: str  # Path inside the container
    read_only: bool = True


@dataclass(frozen=True)
class ContainerSpec:
    """The single container of the kube-bench Pod."""
    name: str
    image: str
    image_pull_policy: str = "Always"
    command: Tuple[str, ...] = ("kube-bench",)
    args: Tuple[str, ...] = ("--json",)
    termination_message_policy: str = "FallbackToLogsOnError"


@dataclass(frozen=True)
class JobDescriptor:
    """
    Immutable description of a run-to-completion kube-bench Job.

    completions and backoff_limit are fixed: the Job runs once and a failure
    is terminal.
    """

    name: str  # Unique per run
    namespace: str
    container: ContainerSpec
    volumes: Tuple[HostPathMount, ...] = ()
    labels: Tuple[Tuple[str, str], ...] = ()  # (key, value) pairs
    active_deadline_seconds: Optional[int] = None  # None means no deadline
    restart_policy: str = "Never"
    host_pid: bool = True
    completions: int = 1
    backoff_limit: int = 0

    @property
    def ref(self) -> str:
        """namespace/name, used in log messages."""
        return f"{self.namespace}/{self.name}"

    def to_manifest(self) -> Dict[str, Any]:
        """
        Render the batch/v1 Job manifest for this descriptor.

        Returns:
            Manifest dictionary accepted by BatchV1Api.create_namespaced_job
        """
        # Local import: the builder module imports this one.
        from ..builders.job_builder import render_job_manifest

        return render_job_manifest(self)

    def __str__(self) -> str:
        return f"JobDescriptor({self.ref})"


class JobState(str, Enum):
    """Job phase on the cluster. A cancelled scan surfaces as ScanCancelled instead."""
    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


@dataclass(frozen=True)
class JobStatus:
    """Job state as observed on the cluster."""
    state: JobState
    reason: Optional[str] = None  # e.g. DeadlineExceeded, BackoffLimitExceeded
    message: Optional[str] = None
