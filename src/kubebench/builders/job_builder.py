#!/usr/bin/env python3
"""
Job builder for the kube-bench job runner.

Builds the JobDescriptor for a kube-bench run and renders it to a Kubernetes
Job manifest using the Jinja2 template in templates/kube-bench-job.yaml.j2.
"""

import math
import uuid
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

import yaml
from jinja2 import Environment, FileSystemLoader, StrictUndefined

from ..config import DEFAULT_CONTAINER_NAME, DEFAULT_IMAGE, DEFAULT_NAMESPACE
from ..models.job import ContainerSpec, HostPathMount, JobDescriptor


TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"
JOB_TEMPLATE = "kube-bench-job.yaml.j2"

JOB_LABELS = {"app": "kube-bench"}

# Host directories kube-bench inspects. /usr/bin is mounted away from the
# container's own /usr/bin.
DEFAULT_HOST_MOUNTS = (
    HostPathMount("var-lib-etcd", "/var/lib/etcd", "/var/lib/etcd"),
    HostPathMount("var-lib-kubelet", "/var/lib/kubelet", "/var/lib/kubelet"),
    HostPathMount("etc-systemd", "/etc/systemd", "/etc/systemd"),
    HostPathMount("etc-kubernetes", "/etc/kubernetes", "/etc/kubernetes"),
    HostPathMount("usr-bin", "/usr/bin", "/usr/local/mount-from-host/bin"),
)

Timeout = Union[int, float, timedelta, None]


def get_active_deadline_seconds(timeout: Timeout) -> Optional[int]:
    """
    Convert a configured scan timeout to a Job activeDeadlineSeconds value.

    Args:
        timeout: Seconds or timedelta; None or 0 means no deadline

    Returns:
        Whole seconds (fractions round up), or None when there is no deadline

    Raises:
        ValueError: If the timeout is negative
    """
    if timeout is None:
        return None
    if isinstance(timeout, timedelta):
        timeout = timeout.total_seconds()
    if timeout < 0:
        raise ValueError(f"scan job timeout must be >= 0, got {timeout}")
    if timeout == 0:
        return None
    return int(math.ceil(timeout))


def new_job_name() -> str:
    """Random, collision-resistant Job name."""
    return str(uuid.uuid4())


def build_kube_bench_job(
    timeout: Timeout = None,
    namespace: str = DEFAULT_NAMESPACE,
    image: str = DEFAULT_IMAGE,
    container_name: str = DEFAULT_CONTAINER_NAME,
    mounts: Iterable[HostPathMount] = DEFAULT_HOST_MOUNTS,
) -> JobDescriptor:
    """
    Build the descriptor of a kube-bench Job.

    Every call returns a descriptor with a new name. Nothing is sent to the
    cluster.

    Args:
        timeout: Scan job timeout; sets activeDeadlineSeconds when > 0
        namespace: Namespace to run the Job in
        image: kube-bench image reference
        container_name: Name of the kube-bench container
        mounts: Host paths to mount read-only into the container

    Returns:
        JobDescriptor for a single run
    """
    return JobDescriptor(
        name=new_job_name(),
        namespace=namespace,
        labels=tuple(JOB_LABELS.items()),
        active_deadline_seconds=get_active_deadline_seconds(timeout),
        volumes=tuple(mounts),
        container=ContainerSpec(name=container_name, image=image),
    )


@lru_cache(maxsize=1)
def _jinja_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )


def render_job_manifest(job: JobDescriptor) -> Dict[str, Any]:
    """
    Render a JobDescriptor to a batch/v1 Job manifest.

    Args:
        job: Descriptor to render

    Returns:
        Manifest as a dictionary
    """
    template = _jinja_env().get_template(JOB_TEMPLATE)
    return yaml.safe_load(template.render(job=job))
