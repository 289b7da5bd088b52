#!/usr/bin/env python3
"""
Communicator module for the kube-bench job runner.

This module provides the abstract interface the scanner uses to talk to a
Kubernetes cluster, and a concrete implementation on top of the official
`kubernetes` Python client.

API failures are raised as ClusterAPIError carrying the HTTP status, so the
callers can tell "not found" apart from other failures without depending on
the client library's exception types.
"""

import functools
import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional

import urllib3
from kubernetes import client
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException

from ..errors import ClusterAPIError, ClusterConfigError
from ..models.job import JobDescriptor, JobState, JobStatus


LOGGER = logging.getLogger("kubebench.communicator")

PROPAGATION_BACKGROUND = "Background"


def job_status_from_job(job: Any) -> JobStatus:
    """
    Derive the JobStatus of a V1Job.

    Job conditions are authoritative; the succeeded/failed counters are used
    when no terminal condition has been recorded yet.

    Args:
        job: kubernetes.client.V1Job

    Returns:
        JobStatus with reason and message for failed Jobs
    """
    status = job.status
    if status is None:
        return JobStatus(JobState.PENDING)

    for condition in status.conditions or []:
        if condition.status != "True":
            continue
        if condition.type == "Complete":
            return JobStatus(JobState.SUCCEEDED, condition.reason, condition.message)
        if condition.type == "Failed":
            return JobStatus(JobState.FAILED, condition.reason, condition.message)

    if status.succeeded:
        return JobStatus(JobState.SUCCEEDED)
    if status.failed:
        return JobStatus(JobState.FAILED, "PodFailed", f"{status.failed} pod(s) failed")
    if status.active:
        return JobStatus(JobState.RUNNING)
    return JobStatus(JobState.PENDING)


def _api_call(action: str):
    """Decorator translating client errors of `action` into ClusterAPIError."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except ApiException as e:
                raise ClusterAPIError(
                    f"{action}: {e.status} {e.reason}", status=e.status, reason=e.reason
                ) from e
            except urllib3.exceptions.HTTPError as e:
                raise ClusterAPIError(f"{action}: {e}") from e

        return wrapper

    return decorator


class ClusterCommunicator(ABC):
    """
    Abstract base class for cluster communication.

    Defines the operations the kube-bench scanner needs from a cluster.
    Every method takes an optional per-request timeout in seconds.
    """

    @abstractmethod
    def connect(self) -> None:
        """Load credentials and create API clients."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Release API clients."""
        pass

    @abstractmethod
    def submit_job(self, job: JobDescriptor, timeout: Optional[float] = None) -> Any:
        """
        Create the Job on the cluster.

        Args:
            job: Descriptor to submit
            timeout: Request timeout in seconds

        Returns:
            The created Job object
        """
        pass

    @abstractmethod
    def get_job_status(self, name: str, namespace: str, timeout: Optional[float] = None) -> JobStatus:
        """
        Read the current state of a Job.

        Args:
            name: Job name
            namespace: Job namespace
            timeout: Request timeout in seconds

        Returns:
            JobStatus
        """
        pass

    @abstractmethod
    def delete_job(
        self,
        name: str,
        namespace: str,
        propagation_policy: str = PROPAGATION_BACKGROUND,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Delete a Job and, through propagation, the Pods it owns.

        Args:
            name: Job name
            namespace: Job namespace
            propagation_policy: Background, Foreground or Orphan
            timeout: Request timeout in seconds
        """
        pass

    @abstractmethod
    def list_job_pods(self, name: str, namespace: str, timeout: Optional[float] = None) -> List[Any]:
        """
        List the Pods created for a Job.

        Args:
            name: Job name
            namespace: Job namespace
            timeout: Request timeout in seconds

        Returns:
            List of Pod objects (possibly empty)
        """
        pass

    @abstractmethod
    def open_pod_logs(
        self, pod_name: str, namespace: str, container: str, timeout: Optional[float] = None
    ) -> Any:
        """
        Open a stream over a container's logs.

        Args:
            pod_name: Pod name
            namespace: Pod namespace
            container: Container name
            timeout: Request timeout in seconds

        Returns:
            File-like object with read() and close(); the caller must close it
        """
        pass

    @abstractmethod
    def get_node(self, name: str, timeout: Optional[float] = None) -> Any:
        """
        Get a Node by name.

        Args:
            name: Node name
            timeout: Request timeout in seconds

        Returns:
            The Node object
        """
        pass

    def __enter__(self) -> "ClusterCommunicator":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.disconnect()


class KubernetesCommunicator(ClusterCommunicator):
    """
    Communicator backed by the official Kubernetes Python client.

    Uses BatchV1Api for Jobs and CoreV1Api for Pods, logs and Nodes.
    """

    def __init__(
        self,
        kubeconfig: Optional[str] = None,
        context: Optional[str] = None,
        api_client: Optional[Any] = None,
    ):
        """
        Initialize the communicator.

        Args:
            kubeconfig: Path to a kubeconfig file; None tries in-cluster
                config first, then the default kubeconfig
            context: kubeconfig context to use
            api_client: Preconfigured kubernetes.client.ApiClient; skips
                config loading when given
        """
        self.kubeconfig = kubeconfig
        self.context = context
        self._api_client = api_client
        self._owns_api_client = api_client is None
        self._batch_v1: Optional[client.BatchV1Api] = None
        self._core_v1: Optional[client.CoreV1Api] = None
        if api_client is not None:
            self._create_apis(api_client)

    def _load_configuration(self) -> client.Configuration:
        configuration = client.Configuration()
        try:
            if self.kubeconfig:
                k8s_config.load_kube_config(
                    config_file=self.kubeconfig,
                    context=self.context,
                    client_configuration=configuration,
                )
            else:
                try:
                    k8s_config.load_incluster_config(client_configuration=configuration)
                    LOGGER.debug("Using in-cluster Kubernetes config")
                except k8s_config.ConfigException:
                    k8s_config.load_kube_config(
                        context=self.context, client_configuration=configuration
                    )
        except (k8s_config.ConfigException, OSError) as e:
            raise ClusterConfigError(f"Failed to load Kubernetes config: {e}") from e
        return configuration

    def _create_apis(self, api_client: Any) -> None:
        self._batch_v1 = client.BatchV1Api(api_client)
        self._core_v1 = client.CoreV1Api(api_client)

    def connect(self) -> None:
        """
        Load the Kubernetes configuration and create API clients.

        Raises:
            ClusterConfigError: If no usable configuration is found
        """
        if self._api_client is None:
            self._api_client = client.ApiClient(self._load_configuration())
            self._owns_api_client = True
        self._create_apis(self._api_client)

    def disconnect(self) -> None:
        """Close the API client if this communicator created it."""
        if self._api_client is not None and self._owns_api_client:
            self._api_client.close()
            self._api_client = None
            self._batch_v1 = None
            self._core_v1 = None

    @property
    def batch_v1(self) -> client.BatchV1Api:
        if self._batch_v1 is None:
            self.connect()
        return self._batch_v1

    @property
    def core_v1(self) -> client.CoreV1Api:
        if self._core_v1 is None:
            self.connect()
        return self._core_v1

    @_api_call("creating job")
    def submit_job(self, job: JobDescriptor, timeout: Optional[float] = None) -> Any:
        LOGGER.debug("Creating job: %s", job.ref)
        return self.batch_v1.create_namespaced_job(
            namespace=job.namespace,
            body=job.to_manifest(),
            _request_timeout=timeout,
        )

    @_api_call("reading job status")
    def get_job_status(self, name: str, namespace: str, timeout: Optional[float] = None) -> JobStatus:
        job = self.batch_v1.read_namespaced_job_status(
            name=name, namespace=namespace, _request_timeout=timeout
        )
        return job_status_from_job(job)

    @_api_call("deleting job")
    def delete_job(
        self,
        name: str,
        namespace: str,
        propagation_policy: str = PROPAGATION_BACKGROUND,
        timeout: Optional[float] = None,
    ) -> None:
        self.batch_v1.delete_namespaced_job(
            name=name,
            namespace=namespace,
            propagation_policy=propagation_policy,
            _request_timeout=timeout,
        )

    @_api_call("listing job pods")
    def list_job_pods(self, name: str, namespace: str, timeout: Optional[float] = None) -> List[Any]:
        pods = self.core_v1.list_namespaced_pod(
            namespace=namespace,
            label_selector=f"job-name={name}",
            _request_timeout=timeout,
        )
        return list(pods.items or [])

    @_api_call("opening pod logs")
    def open_pod_logs(
        self, pod_name: str, namespace: str, container: str, timeout: Optional[float] = None
    ) -> Any:
        # _preload_content=False returns the raw urllib3 response so the
        # output is consumed as a stream instead of being buffered here.
        return self.core_v1.read_namespaced_pod_log(
            name=pod_name,
            namespace=namespace,
            container=container,
            _preload_content=False,
            _request_timeout=timeout,
        )

    @_api_call("getting node")
    def get_node(self, name: str, timeout: Optional[float] = None) -> Any:
        return self.core_v1.read_node(name=name, _request_timeout=timeout)


def create_communicator(method: str = "kubernetes", **kwargs) -> ClusterCommunicator:
    """
    Factory function to create a communicator instance.

    Args:
        method: Communication method ("kubernetes" for now)
        **kwargs: Additional arguments passed to the communicator constructor

    Returns:
        ClusterCommunicator instance

    Raises:
        ValueError: If the specified method is not supported
    """
    if method == "kubernetes":
        return KubernetesCommunicator(**kwargs)
    else:
        raise ValueError(f"Unsupported communication method: {method}")
