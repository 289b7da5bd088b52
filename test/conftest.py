"""
Shared helpers for the kube-bench job runner tests.

The cluster is replaced by a MagicMock with the ClusterCommunicator spec;
Pods and Nodes are real kubernetes.client models.
"""

import io
import sys
import threading
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from kubernetes import client

from kubebench.config import ScannerConfig
from kubebench.infra.communicator import ClusterCommunicator
from kubebench.models.job import JobState, JobStatus


FIXTURES = Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> bytes:
    return (FIXTURES / name).read_bytes()


def make_pod(name="kube-bench-abcde", namespace="starboard", node_name="node-1",
             container="kube-bench", started=True):
    """Build a V1Pod with one container, terminated when `started`."""
    state = client.V1ContainerState(
        terminated=client.V1ContainerStateTerminated(exit_code=0, reason="Completed")
    ) if started else client.V1ContainerState(
        waiting=client.V1ContainerStateWaiting(reason="ContainerCreating")
    )
    return client.V1Pod(
        metadata=client.V1ObjectMeta(name=name, namespace=namespace),
        spec=client.V1PodSpec(
            node_name=node_name,
            containers=[client.V1Container(name=container)],
        ),
        status=client.V1PodStatus(
            phase="Succeeded" if started else "Pending",
            container_statuses=[
                client.V1ContainerStatus(
                    name=container,
                    image="aquasec/kube-bench:latest",
                    image_id="",
                    ready=False,
                    restart_count=0,
                    state=state,
                )
            ],
        ),
    )


def make_node(name="node-1"):
    return client.V1Node(metadata=client.V1ObjectMeta(name=name))


class FakeCluster:
    """
    Scripted cluster behind a MagicMock communicator.

    Attributes:
        communicator: MagicMock(spec=ClusterCommunicator) to hand to the code
        streams: Log streams handed out, to check they were closed
    """

    def __init__(self, statuses=None, pods=None, logs=b"", node=None):
        self.streams = []
        self.logs = logs
        self.communicator = MagicMock(spec=ClusterCommunicator)

        if statuses is None:
            statuses = [JobStatus(JobState.SUCCEEDED)]
        self.communicator.get_job_status.side_effect = list(statuses)
        self.communicator.list_job_pods.return_value = [make_pod()] if pods is None else pods
        self.communicator.open_pod_logs.side_effect = self._open_logs
        self.communicator.get_node.return_value = node if node is not None else make_node()

    def _open_logs(self, *args, **kwargs):
        stream = io.BytesIO(self.logs)
        self.streams.append(stream)
        return stream

    @property
    def submitted_job(self):
        """The JobDescriptor passed to submit_job."""
        return self.communicator.submit_job.call_args[0][0]

    @property
    def delete_calls(self):
        return self.communicator.delete_job.call_args_list


@pytest.fixture
def fast_config():
    return ScannerConfig(poll_interval=0.01, request_timeout=5.0)


@pytest.fixture
def minimal_report():
    return load_fixture("kube-bench-minimal.json")


@pytest.fixture
def controls_report():
    return load_fixture("kube-bench-controls.json")


class BlockingStream:
    """
    Log stream whose read() blocks like a stalled network read.

    read() returns b"" once close() is called, or after `block_for` seconds.
    """

    def __init__(self, block_for=3.0):
        self.block_for = block_for
        self.closed = False
        self._closed = threading.Event()

    def read(self, size=-1):
        self._closed.wait(self.block_for)
        return b""

    def close(self):
        self.closed = True
        self._closed.set()
