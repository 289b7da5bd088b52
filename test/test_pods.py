"""
Unit tests for Pod lookup and log streaming.
"""

import sys
import time
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from conftest import FakeCluster, make_pod
from kubebench.builders.job_builder import build_kube_bench_job
from kubebench.context import RunContext
from kubebench.core.pods import PodManager, container_started
from kubebench.errors import (
    ClusterAPIError,
    LogStreamError,
    PodAmbiguityError,
    PodLookupError,
    PodNotFoundError,
    ScanCancelled,
)


@pytest.fixture
def job():
    return build_kube_bench_job()


class TestGetPodByJob:
    def test_single_pod(self, job):
        pod = make_pod(name="kube-bench-xyz12")
        cluster = FakeCluster(pods=[pod])

        found = PodManager(cluster.communicator).get_pod_by_job(RunContext(), job)

        assert found is pod
        args, kwargs = cluster.communicator.list_job_pods.call_args
        assert args == (job.name, job.namespace)
        assert kwargs["timeout"] == 30.0

    def test_no_pods(self, job):
        cluster = FakeCluster(pods=[])
        with pytest.raises(PodNotFoundError) as exc_info:
            PodManager(cluster.communicator).get_pod_by_job(RunContext(), job)
        assert job.name in str(exc_info.value)

    def test_many_pods(self, job):
        cluster = FakeCluster(pods=[make_pod(name="a"), make_pod(name="b")])
        with pytest.raises(PodAmbiguityError) as exc_info:
            PodManager(cluster.communicator).get_pod_by_job(RunContext(), job)
        assert exc_info.value.pod_names == ["a", "b"]
        assert isinstance(exc_info.value, PodLookupError)

    def test_list_failure(self, job):
        cluster = FakeCluster()
        cluster.communicator.list_job_pods.side_effect = ClusterAPIError("listing job pods: 403", status=403)
        with pytest.raises(PodLookupError) as exc_info:
            PodManager(cluster.communicator).get_pod_by_job(RunContext(), job)
        assert not isinstance(exc_info.value, PodNotFoundError)

    def test_cancelled_context(self, job):
        cluster = FakeCluster()
        ctx = RunContext()
        ctx.cancel()
        with pytest.raises(ScanCancelled):
            PodManager(cluster.communicator).get_pod_by_job(ctx, job)
        cluster.communicator.list_job_pods.assert_not_called()


class TestGetPodLogs:
    def test_opens_stream(self):
        cluster = FakeCluster(logs=b"[]")
        stream = PodManager(cluster.communicator).get_pod_logs(RunContext(), make_pod(), "kube-bench")

        assert stream.read() == b"[]"
        args, _ = cluster.communicator.open_pod_logs.call_args
        assert args == ("kube-bench-abcde", "starboard", "kube-bench")

    def test_container_not_started(self):
        cluster = FakeCluster()
        with pytest.raises(LogStreamError) as exc_info:
            PodManager(cluster.communicator).get_pod_logs(RunContext(), make_pod(started=False), "kube-bench")
        assert "has not started" in str(exc_info.value)
        cluster.communicator.open_pod_logs.assert_not_called()

    def test_unknown_container(self):
        cluster = FakeCluster()
        with pytest.raises(LogStreamError):
            PodManager(cluster.communicator).get_pod_logs(RunContext(), make_pod(), "sidecar")

    def test_open_failure(self):
        cluster = FakeCluster()
        cluster.communicator.open_pod_logs.side_effect = ClusterAPIError("opening pod logs: 500", status=500)
        with pytest.raises(LogStreamError):
            PodManager(cluster.communicator).get_pod_logs(RunContext(), make_pod(), "kube-bench")

    def test_open_timed_out_by_deadline_is_cancellation(self):
        cluster = FakeCluster()

        def timed_out(pod_name, namespace, container, timeout=None):
            time.sleep(timeout + 0.05)
            raise ClusterAPIError("opening pod logs: Read timed out")

        cluster.communicator.open_pod_logs.side_effect = timed_out

        with pytest.raises(ScanCancelled) as exc_info:
            PodManager(cluster.communicator).get_pod_logs(
                RunContext.with_timeout(0.2), make_pod(), "kube-bench"
            )
        assert isinstance(exc_info.value.__cause__, ClusterAPIError)


def test_container_started():
    assert container_started(make_pod(), "kube-bench")
    assert not container_started(make_pod(started=False), "kube-bench")
    assert not container_started(make_pod(), "other")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
