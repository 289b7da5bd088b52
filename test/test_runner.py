"""
Unit tests for the Job runner and run context.
"""

import sys
import threading
import time
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from kubernetes import client

from conftest import FakeCluster
from kubebench.builders.job_builder import build_kube_bench_job
from kubebench.context import RunContext
from kubebench.core.runner import JobRunner
from kubebench.errors import ClusterAPIError, ExecutionFailure, ScanCancelled, SubmissionError
from kubebench.infra.communicator import job_status_from_job
from kubebench.models.job import JobState, JobStatus


def make_runner(cluster: FakeCluster) -> JobRunner:
    return JobRunner(cluster.communicator, poll_interval=0.01, request_timeout=5.0)


class TestJobRunner:
    def test_succeeds_after_pending_and_running(self):
        cluster = FakeCluster(statuses=[
            JobStatus(JobState.PENDING),
            JobStatus(JobState.RUNNING),
            JobStatus(JobState.SUCCEEDED),
        ])
        job = build_kube_bench_job()

        outcome = make_runner(cluster).run(RunContext(), job)

        assert outcome.state == JobState.SUCCEEDED
        cluster.communicator.submit_job.assert_called_once()
        assert cluster.submitted_job is job
        assert cluster.communicator.get_job_status.call_count == 3

    def test_failed_job_raises_execution_failure(self):
        cluster = FakeCluster(statuses=[
            JobStatus(JobState.RUNNING),
            JobStatus(JobState.FAILED, "DeadlineExceeded", "Job was active longer than specified deadline"),
        ])

        with pytest.raises(ExecutionFailure) as exc_info:
            make_runner(cluster).run(RunContext(), build_kube_bench_job(timeout=10))

        assert exc_info.value.reason == "DeadlineExceeded"
        assert "longer than specified deadline" in str(exc_info.value)

    def test_rejected_submission_does_not_wait(self):
        cluster = FakeCluster()
        cluster.communicator.submit_job.side_effect = ClusterAPIError("creating job: 422", status=422)

        with pytest.raises(SubmissionError) as exc_info:
            make_runner(cluster).run(RunContext(), build_kube_bench_job())

        assert exc_info.value.status == 422
        cluster.communicator.get_job_status.assert_not_called()

    def test_job_disappearing_is_execution_failure(self):
        cluster = FakeCluster()
        cluster.communicator.get_job_status.side_effect = ClusterAPIError("reading job status: 404", status=404)

        with pytest.raises(ExecutionFailure) as exc_info:
            make_runner(cluster).run(RunContext(), build_kube_bench_job())
        assert exc_info.value.reason == "NotFound"

    def test_cancelled_context_submits_nothing(self):
        cluster = FakeCluster()
        ctx = RunContext()
        ctx.cancel()

        with pytest.raises(ScanCancelled):
            make_runner(cluster).run(ctx, build_kube_bench_job())
        cluster.communicator.submit_job.assert_not_called()

    def test_cancel_from_other_thread_interrupts_wait(self):
        cluster = FakeCluster()
        cluster.communicator.get_job_status.side_effect = None
        cluster.communicator.get_job_status.return_value = JobStatus(JobState.RUNNING)
        runner = JobRunner(cluster.communicator, poll_interval=30.0)
        ctx = RunContext()

        timer = threading.Timer(0.1, ctx.cancel)
        timer.start()
        start = time.monotonic()
        try:
            with pytest.raises(ScanCancelled):
                runner.run(ctx, build_kube_bench_job())
        finally:
            timer.cancel()

        assert time.monotonic() - start < 5.0

    def test_request_timed_out_by_deadline_is_cancellation(self):
        cluster = FakeCluster()

        def timed_out(name, namespace, timeout=None):
            time.sleep(timeout + 0.05)
            raise ClusterAPIError("reading job status: Read timed out")

        cluster.communicator.get_job_status.side_effect = timed_out

        with pytest.raises(ScanCancelled):
            make_runner(cluster).run(RunContext.with_timeout(0.2), build_kube_bench_job())

    def test_submission_timed_out_by_deadline_is_cancellation(self):
        cluster = FakeCluster()

        def timed_out(job, timeout=None):
            time.sleep(timeout + 0.05)
            raise ClusterAPIError("creating job: Read timed out")

        cluster.communicator.submit_job.side_effect = timed_out

        with pytest.raises(ScanCancelled) as exc_info:
            make_runner(cluster).run(RunContext.with_timeout(0.2), build_kube_bench_job())
        assert isinstance(exc_info.value.__cause__, ClusterAPIError)
        cluster.communicator.get_job_status.assert_not_called()

    def test_cancel_interrupts_in_flight_status_request(self):
        cluster = FakeCluster()
        release = threading.Event()

        def hanging(name, namespace, timeout=None):
            release.wait(3.0)
            return JobStatus(JobState.RUNNING)

        cluster.communicator.get_job_status.side_effect = hanging
        ctx = RunContext()
        timer = threading.Timer(0.1, ctx.cancel)
        timer.start()
        start = time.monotonic()
        try:
            with pytest.raises(ScanCancelled):
                make_runner(cluster).run(ctx, build_kube_bench_job())
        finally:
            timer.cancel()
            release.set()

        assert time.monotonic() - start < 2.0

    def test_context_deadline_interrupts_wait(self):
        cluster = FakeCluster()
        cluster.communicator.get_job_status.side_effect = None
        cluster.communicator.get_job_status.return_value = JobStatus(JobState.PENDING)
        runner = JobRunner(cluster.communicator, poll_interval=30.0)

        start = time.monotonic()
        with pytest.raises(ScanCancelled) as exc_info:
            runner.run(RunContext.with_timeout(0.1), build_kube_bench_job())

        assert time.monotonic() - start < 5.0
        assert "deadline" in str(exc_info.value)


class TestRunContext:
    def test_background_never_cancelled(self):
        ctx = RunContext.background()
        assert not ctx.cancelled
        assert ctx.remaining() is None
        assert ctx.request_timeout(30.0) == 30.0
        ctx.check()

    def test_request_timeout_capped_by_deadline(self):
        ctx = RunContext.with_timeout(1.0)
        assert ctx.request_timeout(30.0) <= 1.0
        assert ctx.request_timeout(None) <= 1.0

    def test_cancel_keeps_first_reason(self):
        ctx = RunContext()
        ctx.cancel("shutting down")
        ctx.cancel("again")
        assert ctx.reason == "shutting down"
        with pytest.raises(ScanCancelled):
            ctx.check()

    def test_on_cancel_runs_callbacks_once(self):
        ctx = RunContext()
        calls = []
        ctx.on_cancel(lambda: calls.append("a"))
        remove = ctx.on_cancel(lambda: calls.append("b"))
        remove()

        ctx.cancel()
        ctx.cancel()

        assert calls == ["a"]

    def test_on_cancel_after_cancel_runs_at_once(self):
        ctx = RunContext()
        ctx.cancel()
        calls = []
        ctx.on_cancel(lambda: calls.append("late"))
        assert calls == ["late"]

    def test_failing_callback_does_not_break_cancel(self):
        ctx = RunContext()
        calls = []

        def broken():
            raise OSError("already closed")

        ctx.on_cancel(broken)
        ctx.on_cancel(lambda: calls.append("next"))
        ctx.cancel()

        assert ctx.cancelled
        assert calls == ["next"]

    def test_call_returns_and_raises(self):
        ctx = RunContext()
        assert ctx.call(lambda x, y=0: x + y, 1, y=2) == 3

        def failing():
            raise ClusterAPIError("boom", status=500)

        with pytest.raises(ClusterAPIError):
            ctx.call(failing)

    def test_call_gives_up_at_deadline(self):
        release = threading.Event()
        ctx = RunContext.with_timeout(0.1)
        start = time.monotonic()
        try:
            with pytest.raises(ScanCancelled):
                ctx.call(release.wait, 3.0)
        finally:
            release.set()
        assert time.monotonic() - start < 2.0


class TestJobStatusFromJob:
    def _job(self, **status):
        return client.V1Job(status=client.V1JobStatus(**status))

    def test_complete_condition(self):
        job = self._job(conditions=[client.V1JobCondition(type="Complete", status="True")], succeeded=1)
        assert job_status_from_job(job).state == JobState.SUCCEEDED

    def test_failed_condition_carries_reason(self):
        job = self._job(
            conditions=[client.V1JobCondition(
                type="Failed", status="True", reason="BackoffLimitExceeded",
                message="Job has reached the specified backoff limit",
            )],
            failed=1,
        )
        status = job_status_from_job(job)
        assert status.state == JobState.FAILED
        assert status.reason == "BackoffLimitExceeded"

    def test_counters_without_conditions(self):
        assert job_status_from_job(self._job(active=1)).state == JobState.RUNNING
        assert job_status_from_job(self._job(failed=1)).state == JobState.FAILED
        assert job_status_from_job(self._job()).state == JobState.PENDING
        assert job_status_from_job(client.V1Job()).state == JobState.PENDING

    def test_false_conditions_ignored(self):
        job = self._job(conditions=[client.V1JobCondition(type="Failed", status="False")], active=1)
        assert job_status_from_job(job).state == JobState.RUNNING


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
