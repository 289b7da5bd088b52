#!/usr/bin/env python3
"""
Scanner module for the kube-bench job runner.

The Scanner runs kube-bench once on a cluster node:
1. Build the descriptor of a one-shot kube-bench Job
2. Submit the Job and wait for it to succeed or fail
3. Find the Pod the Job created
4. Open the kube-bench container logs
5. Parse the CIS benchmark report from the logs
6. Look up the node the Pod ran on
The Job is deleted after steps 2-6 on every exit path.
"""

import logging
from contextlib import closing
from typing import Any, Optional, Tuple

from ..builders.job_builder import Timeout, build_kube_bench_job
from ..config import ScannerConfig
from ..context import RunContext
from ..errors import (
    STAGE_GET_LOGS,
    STAGE_GET_NODE,
    STAGE_GET_POD,
    STAGE_PARSE_REPORT,
    STAGE_RUN_JOB,
    ClusterAPIError,
    NodeResolutionError,
    ScanError,
)
from ..infra.communicator import ClusterCommunicator, create_communicator
from ..models.job import JobDescriptor
from ..models.report import CISKubeBenchReport
from ..reporting.converter import Converter, image_version
from .lifecycle import submitted_job
from .pods import PodManager
from .runner import JobRunner


LOGGER = logging.getLogger("kubebench.scanner")


class Scanner:
    """
    Runs kube-bench as a Kubernetes Job and returns its report.

    A Scanner keeps no per-scan state, so one instance can serve concurrent
    scans; each scan uses its own Job name.
    """

    def __init__(
        self,
        communicator: ClusterCommunicator,
        config: Optional[ScannerConfig] = None,
        converter: Optional[Converter] = None,
    ):
        """
        Initialize the Scanner.

        Args:
            communicator: Cluster communicator
            config: Scanner settings (defaults to ScannerConfig())
            converter: Report converter (defaults to one tagged with the image version)
        """
        self.config = config or ScannerConfig()
        self.communicator = communicator
        self.runner = JobRunner(
            communicator,
            poll_interval=self.config.poll_interval,
            request_timeout=self.config.request_timeout,
        )
        self.pods = PodManager(communicator, request_timeout=self.config.request_timeout)
        self.converter = converter or Converter(scanner_version=image_version(self.config.image))

    def prepare_job(self, timeout: Timeout = None) -> JobDescriptor:
        """
        Build the kube-bench Job descriptor.

        Args:
            timeout: Overrides config.scan_job_timeout when given
        """
        if timeout is None:
            timeout = self.config.scan_job_timeout
        return build_kube_bench_job(
            timeout=timeout,
            namespace=self.config.namespace,
            image=self.config.image,
            container_name=self.config.container_name,
        )

    def scan(self, ctx: RunContext, timeout: Timeout = None) -> Tuple[CISKubeBenchReport, Any]:
        """
        Run kube-bench once and return its report and node.

        Args:
            ctx: Run context carrying cancellation and deadline
            timeout: Job timeout; defaults to config.scan_job_timeout

        Returns:
            Tuple of (report, V1Node the Pod ran on)

        Raises:
            ScanError: The first failure, tagged with the stage it happened
                in. Errors from deleting the Job are logged, never raised.
        """
        # Nothing is submitted for a context that is already done.
        ctx.check()

        job = self.prepare_job(timeout)
        with submitted_job(self.communicator, job, self.config.request_timeout):
            stage = STAGE_RUN_JOB
            try:
                self.runner.run(ctx, job)

                stage = STAGE_GET_POD
                pod = self.pods.get_pod_by_job(ctx, job)

                stage = STAGE_GET_LOGS
                LOGGER.debug(
                    "Getting logs for %s container in job: %s",
                    self.config.container_name,
                    job.ref,
                )
                logs = self.pods.get_pod_logs(ctx, pod, self.config.container_name)

                with closing(logs):
                    stage = STAGE_PARSE_REPORT
                    report = self.converter.convert(logs, ctx)

                stage = STAGE_GET_NODE
                node = self._resolve_node(ctx, pod)
            except ScanError as e:
                e.with_stage(stage)
                raise

        LOGGER.info("Scan %s finished: %s", job.ref, report)
        return report, node

    def _resolve_node(self, ctx: RunContext, pod: Any) -> Any:
        ctx.check()
        node_name = pod.spec.node_name if pod.spec else None
        if not node_name:
            raise NodeResolutionError(f"pod {pod.metadata.name} has no node assigned")
        try:
            return ctx.call(
                self.communicator.get_node,
                node_name,
                timeout=ctx.request_timeout(self.config.request_timeout),
            )
        except ClusterAPIError as e:
            ctx.check(e)
            if e.not_found:
                raise NodeResolutionError(f"node {node_name} not found") from e
            raise NodeResolutionError(f"node {node_name}: {e}") from e


def run_benchmark(
    ctx: RunContext,
    timeout: Timeout = None,
    communicator: Optional[ClusterCommunicator] = None,
    config: Optional[ScannerConfig] = None,
) -> Tuple[CISKubeBenchReport, Any]:
    """
    Run kube-bench once on the cluster.

    Args:
        ctx: Run context carrying cancellation and deadline
        timeout: Job timeout; None uses config.scan_job_timeout, 0 runs
            the Job without a deadline
        communicator: Cluster communicator; a KubernetesCommunicator built
            from the config is used (and closed) when omitted
        config: Scanner settings

    Returns:
        Tuple of (CISKubeBenchReport, V1Node)
    """
    config = config or ScannerConfig()
    if communicator is not None:
        return Scanner(communicator, config).scan(ctx, timeout)

    with create_communicator(kubeconfig=config.kubeconfig, context=config.context) as comm:
        return Scanner(comm, config).scan(ctx, timeout)
