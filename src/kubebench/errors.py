#!/usr/bin/env python3
"""
Error types for the kube-bench job runner.

Every failure surfaced by a scan is a ScanError. The scanner tags the error
with the stage it happened in, so callers see messages such as
"getting kube-bench pod: no pods found for job starboard/<id>".
"""

from typing import List, Optional


STAGE_RUN_JOB = "running kube-bench job"
STAGE_GET_POD = "getting kube-bench pod"
STAGE_GET_LOGS = "getting logs"
STAGE_PARSE_REPORT = "parsing CIS benchmark report"
STAGE_GET_NODE = "getting node"


class ScanError(RuntimeError):
    """Base class for all errors raised while running a kube-bench scan."""

    def __init__(self, message: str, stage: Optional[str] = None) -> None:
        self.message = message
        self.stage = stage
        super().__init__(message)

    def with_stage(self, stage: str) -> "ScanError":
        """Attach the pipeline stage name unless one is already set."""
        if self.stage is None:
            self.stage = stage
        return self

    def __str__(self) -> str:
        if self.stage:
            return f"{self.stage}: {self.message}"
        return self.message


class ClusterConfigError(ScanError):
    """Kubernetes client configuration could not be loaded."""


class ClusterAPIError(ScanError):
    """A Kubernetes API call failed (HTTP error status or transport failure)."""

    def __init__(self, message: str, status: Optional[int] = None, reason: Optional[str] = None) -> None:
        self.status = status
        self.reason = reason
        super().__init__(message)

    @property
    def not_found(self) -> bool:
        return self.status == 404


class SubmissionError(ScanError):
    """The Job was rejected by the API server (validation, quota, RBAC)."""

    def __init__(self, message: str, status: Optional[int] = None, stage: Optional[str] = None) -> None:
        self.status = status
        super().__init__(message, stage)


class ExecutionFailure(ScanError):
    """The Job reached the Failed state (non-zero exit, deadline exceeded, ...)."""

    def __init__(self, message: str, reason: Optional[str] = None, stage: Optional[str] = None) -> None:
        self.reason = reason
        super().__init__(message, stage)


class ScanCancelled(ScanError):
    """The run context was cancelled or its deadline passed."""


class PodLookupError(ScanError):
    """The Pod controlled by the Job could not be determined."""


class PodNotFoundError(PodLookupError):
    """No Pod is labelled with the Job name."""


class PodAmbiguityError(PodLookupError):
    """More than one Pod is labelled with the Job name."""

    def __init__(self, message: str, pod_names: List[str], stage: Optional[str] = None) -> None:
        self.pod_names = list(pod_names)
        super().__init__(message, stage)


class LogStreamError(ScanError):
    """The container log stream could not be opened."""


class ReportError(ScanError):
    """Base class for report conversion failures."""


class ReportReadError(ReportError):
    """Reading the log stream failed before the whole report was received."""


class DecodingError(ReportError):
    """The tool ran but its output is not a valid kube-bench JSON report."""


class NodeResolutionError(ScanError):
    """The node the Pod ran on could not be resolved."""


__all__ = [
    "STAGE_RUN_JOB",
    "STAGE_GET_POD",
    "STAGE_GET_LOGS",
    "STAGE_PARSE_REPORT",
    "STAGE_GET_NODE",
    "ScanError",
    "ClusterConfigError",
    "ClusterAPIError",
    "SubmissionError",
    "ExecutionFailure",
    "ScanCancelled",
    "PodLookupError",
    "PodNotFoundError",
    "PodAmbiguityError",
    "LogStreamError",
    "ReportError",
    "ReportReadError",
    "DecodingError",
    "NodeResolutionError",
]
