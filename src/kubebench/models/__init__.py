"""
Data models for the kube-bench job runner.

Contains:
- job: Job descriptor and observed Job status
- report: CIS benchmark report
"""

from .job import ContainerSpec, HostPathMount, JobDescriptor, JobState, JobStatus
from .report import (
    CISKubeBenchReport,
    CISKubeBenchResult,
    CISKubeBenchSection,
    CISKubeBenchSummary,
    CISKubeBenchTests,
    ScannerInfo,
)
