"""
Scan orchestration for the kube-bench job runner.

Contains:
- scanner: The Scanner and run_benchmark entry point
- runner: Job submission and wait for completion
- pods: Pod lookup and log streams
- lifecycle: Guaranteed Job deletion
"""

from .scanner import Scanner, run_benchmark
from .runner import JobRunner, JobOutcome
from .pods import PodManager
from .lifecycle import JobCleanup, submitted_job
