"""
Builders for the kube-bench job runner.

Contains:
- job_builder: kube-bench Job descriptor and manifest rendering
"""

from .job_builder import (
    DEFAULT_HOST_MOUNTS,
    build_kube_bench_job,
    get_active_deadline_seconds,
    render_job_manifest,
)
