"""
kube-bench job runner

Runs the CIS Kubernetes benchmark (kube-bench) once as a Kubernetes Job and
returns the parsed report together with the node it ran on.

Package structure:
- core/: Scan orchestration (scanner, runner, pods, lifecycle)
- models/: Data models (job descriptor, report)
- builders/: Job descriptor and manifest builder
- infra/: Cluster communication
- reporting/: kube-bench output conversion
"""

import logging
import os
from typing import Optional, Union

from .config import ScannerConfig, load_config
from .context import RunContext
from .errors import ScanError
from .core.scanner import Scanner, run_benchmark

__version__ = "1.0.0"


def configure_logging(level: Optional[Union[int, str]] = None) -> None:
    """
    Send kubebench log records to stderr.

    The library itself installs no handlers; applications call this (or
    configure logging themselves).

    Args:
        level: Log level; defaults to $KUBEBENCH_LOG_LEVEL or INFO
    """
    if level is None:
        level = os.environ.get("KUBEBENCH_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = level.upper()

    logger = logging.getLogger("kubebench")
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        logger.addHandler(handler)

