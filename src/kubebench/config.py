#!/usr/bin/env python3
"""
Configuration for the kube-bench job runner.

Values come from (lowest to highest precedence):
1. ScannerConfig defaults
2. An optional YAML file with a top-level `kube_bench` section
3. Environment variables (KUBEBENCH_*, KUBECONFIG)

Example YAML:

    kube_bench:
      namespace: starboard
      image: aquasec/kube-bench:v0.6.3
      scan_job_timeout: 300
"""

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml


DEFAULT_NAMESPACE = "starboard"
DEFAULT_IMAGE = "aquasec/kube-bench:latest"
DEFAULT_CONTAINER_NAME = "kube-bench"


@dataclass(frozen=True)
class ScannerConfig:
    """Settings for a kube-bench scan."""
    namespace: str = DEFAULT_NAMESPACE  # Namespace the Job is created in
    image: str = DEFAULT_IMAGE  # kube-bench container image
    container_name: str = DEFAULT_CONTAINER_NAME
    scan_job_timeout: Optional[float] = None  # Seconds; None or 0 means no Job deadline
    poll_interval: float = 2.0  # Seconds between Job status checks
    request_timeout: Optional[float] = 30.0  # Per API request, seconds
    kubeconfig: Optional[str] = None  # Path; None tries in-cluster then ~/.kube/config
    context: Optional[str] = None  # kubeconfig context name

    def __post_init__(self):
        if self.scan_job_timeout is not None and self.scan_job_timeout < 0:
            raise ValueError(f"scan_job_timeout must be >= 0, got {self.scan_job_timeout}")
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be > 0, got {self.poll_interval}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScannerConfig":
        """
        Create a ScannerConfig from a dictionary.

        Args:
            data: Mapping of field names to values

        Returns:
            ScannerConfig instance

        Raises:
            ValueError: If the mapping contains unknown keys
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown kube_bench config keys: {', '.join(unknown)}")
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _env_overrides(environ: Dict[str, str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}

    if environ.get("KUBEBENCH_NAMESPACE"):
        overrides["namespace"] = environ["KUBEBENCH_NAMESPACE"]
    if environ.get("KUBEBENCH_IMAGE"):
        overrides["image"] = environ["KUBEBENCH_IMAGE"]
    if environ.get("KUBEBENCH_SCAN_JOB_TIMEOUT"):
        overrides["scan_job_timeout"] = float(environ["KUBEBENCH_SCAN_JOB_TIMEOUT"])
    if environ.get("KUBEBENCH_POLL_INTERVAL"):
        overrides["poll_interval"] = float(environ["KUBEBENCH_POLL_INTERVAL"])
    if environ.get("KUBECONFIG"):
        overrides["kubeconfig"] = environ["KUBECONFIG"]

    return overrides


def load_config(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Dict[str, str]] = None,
) -> ScannerConfig:
    """
    Load scanner configuration from YAML and the environment.

    Args:
        path: Optional YAML file; a missing `kube_bench` section is allowed
        environ: Environment mapping (defaults to os.environ)

    Returns:
        ScannerConfig with environment overrides applied

    Raises:
        FileNotFoundError: If path is given but does not exist
        ValueError: If the file is malformed or contains unknown keys
    """
    if environ is None:
        environ = dict(os.environ)

    data: Dict[str, Any] = {}
    if path is not None:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        section = raw.get("kube_bench") or {}
        if not isinstance(section, dict):
            raise ValueError(f"'kube_bench' section in {path} must be a mapping")
        data.update(section)

    config = ScannerConfig.from_dict(data)
    overrides = _env_overrides(environ)
    if overrides:
        config = replace(config, **overrides)
    return config
