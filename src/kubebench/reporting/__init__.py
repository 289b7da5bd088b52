"""
Report handling for the kube-bench job runner.

Contains:
- converter: kube-bench JSON output to CISKubeBenchReport
- schema: JSON Schema of the kube-bench output
"""

from .converter import Converter, image_version
