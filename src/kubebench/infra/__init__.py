"""
Infrastructure for the kube-bench job runner.

Contains:
- communicator: Kubernetes API communication
"""

from .communicator import ClusterCommunicator, KubernetesCommunicator, create_communicator
