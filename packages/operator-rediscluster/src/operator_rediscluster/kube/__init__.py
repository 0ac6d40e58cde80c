"""
Kubernetes-backed collaborators.

Exports:
    KubeClient: REST client for pods and RedisCluster resources
    KubePodControl: PodControlProtocol implementation
    KubeClusterSource: ClusterSourceProtocol implementation
"""

from operator_rediscluster.kube.client import KubeClient
from operator_rediscluster.kube.cluster_source import KubeClusterSource, cluster_spec_from_kube
from operator_rediscluster.kube.pod_control import KubePodControl, pod_info_from_kube

__all__ = [
    "KubeClient",
    "KubePodControl",
    "KubeClusterSource",
    "cluster_spec_from_kube",
    "pod_info_from_kube",
]
