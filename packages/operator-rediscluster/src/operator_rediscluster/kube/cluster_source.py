"""
RedisCluster resource access backed by the Kubernetes API.

KubeClusterSource reads the desired state of RedisCluster resources and
publishes the computed status back. The engine only reads spec and writes
status; the resource schema itself is owned by the CRD.
"""

from dataclasses import dataclass

from operator_rediscluster.kube.client import KubeClient
from operator_rediscluster.kube.types import RedisClusterResource
from operator_rediscluster.types import ClusterSpec, ClusterStatus


def cluster_spec_from_kube(resource: RedisClusterResource) -> ClusterSpec:
    """Convert a RedisCluster resource into the engine's ClusterSpec."""
    recorded: dict[str, str] = {}
    if resource.status is not None and resource.status.cluster is not None:
        recorded = {
            node.id: node.pod_name
            for node in resource.status.cluster.nodes
            if node.id and node.pod_name
        }

    return ClusterSpec(
        name=resource.metadata.name,
        namespace=resource.metadata.namespace,
        number_of_masters=resource.spec.number_of_master,
        replication_factor=resource.spec.replication_factor,
        service_type=resource.spec.service_type,
        service_node_port_start=resource.spec.service_node_port_start,
        recorded_nodes=recorded,
    )


@dataclass
class KubeClusterSource:
    """
    Reads RedisCluster resources and writes their status.

    Attributes:
        kube: Kubernetes API client
        namespace: Namespace to watch, empty for every namespace
    """

    kube: KubeClient
    namespace: str = ""

    async def list_clusters(self) -> list[ClusterSpec]:
        resources = await self.kube.list_redis_clusters(self.namespace)
        return [cluster_spec_from_kube(r) for r in resources.items]

    async def get_cluster(self, namespace: str, name: str) -> ClusterSpec:
        resource = await self.kube.get_redis_cluster(namespace, name)
        return cluster_spec_from_kube(resource)

    async def update_status(self, namespace: str, name: str, status: ClusterStatus) -> None:
        await self.kube.patch_redis_cluster_status(
            namespace, name, {"cluster": status.to_dict()}
        )
