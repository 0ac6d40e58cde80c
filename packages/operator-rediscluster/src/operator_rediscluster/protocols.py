"""
Protocol definitions for the engine's collaborators.

The engine never talks to Kubernetes or redis directly; it goes through
these narrow interfaces, injected at construction time:
- AdminProtocol: observe and mutate live redis nodes
- PodControlProtocol: list and delete the pods backing redis nodes
- ClusterSourceProtocol: read RedisCluster resources, write their status

Implementations: RedisAdmin (operator_rediscluster.admin),
KubePodControl and KubeClusterSource (operator_rediscluster.kube).
Tests use plain mocks that satisfy the same protocols.
"""

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from operator_rediscluster.types import ClusterInfos, ClusterSpec, ClusterStatus, PodInfo


@runtime_checkable
class AdminProtocol(Protocol):
    """
    Protocol for the redis admin client.

    Implementations must be safe to share between concurrent ticks of
    different clusters.
    """

    async def fetch_cluster_infos(self, addresses: Iterable[str]) -> ClusterInfos:
        """Snapshot every node's view; raise ClusterInfosError if unsafe."""
        ...

    async def forget_node(self, node_id: str, addresses: Iterable[str]) -> None:
        """Forget node_id on every given peer."""
        ...

    async def meet(self, address: str, ip: str, port: int) -> None:
        """Ask the node at address to handshake with ip:port."""
        ...

    async def add_slots(self, address: str, slots: Iterable[int]) -> None:
        ...

    async def set_slot(self, address: str, slot: int, state: str, node_id: str = "") -> None:
        ...

    async def set_config_epoch(self, address: str, epoch: int) -> None:
        ...

    async def bump_epoch(self, address: str) -> None:
        ...

    async def flush_and_reset(self, address: str, hard: bool = True) -> None:
        """Drop all data on a node and reset its cluster state."""
        ...

    async def close(self) -> None:
        """Release pooled connections."""
        ...


@runtime_checkable
class PodControlProtocol(Protocol):
    """Protocol for the pod lifecycle collaborator, keyed by cluster."""

    async def list_pods(self, namespace: str, cluster_name: str) -> list[PodInfo]:
        """List the pods of a cluster."""
        ...

    async def delete_pod(self, namespace: str, name: str) -> None:
        """Delete a pod with its default grace period."""
        ...

    async def delete_pod_now(self, namespace: str, name: str) -> None:
        """Delete a pod immediately (grace period 0)."""
        ...


@runtime_checkable
class ClusterSourceProtocol(Protocol):
    """Protocol for reading desired state and publishing status."""

    async def list_clusters(self) -> list[ClusterSpec]:
        ...

    async def get_cluster(self, namespace: str, name: str) -> ClusterSpec:
        """Raise ClusterNotFoundError when the resource is gone."""
        ...

    async def update_status(self, namespace: str, name: str, status: ClusterStatus) -> None:
        ...
