"""
Build the Cluster model of one tick.

build_cluster merges three sources of truth into one graph:
- the declared spec (placement plan, recorded node -> pod mapping)
- the gossip snapshot (nodes, roles, slots, flags)
- the pod inventory (which pod hosts which node)

It performs no I/O and is deterministic for a given input.
"""

from dataclasses import replace

from operator_rediscluster.model.cluster import Cluster, ClusterActionsInfo
from operator_rediscluster.types import (
    ROLE_MASTER,
    ROLE_REPLICA,
    ClusterInfos,
    ClusterSpec,
    PodInfo,
)


def build_placement(spec: ClusterSpec) -> dict[int, str]:
    """
    Compute which role each pod index should host.

    Pods 0..number_of_masters-1 host masters, the rest host replicas.
    """
    return {
        index: ROLE_MASTER if index < spec.number_of_masters else ROLE_REPLICA
        for index in range(spec.expected_pods)
    }


def build_cluster(spec: ClusterSpec, infos: ClusterInfos, pods: list[PodInfo]) -> Cluster:
    """
    Merge spec, snapshot and pods into a Cluster.

    Nodes are attached to the pod with the same IP. Gossiped nodes without
    a pod are listed as orphaned; pods that no live node answers for are
    listed as pending.

    Args:
        spec: Desired state of the cluster
        infos: Gossip snapshot of this tick
        pods: Pods currently listed for the cluster

    Returns:
        A fresh Cluster owned by the caller.
    """
    cluster = Cluster(
        name=spec.name,
        namespace=spec.namespace,
        placement=build_placement(spec),
        pods=list(pods),
        recorded_nodes=dict(spec.recorded_nodes),
    )

    pods_by_ip = {pod.ip: pod for pod in pods if pod.ip}

    for node in infos.get_nodes().values():
        cluster.add_node(replace(node, pod=pods_by_ip.get(node.ip)))

    cluster.orphaned_nodes = sorted(
        node.id for node in cluster.nodes.values() if node.pod is None
    )

    live_ips = {observer.ip for observer in infos.observers()}
    cluster.pending_pods = [pod for pod in pods if pod.ip not in live_ips]

    cluster.actions_info = ClusterActionsInfo(
        nb_slots_to_migrate=sum(
            len(n.migrating_slots) + len(n.importing_slots)
            for n in cluster.nodes.values()
        )
    )

    return cluster
