"""
Repair a cluster split.

Every reachable node reports which nodes it believes are members. Those
views form a visibility graph (an edge from each observer to every
non-failed node it sees). When the graph has more than one connected
component, subsets of nodes are running as separate clusters.

The largest component is kept as the main partition (ties go to the one
holding the lowest address). Every node of the other partitions is then
introduced to the main partition with CLUSTER MEET. In RESET recovery
mode, minority nodes are flushed and hard-reset first, which discards
their data but avoids merging conflicting slot claims.
"""

import logging

from operator_rediscluster.admin.client import split_address
from operator_rediscluster.config import SplitRecovery
from operator_rediscluster.sanitycheck.base import CheckContext, CheckOutcome
from operator_rediscluster.types import ActionRecord, ClusterInfos, NodeId

logger = logging.getLogger(__name__)


def node_addresses(infos: ClusterInfos) -> dict[NodeId, str]:
    """
    Address to reach each node at.

    Observers are reached at the address they were queried on, which can
    differ from the address they announce. Other nodes use the address
    gossiped for them.
    """
    addresses = {node_id: node.address for node_id, node in infos.get_nodes().items()}
    for addr, node_infos in infos.infos.items():
        addresses[node_infos.node.id] = addr
    return addresses


def build_partitions(infos: ClusterInfos) -> list[list[str]]:
    """
    Group nodes into connected components of the visibility graph.

    The graph is built over node ids, so a node announcing another address
    than the one it was queried on stays connected to its peers.

    Returns:
        Components as sorted address lists, ordered by their lowest address.
    """
    parent: dict[NodeId, NodeId] = {}

    def find(node_id: NodeId) -> NodeId:
        parent.setdefault(node_id, node_id)
        while parent[node_id] != node_id:
            parent[node_id] = parent[parent[node_id]]
            node_id = parent[node_id]
        return node_id

    def union(a: NodeId, b: NodeId) -> None:
        root_a, root_b = find(a), find(b)
        if root_a != root_b:
            parent[max(root_a, root_b)] = min(root_a, root_b)

    for observer_id, seen in infos.views(healthy_only=True).items():
        find(observer_id)
        for node_id in seen:
            union(observer_id, node_id)

    addresses = node_addresses(infos)
    components: dict[NodeId, list[str]] = {}
    for node_id in parent:
        components.setdefault(find(node_id), []).append(addresses[node_id])

    return sorted((sorted(c) for c in components.values()), key=lambda c: c[0])


def split_main_partition(partitions: list[list[str]]) -> tuple[list[str], list[list[str]]]:
    """
    Pick the main partition.

    Returns:
        (main partition, other partitions). The main partition is the
        largest one; on a tie, the one listed first.
    """
    if not partitions:
        return [], []
    main_index = max(range(len(partitions)), key=lambda i: (len(partitions[i]), -i))
    others = [p for i, p in enumerate(partitions) if i != main_index]
    return partitions[main_index], others


class FixClusterSplit:
    """Reconnect partitions so every node shares one membership view."""

    name = "fix_cluster_split"

    async def evaluate(self, ctx: CheckContext) -> CheckOutcome:
        partitions = build_partitions(ctx.infos)
        if len(partitions) <= 1:
            logger.debug("No split cluster detected")
            return CheckOutcome()

        main, others = split_main_partition(partitions)
        entry = next((addr for addr in main if addr in ctx.infos.infos), None)
        if entry is None:
            return CheckOutcome.declined("no reachable node in the main partition")

        minority = sorted(addr for partition in others for addr in partition)
        reset = ctx.config.split_recovery == SplitRecovery.RESET
        record = ActionRecord(
            check=self.name,
            description=(
                f"cluster split in {len(partitions)} partitions, "
                f"{'reset and ' if reset else ''}meet {len(minority)} node(s) via {entry}"
            ),
            dry_run=ctx.dry_run,
        )
        if ctx.dry_run:
            return CheckOutcome.acted(record)

        logger.error(
            f"Cluster split detected in {ctx.cluster.namespace}/{ctx.cluster.name}: "
            f"{len(partitions)} partitions, main partition has {len(main)} node(s)"
        )
        for addr in minority:
            if reset:
                await ctx.admin.flush_and_reset(addr, hard=True)
            ip, port = split_address(addr)
            await ctx.admin.meet(entry, ip, port)

        return CheckOutcome.acted(record)
