"""
Forget untrusted nodes.

A node id is untrusted when it no longer matches the pod it ran in:
- it is stuck in "handshake" (an unknown peer that never completed a meet)
- a live node answering at its IP reports a different id (the pod was
  restarted and the redis process generated a fresh identity)
- the pod it was recorded against no longer exists and it is not answering

The untrusted id is forgotten cluster-wide. If its recorded pod is still
present but hosts no live identity, that stale pod is deleted as well so
it gets recreated cleanly.
"""

import logging

from operator_rediscluster.model import Cluster
from operator_rediscluster.sanitycheck.base import CheckContext, CheckOutcome
from operator_rediscluster.types import (
    FLAG_HANDSHAKE,
    ActionRecord,
    ClusterInfos,
    Node,
    PodInfo,
)

logger = logging.getLogger(__name__)


def find_untrusted_nodes(cluster: Cluster, infos: ClusterInfos) -> list[tuple[Node, str]]:
    """
    List untrusted nodes with the reason they are untrusted.

    Returns:
        (node, reason) pairs ordered by node id.
    """
    live_by_ip = {observer.ip: observer.id for observer in infos.observers()}
    live_ids = set(live_by_ip.values())
    handshaking = {
        friend.id
        for node_infos in infos.infos.values()
        for friend in node_infos.friends
        if friend.has_flag(FLAG_HANDSHAKE)
    }

    untrusted: list[tuple[Node, str]] = []
    for node_id in sorted(cluster.nodes):
        if node_id in live_ids:
            continue
        node = cluster.nodes[node_id]

        if node_id in handshaking:
            untrusted.append((node, "node is stuck in handshake"))
            continue

        current = live_by_ip.get(node.ip)
        if current is not None:
            untrusted.append((node, f"address {node.ip} is now served by node {current}"))
            continue

        pod_name = cluster.recorded_nodes.get(node_id)
        if pod_name and cluster.get_pod(pod_name) is None:
            untrusted.append((node, f"recorded pod {pod_name} no longer exists"))

    return untrusted


def find_stale_pod(cluster: Cluster, infos: ClusterInfos, node: Node) -> PodInfo | None:
    """Return the recorded pod of node if it exists and hosts no live node."""
    pod_name = cluster.recorded_nodes.get(node.id)
    if not pod_name:
        return None
    pod = cluster.get_pod(pod_name)
    if pod is None:
        return None
    live_ips = {observer.ip for observer in infos.observers()}
    if pod.ip and pod.ip in live_ips:
        return None
    return pod


class FixUntrustedNodes:
    """Forget the first untrusted node and drop its stale pod."""

    name = "fix_untrusted_nodes"

    async def evaluate(self, ctx: CheckContext) -> CheckOutcome:
        untrusted = find_untrusted_nodes(ctx.cluster, ctx.infos)
        if not untrusted:
            return CheckOutcome()

        node, reason = untrusted[0]
        stale_pod = find_stale_pod(ctx.cluster, ctx.infos, node)

        description = f"forget untrusted node {node.id}: {reason}"
        if stale_pod is not None:
            description += f", delete stale pod {stale_pod.name}"

        record = ActionRecord(
            check=self.name,
            description=description,
            dry_run=ctx.dry_run,
            node_id=node.id,
            pod_name=stale_pod.name if stale_pod else None,
        )
        if ctx.dry_run:
            return CheckOutcome.acted(record)

        logger.info(f"Forgetting untrusted node {node.id}: {reason}")
        await ctx.admin.forget_node(node.id, ctx.peers_of(node.id))
        if stale_pod is not None:
            await ctx.pod_control.delete_pod(ctx.cluster.namespace, stale_pod.name)

        return CheckOutcome.acted(record)
