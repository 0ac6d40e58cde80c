"""
Forget failed nodes.

After a crash or a scale down, surviving nodes keep gossiping about nodes
that will never come back. A node is considered failed once a quorum of
the other reachable nodes flags it "fail" (or "noaddr"). It is forgotten
cluster-wide, unless forgetting it would strip the last owner of a slot
or the last replica of a master; in that case the check declines and
leaves the placement layer to promote a replacement first.
"""

import logging

from operator_rediscluster.model import Cluster
from operator_rediscluster.sanitycheck.base import CheckContext, CheckOutcome
from operator_rediscluster.types import ActionRecord, ClusterInfos, Node

logger = logging.getLogger(__name__)


def find_failed_nodes(cluster: Cluster, infos: ClusterInfos, quorum_ratio: float) -> list[Node]:
    """
    List nodes flagged failed by a quorum of their reachable peers.

    Nodes that answered the snapshot themselves are alive and never
    returned.

    Args:
        cluster: Topology model
        infos: Gossip snapshot
        quorum_ratio: Ratio of peers that must be exceeded by the fail votes

    Returns:
        Failed nodes, ordered by id.
    """
    live_ids = {observer.id for observer in infos.observers()}
    failed: list[Node] = []

    for node_id in sorted(cluster.nodes):
        if node_id in live_ids:
            continue
        peers = infos.peer_count(node_id)
        votes = infos.fail_votes(node_id)
        if peers and votes > quorum_ratio * peers:
            failed.append(cluster.nodes[node_id])

    return failed


def check_removal(cluster: Cluster, node_id: str) -> str:
    """
    Check that forgetting node_id keeps the topology invariants.

    Forgetting is simulated with Cluster.without(), which promotes a
    healthy replica of a forgotten master.

    Returns:
        Empty string when the removal is safe, otherwise the reason.
    """
    after = cluster.without([node_id])

    lost = set(cluster.slot_owners()) - set(after.slot_owners())
    if lost:
        return f"would strip the last owner of {len(lost)} slot(s)"

    for master in cluster.masters():
        if master.id == node_id or master.id not in after.nodes:
            continue
        if cluster.replicas_of(master.id) and not after.replicas_of(master.id):
            return f"would remove the last replica of master {master.id}"

    return ""


class FixFailedNodes:
    """Forget the first failed node whose removal is safe."""

    name = "fix_failed_nodes"

    async def evaluate(self, ctx: CheckContext) -> CheckOutcome:
        failed = find_failed_nodes(ctx.cluster, ctx.infos, ctx.config.fail_quorum_ratio)
        if not failed:
            return CheckOutcome()

        declined: list[str] = []
        for node in failed:
            reason = check_removal(ctx.cluster, node.id)
            if reason:
                declined.append(f"{node.id} {reason}")
                continue

            record = ActionRecord(
                check=self.name,
                description=f"forget failed node {node.id} ({node.address})",
                dry_run=ctx.dry_run,
                node_id=node.id,
            )
            if not ctx.dry_run:
                logger.info(f"Forgetting failed node {node.id} on {len(ctx.peers_of(node.id))} peer(s)")
                await ctx.admin.forget_node(node.id, ctx.peers_of(node.id))
            return CheckOutcome.acted(record)

        return CheckOutcome.declined("; ".join(declined))
