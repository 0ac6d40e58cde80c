"""
In-memory topology of one Redis Cluster.

A Cluster is rebuilt at every reconcile tick from the desired spec, the
gossip snapshot and the pod inventory (see model.builder). It is owned by
that tick only and is never shared between ticks.
"""

import copy
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from operator_rediscluster.exceptions import NodeNotFoundError
from operator_rediscluster.slots import HASH_SLOTS
from operator_rediscluster.types import (
    ROLE_MASTER,
    ROLE_REPLICA,
    ClusterPhase,
    ClusterStatus,
    Node,
    NodeId,
    PodInfo,
)

FindNodeFunc = Callable[[Node], bool]


@dataclass
class ClusterActionsInfo:
    """Actions in flight on the cluster."""

    nb_slots_to_migrate: int = 0


@dataclass
class Cluster:
    """
    Aggregate topology of one RedisCluster instance.

    Attributes:
        name: Resource name
        namespace: Resource namespace
        nodes: Node id -> Node, at most one Node per id
        status: Last computed status
        placement: Pod index -> role the pod is expected to host
        actions_info: Counters of in-flight actions
        pods: Pods listed for the cluster
        orphaned_nodes: Ids of gossiped nodes with no backing pod
        pending_pods: Pods with no live node answering at their IP
        recorded_nodes: Node id -> pod name from the last published status
    """

    name: str
    namespace: str
    nodes: dict[NodeId, Node] = field(default_factory=dict)
    status: ClusterStatus = field(default_factory=ClusterStatus)
    placement: dict[int, str] = field(default_factory=dict)
    actions_info: ClusterActionsInfo = field(default_factory=ClusterActionsInfo)
    pods: list[PodInfo] = field(default_factory=list)
    orphaned_nodes: list[NodeId] = field(default_factory=list)
    pending_pods: list[PodInfo] = field(default_factory=list)
    recorded_nodes: dict[NodeId, str] = field(default_factory=dict)

    def get_pod(self, name: str) -> PodInfo | None:
        return next((pod for pod in self.pods if pod.name == name), None)

    def add_node(self, node: Node) -> None:
        """Add a node, replacing any node with the same id."""
        self.nodes[node.id] = node

    def get_node_by_id(self, node_id: NodeId) -> Node:
        if node_id in self.nodes:
            return self.nodes[node_id]
        raise NodeNotFoundError(node_id)

    def get_node_by_ip(self, ip: str) -> Node:
        return self.get_node_by_func(lambda n: n.ip == ip, key=ip)

    def get_node_by_pod_name(self, name: str) -> Node:
        return self.get_node_by_func(
            lambda n: n.pod is not None and n.pod.name == name, key=name
        )

    def get_node_by_func(self, func: FindNodeFunc, key: str = "<predicate>") -> Node:
        """Return the first node (by id) matching func."""
        for node_id in sorted(self.nodes):
            if func(self.nodes[node_id]):
                return self.nodes[node_id]
        raise NodeNotFoundError(key)

    def get_nodes_by_func(self, func: FindNodeFunc) -> list[Node]:
        """Return every node matching func, ordered by id. May be empty."""
        return [self.nodes[i] for i in sorted(self.nodes) if func(self.nodes[i])]

    def masters(self) -> list[Node]:
        return self.get_nodes_by_func(lambda n: n.is_master)

    def replicas_of(self, master_id: NodeId) -> list[Node]:
        return self.get_nodes_by_func(
            lambda n: n.role == ROLE_REPLICA and n.master_ref == master_id
        )

    # -------------------------------------------------------------------------
    # Slot coverage
    # -------------------------------------------------------------------------

    def slot_owners(self) -> dict[int, list[NodeId]]:
        """Slot -> ids of every master claiming it."""
        owners: dict[int, list[NodeId]] = {}
        for master in self.masters():
            for slot in master.slots:
                owners.setdefault(slot, []).append(master.id)
        return owners

    def uncovered_slots(self) -> set[int]:
        return set(range(HASH_SLOTS)) - set(self.slot_owners())

    def overlapping_slots(self) -> set[int]:
        return {slot for slot, ids in self.slot_owners().items() if len(ids) > 1}

    def has_full_coverage(self) -> bool:
        """True when every hash slot is owned by exactly one master."""
        owners = self.slot_owners()
        return len(owners) == HASH_SLOTS and all(len(ids) == 1 for ids in owners.values())

    def without(self, node_ids: Iterable[NodeId]) -> "Cluster":
        """
        Return a copy of the cluster where node_ids have been forgotten.

        A forgotten master hands its slots to its first healthy replica,
        the way a failover would; its other replicas follow the promoted
        node. Slots of a master without a healthy replica are lost.
        """
        removed = set(node_ids)
        clone = copy.deepcopy(self)
        for node_id in sorted(removed):
            gone = clone.nodes.pop(node_id, None)
            if gone is None or not gone.is_master:
                continue

            candidates = [
                r for r in clone.replicas_of(gone.id)
                if not r.is_failed and r.id not in removed
            ]
            if not candidates:
                continue

            promoted = candidates[0]
            promoted.role = ROLE_MASTER
            promoted.master_ref = ""
            promoted.slots = set(gone.slots)
            for other in clone.replicas_of(gone.id):
                other.master_ref = promoted.id

        clone.orphaned_nodes = [i for i in clone.orphaned_nodes if i not in removed]
        return clone

    def to_status(self, phase: ClusterPhase | None = None, last_action: str = "") -> ClusterStatus:
        """
        Build the status to publish for this topology.

        Nodes whose pod is gone keep the pod name recorded for them, so a
        later tick can still tell that their pod disappeared.
        """
        if phase is None:
            phase = ClusterPhase.OK if self.has_full_coverage() else ClusterPhase.KO

        nodes = [self.nodes[i] for i in sorted(self.nodes)]
        self.status = ClusterStatus(
            phase=phase,
            nb_masters=sum(1 for n in nodes if n.is_master),
            nb_replicas=sum(1 for n in nodes if not n.is_master),
            nb_pods=len(self.pods),
            nb_slots_to_migrate=self.actions_info.nb_slots_to_migrate,
            nodes=[n.to_status(self.recorded_nodes.get(n.id, "")) for n in nodes],
            last_action=last_action,
        )
        return self.status
