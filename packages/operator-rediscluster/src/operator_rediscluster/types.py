"""
Shared data types for the Redis Cluster operator.

This module defines the structures the engine reasons about:
- Node: one redis-server process as seen through CLUSTER NODES
- PodInfo: the pod hosting a node, as reported by the pod collaborator
- ClusterSpec: the desired state read from the RedisCluster resource
- NodeInfos / ClusterInfos: the per-observer gossip snapshot of one tick
- ClusterStatus / NodeStatus: what gets published back to the resource
- ActionRecord: which check acted, for reporting

All types use @dataclass. Pydantic models are reserved for parsing
Kubernetes API responses (see operator_rediscluster.kube.types).
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from operator_rediscluster.slots import format_slot_ranges

NodeId = str
"""Identifier a redis node generates for itself (40 hex chars)."""

# Node flags reported by CLUSTER NODES
FLAG_MYSELF = "myself"
FLAG_MASTER = "master"
FLAG_SLAVE = "slave"
FLAG_FAIL = "fail"
FLAG_POSSIBLE_FAIL = "fail?"
FLAG_HANDSHAKE = "handshake"
FLAG_NOADDR = "noaddr"
FLAG_NOFAILOVER = "nofailover"
FLAG_NOFLAGS = "noflags"

ROLE_MASTER = "master"
ROLE_REPLICA = "replica"

LINK_CONNECTED = "connected"
LINK_DISCONNECTED = "disconnected"

# Pod labels set by the operator on every redis pod
CLUSTER_NAME_LABEL_KEY = "redis-operator.k8s.io/cluster-name"
POD_NO_LABEL_KEY = "redis-operator.k8s.io/pod-no"


@dataclass
class PodInfo:
    """
    A pod backing (or expected to back) a redis node.

    Attributes:
        name: Pod name
        ip: Pod IP, empty while not yet scheduled
        phase: Pod phase ("Pending", "Running", ...)
        labels: Pod labels
        deletion_timestamp: Set once the pod is terminating. Kubernetes sets
            it to request time plus the grace period.
        deletion_grace_period_seconds: Grace period of the pending deletion
    """

    name: str
    ip: str = ""
    phase: str = "Running"
    labels: dict[str, str] = field(default_factory=dict)
    deletion_timestamp: datetime | None = None
    deletion_grace_period_seconds: int | None = None

    @property
    def index(self) -> int | None:
        """Pod number from the pod-no label, None if missing or malformed."""
        value = self.labels.get(POD_NO_LABEL_KEY)
        if value is None or not value.isdigit():
            return None
        return int(value)

    @property
    def is_terminating(self) -> bool:
        return self.deletion_timestamp is not None

    @property
    def terminating_since(self) -> datetime | None:
        """When the deletion was requested."""
        if self.deletion_timestamp is None:
            return None
        grace = self.deletion_grace_period_seconds or 0
        return self.deletion_timestamp - timedelta(seconds=grace)


@dataclass
class Node:
    """
    One redis node of the cluster.

    Attributes:
        id: Node id, stable until the process is replaced
        ip: Node IP
        port: Client port
        role: "master" or "replica"
        master_ref: Id of the master when the node is a replica
        slots: Owned hash slots (masters only)
        flags: Flags from CLUSTER NODES ("fail", "handshake", ...)
        link_state: "connected" or "disconnected" as seen by the observer
        config_epoch: Configuration epoch
        migrating_slots: Slot -> destination node id
        importing_slots: Slot -> source node id
        pod: Pod hosting the node, None when orphaned
    """

    id: NodeId
    ip: str
    port: int
    role: str = ROLE_MASTER
    master_ref: NodeId = ""
    slots: set[int] = field(default_factory=set)
    flags: set[str] = field(default_factory=set)
    link_state: str = LINK_CONNECTED
    config_epoch: int = 0
    migrating_slots: dict[int, NodeId] = field(default_factory=dict)
    importing_slots: dict[int, NodeId] = field(default_factory=dict)
    pod: PodInfo | None = None

    @property
    def address(self) -> str:
        return f"{self.ip}:{self.port}"

    @property
    def is_master(self) -> bool:
        return self.role == ROLE_MASTER

    def has_flag(self, flag: str) -> bool:
        return flag in self.flags

    @property
    def is_failed(self) -> bool:
        """True when the node is flagged fail or has no address."""
        return FLAG_FAIL in self.flags or FLAG_NOADDR in self.flags

    @property
    def is_possibly_failed(self) -> bool:
        return FLAG_POSSIBLE_FAIL in self.flags

    def to_status(self, recorded_pod: str = "") -> "NodeStatus":
        """
        Build the status entry of this node.

        Args:
            recorded_pod: Pod name to keep when the node has no pod any more
        """
        return NodeStatus(
            id=self.id,
            ip=self.ip,
            port=self.port,
            role=self.role,
            master_ref=self.master_ref,
            slots=format_slot_ranges(self.slots),
            pod_name=self.pod.name if self.pod else recorded_pod,
            flags=sorted(self.flags - {FLAG_MYSELF}),
        )


@dataclass
class ClusterSpec:
    """
    Desired state of one RedisCluster resource.

    Attributes:
        name: Resource name
        namespace: Resource namespace
        number_of_masters: Declared number of masters
        replication_factor: Declared replicas per master
        service_type: Exposure mode, consumed by the exposure collaborator
        service_node_port_start: Node-port base, consumed by the exposure
            collaborator
        recorded_nodes: Node id -> pod name from the last published status
    """

    name: str
    namespace: str
    number_of_masters: int = 3
    replication_factor: int = 1
    service_type: str = ""
    service_node_port_start: int | None = None
    recorded_nodes: dict[NodeId, str] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def expected_pods(self) -> int:
        return self.number_of_masters * (1 + self.replication_factor)


class ClusterPhase(str, Enum):
    """Cluster-level phase published in the resource status."""

    OK = "OK"
    RECONCILING = "Reconciling"
    KO = "KO"


@dataclass
class NodeStatus:
    """Per-node entry of the published status."""

    id: NodeId
    ip: str
    port: int
    role: str
    master_ref: str = ""
    slots: str = ""
    pod_name: str = ""
    flags: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase layout of the resource status."""
        return {
            "id": self.id,
            "ip": self.ip,
            "port": str(self.port),
            "role": self.role,
            "masterRef": self.master_ref,
            "slots": self.slots,
            "podName": self.pod_name,
            "flags": self.flags,
        }


@dataclass
class ClusterStatus:
    """
    Status published back to the RedisCluster resource.

    Attributes:
        phase: Cluster-level phase
        nb_masters: Masters currently known
        nb_replicas: Replicas currently known
        nb_pods: Pods listed for the cluster
        nb_slots_to_migrate: Slots with a migration in flight
        nodes: Per-node status
        last_action: Description of the last corrective action, if any
    """

    phase: ClusterPhase = ClusterPhase.OK
    nb_masters: int = 0
    nb_replicas: int = 0
    nb_pods: int = 0
    nb_slots_to_migrate: int = 0
    nodes: list[NodeStatus] = field(default_factory=list)
    last_action: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.phase.value,
            "numberOfMaster": self.nb_masters,
            "numberOfReplicas": self.nb_replicas,
            "numberOfPods": self.nb_pods,
            "numberOfSlotsToMigrate": self.nb_slots_to_migrate,
            "lastAction": self.last_action,
            "nodes": [n.to_dict() for n in self.nodes],
        }


@dataclass(frozen=True)
class NodeInfos:
    """
    One observer's answer to CLUSTER NODES.

    Attributes:
        node: The observer itself (the "myself" line)
        friends: Every other node the observer knows about
    """

    node: Node
    friends: list[Node] = field(default_factory=list)


@dataclass(frozen=True)
class ClusterInfos:
    """
    Point-in-time snapshot of every queried node's view of the cluster.

    Views are kept per observer rather than merged, so disagreement
    between observers (split, partial failure detection) stays visible.

    Attributes:
        infos: Observer address -> its view
        unreachable: Address that did not answer -> reason
    """

    infos: dict[str, NodeInfos] = field(default_factory=dict)
    unreachable: dict[str, str] = field(default_factory=dict)

    def reachable_addresses(self) -> list[str]:
        return sorted(self.infos)

    def reachable_ratio(self) -> float:
        total = len(self.infos) + len(self.unreachable)
        if total == 0:
            return 0.0
        return len(self.infos) / total

    def observers(self) -> list[Node]:
        """The observer node of every reachable address, by address."""
        return [self.infos[addr].node for addr in sorted(self.infos)]

    def get_nodes(self) -> dict[NodeId, Node]:
        """
        Merge all views into one node per id.

        An observer is authoritative about itself; nodes that were only
        seen as somebody's friend are taken from the first observer (by
        address) that reports them.
        """
        nodes: dict[NodeId, Node] = {}
        for addr in sorted(self.infos):
            myself = self.infos[addr].node
            nodes[myself.id] = myself
        for addr in sorted(self.infos):
            for friend in self.infos[addr].friends:
                nodes.setdefault(friend.id, friend)
        return nodes

    def views(self, healthy_only: bool = False) -> dict[NodeId, set[NodeId]]:
        """
        Observer id -> ids of every node it believes is a member.

        Args:
            healthy_only: Leave out friends the observer sees as failed, in
                handshake, or without an address
        """
        views: dict[NodeId, set[NodeId]] = {}
        for infos in self.infos.values():
            friends = infos.friends
            if healthy_only:
                friends = [
                    f for f in friends
                    if f.ip and not f.is_failed and not f.has_flag(FLAG_HANDSHAKE)
                ]
            views[infos.node.id] = {infos.node.id} | {f.id for f in friends}
        return views

    def fail_votes(self, node_id: NodeId) -> int:
        """Number of observers that see node_id as failed."""
        votes = 0
        for infos in self.infos.values():
            for friend in infos.friends:
                if friend.id == node_id and friend.is_failed:
                    votes += 1
                    break
        return votes

    def peer_count(self, node_id: NodeId) -> int:
        """Number of reachable observers other than node_id itself."""
        return sum(1 for infos in self.infos.values() if infos.node.id != node_id)


@dataclass
class ActionRecord:
    """
    A corrective action chosen by a sanity check.

    Attributes:
        check: Name of the check that acted
        description: Human-readable description of the mutation
        dry_run: Whether the mutation was only computed
        node_id: Targeted node, if any
        pod_name: Targeted pod, if any
    """

    check: str
    description: str
    dry_run: bool = False
    node_id: NodeId | None = None
    pod_name: str | None = None
