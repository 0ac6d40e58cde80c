"""
Shared fixtures for the Redis Cluster operator tests.

The reference topology is six masters covering every hash slot, each with
one replica, every node hosted by its own pod:

    masters  m0..m5  10.0.0.1..6   pods rediscluster-a-0..5
    replicas r0..r5  10.0.1.1..6   pods rediscluster-a-6..11
"""

from dataclasses import replace
from unittest.mock import AsyncMock

import pytest

from operator_rediscluster.config import SanityCheckConfig
from operator_rediscluster.model import build_cluster
from operator_rediscluster.slots import HASH_SLOTS
from operator_rediscluster.types import (
    CLUSTER_NAME_LABEL_KEY,
    FLAG_MASTER,
    FLAG_MYSELF,
    FLAG_SLAVE,
    POD_NO_LABEL_KEY,
    ROLE_MASTER,
    ROLE_REPLICA,
    ClusterInfos,
    ClusterSpec,
    Node,
    NodeInfos,
    PodInfo,
)

NAMESPACE = "redis"
CLUSTER_NAME = "rediscluster-a"


def master_slots(index: int, count: int = 6) -> set[int]:
    """Contiguous share of the slot space owned by master index."""
    start = index * HASH_SLOTS // count
    end = (index + 1) * HASH_SLOTS // count
    return set(range(start, end))


def make_master(index: int) -> Node:
    return Node(
        id=f"m{index}",
        ip=f"10.0.0.{index + 1}",
        port=6379,
        role=ROLE_MASTER,
        slots=master_slots(index),
        flags={FLAG_MASTER},
    )


def make_replica(index: int) -> Node:
    return Node(
        id=f"r{index}",
        ip=f"10.0.1.{index + 1}",
        port=6379,
        role=ROLE_REPLICA,
        master_ref=f"m{index}",
        flags={FLAG_SLAVE},
    )


def make_pod(index: int, ip: str, **kwargs) -> PodInfo:
    return PodInfo(
        name=f"{CLUSTER_NAME}-{index}",
        ip=ip,
        labels={CLUSTER_NAME_LABEL_KEY: CLUSTER_NAME, POD_NO_LABEL_KEY: str(index)},
        **kwargs,
    )


def build_infos(
    live: list[Node],
    ghosts: list[Node] | None = None,
    seen_as: dict[str, set[str]] | None = None,
    unreachable: list[str] | None = None,
) -> ClusterInfos:
    """
    Build a snapshot where every live node sees every other node.

    Args:
        live: Nodes that answered CLUSTER NODES
        ghosts: Nodes only known through gossip
        seen_as: Node id -> extra flags the observers report for it
        unreachable: Addresses that did not answer
    """
    ghosts = ghosts or []
    seen_as = seen_as or {}
    infos: dict[str, NodeInfos] = {}
    for observer in live:
        myself = replace(observer, flags=observer.flags | {FLAG_MYSELF})
        friends = [
            replace(node, flags=node.flags | seen_as.get(node.id, set()))
            for node in [*live, *ghosts]
            if node.id != observer.id
        ]
        infos[observer.address] = NodeInfos(node=myself, friends=friends)
    return ClusterInfos(
        infos=infos,
        unreachable={addr: "Connection refused" for addr in unreachable or []},
    )


class Topology:
    """Mutable copy of the reference topology for one test."""

    def __init__(self) -> None:
        self.masters = [make_master(i) for i in range(6)]
        self.replicas = [make_replica(i) for i in range(6)]
        self.pods = [make_pod(i, node.ip) for i, node in enumerate(self.masters)]
        self.pods += [make_pod(i + 6, node.ip) for i, node in enumerate(self.replicas)]
        self.spec = ClusterSpec(
            name=CLUSTER_NAME,
            namespace=NAMESPACE,
            number_of_masters=6,
            replication_factor=1,
        )

    @property
    def nodes(self) -> list[Node]:
        return [*self.masters, *self.replicas]

    def node(self, node_id: str) -> Node:
        return next(n for n in self.nodes if n.id == node_id)

    def pod(self, name: str) -> PodInfo:
        return next(p for p in self.pods if p.name == name)

    def without_pod(self, name: str) -> list[PodInfo]:
        return [p for p in self.pods if p.name != name]

    def live_except(self, *node_ids: str) -> list[Node]:
        return [n for n in self.nodes if n.id not in node_ids]

    def build(self, infos: ClusterInfos, pods: list[PodInfo] | None = None):
        return build_cluster(self.spec, infos, self.pods if pods is None else pods)


@pytest.fixture
def topology():
    """Fresh six-master, six-replica topology."""
    return Topology()


@pytest.fixture
def check_config():
    """Default sanity-check thresholds."""
    return SanityCheckConfig()


@pytest.fixture
def admin():
    """Admin client mock; every method is awaitable."""
    return AsyncMock()


@pytest.fixture
def pod_control():
    """Pod collaborator mock; every method is awaitable."""
    return AsyncMock()
