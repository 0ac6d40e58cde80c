"""
Tests for the Cluster model and its builder.

These tests verify:
- build_cluster attaches pods by IP and marks orphaned nodes and pending pods
- build_cluster does not mutate the snapshot
- Node lookups raise NodeNotFoundError when nothing matches
- Slot coverage helpers and the removal simulation of Cluster.without()
- Status conversion
"""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import build_infos, make_pod
from operator_rediscluster.exceptions import NodeNotFoundError
from operator_rediscluster.model import build_placement
from operator_rediscluster.types import (
    FLAG_FAIL,
    ROLE_MASTER,
    ROLE_REPLICA,
    ClusterInfos,
    ClusterPhase,
    PodInfo,
)


class TestBuildCluster:
    """Tests for build_cluster()."""

    def test_every_node_gets_its_pod(self, topology):
        cluster = topology.build(build_infos(topology.nodes))

        assert len(cluster.nodes) == 12
        assert cluster.get_node_by_id("m0").pod.name == "rediscluster-a-0"
        assert cluster.get_node_by_id("r5").pod.name == "rediscluster-a-11"
        assert cluster.orphaned_nodes == []
        assert cluster.pending_pods == []

    def test_node_without_pod_is_orphaned(self, topology):
        infos = build_infos(topology.live_except("m5"), ghosts=[topology.node("m5")])

        cluster = topology.build(infos, pods=topology.without_pod("rediscluster-a-5"))

        assert cluster.orphaned_nodes == ["m5"]
        assert cluster.get_node_by_id("m5").pod is None

    def test_pod_without_live_node_is_pending(self, topology):
        pods = [*topology.pods, make_pod(12, "10.0.2.1")]

        cluster = topology.build(build_infos(topology.nodes), pods=pods)

        assert [p.name for p in cluster.pending_pods] == ["rediscluster-a-12"]

    def test_unreachable_pod_is_pending(self, topology):
        """A pod whose node did not answer has no live node either."""
        infos = build_infos(topology.live_except("r0"), ghosts=[topology.node("r0")])

        cluster = topology.build(infos)

        assert [p.name for p in cluster.pending_pods] == ["rediscluster-a-6"]
        assert cluster.orphaned_nodes == []

    def test_snapshot_is_not_mutated(self, topology):
        infos = build_infos(topology.nodes)

        topology.build(infos)

        assert all(node_infos.node.pod is None for node_infos in infos.infos.values())

    def test_observer_is_authoritative_about_itself(self, topology):
        """Peers may lag behind; the node's own line wins."""
        infos = build_infos(topology.nodes, seen_as={"m0": {FLAG_FAIL}})

        cluster = topology.build(infos)

        assert not cluster.get_node_by_id("m0").is_failed

    def test_recorded_nodes_and_placement(self, topology):
        topology.spec.recorded_nodes = {"m0": "rediscluster-a-0"}

        cluster = topology.build(build_infos(topology.nodes))

        assert cluster.recorded_nodes == {"m0": "rediscluster-a-0"}
        assert cluster.placement[0] == ROLE_MASTER
        assert cluster.placement[6] == ROLE_REPLICA

    def test_slots_to_migrate_are_counted(self, topology):
        topology.masters[0].migrating_slots = {0: "m1"}
        topology.masters[1].importing_slots = {0: "m0"}

        cluster = topology.build(build_infos(topology.nodes))

        assert cluster.actions_info.nb_slots_to_migrate == 2


class TestBuildPlacement:
    """Tests for build_placement()."""

    def test_first_pods_host_masters(self, topology):
        topology.spec.number_of_masters = 2
        topology.spec.replication_factor = 2

        placement = build_placement(topology.spec)

        assert placement == {
            0: ROLE_MASTER,
            1: ROLE_MASTER,
            2: ROLE_REPLICA,
            3: ROLE_REPLICA,
            4: ROLE_REPLICA,
            5: ROLE_REPLICA,
        }


class TestLookups:
    """Tests for the Cluster node lookups."""

    @pytest.fixture
    def cluster(self, topology):
        return topology.build(build_infos(topology.nodes))

    def test_get_node_by_ip(self, cluster):
        assert cluster.get_node_by_ip("10.0.1.3").id == "r2"

    def test_get_node_by_pod_name(self, cluster):
        assert cluster.get_node_by_pod_name("rediscluster-a-4").id == "m4"

    def test_missing_node_raises(self, cluster):
        with pytest.raises(NodeNotFoundError) as exc_info:
            cluster.get_node_by_id("nope")
        assert exc_info.value.key == "nope"

        with pytest.raises(NodeNotFoundError):
            cluster.get_node_by_ip("192.168.0.1")

    def test_get_nodes_by_func_may_be_empty(self, cluster):
        assert cluster.get_nodes_by_func(lambda n: n.port == 1) == []

    def test_masters_and_replicas(self, cluster):
        assert [m.id for m in cluster.masters()] == [f"m{i}" for i in range(6)]
        assert [r.id for r in cluster.replicas_of("m3")] == ["r3"]


class TestCoverage:
    """Tests for slot coverage and the removal simulation."""

    def test_full_coverage(self, topology):
        cluster = topology.build(build_infos(topology.nodes))

        assert cluster.has_full_coverage()
        assert cluster.uncovered_slots() == set()
        assert cluster.overlapping_slots() == set()

    def test_overlap_breaks_coverage(self, topology):
        topology.masters[1].slots.add(0)

        cluster = topology.build(build_infos(topology.nodes))

        assert cluster.overlapping_slots() == {0}
        assert not cluster.has_full_coverage()

    def test_without_master_promotes_replica(self, topology):
        cluster = topology.build(build_infos(topology.nodes))

        after = cluster.without(["m2"])

        assert "m2" not in after.nodes
        assert after.nodes["r2"].is_master
        assert after.nodes["r2"].slots == topology.masters[2].slots
        assert after.has_full_coverage()
        # the original is untouched
        assert "m2" in cluster.nodes
        assert not cluster.nodes["r2"].is_master

    def test_without_master_and_replica_loses_slots(self, topology):
        cluster = topology.build(build_infos(topology.nodes))

        after = cluster.without(["m2", "r2"])

        assert after.uncovered_slots() == topology.masters[2].slots

    def test_failed_replica_is_not_promoted(self, topology):
        infos = build_infos(
            topology.live_except("r2"),
            ghosts=[topology.node("r2")],
            seen_as={"r2": {FLAG_FAIL}},
        )
        cluster = topology.build(infos)

        after = cluster.without(["m2"])

        assert not after.nodes["r2"].is_master
        assert not after.has_full_coverage()


class TestToStatus:
    """Tests for Cluster.to_status()."""

    def test_healthy_cluster_is_ok(self, topology):
        cluster = topology.build(build_infos(topology.nodes))

        status = cluster.to_status()

        assert status.phase == ClusterPhase.OK
        assert status.nb_masters == 6
        assert status.nb_replicas == 6
        assert status.nb_pods == 12
        assert cluster.status is status

    def test_uncovered_cluster_is_ko(self, topology):
        infos = build_infos(topology.live_except("m0"))

        status = topology.build(infos).to_status()

        assert status.phase == ClusterPhase.KO

    def test_to_dict_layout(self, topology):
        cluster = topology.build(build_infos(topology.nodes))

        data = cluster.to_status(phase=ClusterPhase.RECONCILING, last_action="forget x").to_dict()

        assert data["status"] == "Reconciling"
        assert data["numberOfMaster"] == 6
        assert data["lastAction"] == "forget x"
        m0 = data["nodes"][0]
        assert m0["id"] == "m0"
        assert m0["podName"] == "rediscluster-a-0"
        assert m0["slots"] == "0-2729"
        assert "myself" not in m0["flags"]


class TestPodInfo:
    """Tests for PodInfo helpers."""

    def test_terminating_since_subtracts_grace_period(self):
        deletion = datetime(2024, 1, 15, 14, 20, tzinfo=timezone.utc)
        pod = PodInfo(
            name="p",
            deletion_timestamp=deletion,
            deletion_grace_period_seconds=30,
        )

        assert pod.is_terminating
        assert pod.terminating_since == deletion - timedelta(seconds=30)

    def test_running_pod(self):
        pod = PodInfo(name="p")

        assert not pod.is_terminating
        assert pod.terminating_since is None
        assert pod.index is None

    def test_index_from_label(self):
        assert make_pod(7, "10.0.0.1").index == 7


class TestClusterInfos:
    """Tests for ClusterInfos aggregation helpers."""

    def test_reachable_ratio(self, topology):
        infos = build_infos(topology.nodes[:3], unreachable=["10.0.9.1:6379"])

        assert infos.reachable_ratio() == 0.75

    def test_empty_snapshot(self):
        assert ClusterInfos().reachable_ratio() == 0.0

    def test_fail_votes_and_peers(self, topology):
        infos = build_infos(
            topology.live_except("m5"),
            ghosts=[topology.node("m5")],
            seen_as={"m5": {FLAG_FAIL}},
        )

        assert infos.fail_votes("m5") == 11
        assert infos.peer_count("m5") == 11
        assert infos.peer_count("m0") == 10

    def test_views_are_per_observer(self, topology):
        infos = build_infos(topology.nodes)

        views = infos.views()

        assert len(views) == 12
        assert views["m0"] == {n.id for n in topology.nodes}

    def test_healthy_views_leave_out_failed_friends(self, topology):
        infos = build_infos(
            topology.live_except("m5"),
            ghosts=[topology.node("m5")],
            seen_as={"m5": {FLAG_FAIL}},
        )

        assert "m5" in infos.views()["m0"]
        assert "m5" not in infos.views(healthy_only=True)["m0"]
        assert "m4" in infos.views(healthy_only=True)["m0"]
