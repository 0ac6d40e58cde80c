"""
Tests for the fix_untrusted_nodes check.

Covers the three ways a node id stops matching its pod:
- The pod was recreated and a fresh identity answers at the same IP
- The node is stuck in handshake
- The recorded pod no longer exists
"""

from dataclasses import replace

import pytest

from conftest import build_infos, make_pod
from operator_rediscluster.kube.cluster_source import cluster_spec_from_kube
from operator_rediscluster.kube.types import RedisClusterResource
from operator_rediscluster.model import build_cluster
from operator_rediscluster.sanitycheck.base import CheckContext
from operator_rediscluster.sanitycheck.untrusted import (
    FixUntrustedNodes,
    find_stale_pod,
    find_untrusted_nodes,
)
from operator_rediscluster.types import (
    FLAG_HANDSHAKE,
    FLAG_MASTER,
    LINK_DISCONNECTED,
    ClusterSpec,
    Node,
)


def recreated_pod_infos(topology):
    """
    Pod rediscluster-a-5 came back with a fresh identity m5-new.

    Peers still gossip the old id m5 as the owner of its slots.
    """
    old = replace(topology.node("m5"), link_state=LINK_DISCONNECTED)
    new = Node(id="m5-new", ip=old.ip, port=old.port, flags={FLAG_MASTER})
    infos = build_infos([*topology.live_except("m5"), new])
    # the fresh node doesn't know the old id; every other node still does
    for node_infos in infos.infos.values():
        if node_infos.node.id != "m5-new":
            node_infos.friends[:] = [f for f in node_infos.friends if f.id != "m5-new"]
            node_infos.friends.append(replace(old, flags=set(old.flags)))
    return infos


class TestFindUntrustedNodes:
    """Tests for find_untrusted_nodes()."""

    def test_healthy_cluster_has_none(self, topology):
        infos = build_infos(topology.nodes)
        cluster = topology.build(infos)

        assert find_untrusted_nodes(cluster, infos) == []

    def test_recreated_pod_old_id_is_untrusted(self, topology):
        infos = recreated_pod_infos(topology)
        cluster = topology.build(infos)

        untrusted = find_untrusted_nodes(cluster, infos)

        assert [(n.id, "m5-new" in reason) for n, reason in untrusted] == [("m5", True)]

    def test_handshake_node_is_untrusted(self, topology):
        stranger = Node(id="hs1", ip="10.0.9.9", port=6379, flags={FLAG_HANDSHAKE})
        infos = build_infos(topology.nodes, ghosts=[stranger])
        cluster = topology.build(infos)

        untrusted = find_untrusted_nodes(cluster, infos)

        assert [n.id for n, _ in untrusted] == ["hs1"]
        assert "handshake" in untrusted[0][1]

    def test_recorded_pod_gone(self, topology):
        topology.spec.recorded_nodes = {"r5": "rediscluster-a-11"}
        infos = build_infos(topology.live_except("r5"), ghosts=[topology.node("r5")])
        cluster = topology.build(infos, pods=topology.without_pod("rediscluster-a-11"))

        untrusted = find_untrusted_nodes(cluster, infos)

        assert [n.id for n, _ in untrusted] == ["r5"]
        assert "no longer exists" in untrusted[0][1]

    def test_silent_node_with_existing_pod_is_trusted(self, topology):
        """A node that is merely not answering still matches its pod."""
        topology.spec.recorded_nodes = {"r5": "rediscluster-a-11"}
        infos = build_infos(topology.live_except("r5"), ghosts=[topology.node("r5")])
        cluster = topology.build(infos)

        assert find_untrusted_nodes(cluster, infos) == []


class TestFindStalePod:
    """Tests for find_stale_pod()."""

    def test_pod_hosting_live_node_is_not_stale(self, topology):
        topology.spec.recorded_nodes = {"m5": "rediscluster-a-5"}
        infos = recreated_pod_infos(topology)
        cluster = topology.build(infos)

        assert find_stale_pod(cluster, infos, cluster.nodes["m5"]) is None

    def test_unrecorded_node_has_no_stale_pod(self, topology):
        infos = recreated_pod_infos(topology)
        cluster = topology.build(infos)

        assert find_stale_pod(cluster, infos, cluster.nodes["m5"]) is None


class TestFixUntrustedNodes:
    """Tests for FixUntrustedNodes.evaluate()."""

    @pytest.mark.asyncio
    async def test_forgets_old_id_and_keeps_new_one(
        self, topology, admin, pod_control, check_config
    ):
        """The old identity is forgotten everywhere; the new one is untouched."""
        topology.spec.recorded_nodes = {"m5": "rediscluster-a-5"}
        infos = recreated_pod_infos(topology)
        cluster = topology.build(infos)
        ctx = CheckContext(admin, pod_control, check_config, cluster, infos)

        outcome = await FixUntrustedNodes().evaluate(ctx)

        assert outcome.action_done
        assert outcome.record.check == "fix_untrusted_nodes"
        assert outcome.record.node_id == "m5"
        assert outcome.record.pod_name is None
        admin.forget_node.assert_awaited_once_with("m5", infos.reachable_addresses())
        for call in admin.forget_node.await_args_list:
            assert call.args[0] != "m5-new"
        pod_control.delete_pod.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_deletes_stale_recorded_pod(
        self, topology, admin, pod_control, check_config
    ):
        """
        Old id m2's IP now belongs to another pod, and its recorded pod was
        rescheduled to an IP where no node answers: that pod is deleted.
        """
        old = topology.node("m2")
        newcomer = Node(id="m2-new", ip=old.ip, port=old.port, flags={FLAG_MASTER})
        infos = build_infos([*topology.live_except("m2"), newcomer], ghosts=[old])
        topology.spec.recorded_nodes = {"m2": "rediscluster-a-2"}
        pods = topology.without_pod("rediscluster-a-2") + [
            make_pod(2, "10.0.3.3"),
            make_pod(12, old.ip),
        ]
        cluster = topology.build(infos, pods=pods)
        ctx = CheckContext(admin, pod_control, check_config, cluster, infos)

        outcome = await FixUntrustedNodes().evaluate(ctx)

        assert outcome.action_done
        assert outcome.record.pod_name == "rediscluster-a-2"
        admin.forget_node.assert_awaited_once()
        pod_control.delete_pod.assert_awaited_once_with("redis", "rediscluster-a-2")

    @pytest.mark.asyncio
    async def test_one_node_per_tick(self, topology, admin, pod_control, check_config):
        strangers = [
            Node(id="hs1", ip="10.0.9.1", port=6379, flags={FLAG_HANDSHAKE}),
            Node(id="hs2", ip="10.0.9.2", port=6379, flags={FLAG_HANDSHAKE}),
        ]
        infos = build_infos(topology.nodes, ghosts=strangers)
        cluster = topology.build(infos)

        outcome = await FixUntrustedNodes().evaluate(
            CheckContext(admin, pod_control, check_config, cluster, infos)
        )

        assert outcome.record.node_id == "hs1"
        admin.forget_node.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_dry_run_calls_nothing(self, topology, admin, pod_control, check_config):
        infos = recreated_pod_infos(topology)
        cluster = topology.build(infos)

        outcome = await FixUntrustedNodes().evaluate(
            CheckContext(admin, pod_control, check_config, cluster, infos, dry_run=True)
        )

        assert outcome.action_done
        assert outcome.record.dry_run
        admin.forget_node.assert_not_awaited()
        pod_control.delete_pod.assert_not_awaited()


def publish_and_reload(spec: ClusterSpec, cluster) -> ClusterSpec:
    """Publish the cluster status and read the resource back as the next tick does."""
    resource = RedisClusterResource.model_validate(
        {
            "metadata": {"name": spec.name, "namespace": spec.namespace},
            "spec": {
                "numberOfMaster": spec.number_of_masters,
                "replicationFactor": spec.replication_factor,
            },
            "status": {"cluster": cluster.to_status().to_dict()},
        }
    )
    return cluster_spec_from_kube(resource)


class TestRecordedPodsAcrossTicks:
    """The node -> pod record must survive publishing while nodes are pending removal."""

    def test_status_keeps_recorded_pod_of_podless_node(self, topology):
        topology.spec.recorded_nodes = {"r5": "rediscluster-a-11"}
        infos = build_infos(topology.live_except("r5"), ghosts=[topology.node("r5")])
        cluster = topology.build(infos, pods=topology.without_pod("rediscluster-a-11"))

        reloaded = publish_and_reload(topology.spec, cluster)

        assert reloaded.recorded_nodes["r5"] == "rediscluster-a-11"
        assert reloaded.recorded_nodes["m0"] == "rediscluster-a-0"

    @pytest.mark.asyncio
    async def test_second_vanished_pod_is_found_on_next_tick(
        self, topology, admin, pod_control, check_config
    ):
        """Two replica pods vanish together; one is forgotten per tick."""
        healthy = topology.build(build_infos(topology.nodes))
        spec = publish_and_reload(topology.spec, healthy)
        pods = [p for p in topology.pods if p.name not in ("rediscluster-a-6", "rediscluster-a-7")]
        ghosts = [topology.node("r0"), topology.node("r1")]

        infos = build_infos(topology.live_except("r0", "r1"), ghosts=ghosts)
        cluster = build_cluster(spec, infos, pods)
        outcome = await FixUntrustedNodes().evaluate(
            CheckContext(admin, pod_control, check_config, cluster, infos)
        )
        assert outcome.record.node_id == "r0"
        spec = publish_and_reload(spec, cluster)

        infos = build_infos(topology.live_except("r0", "r1"), ghosts=ghosts[1:])
        cluster = build_cluster(spec, infos, pods)

        assert [n.id for n, _ in find_untrusted_nodes(cluster, infos)] == ["r1"]
