"""
Cluster topology model.

Exports:
    Cluster: Aggregate topology of one RedisCluster
    ClusterActionsInfo: In-flight action counters
    build_cluster: Merge spec, snapshot and pods into a Cluster
    build_placement: Pod index -> expected role
"""

from operator_rediscluster.model.builder import build_cluster, build_placement
from operator_rediscluster.model.cluster import Cluster, ClusterActionsInfo

__all__ = ["Cluster", "ClusterActionsInfo", "build_cluster", "build_placement"]
