"""
Admin protocol access to redis cluster nodes.

Exports:
    RedisAdmin: Pooled admin client (fetch snapshot, forget, meet, slots)
    parse_cluster_nodes: CLUSTER NODES reply -> NodeInfos
    parse_node_line: One CLUSTER NODES line -> Node
"""

from operator_rediscluster.admin.client import RedisAdmin, split_address
from operator_rediscluster.admin.parser import parse_cluster_nodes, parse_node_line

__all__ = ["RedisAdmin", "parse_cluster_nodes", "parse_node_line", "split_address"]
