"""
Self-healing operator for Redis Cluster on Kubernetes.

This package keeps a Redis Cluster deployed as pods converging toward its
declared shape. It includes:

- Cluster: In-memory topology model built from a CLUSTER NODES snapshot
- RedisAdmin: Admin client talking to every node (AdminProtocol)
- run_sanity_checks: Ordered self-healing checks, one action per tick
- ReconcileLoop: Daemon reconciling every RedisCluster resource
- Kubernetes collaborators for pods and RedisCluster resources
- Factory function for CLI integration
"""

from operator_rediscluster.admin import RedisAdmin
from operator_rediscluster.config import OperatorSettings, SanityCheckConfig, SplitRecovery
from operator_rediscluster.exceptions import (
    AdminCommandError,
    ClusterInfosError,
    ClusterNotFoundError,
    ForgetNodeError,
    InsufficientReachabilityError,
    NodeNotFoundError,
    OperatorError,
    PodControlError,
)
from operator_rediscluster.factory import create_reconcile_loop
from operator_rediscluster.model import Cluster, build_cluster
from operator_rediscluster.protocols import (
    AdminProtocol,
    ClusterSourceProtocol,
    PodControlProtocol,
)
from operator_rediscluster.reconcile import ReconcileLoop
from operator_rediscluster.sanitycheck import SanityCheckResult, run_sanity_checks
from operator_rediscluster.types import (
    ActionRecord,
    ClusterInfos,
    ClusterPhase,
    ClusterSpec,
    ClusterStatus,
    Node,
    NodeInfos,
    PodInfo,
)

__all__ = [
    # Model
    "Cluster",
    "build_cluster",
    "Node",
    "NodeInfos",
    "ClusterInfos",
    "PodInfo",
    "ClusterSpec",
    "ClusterStatus",
    "ClusterPhase",
    "ActionRecord",
    # Collaborators
    "RedisAdmin",
    "AdminProtocol",
    "PodControlProtocol",
    "ClusterSourceProtocol",
    # Sanity checks
    "run_sanity_checks",
    "SanityCheckResult",
    # Daemon
    "ReconcileLoop",
    "create_reconcile_loop",
    # Configuration
    "OperatorSettings",
    "SanityCheckConfig",
    "SplitRecovery",
    # Errors
    "OperatorError",
    "NodeNotFoundError",
    "ClusterNotFoundError",
    "ClusterInfosError",
    "InsufficientReachabilityError",
    "AdminCommandError",
    "ForgetNodeError",
    "PodControlError",
]
