"""
Reconcile loop.

Exports:
    ReconcileLoop: Daemon reconciling every RedisCluster
    TickResult: Outcome of one tick
    TickState: Per-cluster tick state
    WorkQueue: Deduplicating, per-key serialized queue
    RetryConfig: Backoff of failed ticks
"""

from operator_rediscluster.reconcile.loop import ReconcileLoop, TickResult, TickState
from operator_rediscluster.reconcile.queue import WorkQueue
from operator_rediscluster.reconcile.retry import RetryConfig

__all__ = ["ReconcileLoop", "TickResult", "TickState", "WorkQueue", "RetryConfig"]
