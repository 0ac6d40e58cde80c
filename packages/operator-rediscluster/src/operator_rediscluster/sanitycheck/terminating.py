"""
Force-delete pods stuck in termination.

A pod that has been terminating for longer than the grace window (5
minutes by default) is deleted with a zero grace period so the workload
controller can recreate it.
"""

import logging
from datetime import datetime, timedelta

from operator_rediscluster.model import Cluster
from operator_rediscluster.sanitycheck.base import CheckContext, CheckOutcome
from operator_rediscluster.types import ActionRecord, PodInfo

logger = logging.getLogger(__name__)


def find_stuck_pods(cluster: Cluster, grace: timedelta, now: datetime) -> list[PodInfo]:
    """Pods terminating for longer than grace, oldest first."""
    stuck = [
        pod
        for pod in cluster.pods
        if pod.terminating_since is not None and now - pod.terminating_since > grace
    ]
    return sorted(stuck, key=lambda p: (p.terminating_since, p.name))


class FixTerminatingPods:
    """Force-delete the oldest pod stuck in termination."""

    name = "fix_terminating_pods"

    async def evaluate(self, ctx: CheckContext) -> CheckOutcome:
        grace = ctx.config.terminating_grace
        if grace <= timedelta(0):
            return CheckOutcome()

        stuck = find_stuck_pods(ctx.cluster, grace, ctx.now)
        if not stuck:
            return CheckOutcome()

        pod = stuck[0]
        age = ctx.now - pod.terminating_since
        record = ActionRecord(
            check=self.name,
            description=f"force delete pod {pod.name} terminating for {int(age.total_seconds())}s",
            dry_run=ctx.dry_run,
            pod_name=pod.name,
        )
        if not ctx.dry_run:
            logger.info(f"Force deleting pod {pod.name}")
            await ctx.pod_control.delete_pod_now(ctx.cluster.namespace, pod.name)
        return CheckOutcome.acted(record)
