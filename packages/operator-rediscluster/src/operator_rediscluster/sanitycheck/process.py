"""
Sanity-check pipeline driver.

run_sanity_checks runs the checks in a fixed priority order and stops at
the first one that acts or fails, so at most one corrective action is
applied per tick:

1. fix_failed_nodes      forget nodes a quorum of peers flags failed
2. fix_untrusted_nodes   forget ids that no longer match their pod
3. fix_terminating_pods  force-delete pods stuck in termination
4. fix_cluster_split     reconnect partitions of the membership graph

Corrective actions interact (forgetting a node changes what the split
check sees), so the next tick observes the effect before anything else
is changed.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

from operator_rediscluster.config import SanityCheckConfig
from operator_rediscluster.model import Cluster
from operator_rediscluster.protocols import AdminProtocol, PodControlProtocol
from operator_rediscluster.sanitycheck.base import CheckContext, SanityCheck
from operator_rediscluster.sanitycheck.failed import FixFailedNodes
from operator_rediscluster.sanitycheck.split import FixClusterSplit
from operator_rediscluster.sanitycheck.terminating import FixTerminatingPods
from operator_rediscluster.sanitycheck.untrusted import FixUntrustedNodes
from operator_rediscluster.types import ActionRecord, ClusterInfos

logger = logging.getLogger(__name__)


def default_checks() -> list[SanityCheck]:
    """The checks in priority order."""
    return [
        FixFailedNodes(),
        FixUntrustedNodes(),
        FixTerminatingPods(),
        FixClusterSplit(),
    ]


@dataclass
class SanityCheckResult:
    """
    Outcome of one pipeline run.

    Attributes:
        action_done: True if a check acted (or would have, in dry-run)
        record: The action, when action_done
        skipped: True if the snapshot was too incomplete to act on
        declined: "check: reason" for every check that found an issue but
            chose not to act
    """

    action_done: bool = False
    record: ActionRecord | None = None
    skipped: bool = False
    declined: list[str] = field(default_factory=list)


async def run_sanity_checks(
    admin: AdminProtocol,
    config: SanityCheckConfig,
    pod_control: PodControlProtocol,
    cluster: Cluster,
    infos: ClusterInfos,
    dry_run: bool = False,
    checks: Sequence[SanityCheck] | None = None,
    now: datetime | None = None,
) -> SanityCheckResult:
    """
    Run the sanity checks on one cluster.

    Args:
        admin: Admin client for redis mutations
        config: Pipeline thresholds
        pod_control: Pod lifecycle collaborator
        cluster: Topology model of this tick
        infos: Gossip snapshot of this tick
        dry_run: Compute the action without calling any collaborator
        checks: Override the default ordered checks
        now: Reference time for time-based checks (defaults to now, UTC)

    Returns:
        SanityCheckResult; action_done is True when a check acted.

    Raises:
        OperatorError: If the acting check's mutation failed. Later checks
            are not run.
    """
    result = SanityCheckResult()

    ratio = infos.reachable_ratio()
    if ratio <= config.min_reachable_ratio:
        logger.warning(
            f"Sanity checks skipped for {cluster.namespace}/{cluster.name}: "
            f"only {ratio:.0%} of nodes reachable (dry_run={dry_run})"
        )
        result.skipped = True
        return result

    ctx = CheckContext(
        admin=admin,
        pod_control=pod_control,
        config=config,
        cluster=cluster,
        infos=infos,
        dry_run=dry_run,
        now=now or datetime.now(timezone.utc),
    )

    for check in checks if checks is not None else default_checks():
        try:
            outcome = await check.evaluate(ctx)
        except Exception as e:
            logger.error(f"{check.name} failed on {cluster.namespace}/{cluster.name} (dry_run={dry_run}): {e}")
            raise

        if outcome.action_done:
            logger.info(
                f"{check.name} done an action on {cluster.namespace}/{cluster.name} "
                f"(dry_run={dry_run}): {outcome.record.description if outcome.record else ''}"
            )
            result.action_done = True
            result.record = outcome.record
            return result

        if outcome.reason:
            logger.info(f"{check.name} declined to act (dry_run={dry_run}): {outcome.reason}")
            result.declined.append(f"{check.name}: {outcome.reason}")

    return result
