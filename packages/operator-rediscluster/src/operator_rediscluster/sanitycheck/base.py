"""
Building blocks shared by the sanity checks.

A sanity check looks at the Cluster model and the ClusterInfos snapshot
of one tick and performs at most one corrective action. Checks are
polymorphic units with a name and an evaluate() coroutine; the driver in
sanitycheck.process runs them in priority order.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from operator_rediscluster.config import SanityCheckConfig
from operator_rediscluster.model import Cluster
from operator_rediscluster.protocols import AdminProtocol, PodControlProtocol
from operator_rediscluster.types import ActionRecord, ClusterInfos, NodeId


@dataclass
class CheckContext:
    """
    Everything a check may read or call during one tick.

    Attributes:
        admin: Admin client for redis mutations
        pod_control: Pod lifecycle collaborator
        config: Pipeline thresholds
        cluster: Topology model of this tick
        infos: Gossip snapshot of this tick
        dry_run: When True, checks compute their action but call nothing
        now: Reference time for time-based checks
    """

    admin: AdminProtocol
    pod_control: PodControlProtocol
    config: SanityCheckConfig
    cluster: Cluster
    infos: ClusterInfos
    dry_run: bool = False
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def peers_of(self, node_id: NodeId) -> list[str]:
        """Addresses of every reachable node other than node_id."""
        return [
            addr
            for addr, infos in sorted(self.infos.infos.items())
            if infos.node.id != node_id
        ]


@dataclass
class CheckOutcome:
    """
    Result of one check.

    Attributes:
        action_done: True when the check acted (or would have, in dry-run)
        record: What was done, when action_done
        reason: Why the check declined, when it found something to fix
            but chose not to act
    """

    action_done: bool = False
    record: ActionRecord | None = None
    reason: str = ""

    @classmethod
    def acted(cls, record: ActionRecord) -> "CheckOutcome":
        return cls(action_done=True, record=record)

    @classmethod
    def declined(cls, reason: str) -> "CheckOutcome":
        return cls(action_done=False, reason=reason)


@runtime_checkable
class SanityCheck(Protocol):
    """Protocol for a single prioritized sanity check."""

    name: str

    async def evaluate(self, ctx: CheckContext) -> CheckOutcome:
        """
        Inspect the context and perform at most one corrective action.

        Raises:
            OperatorError: When the corrective action failed.
        """
        ...
