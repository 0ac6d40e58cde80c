"""
Ordered self-healing checks.

Exports:
    run_sanity_checks: Run the checks, stopping at the first action
    SanityCheckResult: Outcome of a pipeline run
    default_checks: The checks in priority order
    CheckContext, CheckOutcome, SanityCheck: Building blocks for checks
    FixFailedNodes, FixUntrustedNodes, FixTerminatingPods, FixClusterSplit
"""

from operator_rediscluster.sanitycheck.base import CheckContext, CheckOutcome, SanityCheck
from operator_rediscluster.sanitycheck.failed import FixFailedNodes
from operator_rediscluster.sanitycheck.process import (
    SanityCheckResult,
    default_checks,
    run_sanity_checks,
)
from operator_rediscluster.sanitycheck.split import FixClusterSplit
from operator_rediscluster.sanitycheck.terminating import FixTerminatingPods
from operator_rediscluster.sanitycheck.untrusted import FixUntrustedNodes

__all__ = [
    "run_sanity_checks",
    "SanityCheckResult",
    "default_checks",
    "CheckContext",
    "CheckOutcome",
    "SanityCheck",
    "FixFailedNodes",
    "FixUntrustedNodes",
    "FixTerminatingPods",
    "FixClusterSplit",
]
