"""
Configuration for the Redis Cluster operator.

- OperatorSettings: environment-based process settings (pydantic-settings)
- SanityCheckConfig: thresholds consumed by the sanity-check pipeline

Every setting can be overridden with an environment variable using the
REDIS_OPERATOR_ prefix, for example:
    REDIS_OPERATOR_NAMESPACE=redis
    REDIS_OPERATOR_WORKERS=4
    REDIS_OPERATOR_TERMINATING_GRACE_SECONDS=600
"""

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

from pydantic_settings import BaseSettings

# Service account mount inside a pod
SERVICE_ACCOUNT_DIR = "/var/run/secrets/kubernetes.io/serviceaccount"


class SplitRecovery(str, Enum):
    """How a cluster split is repaired."""

    MEET = "meet"
    """Introduce minority nodes to the main partition with CLUSTER MEET."""

    RESET = "reset"
    """Flush and hard-reset minority nodes before meeting them (data loss)."""


class OperatorSettings(BaseSettings):
    """Operator process configuration."""

    # Scope: empty namespace watches every namespace
    namespace: str = ""

    # Reconcile loop
    workers: int = 2
    resync_interval_seconds: float = 30.0
    dry_run: bool = False

    # Redis admin protocol
    redis_port: int = 6379
    redis_password: str | None = None
    admin_timeout_seconds: float = 2.0

    # Sanity checks
    min_reachable_ratio: float = 0.5
    fail_quorum_ratio: float = 0.5
    terminating_grace_seconds: int = 300
    split_recovery: SplitRecovery = SplitRecovery.MEET

    # Kubernetes API
    api_server: str = "https://kubernetes.default.svc"
    token_path: str = f"{SERVICE_ACCOUNT_DIR}/token"
    ca_path: str = f"{SERVICE_ACCOUNT_DIR}/ca.crt"
    api_timeout_seconds: float = 10.0

    model_config = {"env_prefix": "REDIS_OPERATOR_"}


@dataclass
class SanityCheckConfig:
    """
    Thresholds of the sanity-check pipeline.

    Attributes:
        min_reachable_ratio: The pipeline is skipped unless the ratio of
            reachable nodes is above this value
        fail_quorum_ratio: A node is failed once more than this ratio of
            the other reachable nodes flag it fail
        terminating_grace: How long a pod may stay terminating before it is
            force-deleted. Zero disables the check.
        split_recovery: How a cluster split is repaired
    """

    min_reachable_ratio: float = 0.5
    fail_quorum_ratio: float = 0.5
    terminating_grace: timedelta = timedelta(minutes=5)
    split_recovery: SplitRecovery = SplitRecovery.MEET

    @classmethod
    def from_settings(cls, settings: OperatorSettings) -> "SanityCheckConfig":
        return cls(
            min_reachable_ratio=settings.min_reachable_ratio,
            fail_quorum_ratio=settings.fail_quorum_ratio,
            terminating_grace=timedelta(seconds=settings.terminating_grace_seconds),
            split_recovery=settings.split_recovery,
        )
