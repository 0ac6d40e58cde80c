"""
ReconcileLoop daemon driving every RedisCluster toward its spec.

This module implements the control loop that:
- Lists RedisCluster resources every resync interval and queues them
- Runs a bounded number of workers, at most one tick in flight per cluster
- Runs one tick per cluster: fetch snapshot, build model, run sanity
  checks (one action at most), publish status
- Requeues failed ticks with exponential backoff
- Handles graceful shutdown on SIGINT/SIGTERM

Per cluster a tick moves through Idle -> Fetching -> Reconciling ->
Publishing -> Idle, or ends in Error and is retried.
"""

import asyncio
import functools
import logging
import signal
from dataclasses import dataclass
from enum import Enum

from operator_rediscluster.config import OperatorSettings, SanityCheckConfig
from operator_rediscluster.exceptions import ClusterNotFoundError
from operator_rediscluster.model import build_cluster
from operator_rediscluster.protocols import (
    AdminProtocol,
    ClusterSourceProtocol,
    PodControlProtocol,
)
from operator_rediscluster.reconcile.queue import WorkQueue
from operator_rediscluster.reconcile.retry import RetryConfig
from operator_rediscluster.sanitycheck import SanityCheckResult, run_sanity_checks
from operator_rediscluster.types import ActionRecord, ClusterPhase, ClusterStatus

logger = logging.getLogger(__name__)


class TickState(str, Enum):
    """Where a cluster's reconcile tick currently is."""

    IDLE = "idle"
    FETCHING = "fetching"
    RECONCILING = "reconciling"
    PUBLISHING = "publishing"
    ERROR = "error"


@dataclass
class TickResult:
    """
    Outcome of one reconcile tick.

    Attributes:
        key: "namespace/name" of the cluster
        action_done: True if a sanity check acted
        record: The action, when action_done
        status: Status that was published, None if nothing was published
        skipped: True if sanity checks were skipped for lack of reachability
        deleted: True if the resource no longer exists
    """

    key: str
    action_done: bool = False
    record: ActionRecord | None = None
    status: ClusterStatus | None = None
    skipped: bool = False
    deleted: bool = False


def split_key(key: str) -> tuple[str, str]:
    namespace, _, name = key.partition("/")
    return namespace, name


class ReconcileLoop:
    """
    Long-running daemon reconciling every RedisCluster.

    Uses asyncio.Event for shutdown coordination. Workers pull cluster keys
    from a WorkQueue, which guarantees a cluster is never reconciled by two
    workers at once.

    Example:
        loop = ReconcileLoop(
            source=KubeClusterSource(kube=kube),
            pod_control=KubePodControl(kube=kube),
            admin=RedisAdmin(),
            settings=OperatorSettings(),
        )
        await loop.run()  # Runs until SIGINT/SIGTERM
    """

    def __init__(
        self,
        source: ClusterSourceProtocol,
        pod_control: PodControlProtocol,
        admin: AdminProtocol,
        settings: OperatorSettings | None = None,
        retry: RetryConfig | None = None,
    ) -> None:
        """
        Initialize the reconcile loop.

        Args:
            source: Reads RedisCluster resources and publishes status
            pod_control: Pod lifecycle collaborator
            admin: Shared redis admin client
            settings: Operator settings (defaults read from the environment)
            retry: Requeue backoff of failed ticks
        """
        self.source = source
        self.pod_control = pod_control
        self.admin = admin
        self.settings = settings or OperatorSettings()
        self.check_config = SanityCheckConfig.from_settings(self.settings)
        self.retry = retry or RetryConfig()
        self.queue = WorkQueue()
        self.states: dict[str, TickState] = {}
        self._failures: dict[str, int] = {}
        self._shutdown = asyncio.Event()

    async def run(self) -> None:
        """
        Run until a shutdown signal.

        The first listing of RedisCluster resources must succeed; if the
        API server can't be reached at all the error propagates to the
        caller. Later resync failures are logged and retried.
        """
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, functools.partial(self._handle_signal, sig))

        logger.info(
            f"Reconcile loop starting (workers: {self.settings.workers}, "
            f"resync: {self.settings.resync_interval_seconds}s, dry_run: {self.settings.dry_run})"
        )

        await self.resync()
        workers = [
            asyncio.create_task(self._worker(i), name=f"reconcile-worker-{i}")
            for i in range(self.settings.workers)
        ]

        try:
            while not self._shutdown.is_set():
                try:
                    await asyncio.wait_for(
                        self._shutdown.wait(),
                        timeout=self.settings.resync_interval_seconds,
                    )
                except asyncio.TimeoutError:
                    pass
                if not self._shutdown.is_set():
                    try:
                        await self.resync()
                    except Exception as e:
                        logger.error(f"Resync failed, retrying in {self.settings.resync_interval_seconds}s: {e}")
        finally:
            self.queue.shutdown()
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            logger.info("Reconcile loop stopped")

    def stop(self) -> None:
        """Request shutdown."""
        self._shutdown.set()

    def _handle_signal(self, sig: signal.Signals) -> None:
        logger.info(f"Received {sig.name}, shutting down...")
        self._shutdown.set()

    async def resync(self) -> None:
        """Queue every RedisCluster resource."""
        specs = await self.source.list_clusters()
        for spec in specs:
            self.queue.add(spec.key)
        logger.debug(f"Resync queued {len(specs)} cluster(s)")

    async def _worker(self, number: int) -> None:
        while True:
            key = await self.queue.get()
            try:
                await self.process(key)
            finally:
                self.queue.done(key)

    async def process(self, key: str) -> TickResult | None:
        """
        Run one tick for key, scheduling a retry when it fails.

        Returns:
            The TickResult, or None if the tick failed.
        """
        try:
            result = await self.reconcile(key)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.states[key] = TickState.ERROR
            attempt = self._failures.get(key, 0)
            self._failures[key] = attempt + 1
            delay = self.retry.calculate_delay(attempt)
            logger.error(f"Reconcile of {key} failed (attempt {attempt + 1}), retrying in {delay:.1f}s: {e}")
            self.queue.add_after(key, delay)
            return None

        self._failures.pop(key, None)
        self.states[key] = TickState.IDLE
        return result

    async def _publish(self, namespace: str, name: str, status: ClusterStatus) -> None:
        if self.settings.dry_run:
            logger.info(f"Dry run: status of {namespace}/{name} not published ({status.phase.value})")
            return
        await self.source.update_status(namespace, name, status)

    async def reconcile(self, key: str) -> TickResult:
        """
        Run one reconcile tick for a cluster.

        Raises:
            ClusterInfosError: If the snapshot could not be trusted; nothing
                was changed.
            OperatorError: If the corrective action failed.
        """
        namespace, name = split_key(key)
        dry_run = self.settings.dry_run

        self.states[key] = TickState.FETCHING
        try:
            spec = await self.source.get_cluster(namespace, name)
        except ClusterNotFoundError:
            logger.info(f"RedisCluster {key} was deleted, nothing to reconcile")
            self.states.pop(key, None)
            self._failures.pop(key, None)
            return TickResult(key=key, deleted=True)

        pods = await self.pod_control.list_pods(namespace, name)
        addresses = [f"{pod.ip}:{self.settings.redis_port}" for pod in pods if pod.ip]
        if not addresses:
            logger.info(f"RedisCluster {key} has no pod with an IP yet")
            self.states[key] = TickState.PUBLISHING
            status = ClusterStatus(phase=ClusterPhase.KO, nb_pods=len(pods))
            await self._publish(namespace, name, status)
            return TickResult(key=key, status=status)

        infos = await self.admin.fetch_cluster_infos(addresses)

        self.states[key] = TickState.RECONCILING
        cluster = build_cluster(spec, infos, pods)
        checks: SanityCheckResult = await run_sanity_checks(
            self.admin,
            self.check_config,
            self.pod_control,
            cluster,
            infos,
            dry_run=dry_run,
        )

        self.states[key] = TickState.PUBLISHING
        if checks.action_done and checks.record is not None:
            status = cluster.to_status(
                phase=ClusterPhase.RECONCILING,
                last_action=checks.record.description,
            )
        else:
            status = cluster.to_status()
        await self._publish(namespace, name, status)

        return TickResult(
            key=key,
            action_done=checks.action_done,
            record=checks.record,
            status=status,
            skipped=checks.skipped,
        )
