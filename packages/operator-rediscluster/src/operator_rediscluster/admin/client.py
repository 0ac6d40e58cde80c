"""
Admin client for redis cluster nodes.

RedisAdmin sends administrative commands to storage nodes over the redis
protocol, using one redis.asyncio.Redis client per node address. The pool
is shared by every reconcile tick of every cluster and holds no
cluster-specific state.

Key design decisions:
- Every call has its own timeout; one slow node never stalls the others
- fetch_cluster_infos records unreachable nodes instead of dropping them
- fetch_cluster_infos refuses to return a snapshot when too few nodes
  answered (InsufficientReachabilityError)
- CLUSTER FORGET is sent to every live peer; gossip does not propagate it
- Cancellation (asyncio.CancelledError) is never swallowed
"""

import asyncio
import logging
from collections.abc import Callable, Iterable

import redis.asyncio as redis

from operator_rediscluster.admin.parser import parse_cluster_nodes
from operator_rediscluster.exceptions import (
    AdminCommandError,
    ClusterInfosError,
    ForgetNodeError,
    InsufficientReachabilityError,
)
from operator_rediscluster.types import ClusterInfos, NodeInfos

logger = logging.getLogger(__name__)

# CLUSTER FORGET replies that leave the peer in the desired state
UNKNOWN_NODE_REPLY = "unknown node"
# A replica refuses to forget its own master until a failover happened
FORGET_MASTER_REPLY = "can't forget my master"

SLOT_STATES = ("IMPORTING", "MIGRATING", "NODE", "STABLE")

ClientFactory = Callable[[str], redis.Redis]


def split_address(address: str) -> tuple[str, int]:
    """Split "ip:port" into its parts."""
    host, _, port = address.rpartition(":")
    return host, int(port)


class RedisAdmin:
    """
    Admin client fanning out commands to redis cluster nodes.

    Example:
        admin = RedisAdmin(timeout=2.0)
        infos = await admin.fetch_cluster_infos(["10.0.0.1:6379", "10.0.0.2:6379"])
        await admin.forget_node(failed_id, infos.reachable_addresses())
        await admin.close()
    """

    def __init__(
        self,
        timeout: float = 2.0,
        min_reachable_ratio: float = 0.5,
        password: str | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        """
        Initialize the admin client.

        Args:
            timeout: Per-command timeout in seconds
            min_reachable_ratio: Ratio of queried nodes that must be exceeded
                by the reachable ones for a snapshot to be returned
            password: Optional redis password
            client_factory: Builds the client of one address. Defaults to a
                decode_responses redis.asyncio.Redis with socket timeouts.
        """
        self.timeout = timeout
        self.min_reachable_ratio = min_reachable_ratio
        self._password = password
        self._client_factory = client_factory or self._default_client
        self._clients: dict[str, redis.Redis] = {}

    def _default_client(self, address: str) -> redis.Redis:
        host, port = split_address(address)
        return redis.Redis(
            host=host,
            port=port,
            password=self._password,
            decode_responses=True,
            socket_timeout=self.timeout,
            socket_connect_timeout=self.timeout,
        )

    def _client(self, address: str) -> redis.Redis:
        client = self._clients.get(address)
        if client is None:
            client = self._client_factory(address)
            self._clients[address] = client
        return client

    async def _execute(self, address: str, *args: str | int) -> object:
        """
        Run one command against one node.

        Raises:
            AdminCommandError: On redis errors, connection errors and timeouts.
        """
        command = " ".join(str(a) for a in args[:2])
        try:
            return await asyncio.wait_for(
                self._client(address).execute_command(*args),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise AdminCommandError(address, command, f"timed out after {self.timeout}s")
        except (redis.RedisError, OSError) as e:
            raise AdminCommandError(address, command, str(e)) from e

    # -------------------------------------------------------------------------
    # Observation
    # -------------------------------------------------------------------------

    async def _fetch_one(self, address: str) -> tuple[str, NodeInfos | None, str]:
        try:
            reply = await self._execute(address, "CLUSTER", "NODES")
        except AdminCommandError as e:
            return address, None, e.reason

        if isinstance(reply, bytes):
            reply = reply.decode()
        if not isinstance(reply, str):
            return address, None, f"unexpected CLUSTER NODES reply type {type(reply).__name__}"

        infos = parse_cluster_nodes(reply, address=address)
        if infos is None:
            return address, None, "CLUSTER NODES reply has no myself line"
        return address, infos, ""

    async def fetch_cluster_infos(self, addresses: Iterable[str]) -> ClusterInfos:
        """
        Query every node's view of the cluster concurrently.

        Args:
            addresses: "ip:port" of every node to query

        Returns:
            ClusterInfos with one view per reachable node and the reason
            for every unreachable one.

        Raises:
            ClusterInfosError: If there is nothing to query.
            InsufficientReachabilityError: If the reachable ratio is not
                above min_reachable_ratio.
        """
        targets = sorted(set(addresses))
        if not targets:
            raise ClusterInfosError("No node address to query")

        results = await asyncio.gather(*(self._fetch_one(addr) for addr in targets))

        infos: dict[str, NodeInfos] = {}
        unreachable: dict[str, str] = {}
        for address, node_infos, reason in results:
            if node_infos is None:
                logger.warning(f"Node {address} unreachable: {reason}")
                unreachable[address] = reason
            else:
                infos[address] = node_infos

        snapshot = ClusterInfos(infos=infos, unreachable=unreachable)
        if snapshot.reachable_ratio() <= self.min_reachable_ratio:
            raise InsufficientReachabilityError(
                reachable=len(infos),
                total=len(targets),
                threshold=self.min_reachable_ratio,
            )

        logger.debug(f"Fetched cluster infos from {len(infos)}/{len(targets)} nodes")
        return snapshot

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def forget_node(self, node_id: str, addresses: Iterable[str]) -> None:
        """
        Forget node_id on every given peer, one after the other.

        Peers that no longer know the node count as done. A replica that
        still follows the node as its master refuses; that peer is skipped
        and will be retried on a later tick.

        Args:
            node_id: Node to forget
            addresses: Every live peer, not including the node itself

        Raises:
            ForgetNodeError: If any other peer failed.
        """
        errors: dict[str, str] = {}
        for address in sorted(set(addresses)):
            try:
                await self._execute(address, "CLUSTER", "FORGET", node_id)
            except AdminCommandError as e:
                reason = e.reason.lower()
                if UNKNOWN_NODE_REPLY in reason:
                    continue
                if FORGET_MASTER_REPLY in reason:
                    logger.warning(f"Replica {address} still follows {node_id}, skipping forget")
                    continue
                errors[address] = e.reason

        if errors:
            raise ForgetNodeError(node_id, errors)

    async def meet(self, address: str, ip: str, port: int) -> None:
        """Ask the node at address to handshake with ip:port."""
        await self._execute(address, "CLUSTER", "MEET", ip, port)

    async def add_slots(self, address: str, slots: Iterable[int]) -> None:
        ordered = sorted(set(slots))
        if not ordered:
            return
        await self._execute(address, "CLUSTER", "ADDSLOTS", *ordered)

    async def set_slot(self, address: str, slot: int, state: str, node_id: str = "") -> None:
        """
        Run CLUSTER SETSLOT on one node.

        Args:
            address: Node to run the command on
            slot: Hash slot
            state: One of IMPORTING, MIGRATING, NODE, STABLE
            node_id: Peer id, required for every state but STABLE
        """
        state = state.upper()
        if state not in SLOT_STATES:
            raise ValueError(f"Unknown slot state {state!r}, expected one of {SLOT_STATES}")
        if state == "STABLE":
            await self._execute(address, "CLUSTER", "SETSLOT", slot, state)
        else:
            if not node_id:
                raise ValueError(f"CLUSTER SETSLOT {state} requires a node id")
            await self._execute(address, "CLUSTER", "SETSLOT", slot, state, node_id)

    async def set_config_epoch(self, address: str, epoch: int) -> None:
        await self._execute(address, "CLUSTER", "SET-CONFIG-EPOCH", epoch)

    async def bump_epoch(self, address: str) -> None:
        await self._execute(address, "CLUSTER", "BUMPEPOCH")

    async def flush_and_reset(self, address: str, hard: bool = True) -> None:
        """Drop all data on the node and reset its cluster state."""
        await self._execute(address, "FLUSHALL")
        await self._execute(address, "CLUSTER", "RESET", "HARD" if hard else "SOFT")

    async def close(self) -> None:
        """Close every pooled connection."""
        clients, self._clients = self._clients, {}
        for client in clients.values():
            await client.aclose()
