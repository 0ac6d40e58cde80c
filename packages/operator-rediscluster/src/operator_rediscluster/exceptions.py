"""
Exception classes for the Redis Cluster operator.

The taxonomy follows how a reconcile tick reacts to a failure:
- Observation errors (ClusterInfosError, InsufficientReachabilityError):
  the tick aborts before any mutation and is retried later
- Mutation errors (AdminCommandError, ForgetNodeError, PodControlError):
  propagated to the caller as a tick failure
- Lookup errors (NodeNotFoundError, ClusterNotFoundError)

Invariant risks are not exceptions: a check declines to act instead.

All exceptions keep their context in attributes for error handling and
build a descriptive message.
"""


class OperatorError(Exception):
    """Base class for every error raised by the operator."""


class NodeNotFoundError(OperatorError):
    """
    Raised when a node lookup in a Cluster finds nothing.

    Attributes:
        key: The id, IP, or pod name that was looked up
    """

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Node {key!r} not found in cluster")


class ClusterNotFoundError(OperatorError):
    """
    Raised when a RedisCluster resource does not exist.

    Attributes:
        namespace: Namespace that was searched
        name: Resource name that was requested
    """

    def __init__(self, namespace: str, name: str) -> None:
        self.namespace = namespace
        self.name = name
        super().__init__(f"RedisCluster {namespace}/{name} not found")


class ClusterInfosError(OperatorError):
    """Raised when a cluster snapshot cannot be built."""


class InsufficientReachabilityError(ClusterInfosError):
    """
    Raised when too few nodes answered to trust the snapshot.

    Attributes:
        reachable: Number of nodes that answered
        total: Number of nodes queried
        threshold: Ratio of reachable nodes that had to be exceeded
    """

    def __init__(self, reachable: int, total: int, threshold: float) -> None:
        self.reachable = reachable
        self.total = total
        self.threshold = threshold
        super().__init__(
            f"Only {reachable}/{total} nodes reachable "
            f"(need more than {threshold:.0%}); refusing to act on an "
            f"incomplete cluster view"
        )


class AdminCommandError(OperatorError):
    """
    Raised when an admin command against a storage node fails.

    Attributes:
        address: Node address the command was sent to ("ip:port")
        command: The command that failed (e.g., "CLUSTER FORGET")
        reason: Error text from the node or the transport
    """

    def __init__(self, address: str, command: str, reason: str) -> None:
        self.address = address
        self.command = command
        self.reason = reason
        super().__init__(f"{command} on {address} failed: {reason}")


class ForgetNodeError(OperatorError):
    """
    Raised when CLUSTER FORGET failed on one or more peers.

    Attributes:
        node_id: The node that was being forgotten
        errors: Mapping of peer address to error reason
    """

    def __init__(self, node_id: str, errors: dict[str, str]) -> None:
        self.node_id = node_id
        self.errors = errors
        details = "; ".join(f"{addr}: {reason}" for addr, reason in errors.items())
        super().__init__(f"Failed to forget node {node_id} on {len(errors)} peer(s): {details}")


class PodControlError(OperatorError):
    """
    Raised when a pod operation fails.

    Attributes:
        pod_name: The pod that was targeted
        operation: The operation attempted (e.g., "delete")
        reason: Why the operation failed
    """

    def __init__(self, pod_name: str, operation: str, reason: str) -> None:
        self.pod_name = pod_name
        self.operation = operation
        self.reason = reason
        super().__init__(f"Pod {operation} failed for {pod_name}: {reason}")
