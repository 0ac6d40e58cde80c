"""
Parser for the CLUSTER NODES reply.

Each line describes one node as seen by the queried node:

    <id> <ip:port@cport[,hostname]> <flags> <master> <ping-sent> <pong-recv> <config-epoch> <link-state> <slot> <slot> ...

Example:
    07c37dfeb235213a872192d90877d0cd55635b91 127.0.0.1:30004@31004 slave e7d1eecce10fd6bb5eb35b9f99a514335d9ba9ca 0 1426238317239 4 connected
    e7d1eecce10fd6bb5eb35b9f99a514335d9ba9ca 127.0.0.1:30001@31001 myself,master - 0 0 1 connected 0-5460

Malformed lines are skipped rather than failing the whole reply: a node
that can't be parsed is simply not part of the observer's view.
"""

from operator_rediscluster.slots import parse_slot_ranges
from operator_rediscluster.types import (
    FLAG_MASTER,
    FLAG_MYSELF,
    FLAG_SLAVE,
    ROLE_MASTER,
    ROLE_REPLICA,
    Node,
    NodeInfos,
)

MIN_FIELDS = 8


def parse_node_line(line: str) -> Node | None:
    """
    Parse a single CLUSTER NODES line.

    Args:
        line: Raw line of the reply

    Returns:
        Node if the line is well formed, None otherwise (empty lines,
        truncated lines, non-numeric port or epoch).
    """
    fields = line.split()
    if len(fields) < MIN_FIELDS:
        return None

    node_id, address, flags_str, master, _ping, _pong, epoch_str, link_state = fields[:MIN_FIELDS]

    # ip:port@cport[,hostname]; noaddr nodes report ":0@0"
    host_port = address.split(",", 1)[0].split("@", 1)[0]
    ip, sep, port_str = host_port.rpartition(":")
    if not sep or not port_str.isdigit() or not epoch_str.isdigit():
        return None

    flags = set(flags_str.split(","))
    master_ref = "" if master == "-" else master

    if FLAG_SLAVE in flags:
        role = ROLE_REPLICA
    elif FLAG_MASTER in flags:
        role = ROLE_MASTER
    else:
        role = ROLE_REPLICA if master_ref else ROLE_MASTER

    slots, migrating, importing = parse_slot_ranges(fields[MIN_FIELDS:])

    return Node(
        id=node_id,
        ip=ip,
        port=int(port_str),
        role=role,
        master_ref=master_ref,
        slots=slots if role == ROLE_MASTER else set(),
        flags=flags,
        link_state=link_state,
        config_epoch=int(epoch_str),
        migrating_slots=migrating,
        importing_slots=importing,
    )


def parse_cluster_nodes(reply: str, address: str = "") -> NodeInfos | None:
    """
    Parse a full CLUSTER NODES reply into the observer's view.

    Args:
        reply: Text reply of CLUSTER NODES
        address: "ip:port" the reply was fetched from. Used to fill in the
            observer's own address when it reports an empty IP (a node
            that has never met anyone does not know its own IP).

    Returns:
        NodeInfos, or None if the reply has no "myself" line.
    """
    myself: Node | None = None
    friends: list[Node] = []

    for line in reply.splitlines():
        node = parse_node_line(line)
        if node is None:
            continue
        if node.has_flag(FLAG_MYSELF):
            myself = node
        else:
            friends.append(node)

    if myself is None:
        return None

    if not myself.ip and address:
        ip, _, port = address.rpartition(":")
        myself.ip = ip
        if port.isdigit():
            myself.port = int(port)

    return NodeInfos(node=myself, friends=friends)
