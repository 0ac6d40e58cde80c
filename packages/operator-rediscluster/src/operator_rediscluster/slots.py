"""
Hash slot helpers.

Redis Cluster splits the key space into 16384 hash slots. CLUSTER NODES
reports the slots of a master as a list of tokens:

    0-5460          a range
    5461            a single slot
    [5462->-<id>]   slot being migrated to node <id>
    [5463-<-<id>]   slot being imported from node <id>
"""

from collections.abc import Iterable

HASH_SLOTS = 16384

ALL_SLOTS = frozenset(range(HASH_SLOTS))


def _slot(text: str) -> int | None:
    """Slot number of text, None unless it is a valid slot."""
    if not text.isdigit():
        return None
    slot = int(text)
    return slot if slot < HASH_SLOTS else None


def parse_slot_ranges(
    tokens: Iterable[str],
) -> tuple[set[int], dict[int, str], dict[int, str]]:
    """
    Parse slot tokens from a CLUSTER NODES line.

    Args:
        tokens: Slot tokens as they appear after the link-state field

    Returns:
        Tuple of (owned slots, migrating slot -> target id,
        importing slot -> source id). Tokens that don't parse, or that
        name a slot outside 0..16383, are skipped.
    """
    slots: set[int] = set()
    migrating: dict[int, str] = {}
    importing: dict[int, str] = {}

    for token in tokens:
        if token.startswith("["):
            body = token.strip("[]")
            if "->-" in body:
                slot, target = body.split("->-", 1)
                if _slot(slot) is not None:
                    migrating[int(slot)] = target
            elif "-<-" in body:
                slot, source = body.split("-<-", 1)
                if _slot(slot) is not None:
                    importing[int(slot)] = source
            continue

        if "-" in token:
            start_text, _, end_text = token.partition("-")
            start, end = _slot(start_text), _slot(end_text)
            if start is not None and end is not None and start <= end:
                slots.update(range(start, end + 1))
        elif _slot(token) is not None:
            slots.add(int(token))

    return slots, migrating, importing


def format_slot_ranges(slots: Iterable[int]) -> str:
    """
    Render slots as compact ranges, e.g. "0-5460 5462".

    Returns an empty string for an empty set.
    """
    ordered = sorted(set(slots))
    if not ordered:
        return ""

    parts: list[str] = []
    start = prev = ordered[0]
    for slot in ordered[1:]:
        if slot == prev + 1:
            prev = slot
            continue
        parts.append(str(start) if start == prev else f"{start}-{prev}")
        start = prev = slot
    parts.append(str(start) if start == prev else f"{start}-{prev}")

    return " ".join(parts)
