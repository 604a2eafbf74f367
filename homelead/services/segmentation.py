# homelead/services/segmentation.py
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Sequence, Tuple

from homelead.services.errors import ValidationFailed

Record = Dict[str, Any]

MODE_ALL = "all"
MODE_INCLUDE_ALL = "include-all"
MODE_INCLUDE_ANY = "include-any"
MODE_EXCLUDE_ALL = "exclude-all"
MODE_EXCLUDE_ANY = "exclude-any"
FILTER_MODES = (MODE_ALL, MODE_INCLUDE_ALL, MODE_INCLUDE_ANY, MODE_EXCLUDE_ALL, MODE_EXCLUDE_ANY)

INACTIVE_STATUSES = frozenset({"blocked", "withdrawn"})


class UnknownFilterMode(ValidationFailed):
    pass


def is_reachable(record: Record) -> bool:
    """Blocked and withdrawn customers never receive broadcasts."""
    return (record.get("status") or "active") not in INACTIVE_STATUSES


def matches(mode: str, query: Iterable[str], tags: Iterable[str]) -> bool:
    q = set(query)
    t = set(tags or ())
    if mode == MODE_INCLUDE_ALL:
        return q <= t
    if mode == MODE_INCLUDE_ANY:
        return bool(q & t)
    if mode == MODE_EXCLUDE_ALL:
        return not q <= t
    if mode == MODE_EXCLUDE_ANY:
        return not q & t
    if mode == MODE_ALL:
        return True
    raise UnknownFilterMode(f"Unknown filter mode: {mode!r}")


def select(
    records: Iterable[Tuple[str, Record]],
    mode: str,
    tag_names: Sequence[str] | None,
) -> List[Tuple[str, Record]]:
    """
    Customers a broadcast with (mode, tag_names) would reach, in input order.
    """
    if mode not in FILTER_MODES:
        raise UnknownFilterMode(f"Unknown filter mode: {mode!r}")

    active = [(token, r) for token, r in records if is_reachable(r)]
    query = [t for t in (tag_names or []) if t]
    if mode == MODE_ALL or not query:
        return active
    return [(token, r) for token, r in active if matches(mode, query, r.get("tags") or [])]
