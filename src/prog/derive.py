"""Epic status derivation and dependency resolution, in memory.

Both functions read an item's own stored status plus the stored statuses of
its direct children. Derivation never recurses into grandchildren.

The store evaluates the same resolution rule in SQL (``DEP_UNRESOLVED_SQL``
in ``prog.stores.items``). For every item, ``effective_status(...)`` is
terminal exactly when ``is_unresolved(...)`` is false; a change to either
rule must be mirrored in the other.
"""

from __future__ import annotations

from collections.abc import Iterable

from .errors import InvariantViolation
from .model import (
    BLOCKED,
    CANCELED,
    DONE,
    EPIC,
    IN_PROGRESS,
    ITEM_TYPES,
    OPEN,
    REVIEWING,
    STATUSES,
    TERMINAL_STATUSES,
)


def _check_stored(status: str, *, item_id: str | None) -> str:
    if status not in STATUSES:
        target = item_id or "item"
        raise InvariantViolation(f"invalid stored status {status!r} for {target}")
    return status


def _check_type(item_type: str, *, item_id: str | None) -> str:
    if item_type not in ITEM_TYPES:
        raise InvariantViolation(
            f"invalid stored type {item_type!r} for {item_id or 'item'}"
        )
    return item_type


def partition_children(
    child_statuses: Iterable[str],
    *,
    epic_id: str | None = None,
) -> dict[str, int]:
    """Count children per status bucket.

    Every child lands in exactly one bucket; an unknown status or a bucket
    total that differs from the child count raises InvariantViolation.
    """
    buckets = {status: 0 for status in STATUSES}
    total = 0
    for status in child_statuses:
        total += 1
        if status not in buckets:
            target = epic_id or "epic"
            raise InvariantViolation(
                f"unknown child status {status!r} for {target}"
            )
        buckets[status] += 1

    if sum(buckets.values()) != total:
        target = epic_id or "epic"
        raise InvariantViolation(
            f"partition mismatch for {target}: "
            f"sum={sum(buckets.values())} total={total}"
        )
    return buckets


def derive_epic_status(
    stored_status: str,
    child_statuses: Iterable[str],
    *,
    epic_id: str | None = None,
) -> str:
    stored = _check_stored(stored_status, item_id=epic_id)
    if stored in TERMINAL_STATUSES:
        return stored

    buckets = partition_children(child_statuses, epic_id=epic_id)
    total = sum(buckets.values())
    if total == 0:
        return stored

    resolved = buckets[DONE] + buckets[CANCELED]
    if resolved == total:
        return DONE

    # Every child that is still unresolved is stuck.
    if buckets[BLOCKED] == total - resolved:
        return BLOCKED

    if buckets[IN_PROGRESS] or buckets[REVIEWING] or buckets[DONE]:
        return IN_PROGRESS
    return OPEN


def effective_status(
    item_type: str,
    stored_status: str,
    child_statuses: Iterable[str] = (),
    *,
    item_id: str | None = None,
) -> str:
    _check_type(item_type, item_id=item_id)
    if item_type != EPIC:
        return _check_stored(stored_status, item_id=item_id)
    return derive_epic_status(stored_status, child_statuses, epic_id=item_id)


def is_unresolved(
    item_type: str,
    stored_status: str,
    child_statuses: Iterable[str] = (),
    *,
    item_id: str | None = None,
) -> bool:
    """Return True when a dependency on this item is not yet satisfied."""
    _check_type(item_type, item_id=item_id)
    stored = _check_stored(stored_status, item_id=item_id)
    if stored in TERMINAL_STATUSES:
        return False
    if item_type != EPIC:
        return True

    children = list(child_statuses)
    for status in children:
        _check_stored(status, item_id=item_id)
    if not children:
        return True
    return not all(status in TERMINAL_STATUSES for status in children)
