from __future__ import annotations

import uuid

from .errors import InvalidEnumError

ITEM_TYPES = ("task", "epic")
TASK = "task"
EPIC = "epic"

OPEN = "open"
IN_PROGRESS = "in_progress"
BLOCKED = "blocked"
REVIEWING = "reviewing"
DONE = "done"
CANCELED = "canceled"

STATUSES = (
    OPEN,
    IN_PROGRESS,
    BLOCKED,
    REVIEWING,
    DONE,
    CANCELED,
)
# Keep in sync with DEP_UNRESOLVED_SQL in stores/items.py.
TERMINAL_STATUSES = frozenset({DONE, CANCELED})

LEARNING_STATUSES = ("active", "stale", "archived")

MIN_PRIORITY = 1
MAX_PRIORITY = 3
DEFAULT_PRIORITY = 2

_ID_PREFIXES = {TASK: "ts", EPIC: "ep"}


def new_item_id(item_type: str) -> str:
    return f"{_ID_PREFIXES[normalize_type(item_type)]}-{uuid.uuid4().hex[:6]}"


def new_learning_id() -> str:
    return f"lrn-{uuid.uuid4().hex[:6]}"


def new_concept_id() -> str:
    return f"cpt-{uuid.uuid4().hex[:6]}"


def normalize_status(status: str) -> str:
    value = str(status).strip().lower()
    if value not in STATUSES:
        raise InvalidEnumError(
            f"invalid status: {status} (expected one of: {', '.join(STATUSES)})"
        )
    return value


def normalize_type(item_type: str) -> str:
    value = str(item_type).strip().lower()
    if value not in ITEM_TYPES:
        raise InvalidEnumError(
            f"invalid item type: {item_type} (expected one of: {', '.join(ITEM_TYPES)})"
        )
    return value


def normalize_priority(priority: int) -> int:
    value = int(priority)
    if value < MIN_PRIORITY or value > MAX_PRIORITY:
        raise ValueError(
            f"priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}"
        )
    return value


def normalize_learning_status(status: str) -> str:
    value = str(status).strip().lower()
    if value not in LEARNING_STATUSES:
        raise InvalidEnumError(f"invalid learning status: {status}")
    return value
