from __future__ import annotations


class ProgError(ValueError):
    """Base class for errors caused by user input or missing records."""


class NotFoundError(ProgError):
    pass


class InvalidEnumError(ProgError):
    pass


class InvalidTransitionError(ProgError):
    pass


class InvalidParentError(ProgError):
    pass


class DependencyCycleError(ProgError):
    pass


class InvariantViolation(RuntimeError):
    """Internal consistency failure in status derivation.

    Raised for corrupted persisted data (unknown status values) or a broken
    child partition. Callers must not swallow it.
    """


def item_not_found(item_id: str) -> NotFoundError:
    return NotFoundError(
        f"item not found: {item_id} (use 'prog list' to see available items)"
    )
