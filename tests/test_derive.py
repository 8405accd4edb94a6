from __future__ import annotations

from itertools import combinations_with_replacement

import pytest

from prog.derive import (
    derive_epic_status,
    effective_status,
    is_unresolved,
    partition_children,
)
from prog.errors import InvariantViolation
from prog.model import STATUSES, TERMINAL_STATUSES


def _child_multisets(max_size: int = 4):
    for size in range(max_size + 1):
        yield from combinations_with_replacement(STATUSES, size)


def test_epic_with_all_children_done_is_done() -> None:
    assert derive_epic_status("open", ["done", "done"]) == "done"
    assert is_unresolved("epic", "open", ["done", "done"]) is False


def test_epic_with_done_and_open_children_is_in_progress() -> None:
    assert derive_epic_status("open", ["done", "open"]) == "in_progress"


def test_epic_with_only_blocked_children_is_blocked() -> None:
    assert derive_epic_status("open", ["blocked", "blocked"]) == "blocked"


def test_epic_without_children_reports_stored_status() -> None:
    assert derive_epic_status("open", []) == "open"
    assert is_unresolved("epic", "open", []) is True


def test_canceled_epic_ignores_open_child() -> None:
    assert derive_epic_status("canceled", ["open"]) == "canceled"


def test_done_and_canceled_children_resolve_the_epic() -> None:
    assert derive_epic_status("open", ["done", "canceled"]) == "done"
    assert derive_epic_status("open", ["canceled"]) == "done"


def test_blocked_wins_over_partial_completion() -> None:
    assert derive_epic_status("open", ["done", "blocked"]) == "blocked"
    assert derive_epic_status("open", ["canceled", "blocked", "blocked"]) == "blocked"


def test_any_progress_marks_epic_in_progress() -> None:
    assert derive_epic_status("open", ["open", "reviewing"]) == "in_progress"
    assert derive_epic_status("open", ["blocked", "in_progress"]) == "in_progress"


def test_all_open_children_keep_epic_open() -> None:
    assert derive_epic_status("open", ["open", "open", "canceled"]) == "open"


def test_reopening_child_of_done_epic_moves_it_to_in_progress() -> None:
    assert derive_epic_status("open", ["done", "done"]) == "done"
    assert derive_epic_status("open", ["open", "done"]) == "in_progress"


def test_tasks_report_stored_status_unchanged() -> None:
    for status in STATUSES:
        assert effective_status("task", status) == status


def test_tasks_ignore_child_statuses() -> None:
    assert effective_status("task", "open", ["done", "done"]) == "open"


@pytest.mark.parametrize("stored", sorted(TERMINAL_STATUSES))
def test_terminal_override_holds_for_every_child_multiset(stored: str) -> None:
    for children in _child_multisets():
        assert derive_epic_status(stored, children) == stored


def test_partition_counts_every_child_once() -> None:
    for children in _child_multisets():
        buckets = partition_children(children)
        assert sum(buckets.values()) == len(children)
        for status in STATUSES:
            assert buckets[status] == children.count(status)


def test_in_memory_equivalence_law() -> None:
    for kind in ("task", "epic"):
        for stored in STATUSES:
            for children in _child_multisets():
                resolved = effective_status(kind, stored, children) in TERMINAL_STATUSES
                assert resolved is (not is_unresolved(kind, stored, children)), (
                    kind,
                    stored,
                    children,
                )


def test_unknown_child_status_is_invariant_violation() -> None:
    with pytest.raises(InvariantViolation, match="unknown child status 'paused'"):
        derive_epic_status("open", ["open", "paused"], epic_id="ep-000001")

    with pytest.raises(InvariantViolation):
        is_unresolved("epic", "open", ["paused"])


def test_unknown_stored_status_is_invariant_violation() -> None:
    with pytest.raises(InvariantViolation, match="invalid stored status"):
        effective_status("task", "paused", item_id="ts-000001")

    with pytest.raises(InvariantViolation):
        derive_epic_status("waiting", ["open"])


def test_unknown_kind_is_invariant_violation() -> None:
    with pytest.raises(InvariantViolation, match="invalid stored type"):
        effective_status("story", "open")

    for stored in ("open", "done"):
        with pytest.raises(InvariantViolation, match="invalid stored type 'story'"):
            is_unresolved("story", stored, item_id="st-000001")
