"""The SQL resolution predicate must agree with the in-memory rules."""

from __future__ import annotations

from itertools import combinations_with_replacement

from prog.derive import effective_status, is_unresolved
from prog.model import STATUSES, TERMINAL_STATUSES
from prog.stores.db import connect
from prog.stores.items import DEP_UNRESOLVED_SQL, ItemStore, ListFilter


def _seed_every_shape(store: ItemStore) -> dict[str, tuple[str, str, tuple[str, ...]]]:
    """Insert one item per (kind, stored status, child multiset up to 3)."""
    shapes: dict[str, tuple[str, str, tuple[str, ...]]] = {}
    counter = 0
    with connect(store.db_path) as conn:

        def insert(kind: str, status: str, parent_id: str | None = None) -> str:
            nonlocal counter
            counter += 1
            prefix = "ep" if kind == "epic" else "ts"
            item_id = f"{prefix}-{counter:06x}"
            conn.execute(
                """
                INSERT INTO items(id, project, type, title, status, priority,
                                  parent_id, created_at, updated_at)
                VALUES(?, 'eq', ?, ?, ?, 2, ?, ?, ?)
                """,
                (item_id, kind, item_id, status, parent_id, counter, counter),
            )
            return item_id

        for stored in STATUSES:
            task_id = insert("task", stored)
            shapes[task_id] = ("task", stored, ())
            for size in range(4):
                for children in combinations_with_replacement(STATUSES, size):
                    epic_id = insert("epic", stored)
                    for child in children:
                        insert("task", child, parent_id=epic_id)
                    shapes[epic_id] = ("epic", stored, children)
    return shapes


def test_sql_predicate_matches_in_memory_predicate(store: ItemStore) -> None:
    shapes = _seed_every_shape(store)

    with connect(store.db_path) as conn:
        rows = conn.execute(
            f"SELECT target.id, {DEP_UNRESOLVED_SQL} AS unresolved FROM items target"
        ).fetchall()
    sql_unresolved = {str(row["id"]): bool(row["unresolved"]) for row in rows}

    for item_id, (kind, stored, children) in shapes.items():
        expected = is_unresolved(kind, stored, children)
        assert sql_unresolved[item_id] is expected, (kind, stored, children)


def test_effective_status_is_terminal_iff_sql_says_resolved(store: ItemStore) -> None:
    shapes = _seed_every_shape(store)
    items = {row["id"]: row for row in store.list(ListFilter(project="eq"))}

    for item_id, (kind, stored, children) in shapes.items():
        item = items[item_id]
        assert item["status"] == effective_status(kind, stored, children)
        assert item["stored_status"] == stored
        resolved = item["status"] in TERMINAL_STATUSES
        assert resolved is (not store.is_unresolved(item_id)), (kind, stored, children)


def test_store_predicate_for_single_targets(store: ItemStore) -> None:
    epic = store.create("Epic", item_type="epic")
    assert store.is_unresolved(epic["id"]) is True

    child = store.create("Child", parent_id=epic["id"])
    assert store.is_unresolved(epic["id"]) is True

    store.update_status(child["id"], "canceled")
    assert store.is_unresolved(epic["id"]) is False
    assert store.effective_status(epic["id"]) == "done"

    task = store.create("Task")
    assert store.is_unresolved(task["id"]) is True
    store.update_status(task["id"], "done")
    assert store.is_unresolved(task["id"]) is False
