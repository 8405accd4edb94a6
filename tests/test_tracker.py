from __future__ import annotations

import pytest

from prog.errors import InvalidTransitionError
from prog.stores.items import ItemStore
from prog.tracker import Tracker


def test_status_report_partitions_by_effective_status(
    tracker: Tracker, store: ItemStore
) -> None:
    epic = store.create("Epic", item_type="epic", project="api")
    child = store.create("Child", parent_id=epic["id"], project="api")
    ready = store.create("Ready", project="api")
    stuck = store.create("Stuck", project="api")
    store.create("Elsewhere", project="web")

    tracker.start(child["id"])
    tracker.block(stuck["id"], "waiting on credentials")

    report = tracker.project_status_report("api")

    assert report.project == "api"
    assert report.total == 4
    assert report.counts["in_progress"] == 2
    assert report.counts["open"] == 1
    assert report.counts["blocked"] == 1
    assert report.counts["done"] == 0
    assert [item["id"] for item in report.ready] == [ready["id"]]
    assert report.ready_count == 1
    assert {item["id"] for item in report.in_progress} == {epic["id"], child["id"]}
    assert [item["reason"] for item in report.blocked] == [
        "Blocked: waiting on credentials"
    ]


def test_status_report_lists_three_most_recent_done(
    tracker: Tracker, store: ItemStore
) -> None:
    done_ids = []
    for index in range(5):
        task = store.create(f"Task {index}")
        tracker.done(task["id"])
        done_ids.append(task["id"])

    report = tracker.project_status_report()
    assert report.counts["done"] == 5
    assert len(report.recent_done) == 3
    assert set(item["id"] for item in report.recent_done) <= set(done_ids)

    payload = report.to_dict()
    assert payload["total"] == 5
    assert payload["ready_count"] == 0


def test_review_only_from_in_progress(tracker: Tracker, store: ItemStore) -> None:
    task = store.create("Task")

    with pytest.raises(InvalidTransitionError, match="can only move in_progress"):
        tracker.review(task["id"])

    tracker.start(task["id"])
    assert tracker.review(task["id"])["status"] == "reviewing"


def test_cancel_and_block_record_reasons(tracker: Tracker, store: ItemStore) -> None:
    task = store.create("Task")
    other = store.create("Other")

    tracker.cancel(task["id"], "duplicate of another task")
    tracker.cancel(other["id"])
    assert [e["message"] for e in store.logs(task["id"])] == [
        "Canceled: duplicate of another task"
    ]
    assert store.logs(other["id"]) == []

    reopened = tracker.reopen(task["id"])
    assert reopened["status"] == "open"

    with pytest.raises(ValueError, match="reason is required"):
        tracker.block(task["id"], " ")


def test_epic_transitions_follow_override_rules(tracker: Tracker, store: ItemStore) -> None:
    epic = store.create("Epic", item_type="epic")
    store.create("Child", parent_id=epic["id"])

    with pytest.raises(InvalidTransitionError):
        tracker.start(epic["id"])
    with pytest.raises(InvalidTransitionError):
        tracker.block(epic["id"], "nope")

    assert tracker.done(epic["id"])["status"] == "done"


def test_show_collects_related_records(tracker: Tracker, store: ItemStore) -> None:
    epic = store.create("Storage epic", item_type="epic", project="api")
    child = store.create(
        "Add sqlite migrations",
        parent_id=epic["id"],
        project="api",
        description="Use WAL mode",
    )
    upstream = store.create("Pick driver", project="api")
    downstream = store.create("Ship", project="api")
    store.add_dependency(child["id"], upstream["id"])
    store.add_dependency(downstream["id"], child["id"])
    store.add_log(child["id"], "Started work")
    tracker.learnings.create("api", "WAL avoids reader locks", concepts=["sqlite", "http"])

    detail = tracker.show(child["id"])

    assert detail["id"] == child["id"]
    assert [d["id"] for d in detail["dependencies"]] == [upstream["id"]]
    assert detail["dependencies"][0]["unresolved"] is True
    assert detail["has_unmet_dependencies"] is True
    assert [d["id"] for d in detail["dependents"]] == [downstream["id"]]
    assert [entry["message"] for entry in detail["logs"]] == ["Started work"]
    assert detail["children"] == []
    assert detail["related_concepts"] == ["sqlite"]

    epic_detail = tracker.show(epic["id"])
    assert [c["id"] for c in epic_detail["children"]] == [child["id"]]


def test_block_reason_survives_later_log_entries(tracker: Tracker, store: ItemStore) -> None:
    task = store.create("Integrate vendor API", project="api")
    epic = store.create("Vendor epic", item_type="epic", project="api")
    child = store.create("Vendor child", parent_id=epic["id"], project="api")

    tracker.block(task["id"], "waiting on vendor")
    store.add_log(task["id"], "pinged vendor again")
    tracker.block(child["id"], "child waits too")
    store.add_log(epic["id"], "weekly sync notes")

    report = tracker.project_status_report("api")
    reasons = {item["id"]: item["reason"] for item in report.blocked}
    assert reasons == {
        task["id"]: "Blocked: waiting on vendor",
        child["id"]: "Blocked: child waits too",
        epic["id"]: "",
    }
