from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from prog.errors import InvalidEnumError, NotFoundError
from prog.stores import learnings as learnings_module
from prog.stores.items import ItemStore
from prog.stores.learnings import LearningStore


@pytest.fixture
def learnings(store: ItemStore) -> LearningStore:
    return LearningStore(store.db_path)


def test_create_links_concepts_and_task(store: ItemStore, learnings: LearningStore) -> None:
    task = store.create("Parser", project="api")
    row = learnings.create(
        "api",
        "Tokens carry byte offsets",
        detail="Needed for error spans.",
        task_id=task["id"],
        files=["src/lexer.py"],
        concepts=["lexer", "errors", "lexer"],
    )

    assert row["id"].startswith("lrn-")
    assert row["task_id"] == task["id"]
    assert row["files"] == ["src/lexer.py"]
    assert row["concepts"] == ["errors", "lexer"]
    assert row["status"] == "active"
    assert learnings.get(row["id"]) == row


def test_create_rejects_unknown_task(learnings: LearningStore) -> None:
    with pytest.raises(NotFoundError, match="item not found: ts-missing"):
        learnings.create("api", "Something", task_id="ts-missing")


def test_create_is_all_or_nothing(
    learnings: LearningStore, monkeypatch: pytest.MonkeyPatch
) -> None:
    learnings.create("api", "Seed", concepts=[])
    monkeypatch.setattr(learnings_module, "new_concept_id", lambda: "cpt-same")

    with pytest.raises(sqlite3.IntegrityError):
        learnings.create("api", "Two new concepts", concepts=["alpha", "beta"])

    assert [row["summary"] for row in learnings.list("api")] == ["Seed"]
    assert learnings.concepts("api") == []


def test_existing_concepts_are_reused(learnings: LearningStore) -> None:
    learnings.create("api", "First", concepts=["sqlite"])
    learnings.create("api", "Second", concepts=["sqlite", "wal"])
    learnings.create("web", "Other project", concepts=["sqlite"])

    concepts = learnings.concepts("api")
    assert [(c["name"], c["learning_count"]) for c in concepts] == [
        ("sqlite", 2),
        ("wal", 1),
    ]
    recent = learnings.concepts("api", sort_recent=True)
    assert {c["name"] for c in recent} == {"sqlite", "wal"}


def test_list_search_and_status(learnings: LearningStore) -> None:
    first = learnings.create("api", "Use WAL mode", detail="Readers never block")
    second = learnings.create("api", "Batch IN queries", concepts=["sqlite"])
    learnings.create("web", "Use WAL mode too")

    assert {row["id"] for row in learnings.list("api")} == {first["id"], second["id"]}
    assert [row["id"] for row in learnings.list("api", concept="sqlite")] == [second["id"]]
    assert [row["id"] for row in learnings.search("api", "readers")] == [first["id"]]
    assert [row["id"] for row in learnings.search("api", "wal")] == [first["id"]]

    learnings.set_status(first["id"], "archived")
    assert learnings.search("api", "wal") == []
    assert [row["id"] for row in learnings.list("api", status="archived")] == [first["id"]]
    assert learnings.status_counts("api") == {"active": 1, "stale": 0, "archived": 1}

    with pytest.raises(InvalidEnumError):
        learnings.set_status(first["id"], "deleted")
    with pytest.raises(NotFoundError):
        learnings.set_status("lrn-missing", "stale")


def test_concept_summary_and_rename(learnings: LearningStore) -> None:
    learnings.create("api", "Something", concepts=["db"])
    learnings.create("api", "Other", concepts=["storage"])

    learnings.set_concept_summary("db", "api", "How we store things")
    learnings.rename_concept("db", "database", "api")

    names = {c["name"]: c["summary"] for c in learnings.concepts("api")}
    assert names == {"database": "How we store things", "storage": ""}

    with pytest.raises(ValueError, match="concept already exists: storage"):
        learnings.rename_concept("database", "storage", "api")
    with pytest.raises(NotFoundError, match="concept not found: db"):
        learnings.set_concept_summary("db", "api", "gone")


def test_related_concepts_match_task_text(store: ItemStore, learnings: LearningStore) -> None:
    learnings.create("api", "Something", concepts=["Auth", "cache"])
    task = store.create("Fix auth token refresh", project="api")

    related = learnings.related_concepts(store.get(task["id"]))
    assert [c["name"] for c in related] == ["Auth"]


def test_deleting_task_keeps_learning(store: ItemStore, learnings: LearningStore) -> None:
    task = store.create("Task", project="api")
    row = learnings.create("api", "Keep me", task_id=task["id"])

    store.delete(task["id"])
    assert learnings.get(row["id"])["task_id"] is None


def test_reads_without_database(tmp_path: Path) -> None:
    learnings = LearningStore(tmp_path / "missing.db")
    assert learnings.list("api") == []
    assert learnings.concepts("api") == []
    with pytest.raises(NotFoundError):
        learnings.get("lrn-000000")
