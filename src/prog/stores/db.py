from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

SCHEMA = """
PRAGMA journal_mode=WAL;
CREATE TABLE IF NOT EXISTS projects (
    name TEXT PRIMARY KEY,
    description TEXT NOT NULL DEFAULT '',
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS items (
    id TEXT PRIMARY KEY,
    project TEXT NOT NULL DEFAULT '',
    type TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    definition_of_done TEXT,
    status TEXT NOT NULL DEFAULT 'open',
    priority INTEGER NOT NULL DEFAULT 2,
    parent_id TEXT REFERENCES items(id) ON DELETE SET NULL,
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS deps (
    item_id TEXT NOT NULL,
    depends_on TEXT NOT NULL,
    created_at INTEGER NOT NULL,
    PRIMARY KEY(item_id, depends_on),
    FOREIGN KEY(item_id) REFERENCES items(id) ON DELETE CASCADE,
    FOREIGN KEY(depends_on) REFERENCES items(id) ON DELETE CASCADE
);
CREATE TABLE IF NOT EXISTS logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    item_id TEXT NOT NULL,
    message TEXT NOT NULL,
    created_at INTEGER NOT NULL,
    FOREIGN KEY(item_id) REFERENCES items(id) ON DELETE CASCADE
);
CREATE TABLE IF NOT EXISTS item_labels (
    item_id TEXT NOT NULL,
    label TEXT NOT NULL,
    PRIMARY KEY(item_id, label),
    FOREIGN KEY(item_id) REFERENCES items(id) ON DELETE CASCADE
);
CREATE TABLE IF NOT EXISTS concepts (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    project TEXT NOT NULL,
    summary TEXT NOT NULL DEFAULT '',
    last_updated INTEGER NOT NULL,
    UNIQUE(name, project)
);
CREATE TABLE IF NOT EXISTS learnings (
    id TEXT PRIMARY KEY,
    project TEXT NOT NULL,
    task_id TEXT REFERENCES items(id) ON DELETE SET NULL,
    summary TEXT NOT NULL,
    detail TEXT NOT NULL DEFAULT '',
    files TEXT NOT NULL DEFAULT '[]',
    status TEXT NOT NULL DEFAULT 'active',
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS learning_concepts (
    learning_id TEXT NOT NULL,
    concept_id TEXT NOT NULL,
    PRIMARY KEY(learning_id, concept_id),
    FOREIGN KEY(learning_id) REFERENCES learnings(id) ON DELETE CASCADE,
    FOREIGN KEY(concept_id) REFERENCES concepts(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_items_project ON items(project);
CREATE INDEX IF NOT EXISTS idx_items_status_priority ON items(status, priority, created_at);
CREATE INDEX IF NOT EXISTS idx_items_parent ON items(parent_id, status);
CREATE INDEX IF NOT EXISTS idx_deps_depends_on ON deps(depends_on);
CREATE INDEX IF NOT EXISTS idx_logs_item ON logs(item_id, created_at);
CREATE INDEX IF NOT EXISTS idx_item_labels_label ON item_labels(label);
CREATE INDEX IF NOT EXISTS idx_learnings_project ON learnings(project, status);
CREATE INDEX IF NOT EXISTS idx_learnings_task ON learnings(task_id);
CREATE INDEX IF NOT EXISTS idx_learning_concepts_concept ON learning_concepts(concept_id);
"""


def _migrate_schema(conn: sqlite3.Connection) -> None:
    item_columns = {
        str(row["name"]) for row in conn.execute("PRAGMA table_info(items)").fetchall()
    }
    if "definition_of_done" not in item_columns:
        logger.info("migrating items table: adding definition_of_done")
        conn.execute("ALTER TABLE items ADD COLUMN definition_of_done TEXT")


@contextmanager
def connect(db_path: Path, *, create: bool = True) -> Iterator[sqlite3.Connection]:
    """Open the database, yield it inside one transaction, then close it.

    The transaction commits when the block exits normally and rolls back on
    any exception, so multi-statement writes are all or nothing.
    """
    if create:
        db_path.parent.mkdir(parents=True, exist_ok=True)
    elif not db_path.exists():
        raise FileNotFoundError(str(db_path))

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    try:
        conn.execute("PRAGMA foreign_keys=ON")
        conn.executescript(SCHEMA)
        _migrate_schema(conn)
        with conn:
            yield conn
    finally:
        conn.close()


def placeholders(values: list[str] | tuple[str, ...]) -> str:
    return ", ".join("?" for _ in values)


def chunked(values: list[str], size: int = 500) -> Iterator[list[str]]:
    # Stays under SQLITE_MAX_VARIABLE_NUMBER on older sqlite builds.
    for start in range(0, len(values), size):
        yield values[start : start + size]
