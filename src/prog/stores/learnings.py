from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..errors import NotFoundError, item_not_found
from ..model import (
    LEARNING_STATUSES,
    new_concept_id,
    new_learning_id,
    normalize_learning_status,
)
from .db import chunked, connect, placeholders
from .state import DB_FILENAME, now_ms, resolve_state_dir

logger = logging.getLogger(__name__)


def _clean_concepts(concepts: list[str] | None) -> list[str]:
    out: list[str] = []
    for raw in concepts or []:
        name = str(raw).strip()
        if name and name not in out:
            out.append(name)
    return out


@dataclass
class LearningStore:
    """Project knowledge records tagged with concepts.

    Learnings share the item database so a learning can point at the task it
    was learned on; deleting that task clears the pointer.
    """

    db_path: Path
    create_on_connect: bool = True

    @classmethod
    def from_workdir(
        cls,
        cwd: Path | None = None,
        *,
        create: bool = True,
    ) -> "LearningStore":
        return cls(
            resolve_state_dir(cwd, create=create) / DB_FILENAME,
            create_on_connect=create,
        )

    def _connect(self):
        return connect(self.db_path, create=self.create_on_connect)

    def _concepts_for_ids(
        self,
        conn: sqlite3.Connection,
        learning_ids: list[str],
    ) -> dict[str, list[str]]:
        names: dict[str, list[str]] = {learning_id: [] for learning_id in learning_ids}
        for batch in chunked(learning_ids):
            rows = conn.execute(
                f"""
                SELECT lc.learning_id, c.name
                FROM learning_concepts lc
                JOIN concepts c ON c.id = lc.concept_id
                WHERE lc.learning_id IN ({placeholders(batch)})
                ORDER BY c.name ASC
                """,
                tuple(batch),
            ).fetchall()
            for row in rows:
                names[str(row["learning_id"])].append(str(row["name"]))
        return names

    def _materialize(
        self,
        conn: sqlite3.Connection,
        rows: list[sqlite3.Row],
    ) -> list[dict[str, Any]]:
        ids = [str(row["id"]) for row in rows]
        concepts = self._concepts_for_ids(conn, ids)
        out: list[dict[str, Any]] = []
        for row in rows:
            learning_id = str(row["id"])
            try:
                files = json.loads(str(row["files"] or "[]"))
            except json.JSONDecodeError:
                logger.warning("learning %s has unreadable files column", learning_id)
                files = []
            out.append(
                {
                    "id": learning_id,
                    "project": str(row["project"]),
                    "task_id": str(row["task_id"]) if row["task_id"] is not None else None,
                    "summary": str(row["summary"]),
                    "detail": str(row["detail"] or ""),
                    "files": [str(path) for path in files],
                    "status": str(row["status"]),
                    "concepts": concepts.get(learning_id, []),
                    "created_at": int(row["created_at"]),
                    "updated_at": int(row["updated_at"]),
                }
            )
        return out

    def _get(self, conn: sqlite3.Connection, learning_id: str) -> dict[str, Any]:
        row = conn.execute(
            """
            SELECT id, project, task_id, summary, detail, files, status, created_at, updated_at
            FROM learnings
            WHERE id = ?
            """,
            (learning_id,),
        ).fetchone()
        if row is None:
            raise NotFoundError(f"learning not found: {learning_id}")
        return self._materialize(conn, [row])[0]

    def create(
        self,
        project: str,
        summary: str,
        *,
        detail: str = "",
        task_id: str | None = None,
        files: list[str] | None = None,
        concepts: list[str] | None = None,
        status: str = "active",
        learning_id: str | None = None,
    ) -> dict[str, Any]:
        text = summary.strip()
        if not text:
            raise ValueError("learning summary cannot be empty")
        learning_status = normalize_learning_status(status)
        names = _clean_concepts(concepts)
        key = (learning_id or "").strip() or new_learning_id()
        now = now_ms()

        with self._connect() as conn:
            taken = conn.execute(
                "SELECT 1 FROM learnings WHERE id = ?",
                (key,),
            ).fetchone()
            if taken is not None:
                raise ValueError(f"learning already exists: {key}")
            if task_id:
                found = conn.execute(
                    "SELECT 1 FROM items WHERE id = ?",
                    (task_id,),
                ).fetchone()
                if found is None:
                    raise item_not_found(task_id)

            conn.execute(
                """
                INSERT INTO learnings(
                    id, project, task_id, summary, detail, files, status,
                    created_at, updated_at
                )
                VALUES(?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    key,
                    project,
                    task_id,
                    text,
                    detail,
                    json.dumps(list(files or [])),
                    learning_status,
                    now,
                    now,
                ),
            )
            for name in names:
                row = conn.execute(
                    "SELECT id FROM concepts WHERE name = ? AND project = ?",
                    (name, project),
                ).fetchone()
                if row is None:
                    concept_id = new_concept_id()
                    conn.execute(
                        """
                        INSERT INTO concepts(id, name, project, summary, last_updated)
                        VALUES(?, ?, ?, '', ?)
                        """,
                        (concept_id, name, project, now),
                    )
                else:
                    concept_id = str(row["id"])
                    conn.execute(
                        "UPDATE concepts SET last_updated = ? WHERE id = ?",
                        (now, concept_id),
                    )
                conn.execute(
                    "INSERT INTO learning_concepts(learning_id, concept_id) VALUES(?, ?)",
                    (key, concept_id),
                )
            learning = self._get(conn, key)

        logger.debug("created learning %s with %d concept(s)", key, len(names))
        return learning

    def get(self, learning_id: str) -> dict[str, Any]:
        key = learning_id.strip()
        if not self.db_path.exists():
            raise NotFoundError(f"learning not found: {key}")
        with self._connect() as conn:
            return self._get(conn, key)

    def list(
        self,
        project: str,
        *,
        concept: str | None = None,
        status: str | None = None,
    ) -> list[dict[str, Any]]:
        if not self.db_path.exists():
            return []
        where = ["l.project = ?"]
        params: list[Any] = [project]
        if status:
            where.append("l.status = ?")
            params.append(normalize_learning_status(status))
        if concept:
            where.append(
                """
                EXISTS (
                    SELECT 1
                    FROM learning_concepts lc
                    JOIN concepts c ON c.id = lc.concept_id
                    WHERE lc.learning_id = l.id AND c.name = ?
                )
                """
            )
            params.append(concept.strip())

        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT l.id, l.project, l.task_id, l.summary, l.detail, l.files,
                       l.status, l.created_at, l.updated_at
                FROM learnings l
                WHERE {' AND '.join(where)}
                ORDER BY l.created_at DESC, l.rowid DESC
                """,
                tuple(params),
            ).fetchall()
            return self._materialize(conn, rows)

    def search(self, project: str, text: str) -> list[dict[str, Any]]:
        query = text.strip()
        if not query or not self.db_path.exists():
            return []
        like = f"%{query}%"
        with self._connect() as conn:
            # LIKE is case-insensitive for ASCII in sqlite.
            rows = conn.execute(
                """
                SELECT l.id, l.project, l.task_id, l.summary, l.detail, l.files,
                       l.status, l.created_at, l.updated_at
                FROM learnings l
                WHERE l.project = ?
                  AND l.status != 'archived'
                  AND (l.summary LIKE ? OR l.detail LIKE ?)
                ORDER BY l.created_at DESC, l.rowid DESC
                """,
                (project, like, like),
            ).fetchall()
            return self._materialize(conn, rows)

    def set_status(self, learning_id: str, status: str) -> dict[str, Any]:
        key = learning_id.strip()
        value = normalize_learning_status(status)
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE learnings SET status = ?, updated_at = ? WHERE id = ?",
                (value, now_ms(), key),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"learning not found: {key}")
            return self._get(conn, key)

    def concepts(self, project: str, *, sort_recent: bool = False) -> list[dict[str, Any]]:
        if not self.db_path.exists():
            return []
        order_by = "c.last_updated DESC, c.name" if sort_recent else "learning_count DESC, c.name"
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT
                    c.id,
                    c.name,
                    c.project,
                    c.summary,
                    c.last_updated,
                    (
                        SELECT COUNT(*)
                        FROM learning_concepts lc
                        WHERE lc.concept_id = c.id
                    ) AS learning_count
                FROM concepts c
                WHERE c.project = ?
                ORDER BY {order_by}
                """,
                (project,),
            ).fetchall()
        return [
            {
                "id": str(row["id"]),
                "name": str(row["name"]),
                "project": str(row["project"]),
                "summary": str(row["summary"] or ""),
                "last_updated": int(row["last_updated"]),
                "learning_count": int(row["learning_count"]),
            }
            for row in rows
        ]

    def set_concept_summary(self, name: str, project: str, summary: str) -> None:
        with self._connect() as conn:
            cur = conn.execute(
                """
                UPDATE concepts SET summary = ?, last_updated = ?
                WHERE name = ? AND project = ?
                """,
                (summary, now_ms(), name, project),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"concept not found: {name}")

    def rename_concept(self, old_name: str, new_name: str, project: str) -> None:
        target = new_name.strip()
        if not target:
            raise ValueError("concept name cannot be empty")
        with self._connect() as conn:
            clash = conn.execute(
                "SELECT 1 FROM concepts WHERE name = ? AND project = ?",
                (target, project),
            ).fetchone()
            if clash is not None and target != old_name:
                raise ValueError(f"concept already exists: {target}")
            cur = conn.execute(
                """
                UPDATE concepts SET name = ?, last_updated = ?
                WHERE name = ? AND project = ?
                """,
                (target, now_ms(), old_name, project),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"concept not found: {old_name}")

    def related_concepts(self, item: dict[str, Any]) -> list[dict[str, Any]]:
        """Concepts of the item's project whose name appears in its text."""
        haystack = f"{item.get('title', '')} {item.get('description', '')}".lower()
        return [
            concept
            for concept in self.concepts(str(item.get("project") or ""))
            if concept["name"].lower() in haystack
        ]

    def status_counts(self, project: str) -> dict[str, int]:
        counts = {status: 0 for status in LEARNING_STATUSES}
        if not self.db_path.exists():
            return counts
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT status, COUNT(*) AS n
                FROM learnings
                WHERE project = ?
                GROUP BY status
                """,
                (project,),
            ).fetchall()
        for row in rows:
            counts[str(row["status"])] = int(row["n"])
        return counts
