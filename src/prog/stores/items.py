from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..derive import effective_status
from ..errors import (
    DependencyCycleError,
    InvalidParentError,
    InvalidTransitionError,
    NotFoundError,
    item_not_found,
)
from ..model import (
    DEFAULT_PRIORITY,
    EPIC,
    OPEN,
    TASK,
    TERMINAL_STATUSES,
    new_item_id,
    normalize_priority,
    normalize_status,
    normalize_type,
)
from .db import chunked, connect, placeholders
from .state import DB_FILENAME, now_ms, resolve_state_dir

logger = logging.getLogger(__name__)

_TERMINAL_SQL = ", ".join(f"'{status}'" for status in sorted(TERMINAL_STATUSES))


def dep_unresolved_sql(alias: str) -> str:
    """SQL boolean: the dependency target ``alias`` is not yet resolved.

    Mirrors ``prog.derive.is_unresolved``: a target is resolved when its
    stored status is terminal, or when it is an epic with at least one child
    and every child's stored status is terminal.
    """
    child = f"{alias}_child"
    return f"""
    NOT (
        {alias}.status IN ({_TERMINAL_SQL})
        OR (
            {alias}.type = '{EPIC}'
            AND EXISTS (
                SELECT 1 FROM items {child} WHERE {child}.parent_id = {alias}.id
            )
            AND NOT EXISTS (
                SELECT 1
                FROM items {child}
                WHERE {child}.parent_id = {alias}.id
                  AND {child}.status NOT IN ({_TERMINAL_SQL})
            )
        )
    )
    """


DEP_UNRESOLVED_SQL = dep_unresolved_sql("target")

_HAS_UNMET_SQL = f"""
    EXISTS (
        SELECT 1
        FROM deps d
        JOIN items target ON target.id = d.depends_on
        WHERE d.item_id = i.id
          AND {DEP_UNRESOLVED_SQL}
    )
"""

_ITEM_COLUMNS = """
    i.id,
    i.project,
    i.type,
    i.title,
    i.description,
    i.definition_of_done,
    i.status,
    i.priority,
    i.parent_id,
    i.created_at,
    i.updated_at
"""

_ORDER_BY = "ORDER BY i.priority ASC, i.created_at ASC, i.rowid ASC"


@dataclass(frozen=True)
class ListFilter:
    project: str | None = None
    status: str | None = None
    item_type: str | None = None
    parent: str | None = None
    label: str | None = None
    search: str | None = None
    blocking: str | None = None
    blocked_by: str | None = None
    has_blockers: bool = False
    no_blockers: bool = False
    limit: int | None = None


@dataclass
class ItemStore:
    db_path: Path
    create_on_connect: bool = True

    @classmethod
    def from_workdir(
        cls,
        cwd: Path | None = None,
        *,
        create: bool = True,
    ) -> "ItemStore":
        return cls(
            resolve_state_dir(cwd, create=create) / DB_FILENAME,
            create_on_connect=create,
        )

    def _connect(self):
        return connect(self.db_path, create=self.create_on_connect)

    def init(self) -> Path:
        """Create the database file and schema if they do not exist yet."""
        with self._connect() as conn:
            conn.execute("SELECT 1")
        logger.info("initialized %s", self.db_path)
        return self.db_path

    def _require_item(self, conn: sqlite3.Connection, item_id: str) -> sqlite3.Row:
        row = conn.execute(
            "SELECT id, type, status, parent_id FROM items WHERE id = ?",
            (item_id,),
        ).fetchone()
        if row is None:
            raise item_not_found(item_id)
        return row

    def _ensure_project(self, conn: sqlite3.Connection, project: str, now: int) -> None:
        if not project:
            return
        conn.execute(
            """
            INSERT OR IGNORE INTO projects(name, description, created_at, updated_at)
            VALUES(?, '', ?, ?)
            """,
            (project, now, now),
        )

    def _check_parent(
        self,
        conn: sqlite3.Connection,
        parent_id: str,
        *,
        item_id: str | None,
        item_type: str,
    ) -> None:
        row = conn.execute(
            "SELECT id, type, parent_id FROM items WHERE id = ?",
            (parent_id,),
        ).fetchone()
        if row is None:
            raise NotFoundError(
                f"parent not found: {parent_id} (use 'prog list' to see available items)"
            )
        if str(row["type"]) != EPIC:
            raise InvalidParentError(f"parent must be an epic, got {row['type']}")
        if item_id is not None and parent_id == item_id:
            raise InvalidParentError("item cannot be its own parent")

        if item_type == EPIC:
            logger.warning(
                "nested epic: %s placed under epic %s; status derivation only "
                "looks at direct children",
                item_id or "new epic",
                parent_id,
            )
            ancestor = row["parent_id"]
            seen: set[str] = {parent_id}
            while ancestor is not None and str(ancestor) not in seen:
                ancestor_id = str(ancestor)
                if ancestor_id == item_id:
                    raise InvalidParentError(
                        f"parent {parent_id} is nested under {item_id}"
                    )
                seen.add(ancestor_id)
                next_row = conn.execute(
                    "SELECT parent_id FROM items WHERE id = ?",
                    (ancestor_id,),
                ).fetchone()
                ancestor = next_row["parent_id"] if next_row is not None else None

    def _child_statuses(
        self,
        conn: sqlite3.Connection,
        epic_ids: list[str],
    ) -> dict[str, list[str]]:
        children: dict[str, list[str]] = {epic_id: [] for epic_id in epic_ids}
        for batch in chunked(epic_ids):
            rows = conn.execute(
                f"""
                SELECT parent_id, status
                FROM items
                WHERE parent_id IN ({placeholders(batch)})
                """,
                tuple(batch),
            ).fetchall()
            for row in rows:
                children[str(row["parent_id"])].append(str(row["status"]))
        return children

    def _labels_for_ids(
        self,
        conn: sqlite3.Connection,
        item_ids: list[str],
    ) -> dict[str, list[str]]:
        labels: dict[str, list[str]] = {item_id: [] for item_id in item_ids}
        for batch in chunked(item_ids):
            rows = conn.execute(
                f"""
                SELECT item_id, label
                FROM item_labels
                WHERE item_id IN ({placeholders(batch)})
                ORDER BY label ASC
                """,
                tuple(batch),
            ).fetchall()
            for row in rows:
                labels[str(row["item_id"])].append(str(row["label"]))
        return labels

    def _materialize(
        self,
        conn: sqlite3.Connection,
        rows: list[sqlite3.Row],
    ) -> list[dict[str, Any]]:
        ids = [str(row["id"]) for row in rows]
        epic_ids = [str(row["id"]) for row in rows if str(row["type"]) == EPIC]
        children = self._child_statuses(conn, epic_ids)
        labels = self._labels_for_ids(conn, ids)

        items: list[dict[str, Any]] = []
        for row in rows:
            item_id = str(row["id"])
            stored = str(row["status"])
            items.append(
                {
                    "id": item_id,
                    "project": str(row["project"] or ""),
                    "type": str(row["type"]),
                    "title": str(row["title"]),
                    "description": str(row["description"] or ""),
                    "definition_of_done": (
                        str(row["definition_of_done"])
                        if row["definition_of_done"] is not None
                        else None
                    ),
                    "status": effective_status(
                        str(row["type"]),
                        stored,
                        children.get(item_id, ()),
                        item_id=item_id,
                    ),
                    "stored_status": stored,
                    "priority": int(row["priority"]),
                    "parent_id": (
                        str(row["parent_id"]) if row["parent_id"] is not None else None
                    ),
                    "labels": labels.get(item_id, []),
                    "created_at": int(row["created_at"]),
                    "updated_at": int(row["updated_at"]),
                }
            )
        return items

    def _get(self, conn: sqlite3.Connection, item_id: str) -> dict[str, Any]:
        row = conn.execute(
            f"SELECT {_ITEM_COLUMNS} FROM items i WHERE i.id = ?",
            (item_id,),
        ).fetchone()
        if row is None:
            raise item_not_found(item_id)
        return self._materialize(conn, [row])[0]

    def create(
        self,
        title: str,
        *,
        item_type: str = TASK,
        project: str = "",
        description: str = "",
        definition_of_done: str | None = None,
        status: str = OPEN,
        priority: int = DEFAULT_PRIORITY,
        parent_id: str | None = None,
        labels: list[str] | None = None,
    ) -> dict[str, Any]:
        item_title = title.strip()
        if not item_title:
            raise ValueError("title cannot be empty")

        kind = normalize_type(item_type)
        item_status = normalize_status(status)
        if kind == EPIC and item_status != OPEN and item_status not in TERMINAL_STATUSES:
            raise InvalidTransitionError(
                "epic status is derived from children; an epic can only be "
                "created as 'open', 'done' or 'canceled'"
            )
        item_priority = normalize_priority(priority)
        item_project = project.strip()
        parent_key = parent_id.strip() if parent_id else None
        item_id = new_item_id(kind)
        now = now_ms()

        with self._connect() as conn:
            if parent_key:
                self._check_parent(conn, parent_key, item_id=None, item_type=kind)
            self._ensure_project(conn, item_project, now)
            conn.execute(
                """
                INSERT INTO items(
                    id, project, type, title, description, definition_of_done,
                    status, priority, parent_id, created_at, updated_at
                )
                VALUES(?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    item_id,
                    item_project,
                    kind,
                    item_title,
                    description,
                    definition_of_done,
                    item_status,
                    item_priority,
                    parent_key,
                    now,
                    now,
                ),
            )
            for label in sorted({v.strip() for v in (labels or []) if v.strip()}):
                conn.execute(
                    "INSERT INTO item_labels(item_id, label) VALUES(?, ?)",
                    (item_id, label),
                )
            item = self._get(conn, item_id)

        logger.debug("created %s %s in project %r", kind, item_id, item_project)
        return item

    def get(self, item_id: str) -> dict[str, Any]:
        item_key = item_id.strip()
        if not item_key or not self.db_path.exists():
            raise item_not_found(item_key or item_id)
        with self._connect() as conn:
            return self._get(conn, item_key)

    def effective_status(self, item_id: str) -> str:
        return str(self.get(item_id)["status"])

    def children(self, epic_id: str) -> list[dict[str, Any]]:
        epic_key = epic_id.strip()
        if not self.db_path.exists():
            raise item_not_found(epic_key)
        with self._connect() as conn:
            self._require_item(conn, epic_key)
            rows = conn.execute(
                f"SELECT {_ITEM_COLUMNS} FROM items i WHERE i.parent_id = ? {_ORDER_BY}",
                (epic_key,),
            ).fetchall()
            return self._materialize(conn, rows)

    def list(self, filters: ListFilter | None = None) -> list[dict[str, Any]]:
        criteria = filters or ListFilter()
        if not self.db_path.exists():
            return []

        where: list[str] = []
        params: list[Any] = []
        wanted_status: str | None = None

        if criteria.project:
            where.append("i.project = ?")
            params.append(criteria.project.strip())

        if criteria.status:
            wanted_status = normalize_status(criteria.status)
            # Epic statuses are derived, so epics are filtered after derivation.
            where.append(f"(i.type = '{EPIC}' OR i.status = ?)")
            params.append(wanted_status)

        if criteria.item_type:
            where.append("i.type = ?")
            params.append(normalize_type(criteria.item_type))

        if criteria.parent:
            where.append("i.parent_id = ?")
            params.append(criteria.parent.strip())

        if criteria.label:
            where.append(
                "EXISTS (SELECT 1 FROM item_labels l WHERE l.item_id = i.id AND l.label LIKE ?)"
            )
            params.append(f"%{criteria.label.strip()}%")

        if criteria.search:
            text = criteria.search.strip()
            if text:
                like = f"%{text}%"
                where.append("(i.id LIKE ? OR i.title LIKE ? OR i.description LIKE ?)")
                params.extend((like, like, like))

        if criteria.blocking:
            where.append("i.id IN (SELECT depends_on FROM deps WHERE item_id = ?)")
            params.append(criteria.blocking.strip())

        if criteria.blocked_by:
            where.append("i.id IN (SELECT item_id FROM deps WHERE depends_on = ?)")
            params.append(criteria.blocked_by.strip())

        if criteria.has_blockers and criteria.no_blockers:
            raise ValueError("has_blockers and no_blockers are mutually exclusive")
        if criteria.has_blockers:
            where.append(_HAS_UNMET_SQL)
        if criteria.no_blockers:
            where.append(f"NOT {_HAS_UNMET_SQL}")

        query = f"SELECT {_ITEM_COLUMNS} FROM items i"
        if where:
            query += " WHERE " + " AND ".join(where)
        query += f" {_ORDER_BY}"

        with self._connect() as conn:
            rows = conn.execute(query, tuple(params)).fetchall()
            items = self._materialize(conn, rows)

        if wanted_status is not None:
            items = [item for item in items if item["status"] == wanted_status]
        if criteria.limit is not None:
            items = items[: max(1, int(criteria.limit))]
        return items

    def update(
        self,
        item_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        definition_of_done: str | None = None,
        definition_of_done_provided: bool = False,
        priority: int | None = None,
        project: str | None = None,
    ) -> dict[str, Any]:
        item_key = item_id.strip()
        set_parts: list[str] = []
        params: list[Any] = []

        if title is not None:
            clean = title.strip()
            if not clean:
                raise ValueError("title cannot be empty")
            set_parts.append("title = ?")
            params.append(clean)

        if description is not None:
            set_parts.append("description = ?")
            params.append(description)

        if definition_of_done_provided:
            set_parts.append("definition_of_done = ?")
            params.append(definition_of_done)

        if priority is not None:
            set_parts.append("priority = ?")
            params.append(normalize_priority(priority))

        if project is not None:
            set_parts.append("project = ?")
            params.append(project.strip())

        now = now_ms()
        with self._connect() as conn:
            self._require_item(conn, item_key)
            if not set_parts:
                return self._get(conn, item_key)
            if project is not None:
                self._ensure_project(conn, project.strip(), now)
            conn.execute(
                f"UPDATE items SET {', '.join(set_parts)}, updated_at = ? WHERE id = ?",
                (*params, now, item_key),
            )
            return self._get(conn, item_key)

    def set_title(self, item_id: str, title: str) -> dict[str, Any]:
        return self.update(item_id, title=title)

    def set_description(self, item_id: str, description: str) -> dict[str, Any]:
        return self.update(item_id, description=description)

    def set_definition_of_done(
        self, item_id: str, definition_of_done: str | None
    ) -> dict[str, Any]:
        return self.update(
            item_id,
            definition_of_done=definition_of_done,
            definition_of_done_provided=True,
        )

    def set_priority(self, item_id: str, priority: int) -> dict[str, Any]:
        return self.update(item_id, priority=priority)

    def set_project(self, item_id: str, project: str) -> dict[str, Any]:
        return self.update(item_id, project=project)

    def append_description(self, item_id: str, text: str) -> dict[str, Any]:
        item_key = item_id.strip()
        with self._connect() as conn:
            self._require_item(conn, item_key)
            conn.execute(
                """
                UPDATE items
                SET description = CASE
                        WHEN description = '' THEN ?
                        ELSE description || char(10) || char(10) || ?
                    END,
                    updated_at = ?
                WHERE id = ?
                """,
                (text, text, now_ms(), item_key),
            )
            return self._get(conn, item_key)

    def update_status(self, item_id: str, status: str) -> dict[str, Any]:
        item_key = item_id.strip()
        target = normalize_status(status)
        with self._connect() as conn:
            row = self._require_item(conn, item_key)
            if str(row["type"]) == EPIC and target not in TERMINAL_STATUSES:
                raise InvalidTransitionError(
                    "epic status is derived from children; only 'done' and "
                    "'canceled' can be set manually (to force-close)"
                )
            conn.execute(
                "UPDATE items SET status = ?, updated_at = ? WHERE id = ?",
                (target, now_ms(), item_key),
            )
            item = self._get(conn, item_key)
        logger.debug("status %s -> %s", item_key, target)
        return item

    def set_parent(self, item_id: str, parent_id: str) -> dict[str, Any]:
        item_key = item_id.strip()
        parent_key = parent_id.strip()
        with self._connect() as conn:
            row = self._require_item(conn, item_key)
            self._check_parent(
                conn,
                parent_key,
                item_id=item_key,
                item_type=str(row["type"]),
            )
            if self._reaches(conn, item_key, parent_key):
                raise DependencyCycleError(
                    f"moving {item_key} under {parent_key} would create a cycle: "
                    f"{item_key} already waits on {parent_key}"
                )
            conn.execute(
                "UPDATE items SET parent_id = ?, updated_at = ? WHERE id = ?",
                (parent_key, now_ms(), item_key),
            )
            return self._get(conn, item_key)

    def clear_parent(self, item_id: str) -> dict[str, Any]:
        item_key = item_id.strip()
        with self._connect() as conn:
            self._require_item(conn, item_key)
            conn.execute(
                "UPDATE items SET parent_id = NULL, updated_at = ? WHERE id = ?",
                (now_ms(), item_key),
            )
            return self._get(conn, item_key)

    def delete(self, item_id: str) -> dict[str, Any]:
        item_key = item_id.strip()
        with self._connect() as conn:
            self._require_item(conn, item_key)
            edge_count = int(
                conn.execute(
                    "SELECT COUNT(*) FROM deps WHERE item_id = ? OR depends_on = ?",
                    (item_key, item_key),
                ).fetchone()[0]
            )
            log_count = int(
                conn.execute(
                    "SELECT COUNT(*) FROM logs WHERE item_id = ?",
                    (item_key,),
                ).fetchone()[0]
            )
            conn.execute("DELETE FROM items WHERE id = ?", (item_key,))

        logger.info(
            "deleted %s with %d dependency edge(s) and %d log(s)",
            item_key,
            edge_count,
            log_count,
        )
        return {
            "id": item_key,
            "deleted": True,
            "edges_removed": edge_count,
            "logs_removed": log_count,
        }

    def add_label(self, item_id: str, label: str) -> dict[str, Any]:
        item_key = item_id.strip()
        value = label.strip()
        if not item_key or not value:
            raise ValueError("item id and label are required")
        with self._connect() as conn:
            self._require_item(conn, item_key)
            conn.execute(
                "INSERT OR IGNORE INTO item_labels(item_id, label) VALUES(?, ?)",
                (item_key, value),
            )
            conn.execute(
                "UPDATE items SET updated_at = ? WHERE id = ?",
                (now_ms(), item_key),
            )
            return self._get(conn, item_key)

    def remove_label(self, item_id: str, label: str) -> dict[str, Any]:
        item_key = item_id.strip()
        value = label.strip()
        if not item_key or not value:
            raise ValueError("item id and label are required")
        with self._connect() as conn:
            self._require_item(conn, item_key)
            conn.execute(
                "DELETE FROM item_labels WHERE item_id = ? AND label = ?",
                (item_key, value),
            )
            conn.execute(
                "UPDATE items SET updated_at = ? WHERE id = ?",
                (now_ms(), item_key),
            )
            return self._get(conn, item_key)

    def add_log(self, item_id: str, message: str) -> dict[str, Any]:
        item_key = item_id.strip()
        body = message.strip()
        if not body:
            raise ValueError("log message cannot be empty")
        now = now_ms()
        with self._connect() as conn:
            self._require_item(conn, item_key)
            cur = conn.execute(
                "INSERT INTO logs(item_id, message, created_at) VALUES(?, ?, ?)",
                (item_key, body, now),
            )
            conn.execute(
                "UPDATE items SET updated_at = ? WHERE id = ?",
                (now, item_key),
            )
            log_id = int(cur.lastrowid)
        return {"id": log_id, "item_id": item_key, "message": body, "created_at": now}

    def logs(self, item_id: str) -> list[dict[str, Any]]:
        item_key = item_id.strip()
        if not self.db_path.exists():
            return []
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, item_id, message, created_at
                FROM logs
                WHERE item_id = ?
                ORDER BY created_at ASC, id ASC
                """,
                (item_key,),
            ).fetchall()
        return [
            {
                "id": int(row["id"]),
                "item_id": str(row["item_id"]),
                "message": str(row["message"]),
                "created_at": int(row["created_at"]),
            }
            for row in rows
        ]

    def projects(self) -> list[str]:
        if not self.db_path.exists():
            return []
        with self._connect() as conn:
            rows = conn.execute("SELECT name FROM projects ORDER BY name").fetchall()
        return [str(row["name"]) for row in rows]

    def _reaches(self, conn: sqlite3.Connection, start: str, goal: str) -> bool:
        """True when ``start`` waits on ``goal`` through any chain of edges.

        Edges are dependencies (item waits on target) and parent links (an
        epic waits on each direct child).
        """
        row = conn.execute(
            """
            WITH RECURSIVE waits(src, dst) AS (
                SELECT item_id, depends_on FROM deps
                UNION ALL
                SELECT parent_id, id FROM items WHERE parent_id IS NOT NULL
            ),
            reach(id) AS (
                SELECT ?
                UNION
                SELECT w.dst
                FROM waits w
                JOIN reach ON w.src = reach.id
            )
            SELECT 1 FROM reach WHERE id = ?
            """,
            (start, goal),
        ).fetchone()
        return row is not None

    def add_dependency(self, item_id: str, depends_on: str) -> dict[str, Any]:
        item_key = item_id.strip()
        target_key = depends_on.strip()
        if not item_key or not target_key:
            raise ValueError("item id and dependency id are required")

        with self._connect() as conn:
            found = conn.execute(
                "SELECT COUNT(*) FROM items WHERE id IN (?, ?)",
                (item_key, target_key),
            ).fetchone()[0]
            expected = 1 if item_key == target_key else 2
            if int(found) != expected:
                raise NotFoundError(
                    f"one or both items not found: {item_key}, {target_key} "
                    "(use 'prog list' to see available items)"
                )
            if item_key == target_key:
                raise DependencyCycleError("an item cannot depend on itself")

            if self._reaches(conn, target_key, item_key):
                raise DependencyCycleError(
                    f"dependency {item_key} -> {target_key} would create a cycle"
                )

            now = now_ms()
            cur = conn.execute(
                """
                INSERT OR IGNORE INTO deps(item_id, depends_on, created_at)
                VALUES(?, ?, ?)
                """,
                (item_key, target_key, now),
            )
            added = cur.rowcount > 0
            if added:
                conn.execute(
                    "UPDATE items SET updated_at = ? WHERE id = ?",
                    (now, item_key),
                )

        if added:
            logger.debug("dependency %s -> %s", item_key, target_key)
        return {"item_id": item_key, "depends_on": target_key, "added": added}

    def remove_dependency(self, item_id: str, depends_on: str) -> bool:
        item_key = item_id.strip()
        target_key = depends_on.strip()
        if not self.db_path.exists():
            return False
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM deps WHERE item_id = ? AND depends_on = ?",
                (item_key, target_key),
            )
            return cur.rowcount > 0

    def dependencies_of(self, item_id: str) -> set[str]:
        item_key = item_id.strip()
        if not self.db_path.exists():
            raise item_not_found(item_key)
        with self._connect() as conn:
            self._require_item(conn, item_key)
            rows = conn.execute(
                "SELECT depends_on FROM deps WHERE item_id = ?",
                (item_key,),
            ).fetchall()
        return {str(row["depends_on"]) for row in rows}

    def dependents_of(self, target_id: str) -> set[str]:
        target_key = target_id.strip()
        if not self.db_path.exists():
            raise item_not_found(target_key)
        with self._connect() as conn:
            self._require_item(conn, target_key)
            rows = conn.execute(
                "SELECT item_id FROM deps WHERE depends_on = ?",
                (target_key,),
            ).fetchall()
        return {str(row["item_id"]) for row in rows}

    def is_unresolved(self, item_id: str) -> bool:
        """Evaluate the SQL resolution predicate for one dependency target."""
        item_key = item_id.strip()
        if not self.db_path.exists():
            raise item_not_found(item_key)
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {DEP_UNRESOLVED_SQL} AS unresolved FROM items target WHERE target.id = ?",
                (item_key,),
            ).fetchone()
        if row is None:
            raise item_not_found(item_key)
        return bool(row["unresolved"])

    def has_unmet_dependencies(self, item_id: str) -> bool:
        item_key = item_id.strip()
        if not self.db_path.exists():
            raise item_not_found(item_key)
        with self._connect() as conn:
            self._require_item(conn, item_key)
            row = conn.execute(
                f"""
                SELECT COUNT(*) AS unmet
                FROM deps d
                JOIN items target ON target.id = d.depends_on
                WHERE d.item_id = ? AND {DEP_UNRESOLVED_SQL}
                """,
                (item_key,),
            ).fetchone()
        return int(row["unmet"]) > 0

    def _edge_rows(
        self,
        conn: sqlite3.Connection,
        *,
        where: str,
        params: tuple[Any, ...],
    ) -> list[dict[str, Any]]:
        rows = conn.execute(
            f"""
            SELECT
                d.item_id,
                src.title AS item_title,
                src.type AS item_type,
                src.status AS item_status,
                d.depends_on,
                target.title AS depends_on_title,
                target.type AS depends_on_type,
                target.status AS depends_on_status,
                {DEP_UNRESOLVED_SQL} AS unresolved,
                d.created_at
            FROM deps d
            JOIN items src ON src.id = d.item_id
            JOIN items target ON target.id = d.depends_on
            WHERE {where}
            ORDER BY src.priority ASC, d.item_id ASC, d.depends_on ASC
            """,
            params,
        ).fetchall()

        epic_ids = sorted(
            {
                str(row["item_id"])
                for row in rows
                if str(row["item_type"]) == EPIC
            }
            | {
                str(row["depends_on"])
                for row in rows
                if str(row["depends_on_type"]) == EPIC
            }
        )
        children = self._child_statuses(conn, epic_ids)

        edges: list[dict[str, Any]] = []
        for row in rows:
            src_id = str(row["item_id"])
            dst_id = str(row["depends_on"])
            edges.append(
                {
                    "item_id": src_id,
                    "item_title": str(row["item_title"]),
                    "item_status": effective_status(
                        str(row["item_type"]),
                        str(row["item_status"]),
                        children.get(src_id, ()),
                        item_id=src_id,
                    ),
                    "depends_on": dst_id,
                    "depends_on_title": str(row["depends_on_title"]),
                    "depends_on_status": effective_status(
                        str(row["depends_on_type"]),
                        str(row["depends_on_status"]),
                        children.get(dst_id, ()),
                        item_id=dst_id,
                    ),
                    "unresolved": bool(row["unresolved"]),
                    "created_at": int(row["created_at"]),
                }
            )
        return edges

    def dependency_edges(self, project: str | None = None) -> list[dict[str, Any]]:
        if not self.db_path.exists():
            return []
        with self._connect() as conn:
            if project:
                return self._edge_rows(conn, where="src.project = ?", params=(project,))
            return self._edge_rows(conn, where="1 = 1", params=())

    def edges_touching(self, item_id: str) -> list[dict[str, Any]]:
        item_key = item_id.strip()
        if not self.db_path.exists():
            return []
        with self._connect() as conn:
            return self._edge_rows(
                conn,
                where="d.item_id = ? OR d.depends_on = ?",
                params=(item_key, item_key),
            )

    def _ready_where_clauses(
        self,
        *,
        project: str | None,
        required_labels: list[str],
    ) -> tuple[list[str], list[Any]]:
        clauses: list[str] = [
            "i.type = ?",
            "i.status = ?",
            f"NOT {_HAS_UNMET_SQL}",
        ]
        params: list[Any] = [TASK, OPEN]
        if project:
            clauses.append("i.project = ?")
            params.append(project)
        for index, required_label in enumerate(required_labels):
            label_alias = f"l{index}"
            clauses.append(
                f"""
                EXISTS (
                    SELECT 1
                    FROM item_labels {label_alias}
                    WHERE {label_alias}.item_id = i.id
                      AND {label_alias}.label = ?
                )
                """
            )
            params.append(required_label)
        return clauses, params

    def ready(
        self,
        *,
        project: str | None = None,
        labels: list[str] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Open tasks whose dependencies are all resolved.

        Epics are never ready. Ordered by priority, then creation time.
        """
        if not self.db_path.exists():
            return []
        required_labels = sorted({v.strip() for v in (labels or []) if v.strip()})
        where, params = self._ready_where_clauses(
            project=project.strip() if project else None,
            required_labels=required_labels,
        )
        query = f"SELECT {_ITEM_COLUMNS} FROM items i WHERE {' AND '.join(where)} {_ORDER_BY}"
        if limit is not None:
            query += " LIMIT ?"
            params.append(max(1, int(limit)))

        with self._connect() as conn:
            rows = conn.execute(query, tuple(params)).fetchall()
            return self._materialize(conn, rows)
