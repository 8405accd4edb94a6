"""Query and command surface over the item and learning stores.

The CLI talks to :class:`Tracker` only. Read methods always return
effective statuses; epic statuses are derived on every call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .config import ProgConfig
from .derive import partition_children
from .errors import InvalidTransitionError
from .model import (
    BLOCKED,
    CANCELED,
    DONE,
    EPIC,
    IN_PROGRESS,
    OPEN,
    REVIEWING,
    STATUSES,
)
from .stores.items import ItemStore, ListFilter
from .stores.learnings import LearningStore

logger = logging.getLogger(__name__)

RECENT_DONE_LIMIT = 3
BLOCKED_PREFIX = "Blocked: "
CANCELED_PREFIX = "Canceled: "


@dataclass
class StatusReport:
    project: str
    counts: dict[str, int] = field(
        default_factory=lambda: {status: 0 for status in STATUSES}
    )
    ready: list[dict[str, Any]] = field(default_factory=list)
    in_progress: list[dict[str, Any]] = field(default_factory=list)
    reviewing: list[dict[str, Any]] = field(default_factory=list)
    blocked: list[dict[str, Any]] = field(default_factory=list)
    recent_done: list[dict[str, Any]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    @property
    def ready_count(self) -> int:
        return len(self.ready)

    def to_dict(self) -> dict[str, Any]:
        return {
            "project": self.project,
            "total": self.total,
            "counts": dict(self.counts),
            "ready_count": self.ready_count,
            "ready": self.ready,
            "in_progress": self.in_progress,
            "reviewing": self.reviewing,
            "blocked": self.blocked,
            "recent_done": self.recent_done,
        }


@dataclass
class Tracker:
    items: ItemStore
    learnings: LearningStore

    @classmethod
    def from_config(cls, config: ProgConfig) -> "Tracker":
        return cls(
            items=ItemStore(config.db_path),
            learnings=LearningStore(config.db_path),
        )

    def get_effective_status(self, item_id: str) -> str:
        return self.items.effective_status(item_id)

    def list_ready(
        self,
        project: str | None = None,
        labels: list[str] | None = None,
        *,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        return self.items.ready(project=project, labels=labels, limit=limit)

    def has_unmet_dependencies(self, item_id: str) -> bool:
        return self.items.has_unmet_dependencies(item_id)

    def project_status_report(self, project: str | None = None) -> StatusReport:
        scope = project or ""
        items = self.items.list(ListFilter(project=project or None))
        report = StatusReport(project=scope)
        report.counts = partition_children(
            (str(item["status"]) for item in items),
            epic_id=f"project {scope!r}" if scope else "all projects",
        )

        report.ready = self.list_ready(project or None)
        report.in_progress = [item for item in items if item["status"] == IN_PROGRESS]
        report.reviewing = [item for item in items if item["status"] == REVIEWING]

        for item in items:
            if item["status"] != BLOCKED:
                continue
            report.blocked.append({**item, "reason": self._block_reason(str(item["id"]))})

        done = [item for item in items if item["status"] == DONE]
        done.sort(key=lambda item: int(item["updated_at"]), reverse=True)
        report.recent_done = done[:RECENT_DONE_LIMIT]
        return report

    def _block_reason(self, item_id: str) -> str:
        # Epics blocked by derivation have no block entry of their own.
        for entry in reversed(self.items.logs(item_id)):
            if str(entry["message"]).startswith(BLOCKED_PREFIX):
                return str(entry["message"])
        return ""

    def start(self, item_id: str) -> dict[str, Any]:
        return self.items.update_status(item_id, IN_PROGRESS)

    def review(self, item_id: str) -> dict[str, Any]:
        current = self.items.get(item_id)
        if current["status"] != IN_PROGRESS:
            raise InvalidTransitionError(
                f"can only move in_progress items to review, "
                f"{current['id']} is {current['status']}"
            )
        return self.items.update_status(item_id, REVIEWING)

    def done(self, item_id: str) -> dict[str, Any]:
        return self.items.update_status(item_id, DONE)

    def cancel(self, item_id: str, reason: str | None = None) -> dict[str, Any]:
        item = self.items.update_status(item_id, CANCELED)
        if reason and reason.strip():
            self.items.add_log(item_id, f"{CANCELED_PREFIX}{reason.strip()}")
        return item

    def block(self, item_id: str, reason: str) -> dict[str, Any]:
        if not reason.strip():
            raise ValueError("a reason is required to block an item")
        item = self.items.update_status(item_id, BLOCKED)
        self.items.add_log(item_id, f"{BLOCKED_PREFIX}{reason.strip()}")
        return item

    def reopen(self, item_id: str) -> dict[str, Any]:
        return self.items.update_status(item_id, OPEN)

    def show(self, item_id: str) -> dict[str, Any]:
        item = self.items.get(item_id)
        key = str(item["id"])
        edges = self.items.edges_touching(key)
        detail = {
            **item,
            "logs": self.items.logs(key),
            "dependencies": [
                {
                    "id": edge["depends_on"],
                    "title": edge["depends_on_title"],
                    "status": edge["depends_on_status"],
                    "unresolved": edge["unresolved"],
                }
                for edge in edges
                if edge["item_id"] == key
            ],
            "dependents": [
                {
                    "id": edge["item_id"],
                    "title": edge["item_title"],
                    "status": edge["item_status"],
                }
                for edge in edges
                if edge["depends_on"] == key
            ],
            "has_unmet_dependencies": any(
                edge["unresolved"] for edge in edges if edge["item_id"] == key
            ),
            "children": (
                self.items.children(key) if item["type"] == EPIC else []
            ),
            "related_concepts": [
                concept["name"] for concept in self.learnings.related_concepts(item)
            ],
        }
        logger.debug("show %s: %d edge(s)", key, len(edges))
        return detail
