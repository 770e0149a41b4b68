"""
Duplicate analysis and cleanup on the remote store

Re-running a migration creates a second copy of everything. Records are
grouped by a normalized content key; in each group the oldest record is
suggested to keep and the others can be deleted.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from planner_sync.core.logger import get_logger
from planner_sync.core.protocols import DuplicateStoreProtocol
from planner_sync.models.base import EntityModel
from planner_sync.models.entities import Category, Project, Task

from .timestamps import ensure_timestamp, now_timestamp

logger = get_logger(__name__)

DUPLICATE_KINDS = ("tasks", "projects", "categories")

_WHITESPACE = re.compile(r"\s+")


def normalize_text(value: Optional[str]) -> str:
    """Trim, lowercase and collapse whitespace"""
    return _WHITESPACE.sub(" ", (value or "").strip().lower())


def task_key(task: Task) -> str:
    return f"{normalize_text(task.title)}|{normalize_text(task.description)}"


def project_key(project: Project) -> str:
    return f"{normalize_text(project.name)}|{normalize_text(project.description)}"


def category_key(category: Category) -> str:
    return f"{normalize_text(category.name)}|{(category.color or '').lower()}"


def _created_sort_key(item: EntityModel):
    # Records without a usable createdAt sort after dated ones
    created = ensure_timestamp(getattr(item, "created_at", None))
    return (created is None, created or "")


@dataclass
class DuplicateGroup:
    kind: str
    key: str
    items: List[EntityModel]
    keep_id: Optional[str]

    @property
    def delete_ids(self) -> List[str]:
        return [item.id for item in self.items if item.id and item.id != self.keep_id]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "key": self.key,
            "keepId": self.keep_id,
            "items": [
                {
                    "id": item.id,
                    "label": item.label,
                    "createdAt": getattr(item, "created_at", None),
                }
                for item in self.items
            ],
        }


def group_duplicates(
    kind: str, items: Iterable[EntityModel], key_func: Callable[[Any], str]
) -> List[DuplicateGroup]:
    """Groups of two or more items sharing a key, oldest first"""
    buckets: Dict[str, List[EntityModel]] = {}
    for item in items:
        buckets.setdefault(key_func(item), []).append(item)

    groups = []
    for key, members in buckets.items():
        if len(members) < 2:
            continue
        members = sorted(members, key=_created_sort_key)
        groups.append(DuplicateGroup(kind, key, members, members[0].id))
    return groups


@dataclass
class DuplicateReport:
    tasks: List[DuplicateGroup] = field(default_factory=list)
    projects: List[DuplicateGroup] = field(default_factory=list)
    categories: List[DuplicateGroup] = field(default_factory=list)

    def groups(self, kind: str) -> List[DuplicateGroup]:
        if kind not in DUPLICATE_KINDS:
            raise ValueError(f"Unknown duplicate kind: {kind}")
        return getattr(self, kind)

    def duplicate_count(self, kind: Optional[str] = None) -> int:
        """Number of records that cleanup would delete"""
        kinds = [kind] if kind else DUPLICATE_KINDS
        return sum(len(group.delete_ids) for k in kinds for group in self.groups(k))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tasks": [g.to_dict() for g in self.tasks],
            "projects": [g.to_dict() for g in self.projects],
            "categories": [g.to_dict() for g in self.categories],
            "duplicateCount": self.duplicate_count(),
        }


@dataclass
class CleanupResult:
    deleted: Dict[str, int] = field(
        default_factory=lambda: dict.fromkeys(DUPLICATE_KINDS, 0)
    )
    failed: Dict[str, int] = field(
        default_factory=lambda: dict.fromkeys(DUPLICATE_KINDS, 0)
    )
    finished_at: Optional[str] = None

    @property
    def total_deleted(self) -> int:
        return sum(self.deleted.values())

    @property
    def partial(self) -> bool:
        return any(self.failed.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deleted": self.deleted,
            "failed": self.failed,
            "totalDeleted": self.total_deleted,
            "partial": self.partial,
            "finishedAt": self.finished_at,
        }


class DuplicateCleaner:
    """Finds and deletes duplicated tasks, projects and categories of one owner"""

    def __init__(self, remote: DuplicateStoreProtocol, owner_id: str):
        if not owner_id:
            raise ValueError("owner_id is required")
        self.remote = remote
        self.owner_id = owner_id

    async def analyze(self) -> DuplicateReport:
        tasks = await self.remote.list_tasks(self.owner_id)
        projects = await self.remote.list_projects(self.owner_id)
        categories = await self.remote.list_categories(self.owner_id)

        report = DuplicateReport(
            tasks=group_duplicates("tasks", tasks, task_key),
            projects=group_duplicates("projects", projects, project_key),
            categories=group_duplicates("categories", categories, category_key),
        )
        logger.info(
            f"Duplicate analysis: {len(report.tasks)} task groups, "
            f"{len(report.projects)} project groups, "
            f"{len(report.categories)} category groups"
        )
        return report

    async def cleanup(
        self,
        report: DuplicateReport,
        kinds: Iterable[str] = DUPLICATE_KINDS,
        keep: Optional[Dict[str, str]] = None,
    ) -> CleanupResult:
        """Delete every group member except the one kept

        Args:
            report: Result of analyze()
            kinds: Which of tasks/projects/categories to clean
            keep: Optional id to keep per group key, overriding the oldest

        Returns:
            Deleted and failed counts per kind; a failed delete does not stop
            the cleanup
        """
        keep = keep or {}
        result = CleanupResult()
        deleters = {
            "tasks": self.remote.delete_task,
            "projects": self.remote.delete_project,
            "categories": self.remote.delete_category,
        }

        for kind in kinds:
            delete = deleters.get(kind)
            if delete is None:
                raise ValueError(f"Unknown duplicate kind: {kind}")

            for group in report.groups(kind):
                override = keep.get(group.key)
                if override and any(item.id == override for item in group.items):
                    group.keep_id = override
                if not group.keep_id:
                    continue

                for record_id in group.delete_ids:
                    try:
                        await delete(record_id, self.owner_id)
                    except Exception as e:
                        result.failed[kind] += 1
                        logger.error(f"Failed to delete {kind} {record_id}: {e}")
                        continue
                    result.deleted[kind] += 1

        result.finished_at = now_timestamp()
        logger.info(f"Duplicate cleanup finished: {result.to_dict()}")
        return result
