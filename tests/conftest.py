"""
Shared fixtures: isolated config, a temporary local store and an in-memory
remote store that records every call
"""

import uuid
from typing import Any, Dict, List, Optional, Set

import pytest

from planner_sync.config.loader import reset_config
from planner_sync.core.db import LocalStore, set_local_store
from planner_sync.models.entities import (
    Category,
    DailyPlan,
    JournalEntry,
    Project,
    RecurringTask,
    Task,
    WorkSchedule,
)
from planner_sync.services.migration_service import set_migration_service

OWNER_ID = "7d3c1a52-2f4b-4c7e-9a11-5b0d2e6f8c90"


class FakeRemoteStore:
    """In-memory remote store

    ``fail_on`` maps a create method name to labels (title/name/date) whose
    create call raises; ``fail_patch`` holds target ids whose patch raises.
    """

    def __init__(self, fail_on: Optional[Dict[str, Set[str]]] = None):
        self.fail_on = fail_on or {}
        self.fail_patch: Set[str] = set()
        self.fail_delete: Set[str] = set()
        self.calls: List[str] = []
        self.projects: List[Project] = []
        self.categories: List[Category] = []
        self.tasks: List[Task] = []
        self.recurring_tasks: List[RecurringTask] = []
        self.daily_plans: List[DailyPlan] = []
        self.journal_entries: List[JournalEntry] = []
        self.work_schedules: List[WorkSchedule] = []
        self.settings: Dict[str, Any] = {}
        self.patches: List[Dict[str, Any]] = []
        self.deleted: List[str] = []
        self.closed = False

    def _record(self, method: str, label: str = "") -> None:
        self.calls.append(method)
        if label in self.fail_on.get(method, set()):
            raise RuntimeError(f"{method} rejected {label}")

    async def create_project(self, project, owner_id):
        self._record("create_project", project.name)
        self.projects.append(project)
        return project

    async def create_category(self, category, owner_id):
        self._record("create_category", category.name)
        self.categories.append(category)
        return category

    async def create_task(self, task, owner_id):
        self._record("create_task", task.title)
        self.tasks.append(task)
        return task

    async def create_recurring_task(self, recurring_task, owner_id):
        self._record("create_recurring_task", recurring_task.title)
        self.recurring_tasks.append(recurring_task)
        return recurring_task

    async def save_daily_plan(self, plan, owner_id):
        self._record("save_daily_plan", plan.date)
        self.daily_plans.append(plan)
        return plan

    async def create_journal_entry(self, entry, owner_id):
        self._record("create_journal_entry", entry.date)
        self.journal_entries.append(entry)
        return entry

    async def create_work_schedule(self, schedule, owner_id):
        self._record("create_work_schedule", schedule.name)
        self.work_schedules.append(schedule)
        return schedule

    async def save_settings(self, settings, owner_id):
        self._record("save_settings", "settings")
        self.settings = dict(settings)
        return settings

    async def patch(self, table, record_id, fields, owner_id):
        self.calls.append("patch")
        if record_id in self.fail_patch:
            raise RuntimeError(f"patch rejected {record_id}")
        self.patches.append(
            {"table": table, "id": record_id, "fields": fields, "owner": owner_id}
        )
        return {"id": record_id, **fields}

    def task_by_title(self, title: str) -> Task:
        return next(task for task in self.tasks if task.title == title)

    def patch_for(self, record_id: str) -> Optional[Dict[str, Any]]:
        return next((p["fields"] for p in self.patches if p["id"] == record_id), None)

    # Duplicate cleanup side

    async def list_tasks(self, owner_id):
        return list(self.tasks)

    async def list_projects(self, owner_id):
        return list(self.projects)

    async def list_categories(self, owner_id):
        return list(self.categories)

    async def _delete(self, items: List[Any], record_id: str) -> None:
        if record_id in self.fail_delete:
            raise RuntimeError(f"delete rejected {record_id}")
        self.deleted.append(record_id)
        items[:] = [item for item in items if item.id != record_id]

    async def delete_task(self, task_id, owner_id):
        await self._delete(self.tasks, task_id)

    async def delete_project(self, project_id, owner_id):
        await self._delete(self.projects, project_id)

    async def delete_category(self, category_id, owner_id):
        await self._delete(self.categories, category_id)

    async def aclose(self):
        self.closed = True


class MemoryReader:
    """Local store reader over plain lists"""

    def __init__(
        self,
        projects=None,
        categories=None,
        tasks=None,
        recurring_tasks=None,
        daily_plans=None,
        journal_entries=None,
        work_schedule=None,
        settings=None,
        rejected=None,
    ):
        self.projects = [Project.model_validate(p) for p in projects or []]
        self.categories = [Category.model_validate(c) for c in categories or []]
        self.tasks = [Task.model_validate(t) for t in tasks or []]
        self.recurring_tasks = [
            RecurringTask.model_validate(r) for r in recurring_tasks or []
        ]
        self.daily_plans = [DailyPlan.model_validate(d) for d in daily_plans or []]
        self.journal_entries = [
            JournalEntry.model_validate(j) for j in journal_entries or []
        ]
        self.work_schedule = (
            WorkSchedule.model_validate(work_schedule) if work_schedule else None
        )
        self.settings = settings
        self.rejected = list(rejected or [])

    def get_tasks(self):
        return self.tasks

    def get_projects(self):
        return self.projects

    def get_categories(self):
        return self.categories

    def get_recurring_tasks(self):
        return self.recurring_tasks

    def get_daily_plans(self):
        return self.daily_plans

    def get_journal_entries(self):
        return self.journal_entries

    def get_work_schedule(self):
        return self.work_schedule

    def get_settings(self):
        return self.settings

    def get_rejected_items(self):
        return self.rejected


def random_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the config loader at a throwaway file"""
    config_file = tmp_path / "config.toml"
    config_file.write_text(
        "\n".join(
            [
                "[local]",
                f"path = '{tmp_path / 'planner.db'}'",
                "",
                "[remote]",
                'url = "https://example.supabase.co"',
                'api_key = "anon-key"',
                f'owner_id = "{OWNER_ID}"',
                "",
                "[migration]",
                "clear_local_after = false",
                "",
                "[logging]",
                'level = "DEBUG"',
                f"logs_dir = '{tmp_path / 'logs'}'",
                "",
            ]
        ),
        encoding="utf-8",
    )
    monkeypatch.setenv("ADHD_PLANNER_CONFIG", str(config_file))
    reset_config()
    set_local_store(None)
    set_migration_service(None)
    yield config_file
    reset_config()
    set_local_store(None)
    set_migration_service(None)


@pytest.fixture
def store(tmp_path) -> LocalStore:
    return LocalStore(str(tmp_path / "local.db"))


@pytest.fixture
def remote() -> FakeRemoteStore:
    return FakeRemoteStore()
