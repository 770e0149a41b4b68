"""
Type protocols for the migration collaborators

This module provides Protocol classes that define the interfaces the migration
orchestrator depends on: a synchronous local store reader and an asynchronous,
owner-scoped remote persistence client.
Using Protocols allows for proper type checking without circular dependencies.
"""

from typing import Any, Dict, List, Optional, Protocol

from planner_sync.models.entities import (
    AppSettings,
    Category,
    DailyPlan,
    JournalEntry,
    Project,
    RecurringTask,
    RejectedItem,
    Task,
    WorkSchedule,
)

# ==================== Local Store Protocols ====================


class LocalStoreReaderProtocol(Protocol):
    """Protocol for reading the local planner snapshot"""

    def get_tasks(self) -> List[Task]:
        """Get all tasks"""
        ...

    def get_projects(self) -> List[Project]:
        """Get all projects"""
        ...

    def get_categories(self) -> List[Category]:
        """Get all categories"""
        ...

    def get_recurring_tasks(self) -> List[RecurringTask]:
        """Get all recurring task templates"""
        ...

    def get_daily_plans(self) -> List[DailyPlan]:
        """Get all daily plans"""
        ...

    def get_journal_entries(self) -> List[JournalEntry]:
        """Get all journal entries"""
        ...

    def get_work_schedule(self) -> Optional[WorkSchedule]:
        """Get the work schedule, if any"""
        ...

    def get_settings(self) -> Optional[AppSettings]:
        """Get the settings blob, if any"""
        ...

    def get_rejected_items(self) -> List[RejectedItem]:
        """Items the preceding reads could not parse"""
        ...


# ==================== Remote Store Protocols ====================


class RemoteStoreProtocol(Protocol):
    """Protocol for the remote persistence client used during migration

    Every call is scoped by ``owner_id`` and returns the stored
    representation, raising on failure.
    """

    async def create_project(self, project: Project, owner_id: str) -> Project:
        ...

    async def create_category(self, category: Category, owner_id: str) -> Category:
        ...

    async def create_task(self, task: Task, owner_id: str) -> Task:
        ...

    async def create_recurring_task(
        self, recurring_task: RecurringTask, owner_id: str
    ) -> RecurringTask:
        ...

    async def save_daily_plan(self, plan: DailyPlan, owner_id: str) -> DailyPlan:
        ...

    async def create_journal_entry(
        self, entry: JournalEntry, owner_id: str
    ) -> JournalEntry:
        ...

    async def create_work_schedule(
        self, schedule: WorkSchedule, owner_id: str
    ) -> WorkSchedule:
        ...

    async def save_settings(
        self, settings: AppSettings, owner_id: str
    ) -> AppSettings:
        ...

    async def patch(
        self, table: str, record_id: str, fields: Dict[str, Any], owner_id: str
    ) -> Dict[str, Any]:
        """Low-level partial update keyed by the store's column names"""
        ...


class DuplicateStoreProtocol(Protocol):
    """Protocol for the remote listing/deleting used by duplicate cleanup"""

    async def list_tasks(self, owner_id: str) -> List[Task]:
        ...

    async def list_projects(self, owner_id: str) -> List[Project]:
        ...

    async def list_categories(self, owner_id: str) -> List[Category]:
        ...

    async def delete_task(self, task_id: str, owner_id: str) -> None:
        ...

    async def delete_project(self, project_id: str, owner_id: str) -> None:
        ...

    async def delete_category(self, category_id: str, owner_id: str) -> None:
        ...
