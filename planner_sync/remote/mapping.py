"""
Field mapping between planner models and remote table rows

Models speak camelCase JSON, the remote tables use snake_case columns and a
few renamed ones (journal ``sections``/``week``/``year``, recurring task
``source_type``/``is_active``).
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic.alias_generators import to_snake

from planner_sync.models.entities import (
    AppSettings,
    Category,
    DailyPlan,
    JournalEntry,
    Project,
    RecurringTask,
    Task,
    WorkSchedule,
)

TASKS_TABLE = "tasks"
PROJECTS_TABLE = "projects"
CATEGORIES_TABLE = "categories"
RECURRING_TASKS_TABLE = "recurring_tasks"
DAILY_PLANS_TABLE = "daily_plans"
JOURNAL_ENTRIES_TABLE = "journal_entries"
WORK_SCHEDULES_TABLE = "work_schedules"
SETTINGS_TABLE = "app_settings"

PROJECT_COLUMNS = ("id", "name", "description", "color", "order", "created_at", "updated_at")

CATEGORY_COLUMNS = ("id", "name", "color", "created_at", "updated_at")

# Task columns named exactly like the model's snake_case fields
TASK_COLUMNS = (
    "id",
    "title",
    "description",
    "completed",
    "archived",
    "due_date",
    "created_at",
    "updated_at",
    "project_id",
    "category_ids",
    "tags",
    "priority",
    "energy_level",
    "size",
    "estimated_minutes",
    "parent_task_id",
    "subtasks",
    "depends_on",
    "depended_on_by",
    "is_recurring",
    "recurrence_pattern",
    "recurrence_interval",
    "recurring_task_id",
    "project_phase",
    "phase_order",
    "deleted_at",
    "show_subtasks",
    "braindump_source",
    "completed_at",
    "ai_processed",
    "urgency",
    "importance",
    "emotional_weight",
    "energy_required",
)


def date_only(value: Any) -> Optional[str]:
    """Keep the YYYY-MM-DD part of a date or datetime string (or epoch ms)"""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc).date().isoformat()
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str):
        return None
    if "T" in value:
        return value.split("T")[0]
    return value


def _columns(model: Any, columns, owner_id: Optional[str]) -> Dict[str, Any]:
    row = {column: getattr(model, column) for column in columns}
    if owner_id is not None:
        row["user_id"] = owner_id
    return row


def _pick(row: Dict[str, Any], columns) -> Dict[str, Any]:
    return {column: row[column] for column in columns if column in row}


# ============ Projects / Categories ============


def project_to_db(project: Project, owner_id: Optional[str] = None) -> Dict[str, Any]:
    return _columns(project, PROJECT_COLUMNS, owner_id)


def project_from_db(row: Dict[str, Any]) -> Project:
    return Project.model_validate(_pick(row, PROJECT_COLUMNS))


def category_to_db(category: Category, owner_id: Optional[str] = None) -> Dict[str, Any]:
    return _columns(category, CATEGORY_COLUMNS, owner_id)


def category_from_db(row: Dict[str, Any]) -> Category:
    return Category.model_validate(_pick(row, CATEGORY_COLUMNS))


# ============ Tasks ============


def task_to_db(task: Task, owner_id: Optional[str] = None) -> Dict[str, Any]:
    row = _columns(task, TASK_COLUMNS, owner_id)
    row["due_date"] = date_only(task.due_date)
    return row


def task_from_db(row: Dict[str, Any]) -> Task:
    data = _pick(row, TASK_COLUMNS)
    if data.get("due_date"):
        data["due_date"] = date_only(data["due_date"])
    return Task.model_validate(data)


def updates_to_db(updates: Dict[str, Any]) -> Dict[str, Any]:
    """Translate a partial camelCase update into column names"""
    row = {to_snake(key): value for key, value in updates.items()}
    if "due_date" in row:
        row["due_date"] = date_only(row["due_date"])
    return row


def recurring_task_to_db(
    recurring_task: RecurringTask, owner_id: Optional[str] = None
) -> Dict[str, Any]:
    source = recurring_task.source if isinstance(recurring_task.source, dict) else {}
    row = {
        "id": recurring_task.id,
        "title": recurring_task.title,
        "description": recurring_task.description,
        "pattern": recurring_task.pattern,
        "source_type": source.get("type"),
        "project_id": recurring_task.project_id,
        "category_ids": recurring_task.category_ids,
        "tags": recurring_task.tags,
        "priority": recurring_task.priority,
        "energy_level": recurring_task.energy_level,
        "estimated_minutes": recurring_task.estimated_minutes,
        "is_active": recurring_task.active,
        "next_due": recurring_task.next_due,
        "last_generated": recurring_task.last_generated,
        "created_at": recurring_task.created_at,
        "updated_at": recurring_task.updated_at,
    }
    if owner_id is not None:
        row["user_id"] = owner_id
    return row


def recurring_task_from_db(row: Dict[str, Any]) -> RecurringTask:
    return RecurringTask(
        id=row.get("id"),
        title=row.get("title"),
        description=row.get("description"),
        pattern=row.get("pattern"),
        source={"type": row.get("source_type")},
        project_id=row.get("project_id"),
        category_ids=row.get("category_ids"),
        tags=row.get("tags"),
        priority=row.get("priority"),
        energy_level=row.get("energy_level"),
        estimated_minutes=row.get("estimated_minutes"),
        active=row.get("is_active", True) is not False,
        next_due=row.get("next_due"),
        last_generated=row.get("last_generated"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


# ============ Daily plans ============


def daily_plan_to_db(plan: DailyPlan, owner_id: Optional[str] = None) -> Dict[str, Any]:
    row = {
        "id": plan.id,
        "date": plan.date,
        # Time blocks are stored as a JSON column in the app's own shape
        "time_blocks": [block.model_dump(mode="json") for block in plan.time_blocks],
    }
    if owner_id is not None:
        row["user_id"] = owner_id
    return row


def daily_plan_from_db(row: Dict[str, Any]) -> DailyPlan:
    return DailyPlan(
        id=row.get("id"), date=row.get("date"), time_blocks=row.get("time_blocks")
    )


# ============ Journal ============


def journal_entry_to_db(
    entry: JournalEntry, owner_id: Optional[str] = None
) -> Dict[str, Any]:
    row = {
        "id": entry.id,
        "date": entry.date,
        "title": entry.title,
        "content": entry.content,
        "sections": {entry.section: True} if entry.section else {},
        "mood": entry.mood,
        "mood_score": None,
        "week": entry.week_number,
        "year": entry.week_year,
        "tags": entry.tags,
        "created_at": entry.created_at,
        "updated_at": entry.updated_at,
    }
    if owner_id is not None:
        row["user_id"] = owner_id
    return row


def journal_entry_from_db(row: Dict[str, Any]) -> JournalEntry:
    sections = row.get("sections") or {}
    section = next((name for name, enabled in sections.items() if enabled), None)
    return JournalEntry(
        id=row.get("id"),
        date=row.get("date"),
        title=row.get("title"),
        content=row.get("content"),
        section=section,
        mood=row.get("mood"),
        week_number=row.get("week"),
        week_year=row.get("year"),
        tags=row.get("tags"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


# ============ Work schedules ============


def work_schedule_to_db(
    schedule: WorkSchedule, owner_id: Optional[str] = None
) -> Dict[str, Any]:
    row = {
        "id": schedule.id,
        "name": schedule.name,
        "shifts": [shift.model_dump(mode="json") for shift in schedule.shifts],
        "created_at": schedule.created_at,
        "updated_at": schedule.updated_at,
    }
    if owner_id is not None:
        row["user_id"] = owner_id
    return row


def work_schedule_from_db(row: Dict[str, Any]) -> WorkSchedule:
    return WorkSchedule(
        id=row.get("id"),
        name=row.get("name"),
        shifts=row.get("shifts"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


# ============ Settings ============


def settings_to_db(settings: AppSettings, owner_id: str, now: str) -> Dict[str, Any]:
    return {
        "user_id": owner_id,
        "settings": settings,
        "created_at": now,
        "updated_at": now,
    }


def settings_from_db(row: Dict[str, Any]) -> Optional[AppSettings]:
    return row.get("settings")
