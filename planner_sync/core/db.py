"""
SQLite local store
Keeps the planner collections as JSON documents under local-storage style keys
"""

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel as PydanticBaseModel, ValidationError

from planner_sync.core.logger import get_logger
from planner_sync.core.sqls import queries, schema
from planner_sync.models.base import EntityModel
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

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=EntityModel)

KEY_PREFIX = "ADHDplanner_"
TASKS_KEY = f"{KEY_PREFIX}tasks"
PROJECTS_KEY = f"{KEY_PREFIX}projects"
CATEGORIES_KEY = f"{KEY_PREFIX}categories"
RECURRING_TASKS_KEY = f"{KEY_PREFIX}recurringTasks"
DAILY_PLANS_KEY = f"{KEY_PREFIX}dailyPlans"
WORK_SCHEDULE_KEY = f"{KEY_PREFIX}workSchedule"
JOURNAL_ENTRIES_KEY = f"{KEY_PREFIX}journalEntries"
LAST_WEEKLY_REVIEW_KEY = f"{KEY_PREFIX}lastWeeklyReview"
SETTINGS_KEY = f"{KEY_PREFIX}settings"

EXPORT_VERSION = "1.1.0"

# Keys removed by reset_data()
RESET_KEYS = [
    TASKS_KEY,
    PROJECTS_KEY,
    CATEGORIES_KEY,
    DAILY_PLANS_KEY,
    WORK_SCHEDULE_KEY,
    JOURNAL_ENTRIES_KEY,
    LAST_WEEKLY_REVIEW_KEY,
]

# Keys holding data that a migration moves to the remote store
MIGRATED_KEYS = [
    TASKS_KEY,
    PROJECTS_KEY,
    CATEGORIES_KEY,
    RECURRING_TASKS_KEY,
    DAILY_PLANS_KEY,
    JOURNAL_ENTRIES_KEY,
    WORK_SCHEDULE_KEY,
    SETTINGS_KEY,
]


def _legacy_key(key: str) -> str:
    return key[len(KEY_PREFIX) :]


def _rejected(
    entity_type: str, index: Optional[int], raw: Any, error: ValidationError
) -> RejectedItem:
    source_id = raw.get("id") if isinstance(raw, dict) else None
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "invalid value")
    return RejectedItem(
        entity_type=entity_type,
        index=index,
        source_id=None if source_id is None else str(source_id),
        message=f"{location}: {message}" if location else message,
    )


def _dump(item: Any) -> Any:
    if isinstance(item, PydanticBaseModel):
        data = item.model_dump(mode="json", exclude_unset=True)
        # Keys written by other app versions are kept as they were read
        data.update(item.model_extra or {})
        return data
    return item


class LocalStore:
    """Local planner store

    Each collection is a JSON document stored under an ``ADHDplanner_`` key.
    Documents written by older app versions under the bare key are read once,
    copied to the prefixed key and removed.
    """

    def __init__(self, db_path: Optional[str] = None):
        # If no path is provided, use the unified data directory
        if db_path is None:
            from planner_sync.core.paths import get_local_store_path

            db_path = str(get_local_store_path())

        self.db_path = str(db_path)
        # Items the last read of each collection could not parse
        self._rejected: Dict[str, List[RejectedItem]] = {}
        self._init_database()

    def _init_database(self):
        """Initialize database"""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        with self.get_connection() as conn:
            cursor = conn.cursor()

            for table_sql in schema.ALL_TABLES:
                cursor.execute(table_sql)

            for index_sql in schema.ALL_INDEXES:
                cursor.execute(index_sql)

            conn.commit()

        logger.info(f"Local store initialization completed: {self.db_path}")

    @contextmanager
    def get_connection(self):
        """Get database connection context manager"""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row  # Enable column name access for results
        try:
            yield conn
        finally:
            conn.close()

    def execute_query(self, query: str, params: Tuple = ()) -> List[Dict[str, Any]]:
        """Execute query and return results"""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            rows = cursor.fetchall()
            return [dict(row) for row in rows]

    def execute_update(self, query: str, params: Tuple = ()) -> int:
        """Execute insert/update/delete and return affected row count"""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            conn.commit()
            return cursor.rowcount

    # ==================== Raw key/value access ====================

    def get_item(self, key: str) -> Optional[str]:
        """Get raw stored value for key"""
        results = self.execute_query(queries.SELECT_ITEM, (key,))
        if results:
            return results[0]["value"]
        return None

    def set_item(self, key: str, value: str) -> None:
        """Store raw value under key"""
        self.execute_update(queries.UPSERT_ITEM, (key, value))

    def remove_item(self, key: str) -> int:
        """Remove key, returns affected row count"""
        return self.execute_update(queries.DELETE_ITEM, (key,))

    def keys(self) -> List[str]:
        """List stored keys"""
        return [row["key"] for row in self.execute_query(queries.SELECT_ALL_KEYS)]

    def _read_document(self, key: str) -> Any:
        """Read and parse the JSON document under key

        Falls back to the legacy bare key and promotes it. Unreadable JSON is
        treated as absent.
        """
        raw = self.get_item(key)
        if raw is None:
            legacy_key = _legacy_key(key)
            legacy_raw = self.get_item(legacy_key)
            if legacy_raw is None:
                return None
            try:
                data = json.loads(legacy_raw)
            except json.JSONDecodeError as e:
                logger.warning(f"Unreadable legacy document {legacy_key}: {e}")
                return None
            self.set_item(key, legacy_raw)
            self.remove_item(legacy_key)
            logger.info(f"Promoted legacy key {legacy_key} -> {key}")
            return data

        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Unreadable document {key}: {e}")
            return None

    def _write_document(self, key: str, data: Any) -> None:
        self.set_item(key, json.dumps(data, ensure_ascii=False))

    def _read_collection(
        self, key: str, model: Type[ModelT], entity_type: str
    ) -> List[ModelT]:
        """Read a collection, recording the items that fail validation"""
        rejected: List[RejectedItem] = []
        self._rejected[entity_type] = rejected
        data = self._read_document(key)
        if not isinstance(data, list):
            if data is not None:
                logger.warning(f"Document {key} is not a list, ignoring")
            return []

        items: List[ModelT] = []
        for index, raw in enumerate(data):
            try:
                items.append(model.model_validate(raw))
            except ValidationError as e:
                logger.warning(
                    f"Unreadable {model.__name__} at {key}[{index}]: {e}"
                )
                rejected.append(_rejected(entity_type, index, raw, e))
        return items

    def _write_collection(self, key: str, items: Iterable[Any]) -> None:
        self._write_document(key, [_dump(item) for item in items])

    # ==================== Collections ====================

    def get_tasks(self) -> List[Task]:
        return self._read_collection(TASKS_KEY, Task, "tasks")

    def save_tasks(self, tasks: Iterable[Any]) -> None:
        self._write_collection(TASKS_KEY, tasks)

    def get_projects(self) -> List[Project]:
        return self._read_collection(PROJECTS_KEY, Project, "projects")

    def save_projects(self, projects: Iterable[Any]) -> None:
        self._write_collection(PROJECTS_KEY, projects)

    def get_categories(self) -> List[Category]:
        return self._read_collection(CATEGORIES_KEY, Category, "categories")

    def save_categories(self, categories: Iterable[Any]) -> None:
        self._write_collection(CATEGORIES_KEY, categories)

    def get_recurring_tasks(self) -> List[RecurringTask]:
        return self._read_collection(
            RECURRING_TASKS_KEY, RecurringTask, "recurringTasks"
        )

    def save_recurring_tasks(self, recurring_tasks: Iterable[Any]) -> None:
        self._write_collection(RECURRING_TASKS_KEY, recurring_tasks)

    def get_daily_plans(self) -> List[DailyPlan]:
        return self._read_collection(DAILY_PLANS_KEY, DailyPlan, "dailyPlans")

    def save_daily_plans(self, plans: Iterable[Any]) -> None:
        self._write_collection(DAILY_PLANS_KEY, plans)

    def get_journal_entries(self) -> List[JournalEntry]:
        return self._read_collection(
            JOURNAL_ENTRIES_KEY, JournalEntry, "journalEntries"
        )

    def save_journal_entries(self, entries: Iterable[Any]) -> None:
        self._write_collection(JOURNAL_ENTRIES_KEY, entries)

    def get_work_schedule(self) -> Optional[WorkSchedule]:
        self._rejected["workSchedules"] = []
        data = self._read_document(WORK_SCHEDULE_KEY)
        if not data:
            return None
        try:
            return WorkSchedule.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Unreadable work schedule: {e}")
            self._rejected["workSchedules"] = [
                _rejected("workSchedules", None, data, e)
            ]
            return None

    def save_work_schedule(self, schedule: Any) -> None:
        self._write_document(WORK_SCHEDULE_KEY, _dump(schedule))

    def get_rejected_items(self) -> List[RejectedItem]:
        """Items the most recent read of each collection could not parse"""
        return [item for items in self._rejected.values() for item in items]

    def get_settings(self) -> Optional[AppSettings]:
        data = self._read_document(SETTINGS_KEY)
        if not isinstance(data, dict):
            return None
        return data

    def save_settings(self, settings: AppSettings) -> None:
        self._write_document(SETTINGS_KEY, settings)

    def get_last_weekly_review_date(self) -> Optional[str]:
        """Stored as a bare string, not JSON"""
        value = self.get_item(LAST_WEEKLY_REVIEW_KEY)
        if value is None:
            legacy_key = _legacy_key(LAST_WEEKLY_REVIEW_KEY)
            value = self.get_item(legacy_key)
            if value is not None:
                self.set_item(LAST_WEEKLY_REVIEW_KEY, value)
                self.remove_item(legacy_key)
        return value

    def set_last_weekly_review_date(self, date_string: str) -> None:
        self.set_item(LAST_WEEKLY_REVIEW_KEY, date_string)

    # ==================== Snapshot helpers ====================

    def count_local_data(self) -> Dict[str, int]:
        """Per-type totals keyed like the migration progress record

        Unreadable items are counted too.
        """
        counts = {
            "tasks": len(self.get_tasks()),
            "projects": len(self.get_projects()),
            "categories": len(self.get_categories()),
            "recurringTasks": len(self.get_recurring_tasks()),
            "dailyPlans": len(self.get_daily_plans()),
            "journalEntries": len(self.get_journal_entries()),
            "workSchedules": 1 if self.get_work_schedule() else 0,
            "settings": 1 if self.get_settings() else 0,
        }
        for item in self.get_rejected_items():
            counts[item.entity_type] += 1
        return counts

    def has_data(self) -> bool:
        """Whether there is anything worth migrating (tasks, projects or categories)"""
        return bool(self.get_tasks() or self.get_projects() or self.get_categories())

    # ==================== Import / export ====================

    def export_data(self) -> str:
        """Export tasks, projects, categories, plans and schedule as JSON"""
        projects = self.get_projects()
        project_names = {p.id: p.name for p in projects}

        tasks = []
        for task in self.get_tasks():
            data = _dump(task)
            data["projectName"] = (
                project_names.get(task.project_id) if task.project_id else None
            )
            tasks.append(data)

        schedule = self.get_work_schedule()
        payload = {
            "tasks": tasks,
            "projects": [_dump(p) for p in projects],
            "categories": [_dump(c) for c in self.get_categories()],
            "dailyPlans": [_dump(p) for p in self.get_daily_plans()],
            "workSchedule": _dump(schedule) if schedule else None,
            "exportDate": datetime.now(timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "version": EXPORT_VERSION,
        }
        return json.dumps(payload, ensure_ascii=False)

    def import_data(self, json_data: str) -> bool:
        """Import an export produced by export_data()

        Returns False for empty or unparseable input, or when no known
        collection is present.
        """
        if not json_data or not json_data.strip():
            return False

        try:
            data = json.loads(json_data)
        except json.JSONDecodeError as e:
            logger.warning(f"Import rejected, invalid JSON: {e}")
            return False

        if not isinstance(data, dict):
            return False

        imported = False

        if isinstance(data.get("tasks"), list):
            cleaned = []
            for task in data["tasks"]:
                if isinstance(task, dict):
                    task = {k: v for k, v in task.items() if k != "projectName"}
                cleaned.append(task)
            self._write_document(TASKS_KEY, cleaned)
            imported = True

        if isinstance(data.get("projects"), list):
            self._write_document(PROJECTS_KEY, data["projects"])
            imported = True

        if isinstance(data.get("categories"), list):
            self._write_document(CATEGORIES_KEY, data["categories"])
            imported = True

        if isinstance(data.get("dailyPlans"), list):
            self._write_document(DAILY_PLANS_KEY, data["dailyPlans"])
            imported = True

        if data.get("workSchedule"):
            self._write_document(WORK_SCHEDULE_KEY, data["workSchedule"])
            imported = True

        if imported:
            logger.info("✓ Local data imported")
        else:
            logger.warning("Import rejected, no known collections present")
        return imported

    def reset_data(self) -> None:
        """Remove planner collections (settings are kept)"""
        for key in RESET_KEYS:
            self.remove_item(key)
        logger.info("Local data reset")

    def clear_migrated_data(self) -> None:
        """Remove every collection that a migration copies to the remote store"""
        for key in MIGRATED_KEYS:
            self.remove_item(key)
        logger.info("Local data cleared after migration")


# Global local store instance
local_store: Optional[LocalStore] = None


def get_local_store() -> LocalStore:
    """Get local store instance

    Read store path from local.path in config.toml,
    use default path ~/.config/adhd-planner/planner.db if not configured
    """
    global local_store
    if local_store is None:
        from planner_sync.config.loader import get_config
        from planner_sync.core.paths import get_local_store_path

        config = get_config()

        configured_path = config.get("local.path", "")

        if configured_path and str(configured_path).strip():
            db_path = str(configured_path)
        else:
            db_path = str(get_local_store_path())

        local_store = LocalStore(db_path)
        logger.info(f"✓ Local store initialized, path: {db_path}")

    return local_store


def set_local_store(store: Optional[LocalStore]) -> None:
    """Replace the global local store instance (None resets it)"""
    global local_store
    local_store = store
