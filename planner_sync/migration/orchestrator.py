"""
Migration orchestrator
Moves the local planner snapshot into the remote store

Entity types are migrated strictly in order, one awaited call at a time:
projects, categories, tasks (create pass, then relationship pass), recurring
tasks, daily plans, journal entries, work schedule, settings. A failure
aborts the run except inside the task step, where a failing task is skipped.
Source ids are replaced by fresh target ids and every reference is rewritten
through the IdRemapper; a reference that cannot be resolved is cleared.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from planner_sync.core.logger import get_logger
from planner_sync.core.protocols import LocalStoreReaderProtocol, RemoteStoreProtocol
from planner_sync.models.entities import (
    AppSettings,
    Category,
    DailyPlan,
    JournalEntry,
    Project,
    RecurringTask,
    RejectedItem,
    Task,
    TimeBlock,
    WorkSchedule,
)
from planner_sync.remote.mapping import TASKS_TABLE

from .errors import FatalMigrationError, MigrationCancelled
from .progress import EntityType, MigrationProgress
from .remapper import IdRemapper, is_valid_target_id
from .timestamps import ensure_timestamp, now_timestamp, timestamp_or_now

logger = get_logger(__name__)

CANCELLED_MESSAGE = "Migration cancelled"


class CancellationToken:
    """Checked by the orchestrator before each step and each item"""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class Diagnostic:
    """A non-fatal problem met during the run"""

    entity_type: str
    source_id: Optional[str]
    label: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entityType": self.entity_type,
            "sourceId": self.source_id,
            "label": self.label,
            "message": self.message,
        }


@dataclass
class MigrationReport:
    """Outcome of one run"""

    success: bool
    error: Optional[str]
    cancelled: bool
    progress: Dict[str, Any]
    diagnostics: List[Diagnostic] = field(default_factory=list)
    mapping_counts: Dict[str, int] = field(default_factory=dict)
    started_at: Optional[str] = None
    finished_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "error": self.error,
            "cancelled": self.cancelled,
            "progress": self.progress,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "mappingCounts": self.mapping_counts,
            "startedAt": self.started_at,
            "finishedAt": self.finished_at,
        }


@dataclass
class MigrationSnapshot:
    """Local data read once at the start of a run"""

    projects: List[Project] = field(default_factory=list)
    categories: List[Category] = field(default_factory=list)
    tasks: List[Task] = field(default_factory=list)
    recurring_tasks: List[RecurringTask] = field(default_factory=list)
    daily_plans: List[DailyPlan] = field(default_factory=list)
    journal_entries: List[JournalEntry] = field(default_factory=list)
    work_schedule: Optional[WorkSchedule] = None
    settings: Optional[AppSettings] = None
    rejected: List[RejectedItem] = field(default_factory=list)

    @classmethod
    def read(cls, reader: LocalStoreReaderProtocol) -> "MigrationSnapshot":
        return cls(
            projects=list(reader.get_projects() or []),
            categories=list(reader.get_categories() or []),
            tasks=list(reader.get_tasks() or []),
            recurring_tasks=list(reader.get_recurring_tasks() or []),
            daily_plans=list(reader.get_daily_plans() or []),
            journal_entries=list(reader.get_journal_entries() or []),
            work_schedule=reader.get_work_schedule(),
            settings=reader.get_settings(),
            # Collected by the reads above
            rejected=list(reader.get_rejected_items() or []),
        )

    def rejected_for(self, entity_type: EntityType) -> List[RejectedItem]:
        return [
            item for item in self.rejected if item.entity_type == entity_type.value
        ]

    def totals(self) -> Dict[str, int]:
        """Per-type totals, unreadable items included"""
        totals = {
            EntityType.PROJECTS.value: len(self.projects),
            EntityType.CATEGORIES.value: len(self.categories),
            EntityType.TASKS.value: len(self.tasks),
            EntityType.RECURRING_TASKS.value: len(self.recurring_tasks),
            EntityType.DAILY_PLANS.value: len(self.daily_plans),
            EntityType.JOURNAL_ENTRIES.value: len(self.journal_entries),
            EntityType.WORK_SCHEDULES.value: 1 if self.work_schedule else 0,
            EntityType.SETTINGS.value: 1 if self.settings else 0,
        }
        for item in self.rejected:
            totals[item.entity_type] = totals.get(item.entity_type, 0) + 1
        return totals

    def has_data(self) -> bool:
        return bool(self.tasks or self.projects or self.categories)


def _error_text(exc: Exception) -> str:
    return str(exc) or exc.__class__.__name__


class MigrationOrchestrator:
    """Runs one local-to-remote migration

    Args:
        reader: Local store reader (snapshot source)
        remote: Remote persistence client
        owner_id: Owner every remote row is scoped to
        progress: Progress record to update (a fresh one is created if None),
            reset at the start of every run
        remapper: Id tables for the next run (each run gets a fresh one if None)
        cancel_token: Optional cancellation token
    """

    def __init__(
        self,
        reader: LocalStoreReaderProtocol,
        remote: RemoteStoreProtocol,
        owner_id: str,
        progress: Optional[MigrationProgress] = None,
        remapper: Optional[IdRemapper] = None,
        cancel_token: Optional[CancellationToken] = None,
    ):
        if not owner_id:
            raise ValueError("owner_id is required")

        self.reader = reader
        self.remote = remote
        self.owner_id = owner_id
        self.progress = progress or MigrationProgress()
        self.remapper = remapper or IdRemapper()
        self._next_remapper = remapper
        self.cancel_token = cancel_token or CancellationToken()
        self.diagnostics: List[Diagnostic] = []
        self.snapshot: Optional[MigrationSnapshot] = None
        self._current: Optional[EntityType] = None
        self._created_tasks: List[Tuple[Task, str]] = []

    # ==================== Run ====================

    async def run(self) -> MigrationReport:
        """Run the whole migration, never raises for store failures"""
        started_at = now_timestamp()
        self.diagnostics = []
        self.remapper = self._next_remapper or IdRemapper()
        self._next_remapper = None
        self._current = None
        self.progress.reset()

        self.snapshot = MigrationSnapshot.read(self.reader)
        for key, total in self.snapshot.totals().items():
            self.progress.set_total(EntityType(key), total)

        logger.info(
            f"Starting migration for owner {self.owner_id}: {self.snapshot.totals()}"
        )

        steps: List[Callable[[], Awaitable[None]]] = [
            self._migrate_projects,
            self._migrate_categories,
            self._migrate_tasks,
            self._migrate_recurring_tasks,
            self._migrate_daily_plans,
            self._migrate_journal_entries,
            self._migrate_work_schedule,
            self._migrate_settings,
        ]

        error: Optional[str] = None
        cancelled = False

        try:
            for step in steps:
                await step()
            self._current = None
        except FatalMigrationError as e:
            error = e.message
            logger.error(f"Migration aborted during {e.entity_type}: {e.message}")
            self.progress.fail(EntityType(e.entity_type), e.message)
        except MigrationCancelled as e:
            error = CANCELLED_MESSAGE
            cancelled = True
            logger.warning(f"Migration cancelled during {e.entity_type}")
            if e.entity_type:
                self.progress.fail(EntityType(e.entity_type), CANCELLED_MESSAGE)

        report = MigrationReport(
            success=error is None,
            error=error,
            cancelled=cancelled,
            progress=self.progress.to_dict(),
            diagnostics=list(self.diagnostics),
            mapping_counts={t.value: self.remapper.count(t.value) for t in EntityType},
            started_at=started_at,
            finished_at=now_timestamp(),
        )

        if report.success:
            logger.info(
                f"✓ Migration completed with {len(self.diagnostics)} diagnostics: "
                f"{report.mapping_counts}"
            )
        return report

    # ==================== Helpers ====================

    def _begin(self, entity_type: EntityType) -> None:
        self._current = entity_type
        self._check_cancelled()
        self.progress.start(entity_type)
        for item in self.snapshot.rejected_for(entity_type):
            where = f" at index {item.index}" if item.index is not None else ""
            self._diagnose(
                entity_type,
                item.source_id,
                item.source_id or entity_type.value,
                f"Unreadable {entity_type.value} item{where} not migrated: {item.message}",
            )

    def _check_cancelled(self) -> None:
        if self.cancel_token.cancelled:
            raise MigrationCancelled(self._current.value if self._current else None)

    def _diagnose(
        self,
        entity_type: EntityType,
        source_id: Optional[str],
        label: str,
        message: str,
    ) -> None:
        logger.warning(f"[{entity_type.value}] {message}")
        self.diagnostics.append(Diagnostic(entity_type.value, source_id, label, message))

    def _is_repeat(
        self,
        entity_type: EntityType,
        source_id: Optional[str],
        seen: Set[str],
        label: str,
    ) -> bool:
        """Skip a second entity carrying an already used source id"""
        if not source_id:
            return False
        if source_id in seen:
            self._diagnose(
                entity_type,
                source_id,
                label,
                f'Duplicate id {source_id} for "{label}", skipped',
            )
            return True
        seen.add(source_id)
        return False

    def _resolve_project(self, project_id: Optional[str]) -> Optional[str]:
        return self.remapper.resolve(EntityType.PROJECTS.value, project_id)

    def _resolve_categories(self, category_ids: List[str]) -> List[str]:
        resolved = []
        for category_id in category_ids:
            target = self.remapper.resolve(EntityType.CATEGORIES.value, category_id)
            if target:
                resolved.append(target)
        return resolved

    def _resolve_task(self, task_id: Optional[str]) -> Optional[str]:
        return self.remapper.resolve(EntityType.TASKS.value, task_id)

    async def _create_or_abort(
        self,
        entity_type: EntityType,
        source_id: Optional[str],
        payload: Any,
        create: Callable[[Any, str], Awaitable[Any]],
        failure: str,
    ) -> None:
        """Submit one entity of a fail-fast type"""
        try:
            await create(payload, self.owner_id)
        except Exception as e:
            self.remapper.discard(entity_type.value, source_id)
            raise FatalMigrationError(
                entity_type.value, f"{failure}: {_error_text(e)}", source_id
            ) from e

        self.remapper.commit(entity_type.value, source_id)
        self.progress.increment(entity_type)

    # ==================== Projects / Categories ====================

    async def _migrate_projects(self) -> None:
        entity_type = EntityType.PROJECTS
        self._begin(entity_type)
        seen: Set[str] = set()

        for project in self.snapshot.projects:
            self._check_cancelled()
            if self._is_repeat(entity_type, project.id, seen, project.label):
                continue

            target_id = self.remapper.allocate(entity_type.value, project.id)
            payload = project.model_copy(
                update={
                    "id": target_id,
                    "created_at": timestamp_or_now(project.created_at),
                    "updated_at": timestamp_or_now(project.updated_at),
                }
            )
            await self._create_or_abort(
                entity_type,
                project.id,
                payload,
                self.remote.create_project,
                f'Failed to migrate project "{project.name}"',
            )

        self.progress.complete(entity_type)

    async def _migrate_categories(self) -> None:
        entity_type = EntityType.CATEGORIES
        self._begin(entity_type)
        seen: Set[str] = set()

        for category in self.snapshot.categories:
            self._check_cancelled()
            if self._is_repeat(entity_type, category.id, seen, category.label):
                continue

            target_id = self.remapper.allocate(entity_type.value, category.id)
            payload = category.model_copy(
                update={
                    "id": target_id,
                    "created_at": timestamp_or_now(category.created_at),
                    "updated_at": timestamp_or_now(category.updated_at),
                }
            )
            await self._create_or_abort(
                entity_type,
                category.id,
                payload,
                self.remote.create_category,
                f'Failed to migrate category "{category.name}"',
            )

        self.progress.complete(entity_type)

    # ==================== Tasks ====================

    async def _migrate_tasks(self) -> None:
        entity_type = EntityType.TASKS
        self._begin(entity_type)
        seen: Set[str] = set()
        self._created_tasks = []

        # Pass 1: create every task with its relationship fields empty
        for task in self.snapshot.tasks:
            self._check_cancelled()
            if self._is_repeat(entity_type, task.id, seen, task.label):
                continue

            target_id = self.remapper.allocate(entity_type.value, task.id)
            payload = task.model_copy(
                update={
                    "id": target_id,
                    "project_id": self._resolve_project(task.project_id),
                    "category_ids": self._resolve_categories(task.category_ids),
                    "parent_task_id": None,
                    "subtasks": [],
                    "depends_on": [],
                    "depended_on_by": [],
                    "recurring_task_id": None,
                    "created_at": timestamp_or_now(task.created_at),
                    "updated_at": timestamp_or_now(task.updated_at),
                    "completed_at": ensure_timestamp(task.completed_at),
                    "deleted_at": ensure_timestamp(task.deleted_at),
                }
            )

            try:
                await self.remote.create_task(payload, self.owner_id)
            except Exception as e:
                self.remapper.discard(entity_type.value, task.id)
                self._diagnose(
                    entity_type,
                    task.id,
                    task.label,
                    f'Failed to migrate task "{task.title}", skipped: {_error_text(e)}',
                )
                continue

            self.remapper.commit(entity_type.value, task.id)
            self.progress.increment(entity_type)
            self._created_tasks.append((task, target_id))

        # Pass 2: rewrite parent/subtask/dependency references
        for task, target_id in self._created_tasks:
            self._check_cancelled()
            await self._rewrite_task_relationships(task, target_id)

        self.progress.complete(entity_type)

    def _resolve_task_list(
        self, task: Task, source_ids: List[str], field_label: str
    ) -> List[str]:
        """Resolve and validate a list of task references, dropping failures"""
        resolved = []
        for source_id in source_ids:
            target = self._resolve_task(source_id)
            if target is None:
                self._diagnose(
                    EntityType.TASKS,
                    task.id,
                    task.label,
                    f'{field_label} id {source_id} not found in mapping for task "{task.title}"',
                )
                continue
            if not is_valid_target_id(target):
                self._diagnose(
                    EntityType.TASKS,
                    task.id,
                    task.label,
                    f'Invalid {field_label.lower()} id {target} for task "{task.title}"',
                )
                continue
            resolved.append(target)
        return resolved

    async def _rewrite_task_relationships(self, task: Task, target_id: str) -> None:
        if not task.has_relationships():
            return

        fields: Dict[str, Any] = {}

        if task.parent_task_id:
            parent = self._resolve_task_list(task, [task.parent_task_id], "Parent task")
            if parent:
                fields["parent_task_id"] = parent[0]

        for column, source_ids, field_label in (
            ("subtasks", task.subtasks, "Subtask"),
            ("depends_on", task.depends_on, "Dependency"),
            ("depended_on_by", task.depended_on_by, "Depended-on-by"),
        ):
            if source_ids:
                resolved = self._resolve_task_list(task, source_ids, field_label)
                if resolved:
                    fields[column] = resolved

        if not fields:
            return

        try:
            await self.remote.patch(TASKS_TABLE, target_id, fields, self.owner_id)
        except Exception as e:
            self._diagnose(
                EntityType.TASKS,
                task.id,
                task.label,
                f'Failed to update relationships for task "{task.title}": {_error_text(e)}',
            )

    async def _link_recurring_origins(self) -> None:
        """Point migrated tasks at their migrated recurring task"""
        for task, target_id in self._created_tasks:
            if not task.recurring_task_id:
                continue

            self._check_cancelled()
            recurring_id = self.remapper.resolve(
                EntityType.RECURRING_TASKS.value, task.recurring_task_id
            )
            if recurring_id is None or not is_valid_target_id(recurring_id):
                self._diagnose(
                    EntityType.TASKS,
                    task.id,
                    task.label,
                    f'Recurring task id {task.recurring_task_id} not found in mapping for task "{task.title}"',
                )
                continue

            try:
                await self.remote.patch(
                    TASKS_TABLE,
                    target_id,
                    {"recurring_task_id": recurring_id},
                    self.owner_id,
                )
            except Exception as e:
                self._diagnose(
                    EntityType.TASKS,
                    task.id,
                    task.label,
                    f'Failed to link recurring task for "{task.title}": {_error_text(e)}',
                )

    # ==================== Recurring tasks ====================

    async def _migrate_recurring_tasks(self) -> None:
        entity_type = EntityType.RECURRING_TASKS
        self._begin(entity_type)
        seen: Set[str] = set()

        for recurring_task in self.snapshot.recurring_tasks:
            self._check_cancelled()
            if self._is_repeat(
                entity_type, recurring_task.id, seen, recurring_task.label
            ):
                continue

            target_id = self.remapper.allocate(entity_type.value, recurring_task.id)
            payload = recurring_task.model_copy(
                update={
                    "id": target_id,
                    "project_id": self._resolve_project(recurring_task.project_id),
                    "category_ids": self._resolve_categories(
                        recurring_task.category_ids
                    ),
                    "created_at": timestamp_or_now(recurring_task.created_at),
                    "updated_at": timestamp_or_now(recurring_task.updated_at),
                    "next_due": timestamp_or_now(recurring_task.next_due),
                    "last_generated": ensure_timestamp(recurring_task.last_generated),
                }
            )
            await self._create_or_abort(
                entity_type,
                recurring_task.id,
                payload,
                self.remote.create_recurring_task,
                f'Failed to migrate recurring task "{recurring_task.title}"',
            )

        await self._link_recurring_origins()
        self.progress.complete(entity_type)

    # ==================== Daily plans ====================

    def _rewrite_time_block(self, block: TimeBlock) -> TimeBlock:
        task_ids = [
            target
            for target in (self._resolve_task(task_id) for task_id in block.task_ids)
            if target
        ]
        return block.model_copy(
            update={"task_id": self._resolve_task(block.task_id), "task_ids": task_ids}
        )

    async def _migrate_daily_plans(self) -> None:
        entity_type = EntityType.DAILY_PLANS
        self._begin(entity_type)
        seen: Set[str] = set()

        for plan in self.snapshot.daily_plans:
            self._check_cancelled()
            if self._is_repeat(entity_type, plan.id, seen, plan.label):
                continue

            target_id = self.remapper.allocate(entity_type.value, plan.id)
            payload = plan.model_copy(
                update={
                    "id": target_id,
                    "time_blocks": [
                        self._rewrite_time_block(block) for block in plan.time_blocks
                    ],
                }
            )
            await self._create_or_abort(
                entity_type,
                plan.id,
                payload,
                self.remote.save_daily_plan,
                f'Failed to migrate daily plan for "{plan.date}"',
            )

        self.progress.complete(entity_type)

    # ==================== Journal / Work schedule / Settings ====================

    async def _migrate_journal_entries(self) -> None:
        entity_type = EntityType.JOURNAL_ENTRIES
        self._begin(entity_type)
        seen: Set[str] = set()

        for entry in self.snapshot.journal_entries:
            self._check_cancelled()
            if self._is_repeat(entity_type, entry.id, seen, entry.label):
                continue

            target_id = self.remapper.allocate(entity_type.value, entry.id)
            payload = entry.model_copy(
                update={
                    "id": target_id,
                    "created_at": timestamp_or_now(entry.created_at),
                    "updated_at": timestamp_or_now(entry.updated_at),
                }
            )
            await self._create_or_abort(
                entity_type,
                entry.id,
                payload,
                self.remote.create_journal_entry,
                f'Failed to migrate journal entry for date "{entry.date}"',
            )

        self.progress.complete(entity_type)

    async def _migrate_work_schedule(self) -> None:
        entity_type = EntityType.WORK_SCHEDULES
        self._begin(entity_type)

        schedule = self.snapshot.work_schedule
        if schedule is not None:
            self._check_cancelled()
            target_id = self.remapper.allocate(entity_type.value, schedule.id)
            payload = schedule.model_copy(
                update={
                    "id": target_id,
                    "created_at": timestamp_or_now(schedule.created_at),
                    "updated_at": timestamp_or_now(schedule.updated_at),
                }
            )
            await self._create_or_abort(
                entity_type,
                schedule.id,
                payload,
                self.remote.create_work_schedule,
                "Failed to migrate work schedule",
            )

        self.progress.complete(entity_type)

    async def _migrate_settings(self) -> None:
        entity_type = EntityType.SETTINGS
        self._begin(entity_type)

        settings = self.snapshot.settings
        if settings:
            self._check_cancelled()
            await self._create_or_abort(
                entity_type,
                None,
                settings,
                self.remote.save_settings,
                "Failed to migrate settings",
            )

        self.progress.complete(entity_type)
