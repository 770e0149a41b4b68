"""
Migration progress record
One {total, migrated, status} entry per entity type, observed through listeners
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from planner_sync.core.logger import get_logger

logger = get_logger(__name__)


class EntityType(str, Enum):
    """Entity types in migration order"""

    PROJECTS = "projects"
    CATEGORIES = "categories"
    TASKS = "tasks"
    RECURRING_TASKS = "recurringTasks"
    DAILY_PLANS = "dailyPlans"
    JOURNAL_ENTRIES = "journalEntries"
    WORK_SCHEDULES = "workSchedules"
    SETTINGS = "settings"


MIGRATION_ORDER: List[EntityType] = list(EntityType)

# Key order of the progress record as rendered by the UI
DISPLAY_ORDER: List[EntityType] = [
    EntityType.TASKS,
    EntityType.PROJECTS,
    EntityType.CATEGORIES,
    EntityType.RECURRING_TASKS,
    EntityType.DAILY_PLANS,
    EntityType.JOURNAL_ENTRIES,
    EntityType.WORK_SCHEDULES,
    EntityType.SETTINGS,
]


class StepStatus(str, Enum):
    PENDING = "pending"
    MIGRATING = "migrating"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class EntityProgress:
    total: int = 0
    migrated: int = 0
    status: StepStatus = StepStatus.PENDING

    def percentage(self) -> int:
        """Rounded percent migrated, 100 when there is nothing to migrate"""
        if self.total == 0:
            return 100
        return int(self.migrated * 100 / self.total + 0.5)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "migrated": self.migrated,
            "status": self.status.value,
        }


ProgressListener = Callable[["MigrationProgress"], None]


@dataclass
class MigrationProgress:
    """Progress of one run

    Only the orchestrator mutates it; every mutation notifies the listeners.
    """

    entities: Dict[EntityType, EntityProgress] = field(
        default_factory=lambda: {t: EntityProgress() for t in DISPLAY_ORDER}
    )
    error: Optional[str] = None
    _listeners: List[ProgressListener] = field(
        default_factory=list, repr=False, compare=False
    )

    @classmethod
    def from_totals(cls, totals: Dict[str, int]) -> "MigrationProgress":
        """Create a pending record from totals keyed by entity type value"""
        progress = cls()
        for entity_type in DISPLAY_ORDER:
            progress.entities[entity_type].total = int(totals.get(entity_type.value, 0))
        return progress

    def __getitem__(self, entity_type: EntityType) -> EntityProgress:
        return self.entities[EntityType(entity_type)]

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """Register a listener, returns a function that unregisters it"""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"Progress listener failed: {e}", exc_info=True)

    # ============ Mutations (orchestrator only) ============

    def reset(self) -> None:
        """Back to all pending, listeners are kept"""
        self.entities = {t: EntityProgress() for t in DISPLAY_ORDER}
        self.error = None
        self._notify()

    def set_total(self, entity_type: EntityType, total: int) -> None:
        self[entity_type].total = total
        self._notify()

    def start(self, entity_type: EntityType) -> None:
        self[entity_type].status = StepStatus.MIGRATING
        self._notify()

    def increment(self, entity_type: EntityType) -> None:
        self[entity_type].migrated += 1
        self._notify()

    def complete(self, entity_type: EntityType) -> None:
        self[entity_type].status = StepStatus.COMPLETED
        self._notify()

    def fail(self, entity_type: EntityType, message: str) -> None:
        self[entity_type].status = StepStatus.ERROR
        self.error = message
        self._notify()

    # ============ Queries ============

    def all_completed(self) -> bool:
        """Every type completed, or had nothing to migrate"""
        return all(
            item.status == StepStatus.COMPLETED or item.total == 0
            for item in self.entities.values()
        )

    def has_error(self) -> bool:
        return any(item.status == StepStatus.ERROR for item in self.entities.values())

    def percentage(self, entity_type: Optional[EntityType] = None) -> int:
        """Percent migrated for one type, or overall when no type is given"""
        if entity_type is not None:
            return self[entity_type].percentage()
        total = sum(item.total for item in self.entities.values())
        if total == 0:
            return 100
        migrated = sum(item.migrated for item in self.entities.values())
        return int(migrated * 100 / total + 0.5)

    def to_dict(self) -> Dict[str, Any]:
        return {
            entity_type.value: self.entities[entity_type].to_dict()
            for entity_type in DISPLAY_ORDER
        }

    def snapshot(self) -> Dict[str, Any]:
        """Progress record plus error and overall percentage"""
        return {
            "progress": self.to_dict(),
            "error": self.error,
            "percentage": self.percentage(),
            "allCompleted": self.all_completed(),
        }
