"""
Data models shared by the local store, the remote client and the API handlers
"""

from .base import BaseModel, EntityModel
from .entities import (
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
    WorkShift,
)
from .requests import (
    CleanupDuplicatesRequest,
    FindDuplicatesRequest,
    ImportLocalDataRequest,
    StartMigrationRequest,
)

__all__ = [
    # Base
    "BaseModel",
    "EntityModel",
    # Entities
    "AppSettings",
    "Category",
    "DailyPlan",
    "JournalEntry",
    "Project",
    "RecurringTask",
    "RejectedItem",
    "Task",
    "TimeBlock",
    "WorkSchedule",
    "WorkShift",
    # Requests
    "StartMigrationRequest",
    "ImportLocalDataRequest",
    "FindDuplicatesRequest",
    "CleanupDuplicatesRequest",
]
