"""
Local-to-remote migration engine
"""

from .duplicates import DuplicateCleaner, DuplicateReport
from .errors import (
    FatalMigrationError,
    MigrationCancelled,
    MigrationError,
    MigrationInProgressError,
)
from .orchestrator import (
    CancellationToken,
    Diagnostic,
    MigrationOrchestrator,
    MigrationReport,
    MigrationSnapshot,
)
from .progress import EntityProgress, EntityType, MigrationProgress, StepStatus
from .remapper import IdRemapper, is_valid_target_id

__all__ = [
    "CancellationToken",
    "Diagnostic",
    "DuplicateCleaner",
    "DuplicateReport",
    "EntityProgress",
    "EntityType",
    "FatalMigrationError",
    "IdRemapper",
    "MigrationCancelled",
    "MigrationError",
    "MigrationInProgressError",
    "MigrationOrchestrator",
    "MigrationProgress",
    "MigrationReport",
    "MigrationSnapshot",
    "StepStatus",
    "is_valid_target_id",
]
