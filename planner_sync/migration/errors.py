"""
Migration error types
"""

from typing import Optional


class MigrationError(Exception):
    """Base class for migration errors"""


class FatalMigrationError(MigrationError):
    """A step failed in a way that aborts the whole run"""

    def __init__(
        self, entity_type: str, message: str, source_id: Optional[str] = None
    ):
        super().__init__(message)
        self.entity_type = entity_type
        self.message = message
        self.source_id = source_id


class MigrationCancelled(MigrationError):
    """The run was stopped through its cancellation token"""

    def __init__(self, entity_type: Optional[str] = None):
        super().__init__("Migration cancelled")
        self.entity_type = entity_type


class MigrationInProgressError(MigrationError):
    """A migration is already running in this process"""

    def __init__(self):
        super().__init__("A migration is already in progress")
