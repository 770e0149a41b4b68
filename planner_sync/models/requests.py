"""
Request models for API handlers
"""

from typing import Dict, List, Optional

from pydantic import Field

from .base import BaseModel

# ============================================================================
# Migration Request Models
# ============================================================================


class StartMigrationRequest(BaseModel):
    """Request parameters for starting a local-to-remote migration.

    @property ownerId - Optional owner (user) id, defaults to remote.owner_id from config.
    @property clearLocalAfter - Remove local collections after a fully successful run.
    @property wait - Wait for the run to finish instead of returning immediately.
    """

    owner_id: Optional[str] = None
    clear_local_after: Optional[bool] = None
    wait: bool = False


# ============================================================================
# Local Data Request Models
# ============================================================================


class ImportLocalDataRequest(BaseModel):
    """Request parameters for importing an exported JSON backup.

    @property data - JSON string produced by export_local_data.
    """

    data: str = Field(min_length=1)


# ============================================================================
# Duplicate Cleanup Request Models
# ============================================================================


class FindDuplicatesRequest(BaseModel):
    """Request parameters for duplicate analysis on the remote store.

    @property ownerId - Optional owner id, defaults to remote.owner_id from config.
    """

    owner_id: Optional[str] = None


class CleanupDuplicatesRequest(BaseModel):
    """Request parameters for deleting remote duplicates.

    @property ownerId - Optional owner id, defaults to remote.owner_id from config.
    @property entityTypes - Which groups to clean: tasks, projects, categories.
    @property keep - Optional override of the id to keep, keyed by group key.
    """

    owner_id: Optional[str] = None
    entity_types: List[str] = Field(
        default_factory=lambda: ["tasks", "projects", "categories"]
    )
    keep: Dict[str, str] = Field(default_factory=dict)
