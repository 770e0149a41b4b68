"""
Duplicate cleanup API handlers
"""

from datetime import datetime
from typing import Any, Dict

from planner_sync.core.logger import get_logger
from planner_sync.migration.errors import MigrationInProgressError
from planner_sync.models.requests import CleanupDuplicatesRequest, FindDuplicatesRequest
from planner_sync.remote.client import RemoteStoreError
from planner_sync.services.migration_service import get_migration_service

from . import api_handler

logger = get_logger(__name__)


@api_handler(
    body=FindDuplicatesRequest,
    method="POST",
    path="/duplicates/find",
    tags=["duplicates"],
    summary="Find remote duplicates",
)
async def find_duplicates(body: FindDuplicatesRequest) -> Dict[str, Any]:
    """Group duplicated remote tasks, projects and categories"""
    try:
        report = await get_migration_service().find_duplicates(body.owner_id)
        return {
            "success": True,
            "message": f"{report.duplicate_count()} duplicates found",
            "data": report.to_dict(),
            "timestamp": datetime.now().isoformat(),
        }
    except (ValueError, RemoteStoreError) as e:
        logger.error(f"Failed to analyze duplicates: {e}")
        return {
            "success": False,
            "message": "Failed to analyze duplicates",
            "error": str(e),
            "timestamp": datetime.now().isoformat(),
        }


@api_handler(
    body=CleanupDuplicatesRequest,
    method="POST",
    path="/duplicates/cleanup",
    tags=["duplicates"],
    summary="Delete remote duplicates",
)
async def cleanup_duplicates(body: CleanupDuplicatesRequest) -> Dict[str, Any]:
    """Delete all but one record of every duplicate group"""
    try:
        result = await get_migration_service().cleanup_duplicates(
            body.owner_id, body.entity_types, body.keep
        )
    except (ValueError, RemoteStoreError, MigrationInProgressError) as e:
        logger.error(f"Failed to clean up duplicates: {e}")
        return {
            "success": False,
            "message": "Failed to clean up duplicates",
            "error": str(e),
            "timestamp": datetime.now().isoformat(),
        }

    if result.partial:
        message = "Failed to delete some records. Partial cleanup completed."
    else:
        message = f"Deleted {result.total_deleted} duplicates"
    return {
        "success": not result.partial,
        "message": message,
        "data": result.to_dict(),
        "timestamp": datetime.now().isoformat(),
    }
