"""
Migration API handlers
Analyze local data, start/cancel a local-to-remote migration and poll its status
"""

from datetime import datetime
from typing import Any, Dict

from planner_sync.core.logger import get_logger
from planner_sync.migration.errors import MigrationInProgressError
from planner_sync.models.requests import StartMigrationRequest
from planner_sync.services.migration_service import get_migration_service

from . import api_handler

logger = get_logger(__name__)


@api_handler(
    method="GET",
    path="/migration/analyze",
    tags=["migration"],
    summary="Analyze local data",
)
async def analyze_local_data() -> Dict[str, Any]:
    """Count local data per entity type

    @returns hasData flag, per-type totals and a pending progress record
    """
    try:
        data = get_migration_service().analyze()
        return {
            "success": True,
            "message": "Local data analyzed" if data["hasData"] else "No local data found",
            "data": data,
            "timestamp": datetime.now().isoformat(),
        }
    except Exception as e:
        logger.error(f"Failed to analyze local data: {e}", exc_info=True)
        return {
            "success": False,
            "message": "Failed to analyze local data",
            "error": str(e),
            "timestamp": datetime.now().isoformat(),
        }


@api_handler(
    body=StartMigrationRequest,
    method="POST",
    path="/migration/start",
    tags=["migration"],
    summary="Start migration",
    description="Migrate local data to the remote store; with wait=true the response carries the run report",
)
async def start_migration(body: StartMigrationRequest) -> Dict[str, Any]:
    """Start a local-to-remote migration"""
    service = get_migration_service()
    try:
        task = await service.start(body.owner_id, body.clear_local_after)
    except MigrationInProgressError as e:
        return {
            "success": False,
            "message": str(e),
            "data": service.get_status(),
            "timestamp": datetime.now().isoformat(),
        }
    except ValueError as e:
        return {
            "success": False,
            "message": str(e),
            "timestamp": datetime.now().isoformat(),
        }

    if not body.wait:
        return {
            "success": True,
            "message": "Migration started",
            "data": service.get_status(),
            "timestamp": datetime.now().isoformat(),
        }

    report = await task
    return {
        "success": report.success,
        "message": "Migration completed" if report.success else report.error,
        "data": service.get_status(),
        "timestamp": datetime.now().isoformat(),
    }


@api_handler(
    method="GET",
    path="/migration/status",
    tags=["migration"],
    summary="Get migration status",
)
async def get_migration_status() -> Dict[str, Any]:
    """Progress record of the current or last run"""
    service = get_migration_service()
    return {
        "success": True,
        "message": "Migration running" if service.is_running else "Migration idle",
        "data": service.get_status(),
        "timestamp": datetime.now().isoformat(),
    }


@api_handler(
    method="POST",
    path="/migration/cancel",
    tags=["migration"],
    summary="Cancel migration",
)
async def cancel_migration() -> Dict[str, Any]:
    """Stop the active run before its next item"""
    cancelled = get_migration_service().cancel()
    return {
        "success": cancelled,
        "message": "Cancellation requested" if cancelled else "No migration is running",
        "timestamp": datetime.now().isoformat(),
    }
