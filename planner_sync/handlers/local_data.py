"""
Local data API handlers
Export, import and reset of the local planner store
"""

from datetime import datetime
from typing import Any, Dict

from planner_sync.core.db import get_local_store
from planner_sync.core.logger import get_logger
from planner_sync.models.requests import ImportLocalDataRequest

from . import api_handler

logger = get_logger(__name__)


@api_handler(
    method="GET",
    path="/local/export",
    tags=["local"],
    summary="Export local data",
)
async def export_local_data() -> Dict[str, Any]:
    """Export local data as a JSON backup string"""
    try:
        return {
            "success": True,
            "message": "Local data exported",
            "data": {"json": get_local_store().export_data()},
            "timestamp": datetime.now().isoformat(),
        }
    except Exception as e:
        logger.error(f"Failed to export local data: {e}", exc_info=True)
        return {
            "success": False,
            "message": "Failed to export local data",
            "error": str(e),
            "timestamp": datetime.now().isoformat(),
        }


@api_handler(
    body=ImportLocalDataRequest,
    method="POST",
    path="/local/import",
    tags=["local"],
    summary="Import local data",
)
async def import_local_data(body: ImportLocalDataRequest) -> Dict[str, Any]:
    """Import a JSON backup produced by export_local_data"""
    imported = get_local_store().import_data(body.data)
    return {
        "success": imported,
        "message": "Local data imported" if imported else "Invalid backup data",
        "timestamp": datetime.now().isoformat(),
    }


@api_handler(
    method="POST",
    path="/local/reset",
    tags=["local"],
    summary="Reset local data",
)
async def reset_local_data() -> Dict[str, Any]:
    """Remove the local planner collections"""
    get_local_store().reset_data()
    return {
        "success": True,
        "message": "Local data reset",
        "timestamp": datetime.now().isoformat(),
    }
