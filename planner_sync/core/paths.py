"""
Path utility module
Resolves the data directory and the local planner store location
"""

from pathlib import Path
from typing import Optional

from planner_sync.core.logger import get_logger

logger = get_logger(__name__)


def ensure_dir(dir_path: Path) -> Path:
    """
    Ensure directory exists, create if it doesn't

    Args:
        dir_path: Directory path

    Returns:
        Directory path
    """
    dir_path = Path(dir_path)
    if not dir_path.exists():
        dir_path.mkdir(parents=True, exist_ok=True)
        logger.info(f"Created directory: {dir_path}")
    return dir_path


def get_data_dir(subdir: Optional[str] = None) -> Path:
    """
    Get data directory (for the local store, logs, exports)

    Always ~/.config/adhd-planner, optionally with a subdirectory

    Args:
        subdir: Optional subdirectory name

    Returns:
        Data directory path
    """
    data_dir = Path.home() / ".config" / "adhd-planner"
    logger.debug(f"Using user config directory: {data_dir}")

    if subdir:
        data_dir = data_dir / subdir

    return ensure_dir(data_dir)


def get_local_store_path(db_name: str = "planner.db") -> Path:
    """
    Get local store file path

    Args:
        db_name: Database file name

    Returns:
        Database file path
    """
    return get_data_dir() / db_name
