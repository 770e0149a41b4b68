"""
Migration service layer
Owns the lifecycle of a migration run: analysis, start, status, cancel,
optional local cleanup, and remote duplicate cleanup.

Only one run may be active per process. Runs started from the HTTP API execute
as a background asyncio task and are observed through get_status().
"""

import asyncio
from typing import Any, Callable, Dict, Iterable, Optional

from planner_sync.config.loader import get_config
from planner_sync.core.db import LocalStore, get_local_store
from planner_sync.core.logger import get_logger
from planner_sync.migration.duplicates import (
    DUPLICATE_KINDS,
    CleanupResult,
    DuplicateCleaner,
    DuplicateReport,
)
from planner_sync.migration.errors import MigrationInProgressError
from planner_sync.migration.orchestrator import (
    CancellationToken,
    MigrationOrchestrator,
    MigrationReport,
    MigrationSnapshot,
)
from planner_sync.migration.progress import MigrationProgress
from planner_sync.remote.client import RemoteClient

logger = get_logger(__name__)

RemoteFactory = Callable[[], Any]


class MigrationService:
    """Migration service class"""

    def __init__(
        self,
        store: Optional[LocalStore] = None,
        remote_factory: Optional[RemoteFactory] = None,
    ):
        self._store = store
        self._remote_factory = remote_factory or RemoteClient.from_config
        self._task: Optional[asyncio.Task] = None
        self._progress: Optional[MigrationProgress] = None
        self._cancel_token: Optional[CancellationToken] = None
        self._report: Optional[MigrationReport] = None
        self._owner_id: Optional[str] = None
        self._local_cleared = False

    @property
    def store(self) -> LocalStore:
        if self._store is None:
            self._store = get_local_store()
        return self._store

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def resolve_owner_id(self, owner_id: Optional[str] = None) -> str:
        """Explicit owner id, else remote.owner_id from config"""
        owner_id = owner_id or get_config().get("remote.owner_id", "")
        if not owner_id:
            raise ValueError(
                "No owner id given, please pass ownerId or set remote.owner_id in config.toml"
            )
        return owner_id

    async def _close_remote(self, remote: Any) -> None:
        aclose = getattr(remote, "aclose", None)
        if aclose is not None:
            await aclose()

    # ==================== Analysis ====================

    def analyze(self) -> Dict[str, Any]:
        """Count local data per entity type

        @returns hasData flag, a pending progress record and the items that
        could not be read
        """
        snapshot = MigrationSnapshot.read(self.store)
        totals = snapshot.totals()
        return {
            "hasData": snapshot.has_data(),
            "progress": MigrationProgress.from_totals(totals).to_dict(),
            "totals": totals,
            "rejected": [item.model_dump() for item in snapshot.rejected],
        }

    # ==================== Run lifecycle ====================

    async def start(
        self,
        owner_id: Optional[str] = None,
        clear_local_after: Optional[bool] = None,
    ) -> asyncio.Task:
        """Start a run in the background

        Raises:
            MigrationInProgressError: a run is already active
            ValueError: no owner id available
        """
        if self.is_running:
            raise MigrationInProgressError()

        owner_id = self.resolve_owner_id(owner_id)
        if clear_local_after is None:
            clear_local_after = bool(
                get_config().get("migration.clear_local_after", False)
            )

        remote = self._remote_factory()
        self._progress = MigrationProgress()
        self._cancel_token = CancellationToken()
        self._report = None
        self._owner_id = owner_id
        self._local_cleared = False

        orchestrator = MigrationOrchestrator(
            self.store,
            remote,
            owner_id,
            progress=self._progress,
            cancel_token=self._cancel_token,
        )
        self._task = asyncio.create_task(
            self._run(orchestrator, remote, clear_local_after)
        )
        logger.info(f"Migration started for owner {owner_id}")
        return self._task

    async def run(
        self,
        owner_id: Optional[str] = None,
        clear_local_after: Optional[bool] = None,
    ) -> MigrationReport:
        """Start a run and wait for its report"""
        task = await self.start(owner_id, clear_local_after)
        return await task

    async def _run(
        self,
        orchestrator: MigrationOrchestrator,
        remote: Any,
        clear_local_after: bool,
    ) -> MigrationReport:
        try:
            report = await orchestrator.run()
            if report.success and clear_local_after and self._progress.all_completed():
                self.store.clear_migrated_data()
                self._local_cleared = True
            self._report = report
            return report
        finally:
            await self._close_remote(remote)

    def cancel(self) -> bool:
        """Request cancellation of the active run

        @returns False when no run is active
        """
        if not self.is_running or self._cancel_token is None:
            return False
        self._cancel_token.cancel()
        logger.info("Migration cancellation requested")
        return True

    def get_status(self) -> Dict[str, Any]:
        """Current progress and, once finished, the run report"""
        status: Dict[str, Any] = {
            "isRunning": self.is_running,
            "ownerId": self._owner_id,
            "localCleared": self._local_cleared,
            "progress": self._progress.to_dict() if self._progress else None,
            "error": self._progress.error if self._progress else None,
            "percentage": self._progress.percentage() if self._progress else 0,
            "report": self._report.to_dict() if self._report else None,
        }
        if self._task is not None and self._task.done() and not self._task.cancelled():
            exc = self._task.exception()
            if exc is not None:
                status["error"] = str(exc)
        return status

    # ==================== Duplicates ====================

    async def find_duplicates(self, owner_id: Optional[str] = None) -> DuplicateReport:
        owner_id = self.resolve_owner_id(owner_id)
        remote = self._remote_factory()
        try:
            return await DuplicateCleaner(remote, owner_id).analyze()
        finally:
            await self._close_remote(remote)

    async def cleanup_duplicates(
        self,
        owner_id: Optional[str] = None,
        kinds: Iterable[str] = DUPLICATE_KINDS,
        keep: Optional[Dict[str, str]] = None,
    ) -> CleanupResult:
        """Re-analyze then delete duplicates of the given kinds"""
        if self.is_running:
            raise MigrationInProgressError()

        owner_id = self.resolve_owner_id(owner_id)
        remote = self._remote_factory()
        try:
            cleaner = DuplicateCleaner(remote, owner_id)
            report = await cleaner.analyze()
            return await cleaner.cleanup(report, kinds, keep)
        finally:
            await self._close_remote(remote)


# Global service instance
_migration_service: Optional[MigrationService] = None


def get_migration_service() -> MigrationService:
    """Get migration service instance"""
    global _migration_service
    if _migration_service is None:
        _migration_service = MigrationService()
    return _migration_service


def set_migration_service(service: Optional[MigrationService]) -> None:
    """Replace the global service instance (None resets it)"""
    global _migration_service
    _migration_service = service
