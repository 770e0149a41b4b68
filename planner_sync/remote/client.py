"""
Remote persistence client
Owner-scoped CRUD over the hosted PostgREST (Supabase) API
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from planner_sync.core.logger import get_logger
from planner_sync.models.entities import (
    AppSettings,
    Category,
    DailyPlan,
    JournalEntry,
    Project,
    RecurringTask,
    Task,
    WorkSchedule,
)

from . import mapping

logger = get_logger(__name__)

# PostgREST code for "no rows returned" on a single-object request
NO_ROWS_CODE = "PGRST116"


class RemoteStoreError(RuntimeError):
    """Error returned by the remote store (or raised while reaching it)"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[str] = None,
        hint: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details
        self.hint = hint

    @classmethod
    def from_response(cls, response: httpx.Response) -> "RemoteStoreError":
        """Build from a PostgREST error body ``{message, code, details, hint}``"""
        try:
            body = response.json()
        except (json.JSONDecodeError, ValueError):
            body = None

        if isinstance(body, dict):
            message = body.get("message") or body.get("error") or response.reason_phrase
            return cls(
                str(message),
                status_code=response.status_code,
                code=body.get("code"),
                details=body.get("details"),
                hint=body.get("hint"),
            )

        text = response.text[:200] if response.text else response.reason_phrase
        return cls(f"HTTP {response.status_code}: {text}", status_code=response.status_code)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "statusCode": self.status_code,
            "code": self.code,
            "details": self.details,
            "hint": self.hint,
        }


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


class RemoteClient:
    """PostgREST client

    Writes are not retried after the request may have reached the server
    (timeouts, 5xx other than 503), so an insert is never submitted twice.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        access_token: Optional[str] = None,
        timeout: float = 30.0,
        max_retries: int = 2,
        retry_backoff: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not url or not api_key:
            raise ValueError(
                "Remote store configuration is incomplete, please check remote.url and remote.api_key."
            )

        self.base_url = url.rstrip("/")
        self.api_key = api_key
        self.access_token = access_token or api_key
        self.timeout: httpx.Timeout = httpx.Timeout(timeout)
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self.retry_status = {503}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(cls, config=None) -> "RemoteClient":
        """Create client from the [remote] section of config.toml"""
        if config is None:
            from planner_sync.config.loader import get_config

            config = get_config()

        return cls(
            url=config.get("remote.url", ""),
            api_key=config.get("remote.api_key", ""),
            access_token=config.get("remote.access_token", "") or None,
            timeout=float(config.get("remote.timeout", 30.0)),
            max_retries=int(config.get("remote.max_retries", 2)),
        )

    # ==================== HTTP plumbing ====================

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "RemoteClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def _build_url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    def _headers(self, prefer: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _log_request_error(
        self,
        exc: Exception,
        attempt: int,
        method: str,
        url: str,
        params: Optional[Dict[str, str]],
        response: Optional[httpx.Response],
        final_attempt: bool,
    ) -> None:
        """Log request error details"""
        level = logger.error if final_attempt else logger.warning
        summary = {
            "attempt": attempt,
            "max_retries": self.max_retries,
            "method": method,
            "url": url,
            "params": params,
            "error_type": exc.__class__.__name__,
            "error_message": str(exc) or None,
        }
        if response is not None:
            summary["status_code"] = response.status_code
            summary["response_text"] = response.text[:500]
        level(f"Remote store request failed: {json.dumps(summary, ensure_ascii=False)}")

    async def _request(
        self,
        method: str,
        table: str,
        params: Optional[Dict[str, str]] = None,
        payload: Any = None,
        prefer: Optional[str] = None,
    ) -> Any:
        """Send request, returns decoded JSON body (None when empty)

        Raises:
            RemoteStoreError: on error status or transport failure
        """
        url = self._build_url(table)
        headers = self._headers(prefer)
        client = self._get_client()

        for attempt in range(1, self.max_retries + 2):
            try:
                response = await client.request(
                    method, url, params=params, json=payload, headers=headers
                )
            except httpx.ConnectError as exc:
                # Nothing reached the server, safe to resend
                final_attempt = attempt > self.max_retries
                self._log_request_error(
                    exc, attempt, method, url, params, None, final_attempt
                )
                if final_attempt:
                    raise RemoteStoreError(
                        f"Network request exception: {str(exc) or exc.__class__.__name__}"
                    ) from exc
            except httpx.TimeoutException as exc:
                self._log_request_error(exc, attempt, method, url, params, None, True)
                raise RemoteStoreError(
                    "Request timeout, please check network connection or remote store availability"
                ) from exc
            except httpx.RequestError as exc:
                self._log_request_error(exc, attempt, method, url, params, None, True)
                raise RemoteStoreError(
                    f"Network request exception: {str(exc) or exc.__class__.__name__}"
                ) from exc
            else:
                if response.is_success:
                    if not response.content:
                        return None
                    return response.json()

                error = RemoteStoreError.from_response(response)
                final_attempt = (
                    attempt > self.max_retries
                    or response.status_code not in self.retry_status
                )
                self._log_request_error(
                    error, attempt, method, url, params, response, final_attempt
                )
                if final_attempt:
                    raise error

            await asyncio.sleep(self.retry_backoff * attempt)

        # Loop always returns or raises
        raise RemoteStoreError("Remote store request failed: retries exhausted")

    @staticmethod
    def _single(rows: Any, table: str) -> Dict[str, Any]:
        if isinstance(rows, list):
            if not rows:
                raise RemoteStoreError(
                    f"No {table} row returned", status_code=406, code=NO_ROWS_CODE
                )
            return rows[0]
        if isinstance(rows, dict):
            return rows
        raise RemoteStoreError(f"Unexpected response for {table}: {rows!r}")

    @staticmethod
    def _owner_filter(record_id: str, owner_id: str) -> Dict[str, str]:
        return {"id": f"eq.{record_id}", "user_id": f"eq.{owner_id}"}

    async def _insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        rows = await self._request(
            "POST", table, payload=row, prefer="return=representation"
        )
        return self._single(rows, table)

    async def _upsert(
        self, table: str, row: Dict[str, Any], on_conflict: Optional[str] = None
    ) -> Dict[str, Any]:
        params = {"on_conflict": on_conflict} if on_conflict else None
        rows = await self._request(
            "POST",
            table,
            params=params,
            payload=row,
            prefer="resolution=merge-duplicates,return=representation",
        )
        return self._single(rows, table)

    async def _select(
        self, table: str, owner_id: str, order: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        params = {"select": "*", "user_id": f"eq.{owner_id}"}
        if order:
            params["order"] = order
        rows = await self._request("GET", table, params=params)
        return rows or []

    async def _delete(self, table: str, record_id: str, owner_id: str) -> None:
        await self._request(
            "DELETE", table, params=self._owner_filter(record_id, owner_id)
        )

    # ==================== Low-level patch ====================

    async def patch(
        self, table: str, record_id: str, fields: Dict[str, Any], owner_id: str
    ) -> Dict[str, Any]:
        """Update columns of one row scoped by id and owner

        Args:
            table: Remote table name
            record_id: Target row id
            fields: Column values keyed by the store's snake_case names
            owner_id: Owner (user) id

        Returns:
            Updated row
        """
        rows = await self._request(
            "PATCH",
            table,
            params=self._owner_filter(record_id, owner_id),
            payload=fields,
            prefer="return=representation",
        )
        return self._single(rows, table)

    # ==================== Projects ====================

    async def create_project(self, project: Project, owner_id: str) -> Project:
        row = await self._insert(
            mapping.PROJECTS_TABLE, mapping.project_to_db(project, owner_id)
        )
        return mapping.project_from_db(row)

    async def list_projects(self, owner_id: str) -> List[Project]:
        rows = await self._select(mapping.PROJECTS_TABLE, owner_id)
        return [mapping.project_from_db(row) for row in rows]

    async def delete_project(self, project_id: str, owner_id: str) -> None:
        await self._delete(mapping.PROJECTS_TABLE, project_id, owner_id)

    # ==================== Categories ====================

    async def create_category(self, category: Category, owner_id: str) -> Category:
        row = await self._insert(
            mapping.CATEGORIES_TABLE, mapping.category_to_db(category, owner_id)
        )
        return mapping.category_from_db(row)

    async def list_categories(self, owner_id: str) -> List[Category]:
        rows = await self._select(mapping.CATEGORIES_TABLE, owner_id)
        return [mapping.category_from_db(row) for row in rows]

    async def delete_category(self, category_id: str, owner_id: str) -> None:
        await self._delete(mapping.CATEGORIES_TABLE, category_id, owner_id)

    # ==================== Tasks ====================

    async def create_task(self, task: Task, owner_id: str) -> Task:
        row = await self._insert(mapping.TASKS_TABLE, mapping.task_to_db(task, owner_id))
        return mapping.task_from_db(row)

    async def list_tasks(self, owner_id: str) -> List[Task]:
        rows = await self._select(mapping.TASKS_TABLE, owner_id)
        return [mapping.task_from_db(row) for row in rows]

    async def update_task(
        self, task_id: str, updates: Dict[str, Any], owner_id: str
    ) -> Task:
        row = await self.patch(
            mapping.TASKS_TABLE, task_id, mapping.updates_to_db(updates), owner_id
        )
        return mapping.task_from_db(row)

    async def delete_task(self, task_id: str, owner_id: str) -> None:
        await self._delete(mapping.TASKS_TABLE, task_id, owner_id)

    # ==================== Recurring tasks ====================

    async def create_recurring_task(
        self, recurring_task: RecurringTask, owner_id: str
    ) -> RecurringTask:
        row = await self._insert(
            mapping.RECURRING_TASKS_TABLE,
            mapping.recurring_task_to_db(recurring_task, owner_id),
        )
        return mapping.recurring_task_from_db(row)

    async def list_recurring_tasks(self, owner_id: str) -> List[RecurringTask]:
        rows = await self._select(mapping.RECURRING_TASKS_TABLE, owner_id)
        return [mapping.recurring_task_from_db(row) for row in rows]

    # ==================== Daily plans ====================

    async def save_daily_plan(self, plan: DailyPlan, owner_id: str) -> DailyPlan:
        """Insert or replace a plan (upsert on id)"""
        row = await self._upsert(
            mapping.DAILY_PLANS_TABLE, mapping.daily_plan_to_db(plan, owner_id)
        )
        return mapping.daily_plan_from_db(row)

    async def list_daily_plans(self, owner_id: str) -> List[DailyPlan]:
        rows = await self._select(mapping.DAILY_PLANS_TABLE, owner_id)
        return [mapping.daily_plan_from_db(row) for row in rows]

    # ==================== Journal ====================

    async def create_journal_entry(
        self, entry: JournalEntry, owner_id: str
    ) -> JournalEntry:
        row = await self._insert(
            mapping.JOURNAL_ENTRIES_TABLE,
            mapping.journal_entry_to_db(entry, owner_id),
        )
        return mapping.journal_entry_from_db(row)

    async def list_journal_entries(self, owner_id: str) -> List[JournalEntry]:
        rows = await self._select(
            mapping.JOURNAL_ENTRIES_TABLE, owner_id, order="date.desc"
        )
        return [mapping.journal_entry_from_db(row) for row in rows]

    # ==================== Work schedules ====================

    async def create_work_schedule(
        self, schedule: WorkSchedule, owner_id: str
    ) -> WorkSchedule:
        row = await self._insert(
            mapping.WORK_SCHEDULES_TABLE,
            mapping.work_schedule_to_db(schedule, owner_id),
        )
        return mapping.work_schedule_from_db(row)

    async def list_work_schedules(self, owner_id: str) -> List[WorkSchedule]:
        rows = await self._select(mapping.WORK_SCHEDULES_TABLE, owner_id)
        return [mapping.work_schedule_from_db(row) for row in rows]

    # ==================== Settings ====================

    async def save_settings(self, settings: AppSettings, owner_id: str) -> AppSettings:
        """Insert or replace the owner's settings blob (upsert on user_id)"""
        row = await self._upsert(
            mapping.SETTINGS_TABLE,
            mapping.settings_to_db(settings, owner_id, _now_iso()),
            on_conflict="user_id",
        )
        return mapping.settings_from_db(row) or {}

    async def get_settings(self, owner_id: str) -> Optional[AppSettings]:
        """Get the owner's settings blob, None when there is none"""
        rows = await self._select(mapping.SETTINGS_TABLE, owner_id)
        if not rows:
            return None
        return mapping.settings_from_db(rows[0])
