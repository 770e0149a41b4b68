"""
Remote persistence client tests (httpx.MockTransport)
"""

import json

import httpx
import pytest

from planner_sync.config.loader import get_config
from planner_sync.models.entities import Project, Task
from planner_sync.remote.client import NO_ROWS_CODE, RemoteClient, RemoteStoreError

BASE_URL = "https://example.supabase.co"
OWNER = "owner-1"


def _client(handler, **kwargs) -> RemoteClient:
    kwargs.setdefault("retry_backoff", 0)
    return RemoteClient(
        BASE_URL, "anon-key", transport=httpx.MockTransport(handler), **kwargs
    )


def _echo(request: httpx.Request) -> httpx.Response:
    return httpx.Response(201, json=[json.loads(request.content)])


def test_configuration_required():
    with pytest.raises(ValueError):
        RemoteClient("", "key")
    with pytest.raises(ValueError):
        RemoteClient(BASE_URL, "")


def test_from_config():
    client = RemoteClient.from_config(get_config())
    assert client.base_url == BASE_URL
    assert client.api_key == "anon-key"
    assert client.access_token == "anon-key"


async def test_create_project_sends_owner_scoped_row():
    seen = []

    def handler(request):
        seen.append(request)
        return _echo(request)

    async with _client(handler, access_token="user-jwt") as client:
        project = await client.create_project(Project(id="p-1", name="Home"), OWNER)

    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/rest/v1/projects"
    assert request.headers["apikey"] == "anon-key"
    assert request.headers["authorization"] == "Bearer user-jwt"
    assert request.headers["prefer"] == "return=representation"
    body = json.loads(request.content)
    assert body["user_id"] == OWNER
    assert body["name"] == "Home"
    assert project.id == "p-1"


async def test_patch_filters_by_id_and_owner():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=[{"id": "t-1", **json.loads(request.content)}])

    async with _client(handler) as client:
        row = await client.patch("tasks", "t-1", {"subtasks": ["t-2"]}, OWNER)

    request = seen[0]
    assert request.method == "PATCH"
    assert request.url.params["id"] == "eq.t-1"
    assert request.url.params["user_id"] == f"eq.{OWNER}"
    assert row["subtasks"] == ["t-2"]


async def test_update_task_maps_camel_case():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, json=[{"id": "t-1", "title": "A", **seen[-1]}])

    async with _client(handler) as client:
        task = await client.update_task("t-1", {"dueDate": "2024-03-01T10:00:00Z"}, OWNER)

    assert seen[0] == {"due_date": "2024-03-01"}
    assert task.due_date == "2024-03-01"


async def test_list_tasks():
    def handler(request):
        assert request.method == "GET"
        assert request.url.params["select"] == "*"
        assert request.url.params["user_id"] == f"eq.{OWNER}"
        return httpx.Response(200, json=[{"id": "t-1", "title": "A", "user_id": OWNER}])

    async with _client(handler) as client:
        tasks = await client.list_tasks(OWNER)

    assert [t.title for t in tasks] == ["A"]


async def test_save_settings_upserts_on_owner():
    seen = []

    def handler(request):
        seen.append(request)
        return _echo(request)

    async with _client(handler) as client:
        settings = await client.save_settings({"theme": "dark"}, OWNER)

    request = seen[0]
    assert request.url.path == "/rest/v1/app_settings"
    assert request.url.params["on_conflict"] == "user_id"
    assert request.headers["prefer"] == "resolution=merge-duplicates,return=representation"
    assert settings == {"theme": "dark"}


async def test_get_settings_none_when_empty():
    async with _client(lambda request: httpx.Response(200, json=[])) as client:
        assert await client.get_settings(OWNER) is None


async def test_error_body_is_surfaced():
    def handler(request):
        return httpx.Response(
            409,
            json={
                "message": "duplicate key value violates unique constraint",
                "code": "23505",
                "details": "Key (id) already exists.",
                "hint": None,
            },
        )

    async with _client(handler) as client:
        with pytest.raises(RemoteStoreError) as exc_info:
            await client.create_task(Task(id="t-1", title="A"), OWNER)

    error = exc_info.value
    assert error.status_code == 409
    assert error.code == "23505"
    assert "duplicate key" in str(error)
    assert error.to_dict()["details"] == "Key (id) already exists."


async def test_empty_representation_is_an_error():
    async with _client(lambda request: httpx.Response(200, json=[])) as client:
        with pytest.raises(RemoteStoreError) as exc_info:
            await client.patch("tasks", "t-1", {"title": "B"}, OWNER)
    assert exc_info.value.code == NO_ROWS_CODE


async def test_unavailable_is_retried():
    attempts = []

    def handler(request):
        attempts.append(request)
        if len(attempts) < 3:
            return httpx.Response(503, text="Service Unavailable")
        return _echo(request)

    async with _client(handler, max_retries=2) as client:
        project = await client.create_project(Project(id="p-1", name="Home"), OWNER)

    assert len(attempts) == 3
    assert project.name == "Home"


async def test_connect_error_is_retried_then_raised():
    attempts = []

    def handler(request):
        attempts.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler, max_retries=1) as client:
        with pytest.raises(RemoteStoreError):
            await client.list_projects(OWNER)

    assert len(attempts) == 2


async def test_timeout_is_not_retried():
    attempts = []

    def handler(request):
        attempts.append(request)
        raise httpx.ReadTimeout("timed out", request=request)

    async with _client(handler, max_retries=3) as client:
        with pytest.raises(RemoteStoreError):
            await client.create_task(Task(id="t-1", title="A"), OWNER)

    assert len(attempts) == 1


async def test_server_error_is_not_retried():
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(500, json={"message": "boom"})

    async with _client(handler, max_retries=3) as client:
        with pytest.raises(RemoteStoreError) as exc_info:
            await client.create_task(Task(id="t-1", title="A"), OWNER)

    assert len(attempts) == 1
    assert exc_info.value.status_code == 500
