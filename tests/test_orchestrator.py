"""
Migration orchestrator tests
"""

import json
import re

import pytest

from planner_sync.core.db import PROJECTS_KEY, TASKS_KEY
from planner_sync.migration.orchestrator import (
    CancellationToken,
    MigrationOrchestrator,
    MigrationSnapshot,
)
from planner_sync.migration.progress import EntityType, MigrationProgress, StepStatus
from planner_sync.migration.remapper import IdRemapper, is_valid_target_id
from planner_sync.remote.mapping import TASKS_TABLE

from .conftest import OWNER_ID, FakeRemoteStore, MemoryReader

ISO_MS = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")


def _orchestrator(reader, remote, **kwargs):
    return MigrationOrchestrator(reader, remote, OWNER_ID, **kwargs)


def _planner_reader():
    return MemoryReader(
        projects=[{"id": "P1", "name": "Home", "createdAt": "2024-01-01T08:00:00Z"}],
        categories=[{"id": "C1", "name": "Errands", "color": "#ff0000"}],
        tasks=[
            {
                "id": "T1",
                "title": "Clean kitchen",
                "projectId": "P1",
                "categoryIds": ["C1", "C-gone"],
                "subtasks": ["T2"],
            },
            {"id": "T2", "title": "Wipe counters", "parentTaskId": "T1"},
            {"id": "T3", "title": "Mop floor", "dependsOn": ["missing"]},
        ],
        daily_plans=[
            {
                "id": "D1",
                "date": "2024-03-01",
                "timeBlocks": [
                    {
                        "id": "B1",
                        "startTime": "09:00",
                        "endTime": "10:00",
                        "taskId": "T1",
                        "taskIds": ["T1", "T2", "missing"],
                    }
                ],
            }
        ],
    )


def test_owner_id_required():
    with pytest.raises(ValueError):
        MigrationOrchestrator(MemoryReader(), FakeRemoteStore(), "")


async def test_migrates_and_rewrites_references():
    remote = FakeRemoteStore()
    orchestrator = _orchestrator(_planner_reader(), remote)

    report = await orchestrator.run()

    assert report.success
    assert report.error is None
    project = remote.projects[0]
    category = remote.categories[0]
    assert is_valid_target_id(project.id)
    assert project.id != "P1"

    t1 = remote.task_by_title("Clean kitchen")
    t2 = remote.task_by_title("Wipe counters")
    t3 = remote.task_by_title("Mop floor")
    assert t1.project_id == project.id
    assert t1.category_ids == [category.id]

    # Created without relationships, patched afterwards
    assert t2.parent_task_id is None
    assert t1.subtasks == []
    assert remote.patch_for(t1.id) == {"subtasks": [t2.id]}
    assert remote.patch_for(t2.id) == {"parent_task_id": t1.id}

    # Unresolvable dependency leaves the list empty, no patch sent
    assert t3.depends_on == []
    assert remote.patch_for(t3.id) is None
    assert any("missing" in d.message for d in report.diagnostics)

    block = remote.daily_plans[0].time_blocks[0]
    assert block.task_id == t1.id
    assert block.task_ids == [t1.id, t2.id]
    assert block.start_time == "09:00"

    assert report.progress["tasks"] == {"total": 3, "migrated": 3, "status": "completed"}
    assert report.mapping_counts["tasks"] == 3
    assert orchestrator.remapper.resolve("projects", "P1") == project.id


async def test_entity_types_run_in_order():
    reader = MemoryReader(
        projects=[{"id": "P1", "name": "Home"}],
        categories=[{"id": "C1", "name": "Errands"}],
        tasks=[{"id": "T1", "title": "A", "recurringTaskId": "R1"}],
        recurring_tasks=[{"id": "R1", "title": "Water plants"}],
        daily_plans=[{"id": "D1", "date": "2024-03-01"}],
        journal_entries=[{"id": "J1", "date": "2024-03-03"}],
        work_schedule={"id": "W1", "name": "Shifts"},
        settings={"theme": "dark"},
    )
    remote = FakeRemoteStore()

    report = await _orchestrator(reader, remote).run()

    assert report.success
    assert remote.calls == [
        "create_project",
        "create_category",
        "create_task",
        "create_recurring_task",
        "patch",
        "save_daily_plan",
        "create_journal_entry",
        "create_work_schedule",
        "save_settings",
    ]
    assert remote.settings == {"theme": "dark"}
    assert all(item["status"] == "completed" for item in report.progress.values())


async def test_project_failure_aborts_run():
    reader = MemoryReader(
        projects=[{"id": f"P{i}", "name": f"Project {i}"} for i in range(1, 6)],
        categories=[{"id": "C1", "name": "Errands"}],
    )
    remote = FakeRemoteStore(fail_on={"create_project": {"Project 3"}})
    progress = MigrationProgress()

    report = await _orchestrator(reader, remote, progress=progress).run()

    assert not report.success
    assert report.error.startswith('Failed to migrate project "Project 3"')
    assert len(remote.projects) == 2
    assert remote.categories == []
    assert progress[EntityType.PROJECTS].status == StepStatus.ERROR
    assert progress[EntityType.PROJECTS].migrated == 2
    assert progress[EntityType.CATEGORIES].status == StepStatus.PENDING
    assert progress.error == report.error
    assert report.mapping_counts["projects"] == 2


async def test_task_failure_is_skipped():
    reader = MemoryReader(
        tasks=[{"id": f"T{i}", "title": f"Task {i}"} for i in range(10)],
        recurring_tasks=[{"id": "R1", "title": "Water plants"}],
    )
    remote = FakeRemoteStore(fail_on={"create_task": {"Task 4"}})

    report = await _orchestrator(reader, remote).run()

    assert report.success
    assert len(remote.tasks) == 9
    assert report.progress["tasks"] == {"total": 10, "migrated": 9, "status": "completed"}
    assert report.progress["recurringTasks"]["status"] == "completed"
    assert len(remote.recurring_tasks) == 1
    assert [d.source_id for d in report.diagnostics] == ["T4"]


async def test_skipped_task_references_are_dropped():
    reader = MemoryReader(
        tasks=[
            {"id": "T1", "title": "Broken"},
            {"id": "T2", "title": "Child", "parentTaskId": "T1", "dependsOn": ["T1"]},
        ],
        daily_plans=[{"id": "D1", "date": "2024-03-01", "timeBlocks": [{"taskId": "T1"}]}],
    )
    remote = FakeRemoteStore(fail_on={"create_task": {"Broken"}})

    report = await _orchestrator(reader, remote).run()

    child = remote.task_by_title("Child")
    assert child.parent_task_id is None
    assert remote.patch_for(child.id) is None
    assert remote.daily_plans[0].time_blocks[0].task_id is None
    assert report.success


async def test_rerun_creates_duplicates():
    remote = FakeRemoteStore()
    reader = MemoryReader(projects=[{"id": "P1", "name": "Home"}])

    await _orchestrator(reader, remote).run()
    await _orchestrator(reader, remote).run()

    assert len(remote.projects) == 2
    assert remote.projects[0].id != remote.projects[1].id


async def test_cancel_before_run():
    token = CancellationToken()
    token.cancel()
    reader = MemoryReader(projects=[{"id": "P1", "name": "Home"}])
    remote = FakeRemoteStore()

    report = await _orchestrator(reader, remote, cancel_token=token).run()

    assert report.cancelled
    assert not report.success
    assert report.error == "Migration cancelled"
    assert remote.calls == []
    assert report.progress["projects"]["status"] == "error"


async def test_cancel_between_steps():
    token = CancellationToken()
    progress = MigrationProgress()

    def cancel_after_projects(p):
        if p[EntityType.PROJECTS].status == StepStatus.COMPLETED:
            token.cancel()

    progress.subscribe(cancel_after_projects)
    reader = MemoryReader(
        projects=[{"id": "P1", "name": "Home"}],
        categories=[{"id": "C1", "name": "Errands"}],
    )
    remote = FakeRemoteStore()

    report = await _orchestrator(
        reader, remote, progress=progress, cancel_token=token
    ).run()

    assert report.cancelled
    assert remote.calls == ["create_project"]
    assert report.progress["projects"]["status"] == "completed"
    assert report.progress["categories"]["status"] == "error"
    assert report.progress["tasks"]["status"] == "pending"


async def test_recurring_origin_is_linked():
    reader = MemoryReader(
        tasks=[{"id": "T1", "title": "Water plants today", "recurringTaskId": "R1"}],
        recurring_tasks=[{"id": "R1", "title": "Water plants", "nextDue": None}],
    )
    remote = FakeRemoteStore()

    report = await _orchestrator(reader, remote).run()

    task = remote.tasks[0]
    recurring = remote.recurring_tasks[0]
    assert task.recurring_task_id is None
    assert remote.patches == [
        {
            "table": TASKS_TABLE,
            "id": task.id,
            "fields": {"recurring_task_id": recurring.id},
            "owner": OWNER_ID,
        }
    ]
    assert ISO_MS.match(recurring.next_due)
    assert report.success


async def test_no_patch_without_relationships():
    reader = MemoryReader(tasks=[{"id": "T1", "title": "Alone"}])
    remote = FakeRemoteStore()

    await _orchestrator(reader, remote).run()

    assert "patch" not in remote.calls


async def test_patch_failure_is_diagnosed():
    reader = MemoryReader(
        tasks=[
            {"id": "T1", "title": "Parent"},
            {"id": "T2", "title": "Child", "parentTaskId": "T1"},
        ]
    )
    remapper = IdRemapper()
    remote = FakeRemoteStore()
    remote.fail_patch.add(remapper.allocate("tasks", "T2"))

    report = await _orchestrator(reader, remote, remapper=remapper).run()

    assert report.success
    assert report.progress["tasks"]["migrated"] == 2
    assert any("Failed to update relationships" in d.message for d in report.diagnostics)


async def test_duplicate_source_ids_are_skipped():
    reader = MemoryReader(
        projects=[{"id": "P1", "name": "Home"}, {"id": "P1", "name": "Home copy"}]
    )
    remote = FakeRemoteStore()

    report = await _orchestrator(reader, remote).run()

    assert [p.name for p in remote.projects] == ["Home"]
    assert report.diagnostics[0].source_id == "P1"
    assert report.success


async def test_timestamps_are_normalized():
    reader = MemoryReader(
        tasks=[
            {
                "id": "T1",
                "title": "Old",
                "createdAt": None,
                "updatedAt": "2024-02-01",
                "completedAt": "not a date",
            }
        ]
    )
    remote = FakeRemoteStore()

    await _orchestrator(reader, remote).run()

    task = remote.tasks[0]
    assert ISO_MS.match(task.created_at)
    assert task.updated_at == "2024-02-01T00:00:00.000Z"
    assert task.completed_at is None


async def test_settings_failure_is_fatal():
    reader = MemoryReader(settings={"theme": "dark"})
    remote = FakeRemoteStore(fail_on={"save_settings": {"settings"}})

    report = await _orchestrator(reader, remote).run()

    assert not report.success
    assert report.error.startswith("Failed to migrate settings")
    assert report.progress["settings"]["status"] == "error"


def test_snapshot_totals():
    snapshot = MigrationSnapshot.read(_planner_reader())
    assert snapshot.totals()["tasks"] == 3
    assert snapshot.totals()["workSchedules"] == 0
    assert snapshot.has_data()
    assert not MigrationSnapshot.read(MemoryReader(settings={"a": 1})).has_data()


async def test_loose_local_documents_migrate_in_full(store):
    store.set_item(
        TASKS_KEY,
        json.dumps(
            [
                {"id": "t-1", "title": "Old", "createdAt": 1700000000000},
                {"id": "t-2", "title": "Unsure", "completed": None},
                {"id": "t-3", "title": "Plain"},
            ]
        ),
    )
    store.set_item(PROJECTS_KEY, json.dumps([{"id": "p-1", "name": "Home", "order": "1a"}]))
    remote = FakeRemoteStore()

    report = await _orchestrator(store, remote).run()

    assert report.success
    assert report.diagnostics == []
    assert [t.title for t in remote.tasks] == ["Old", "Unsure", "Plain"]
    assert remote.task_by_title("Old").created_at == "2023-11-14T22:13:20.000Z"
    assert remote.task_by_title("Unsure").completed is False
    assert len(remote.projects) == 1
    assert report.progress["tasks"] == {"total": 3, "migrated": 3, "status": "completed"}


async def test_unreadable_items_count_and_are_diagnosed(store):
    store.set_item(
        TASKS_KEY, json.dumps([{"id": "T1", "title": "Fine"}, "stray text", {"id": "T3"}])
    )
    remote = FakeRemoteStore()

    report = await _orchestrator(store, remote).run()

    assert report.success
    assert len(remote.tasks) == 2
    assert report.progress["tasks"] == {"total": 3, "migrated": 2, "status": "completed"}
    unreadable = [d for d in report.diagnostics if d.message.startswith("Unreadable")]
    assert len(unreadable) == 1
    assert unreadable[0].entity_type == "tasks"
    assert "index 1" in unreadable[0].message


async def test_rerun_starts_from_fresh_state():
    reader = MemoryReader(
        projects=[{"id": "P1", "name": "Home"}],
        categories=[{"id": "C1", "name": "Errands"}],
    )
    remote = FakeRemoteStore(fail_on={"create_category": {"Errands"}})
    progress = MigrationProgress()
    remapper = IdRemapper()
    orchestrator = _orchestrator(reader, remote, progress=progress, remapper=remapper)

    first = await orchestrator.run()
    assert not first.success
    assert progress.error is not None

    remote.fail_on = {}
    second = await orchestrator.run()

    assert second.success
    assert progress.error is None
    assert orchestrator.remapper is not remapper
    assert remapper.count("projects") == 1
    assert second.mapping_counts["projects"] == 1
    assert second.mapping_counts["categories"] == 1
    assert second.progress["projects"] == {"total": 1, "migrated": 1, "status": "completed"}
    assert second.progress["categories"]["status"] == "completed"
    assert remote.projects[0].id != remote.projects[1].id
    assert remapper.resolve("projects", "P1") == remote.projects[0].id


async def test_recurring_task_references_are_rewritten():
    reader = MemoryReader(
        projects=[{"id": "P1", "name": "Home"}],
        categories=[{"id": "C1", "name": "Errands"}],
        recurring_tasks=[
            {
                "id": "R1",
                "title": "Water plants",
                "projectId": "P1",
                "categoryIds": ["C1", "C-gone"],
            },
            {"id": "R2", "title": "Gym", "projectId": "P-gone", "categoryIds": ["C-gone"]},
        ],
    )
    remote = FakeRemoteStore()

    report = await _orchestrator(reader, remote).run()

    assert report.success
    water, gym = remote.recurring_tasks
    assert water.project_id == remote.projects[0].id
    assert water.category_ids == [remote.categories[0].id]
    assert gym.project_id is None
    assert gym.category_ids == []


async def test_cyclic_dependencies_are_patched():
    reader = MemoryReader(
        tasks=[
            {"id": "T1", "title": "Draft", "dependsOn": ["T2"], "dependedOnBy": ["T2"]},
            {"id": "T2", "title": "Review", "dependsOn": ["T1"], "dependedOnBy": ["T1"]},
        ]
    )
    remote = FakeRemoteStore()

    report = await _orchestrator(reader, remote).run()

    t1 = remote.task_by_title("Draft")
    t2 = remote.task_by_title("Review")
    assert remote.patch_for(t1.id) == {"depends_on": [t2.id], "depended_on_by": [t2.id]}
    assert remote.patch_for(t2.id) == {"depends_on": [t1.id], "depended_on_by": [t1.id]}
    assert report.diagnostics == []


@pytest.mark.parametrize(
    "method, label, failed_type, error_prefix, later_types",
    [
        (
            "create_category",
            "Errands",
            "categories",
            'Failed to migrate category "Errands"',
            ["tasks", "recurringTasks", "dailyPlans"],
        ),
        (
            "create_recurring_task",
            "Water plants",
            "recurringTasks",
            'Failed to migrate recurring task "Water plants"',
            ["dailyPlans", "journalEntries"],
        ),
        (
            "save_daily_plan",
            "2024-03-01",
            "dailyPlans",
            'Failed to migrate daily plan for "2024-03-01"',
            ["journalEntries", "workSchedules"],
        ),
        (
            "create_journal_entry",
            "2024-03-03",
            "journalEntries",
            'Failed to migrate journal entry for date "2024-03-03"',
            ["workSchedules", "settings"],
        ),
        (
            "create_work_schedule",
            "Shifts",
            "workSchedules",
            "Failed to migrate work schedule",
            ["settings"],
        ),
    ],
)
async def test_failure_aborts_remaining_steps(
    method, label, failed_type, error_prefix, later_types
):
    reader = MemoryReader(
        projects=[{"id": "P1", "name": "Home"}],
        categories=[{"id": "C1", "name": "Errands"}],
        tasks=[{"id": "T1", "title": "A"}],
        recurring_tasks=[{"id": "R1", "title": "Water plants"}],
        daily_plans=[{"id": "D1", "date": "2024-03-01"}],
        journal_entries=[{"id": "J1", "date": "2024-03-03"}],
        work_schedule={"id": "W1", "name": "Shifts"},
        settings={"theme": "dark"},
    )
    remote = FakeRemoteStore(fail_on={method: {label}})

    report = await _orchestrator(reader, remote).run()

    assert not report.success
    assert report.error.startswith(error_prefix)
    assert report.progress[failed_type]["status"] == "error"
    assert report.progress[failed_type]["migrated"] == 0
    for later in later_types:
        assert report.progress[later]["status"] == "pending"
        assert report.progress[later]["migrated"] == 0
    assert remote.calls[-1] == method
    assert "save_settings" not in remote.calls


async def test_time_block_references_partially_resolve():
    reader = MemoryReader(
        tasks=[
            {"id": "t-1", "title": "Email"},
            {"id": "t-2", "title": "Invoice"},
        ],
        daily_plans=[
            {
                "id": "D1",
                "date": "2024-03-01",
                "timeBlocks": [
                    {"id": "B1", "taskId": "t-gone", "taskIds": ["t-1", "t-gone", "t-2"]},
                    {"id": "B2", "taskId": "t-2"},
                ],
            }
        ],
    )
    remote = FakeRemoteStore()

    report = await _orchestrator(reader, remote).run()

    assert report.success
    t1 = remote.task_by_title("Email")
    t2 = remote.task_by_title("Invoice")
    first, second = remote.daily_plans[0].time_blocks
    assert first.task_id is None
    assert first.task_ids == [t1.id, t2.id]
    assert second.task_id == t2.id
    assert second.task_ids == []
    assert remote.daily_plans[0].id != "D1"
