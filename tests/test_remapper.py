"""
Identifier remapper tests
"""

from planner_sync.migration.remapper import (
    IdRemapper,
    is_valid_target_id,
    new_target_id,
)


def test_allocate_is_idempotent_per_type():
    remapper = IdRemapper()
    first = remapper.allocate("tasks", "T1")
    assert remapper.allocate("tasks", "T1") == first
    assert remapper.allocate("projects", "T1") != first


def test_allocated_ids_are_valid_and_distinct():
    remapper = IdRemapper()
    ids = {remapper.allocate("tasks", f"T{i}") for i in range(50)}
    assert len(ids) == 50
    assert all(is_valid_target_id(i) for i in ids)


def test_resolve_only_sees_committed_allocations():
    remapper = IdRemapper()
    target = remapper.allocate("tasks", "T1")
    assert remapper.resolve("tasks", "T1") is None
    assert not remapper.is_committed("tasks", "T1")

    remapper.commit("tasks", "T1")
    assert remapper.resolve("tasks", "T1") == target
    assert remapper.mapping("tasks") == {"T1": target}
    assert remapper.count("tasks") == 1


def test_discard_forgets_allocation():
    remapper = IdRemapper()
    first = remapper.allocate("tasks", "T1")
    remapper.discard("tasks", "T1")
    assert remapper.mapping("tasks") == {}
    assert remapper.allocate("tasks", "T1") != first


def test_missing_source_id():
    remapper = IdRemapper()
    assert is_valid_target_id(remapper.allocate("tasks", None))
    assert remapper.resolve("tasks", None) is None
    assert remapper.resolve("tasks", "") is None
    remapper.commit("tasks", None)
    assert remapper.count("tasks") == 0


def test_unknown_type_resolves_to_none():
    assert IdRemapper().resolve("journalEntries", "J1") is None


def test_target_id_syntax():
    assert is_valid_target_id(new_target_id())
    assert is_valid_target_id("7D3C1A52-2F4B-4C7E-9A11-5B0D2E6F8C90")
    assert not is_valid_target_id("1700000000000")
    assert not is_valid_target_id("7d3c1a52-2f4b-6c7e-9a11-5b0d2e6f8c90")
    assert not is_valid_target_id("7d3c1a52-2f4b-4c7e-1a11-5b0d2e6f8c90")
    assert not is_valid_target_id(None)
    assert not is_valid_target_id(42)
