"""Tests for the store integrity scan and repair."""

from stacked.core.integrity import repair, scan_records
from stacked.core.store.abc import BranchRecord
from stacked.core.store.sqlite import SqlRelationshipStore


def _store(*records: BranchRecord) -> SqlRelationshipStore:
    store = SqlRelationshipStore.in_memory()
    store.write_records(upserts=list(records), deletes=[])
    return store


def _codes(store: SqlRelationshipStore, local: set[str] | None = None) -> list[tuple[str, str]]:
    return [
        (issue.code, issue.branch)
        for issue in scan_records(store.list_records(), "main", local)
    ]


def test_healthy_store_has_no_issues() -> None:
    store = _store(BranchRecord("a", "main"), BranchRecord("b", "a"))

    assert _codes(store, {"main", "a", "b"}) == []
    report = repair(store, "main", {"main", "a", "b"})
    assert not report.changed
    assert report.actions == ()


def test_cycle_is_reported_and_broken_at_its_closing_edge() -> None:
    store = _store(BranchRecord("a", "b"), BranchRecord("b", "a"))

    issues = scan_records(store.list_records(), "main")
    assert [(issue.code, issue.branch) for issue in issues] == [("cycle", "b")]
    assert issues[0].message == "cycle detected: a -> b -> a"

    report = repair(store, "main")

    assert report.changed
    assert report.actions == ("broke cycle at 'b' and re-rooted it under 'main'",)
    assert store.load_graph("main").ancestors("a") == ["a", "b", "main"]
    assert _codes(store) == []


def test_missing_parent_and_orphan_are_re_rooted() -> None:
    store = _store(BranchRecord("a", "ghost"), BranchRecord("b", None))

    assert _codes(store) == [("missing_parent", "a"), ("orphaned_branch", "b")]

    repair(store, "main")

    graph = store.load_graph("main")
    assert graph.parent_of("a") == "main"
    assert graph.parent_of("b") == "main"


def test_record_for_base_branch_is_dropped() -> None:
    store = _store(BranchRecord("main", "a"), BranchRecord("a", "main"))

    assert ("base_has_parent", "main") in _codes(store)

    report = repair(store, "main")

    assert report.deletes == 1
    assert [record.name for record in store.list_records()] == ["a"]


def test_branches_gone_from_git_are_spliced_out() -> None:
    store = _store(
        BranchRecord("a", "main"), BranchRecord("b", "a"), BranchRecord("c", "b")
    )
    local = {"main", "a", "c"}

    assert _codes(store, local) == [("missing_git_branch", "b")]

    report = repair(store, "main", local)

    assert report.actions == ("stopped tracking 'b' (branch no longer exists)",)
    graph = store.load_graph("main")
    assert graph.parent_of("c") == "a"
    assert not graph.is_tracked("b")


def test_partial_pr_cache_is_cleared() -> None:
    store = _store(BranchRecord("a", "main", last_synced_commit="a1", pr_number=3))

    assert _codes(store) == [("partial_pr_cache", "a")]

    repair(store, "main")

    record = store.list_records()[0]
    assert not record.has_pr_cache
    assert record.last_synced_commit == "a1"


def test_scan_skips_git_check_without_local_branches() -> None:
    store = _store(BranchRecord("a", "main"))

    assert _codes(store) == []
    assert _codes(store, {"main"}) == [("missing_git_branch", "a")]
