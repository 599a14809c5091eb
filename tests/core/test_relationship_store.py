"""Tests for the SQLite relationship store."""

from pathlib import Path

import pytest

from stacked.core.errors import GraphInvariantError
from stacked.core.store.abc import BranchRecord
from stacked.core.store.sqlite import DB_FILENAME, SqlRelationshipStore
from tests.test_utils.stack_helpers import build_graph, build_store, pr_cache


def test_persist_then_load_round_trips_the_graph() -> None:
    store = build_store(
        {"a": "main", "b": "a"},
        synced={"a": "a1"},
        caches={"b": pr_cache(7, state="MERGED", merge_commit="m9")},
    )

    graph = store.load_graph("main")

    assert graph.topological_order() == ["a", "b"]
    a = graph.get("a")
    b = graph.get("b")
    assert a is not None and b is not None
    assert a.last_synced_commit == "a1"
    assert a.pr_cache is None
    assert b.pr_cache == pr_cache(7, state="MERGED", merge_commit="m9")


def test_persist_deletes_untracked_rows() -> None:
    store = build_store({"a": "main", "b": "a"})
    graph = store.load_graph("main")

    graph.splice_remove("a")
    store.persist(graph)

    records = store.list_records()
    assert [record.name for record in records] == ["b"]
    assert records[0].parent == "main"


def test_base_branch_meta() -> None:
    store = SqlRelationshipStore.in_memory()
    assert store.get_base_branch() is None

    store.set_base_branch("main")
    store.set_base_branch("develop")

    assert store.get_base_branch() == "develop"


def test_corrupted_rows_are_listed_but_do_not_load() -> None:
    store = SqlRelationshipStore.in_memory()
    store.write_records(
        upserts=[BranchRecord("a", "b"), BranchRecord("b", "a")], deletes=[]
    )

    assert [record.name for record in store.list_records()] == ["a", "b"]
    with pytest.raises(GraphInvariantError, match="stack doctor --fix"):
        store.load_graph("main")


def test_record_without_parent_does_not_load() -> None:
    store = SqlRelationshipStore.in_memory()
    store.write_records(upserts=[BranchRecord("a", None)], deletes=[])

    with pytest.raises(GraphInvariantError, match="has no parent"):
        store.load_graph("main")


def test_partial_pr_cache_loads_as_absent() -> None:
    store = SqlRelationshipStore.in_memory()
    store.write_records(upserts=[BranchRecord("a", "main", pr_number=4)], deletes=[])

    record = store.list_records()[0]
    assert record.has_partial_pr_cache
    graph = store.load_graph("main")
    a = graph.get("a")
    assert a is not None
    assert a.pr_cache is None


def test_merge_commit_on_open_pr_counts_as_partial() -> None:
    record = BranchRecord(
        "a",
        "main",
        pr_number=1,
        pr_url="u",
        pr_state="OPEN",
        pr_head_repo="acme/repo",
        pr_base_repo="acme/repo",
        pr_merge_commit="m1",
    )

    assert record.has_partial_pr_cache
    assert record.pr_cache() is None


def test_sync_runs_are_recorded_newest_first() -> None:
    store = SqlRelationshipStore.in_memory()

    first = store.start_sync_run()
    store.finish_sync_run(first, "success", {"restacked": ["a"]})
    second = store.start_sync_run()

    runs = store.list_sync_runs()
    assert [run.id for run in runs] == [second, first]
    assert runs[0].status == "running"
    assert runs[0].finished_at is None
    assert runs[1].status == "success"
    assert runs[1].summary == {"restacked": ["a"]}


def test_file_store_is_shared_between_instances(tmp_path: Path) -> None:
    SqlRelationshipStore.open(tmp_path).persist(build_graph({"a": "main"}))

    reopened = SqlRelationshipStore.open(tmp_path)

    assert (tmp_path / DB_FILENAME).exists()
    assert reopened.load_graph("main").topological_order() == ["a"]
