"""Tests for the in-memory branch tree."""

import pytest

from stacked.core.branch_graph import Branch, BranchGraph
from stacked.core.errors import GraphInvariantError
from tests.test_utils.stack_helpers import build_graph


def test_lookups_on_a_small_tree() -> None:
    graph = build_graph({"a": "main", "b": "a", "c": "main"})

    assert graph.children("main") == ["a", "c"]
    assert graph.children("a") == ["b"]
    assert graph.ancestors("b") == ["b", "a", "main"]
    assert graph.depth("b") == 2
    assert graph.depth("main") == 0
    assert graph.is_ancestor("a", "b")
    assert not graph.is_ancestor("b", "a")
    assert not graph.is_ancestor("c", "b")
    assert "main" in graph
    assert not graph.is_tracked("main")
    assert graph.parent_of("main") is None


def test_topological_order_puts_parents_first() -> None:
    graph = build_graph({"b": "a", "a": "main", "c": "main", "d": "b"})

    order = graph.topological_order()

    assert sorted(order) == ["a", "b", "c", "d"]
    for name in order:
        parent = graph.parent_of(name)
        if parent != "main":
            assert order.index(parent) < order.index(name)


def test_construction_rejects_a_cycle() -> None:
    with pytest.raises(GraphInvariantError, match="cycle detected"):
        BranchGraph("main", [Branch("a", "b"), Branch("b", "a")])


def test_construction_rejects_a_dangling_parent() -> None:
    with pytest.raises(GraphInvariantError, match="neither tracked nor the base branch"):
        BranchGraph("main", [Branch("a", "ghost")])


def test_construction_rejects_a_record_for_the_base_branch() -> None:
    with pytest.raises(GraphInvariantError, match="base branch"):
        BranchGraph("main", [Branch("main", "a"), Branch("a", "main")])


def test_set_parent_rejects_cycle_and_leaves_graph_unchanged() -> None:
    graph = build_graph({"a": "main", "b": "a", "c": "b"})

    with pytest.raises(GraphInvariantError, match="would create a cycle"):
        graph.set_parent("a", "c")

    assert graph.parent_of("a") == "main"
    assert graph.topological_order() == ["a", "b", "c"]


def test_set_parent_rejects_self_parent() -> None:
    graph = build_graph({"a": "main"})

    with pytest.raises(GraphInvariantError):
        graph.set_parent("a", "a")


def test_set_parent_rejects_untracked_parent() -> None:
    graph = build_graph({"a": "main"})

    with pytest.raises(GraphInvariantError, match="is not tracked"):
        graph.set_parent("b", "ghost")

    assert not graph.is_tracked("b")


def test_set_parent_refuses_to_give_base_a_parent() -> None:
    graph = build_graph({"a": "main"})

    with pytest.raises(GraphInvariantError, match="cannot have a parent"):
        graph.set_parent("main", "a")


def test_set_parent_moves_a_subtree() -> None:
    graph = build_graph({"a": "main", "b": "a", "c": "main"})

    graph.set_parent("b", "c")

    assert graph.children("a") == []
    assert graph.children("c") == ["b"]


def test_apply_batch_accepts_edits_in_any_order() -> None:
    graph = build_graph({})

    graph.apply_batch([("b", "a"), ("a", "main")])

    assert graph.ancestors("b") == ["b", "a", "main"]


def test_apply_batch_is_all_or_nothing() -> None:
    graph = build_graph({"a": "main"})

    with pytest.raises(GraphInvariantError):
        graph.apply_batch([("x", "main"), ("y", "ghost")])

    assert not graph.is_tracked("x")
    assert not graph.is_tracked("y")


def test_apply_batch_rejects_a_cycle_built_across_edits() -> None:
    graph = build_graph({"a": "main", "b": "a"})

    with pytest.raises(GraphInvariantError, match="cycle detected"):
        graph.apply_batch([("a", "b")])

    assert graph.parent_of("a") == "main"


def test_splice_remove_hands_children_to_parent() -> None:
    graph = build_graph({"a": "main", "b": "a", "c": "a", "d": "b"})

    result = graph.splice_remove("a")

    assert result.removed
    assert result.parent == "main"
    assert result.reparented == ("b", "c")
    assert not graph.is_tracked("a")
    assert graph.parent_of("b") == "main"
    assert graph.parent_of("c") == "main"
    assert graph.parent_of("d") == "b"


def test_splice_remove_of_untracked_branch_is_a_noop() -> None:
    graph = build_graph({"a": "main"})

    result = graph.splice_remove("zzz")

    assert not result.removed
    assert result.reparented == ()
    assert len(graph) == 1


def test_splice_remove_refuses_base() -> None:
    graph = build_graph({"a": "main"})

    with pytest.raises(GraphInvariantError):
        graph.splice_remove("main")


def test_mark_synced_and_pr_cache_require_tracked_branch() -> None:
    graph = build_graph({"a": "main"})

    graph.mark_synced("a", "abc")
    record = graph.get("a")
    assert record is not None
    assert record.last_synced_commit == "abc"

    with pytest.raises(GraphInvariantError):
        graph.mark_synced("ghost", "abc")


def test_copy_is_independent() -> None:
    graph = build_graph({"a": "main"})
    copy = graph.copy()

    copy.set_parent("b", "a")

    assert copy.is_tracked("b")
    assert not graph.is_tracked("b")
