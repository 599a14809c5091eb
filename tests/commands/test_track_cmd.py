"""Tests for stack track."""

from stacked.core.context import StackContext
from stacked.core.git.fake import FakeGit
from stacked.core.github.fake import FakeGitHub
from stacked.core.store.abc import RelationshipStore
from tests.test_utils.cli_helpers import invoke, parse_json
from tests.test_utils.stack_helpers import build_store, history, pull_request


def _linear_git() -> FakeGit:
    return FakeGit(
        commits=history("m1", "a1", "b1"),
        branches={"main": "m1", "a": "a1", "b": "b1"},
        current_branch="b",
    )


def _parents(store: RelationshipStore) -> dict[str, str | None]:
    return {record.name: record.parent for record in store.list_records()}


def test_track_with_explicit_parent() -> None:
    store = build_store({})

    result = invoke(
        StackContext.for_test(git=_linear_git(), store=store),
        ["track", "a", "--parent", "main"],
    )

    assert result.exit_code == 0
    assert "Tracking 'a' on 'main'" in result.stderr
    assert _parents(store) == {"a": "main"}


def test_track_infers_parent_from_ancestry() -> None:
    store = build_store({"a": "main"})

    result = invoke(
        StackContext.for_test(git=_linear_git(), store=store), ["--porcelain", "track"]
    )

    assert result.exit_code == 0
    data = parse_json(result)
    assert data["status"] == "tracked"
    assert data["branches"] == [{"branch": "b", "parent": "a", "source": "git_ancestry"}]
    assert _parents(store) == {"a": "main", "b": "a"}


def test_track_prefers_open_pull_request_base() -> None:
    store = build_store({"a": "main", "x": "main"})
    git = FakeGit(
        commits=history("m1", "a1", "b1") | history("x1", on="m1"),
        branches={"main": "m1", "a": "a1", "b": "b1", "x": "x1"},
    )
    github = FakeGitHub(pull_requests=[pull_request(4, "b", "x")])

    result = invoke(
        StackContext.for_test(git=git, github=github, store=store),
        ["--porcelain", "track", "b"],
    )

    assert parse_json(result)["branches"][0] == {
        "branch": "b",
        "parent": "x",
        "source": "pr_base",
    }


def test_track_ambiguous_ancestry_fails_without_prompt() -> None:
    git = FakeGit(
        commits=history("m1", "c1", "e1"),
        branches={"main": "m1", "c": "c1", "d": "c1", "e": "e1"},
    )
    store = build_store({})

    result = invoke(StackContext.for_test(git=git, store=store), ["track", "e"])

    assert result.exit_code == 1
    assert "several candidates for parent of 'e'" in result.stderr
    assert "Candidates: c, d" in result.stderr
    assert _parents(store) == {}


def test_track_ambiguity_is_reported_as_json() -> None:
    git = FakeGit(
        commits=history("m1", "c1", "e1"),
        branches={"main": "m1", "c": "c1", "d": "c1", "e": "e1"},
    )

    result = invoke(
        StackContext.for_test(git=git, store=build_store({})), ["--porcelain", "track", "e"]
    )

    data = parse_json(result)
    assert data["error_type"] == "AmbiguityError"
    assert data["candidates"] == ["c", "d"]


def test_track_refuses_base_branch() -> None:
    result = invoke(
        StackContext.for_test(git=_linear_git(), store=build_store({})), ["track", "main"]
    )

    assert result.exit_code == 1
    assert "'main' is the base branch" in result.stderr


def test_track_refuses_untracked_explicit_parent() -> None:
    result = invoke(
        StackContext.for_test(git=_linear_git(), store=build_store({})),
        ["track", "b", "--parent", "a"],
    )

    assert result.exit_code == 1
    assert "Parent 'a' is not tracked; run 'stack track a' first" in result.stderr


def test_track_replacing_parent_needs_force() -> None:
    store = build_store({"a": "main", "b": "main"})

    refused = invoke(
        StackContext.for_test(git=_linear_git(), store=store), ["track", "b", "--parent", "a"]
    )

    assert refused.exit_code == 1
    assert "pass --force or --yes to replace it" in refused.stderr
    assert _parents(store)["b"] == "main"

    forced = invoke(
        StackContext.for_test(git=_linear_git(), store=store),
        ["track", "b", "--parent", "a", "--force"],
    )

    assert forced.exit_code == 0
    assert _parents(store)["b"] == "a"


def test_track_onto_own_descendant_is_rejected_and_nothing_changes() -> None:
    store = build_store({"a": "main", "b": "a"})
    before = store.list_records()

    result = invoke(
        StackContext.for_test(git=_linear_git(), store=store),
        ["track", "a", "--parent", "b", "--force"],
    )

    assert result.exit_code == 1
    assert "Error: setting parent of 'a' to 'b' would create a cycle" in result.stderr
    assert store.list_records() == before


def test_track_cycle_is_rejected_in_dry_run_and_porcelain() -> None:
    store = build_store({"a": "main", "b": "a"})
    before = store.list_records()

    result = invoke(
        StackContext.for_test(git=_linear_git(), store=store),
        ["--porcelain", "track", "a", "--parent", "b", "--force", "--dry-run"],
    )

    assert result.exit_code == 1
    assert parse_json(result)["error_type"] == "GraphInvariantError"
    assert store.list_records() == before


def test_track_already_tracked_is_unchanged() -> None:
    store = build_store({"a": "main"})

    result = invoke(
        StackContext.for_test(git=_linear_git(), store=store), ["--porcelain", "track", "a"]
    )

    data = parse_json(result)
    assert data["status"] == "unchanged"
    assert data["branches"][0]["source"] == "existing"


def test_track_all_orders_parents_first() -> None:
    store = build_store({})

    result = invoke(
        StackContext.for_test(git=_linear_git(), store=store),
        ["--porcelain", "track", "--all"],
    )

    data = parse_json(result)
    assert data["status"] == "tracked"
    assert [(info["branch"], info["parent"]) for info in data["branches"]] == [
        ("a", "main"),
        ("b", "a"),
    ]
    assert _parents(store) == {"a": "main", "b": "a"}


def test_track_dry_run_changes_nothing() -> None:
    store = build_store({})

    result = invoke(
        StackContext.for_test(git=_linear_git(), store=store),
        ["track", "a", "--parent", "main", "--dry-run"],
    )

    assert result.exit_code == 0
    assert "Would track 'a' on 'main' (explicit)" in result.stderr
    assert _parents(store) == {}
