"""Tests for stack sync."""

from stacked.core.context import StackContext
from stacked.core.git.fake import FakeGit
from tests.test_utils.cli_helpers import invoke, parse_json
from tests.test_utils.stack_helpers import build_store, history


def _behind_git(fetch_error: str | None = None) -> FakeGit:
    """main moved on from m1 to m2 while a stayed on m1."""
    return FakeGit(
        commits=history("m1", "m2") | history("a1", on="m1"),
        branches={"main": "m2", "a": "a1"},
        current_branch="main",
        fetch_error=fetch_error,
    )


def test_sync_reports_up_to_date_stack() -> None:
    git = FakeGit(
        commits=history("m1", "a1"), branches={"main": "m1", "a": "a1"}, current_branch="a"
    )
    store = build_store({"a": "main"}, synced={"a": "a1"})

    result = invoke(StackContext.for_test(git=git, store=store), ["sync"])

    assert result.exit_code == 0
    assert "Stack is up to date" in result.stderr
    assert git.fetched_remotes == []


def test_sync_dry_run_prints_plan_without_changes() -> None:
    git = _behind_git()
    store = build_store({"a": "main"}, synced={"a": "a1"})

    result = invoke(
        StackContext.for_test(git=git, store=store), ["--porcelain", "sync", "--dry-run"]
    )

    assert result.exit_code == 0
    data = parse_json(result)
    assert data["status"] == "planned"
    assert [step["kind"] for step in data["steps"]] == ["fetch", "restack"]
    assert data["steps"][1]["branch"] == "a"
    assert data["steps"][1]["state"] is None
    assert git.branch_heads["a"] == "a1"


def test_sync_without_confirmation_is_not_applied() -> None:
    git = _behind_git()
    store = build_store({"a": "main"}, synced={"a": "a1"})

    result = invoke(StackContext.for_test(git=git, store=store), ["sync"])

    assert result.exit_code == 0
    assert "sync plan not applied; rerun with --yes to apply it" in result.stderr
    assert "restack" in result.stderr
    assert git.branch_heads["a"] == "a1"


def test_sync_with_yes_restacks() -> None:
    git = _behind_git()
    store = build_store({"a": "main"}, synced={"a": "a1"})

    result = invoke(StackContext.for_test(git=git, store=store), ["--yes", "sync"])

    assert result.exit_code == 0
    assert "Restacked a" in result.stderr
    assert git.fetched_remotes == ["origin"]
    assert git.replayed == [("a", "m1", "m2")]
    assert store.list_records()[0].last_synced_commit == "a1'"


def test_sync_porcelain_reports_applied_steps() -> None:
    git = _behind_git()
    store = build_store({"a": "main"}, synced={"a": "a1"})

    result = invoke(
        StackContext.for_test(git=git, store=store), ["--porcelain", "--yes", "sync"]
    )

    data = parse_json(result)
    assert data["status"] == "applied"
    assert data["restacked"] == ["a"]
    assert [step["state"] for step in data["steps"]] == ["applied", "applied"]


def test_sync_conflict_exits_with_code_two() -> None:
    git = FakeGit(
        commits=history("m1", "m2") | history("a1", "b1", "c1", on="m1"),
        branches={"main": "m2", "a": "a1", "b": "b1", "c": "c1"},
        current_branch="main",
        conflicts={"b"},
    )
    store = build_store({"a": "main", "b": "a", "c": "b"})

    result = invoke(
        StackContext.for_test(git=git, store=store), ["--porcelain", "--yes", "sync"]
    )

    assert result.exit_code == 2
    assert "Not yet restacked: c" in result.stderr
    assert "Resolve the conflict, then run 'stack sync' again." in result.stderr
    data = parse_json(result)
    assert data["error_type"] == "ConflictError"
    assert data["exit_code"] == 2
    assert data["branch"] == "b"
    assert data["pending"] == ["c"]


def test_sync_fetch_failure_is_an_error() -> None:
    git = _behind_git(fetch_error="could not resolve host")
    store = build_store({"a": "main"}, synced={"a": "a1"})

    result = invoke(StackContext.for_test(git=git, store=store), ["--yes", "sync"])

    assert result.exit_code == 1
    assert "Error: Failed to fetch from remote 'origin'" in result.stderr
    assert git.branch_heads["a"] == "a1"
