"""Tests for stack push."""

from stacked.core.context import StackContext
from stacked.core.git.fake import FakeGit
from tests.test_utils.cli_helpers import invoke, parse_json
from tests.test_utils.stack_helpers import build_store, history, pr_cache


def _git() -> FakeGit:
    return FakeGit(
        commits=history("m1", "a1", "b1"),
        branches={"main": "m1", "a": "a1", "b": "b1", "d": "b1"},
        current_branch="b",
        branch_remotes={"d": "fork"},
    )


def test_push_skips_merged_and_missing_branches() -> None:
    git = _git()
    store = build_store(
        {"a": "main", "b": "a", "c": "b", "d": "b"},
        caches={"a": pr_cache(1, state="MERGED", merge_commit="a1")},
    )

    result = invoke(StackContext.for_test(git=git, store=store), ["--porcelain", "push"])

    assert result.exit_code == 0
    assert parse_json(result) == {
        "status": "pushed",
        "pushed": [{"branch": "b", "remote": "origin"}, {"branch": "d", "remote": "fork"}],
        "skipped_missing": ["c"],
        "skipped_merged": ["a"],
    }
    assert git.pushed_branches == [("origin", "b"), ("fork", "d")]
    assert "skipping 'a': its pull request is merged" in result.stderr
    assert "skipping 'c': branch is missing locally" in result.stderr


def test_push_dry_run_pushes_nothing() -> None:
    git = _git()
    store = build_store({"a": "main", "b": "a"})

    result = invoke(StackContext.for_test(git=git, store=store), ["push", "--dry-run"])

    assert result.exit_code == 0
    assert "Would push 'a' to 'origin'" in result.stderr
    assert "Would push 'b' to 'origin'" in result.stderr
    assert git.pushed_branches == []


def test_push_with_empty_stack() -> None:
    result = invoke(StackContext.for_test(git=_git(), store=build_store({})), ["push"])

    assert result.exit_code == 0
    assert "Nothing to push" in result.stderr
