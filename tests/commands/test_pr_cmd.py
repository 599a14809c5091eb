"""Tests for stack pr."""

from stacked.core.context import StackContext
from stacked.core.git.fake import FakeGit
from stacked.core.github.fake import FakeGitHub
from stacked.core.pr_body import MANAGED_BODY_MARKER_START
from tests.test_utils.cli_helpers import invoke, parse_json
from tests.test_utils.stack_helpers import REPO_URL, build_store, history, pr_cache, pull_request


def _git(current: str) -> FakeGit:
    return FakeGit(
        commits=history("m1", "a1", "b1"),
        branches={"main": "m1", "a": "a1", "b": "b1"},
        current_branch=current,
        remote_urls={"origin": "git@github.com:acme/repo.git"},
    )


def test_pr_opens_against_parent_with_managed_section() -> None:
    git = _git("b")
    github = FakeGitHub(pull_requests=[pull_request(1, "a", "main", body="A body")])
    store = build_store({"a": "main", "b": "a"}, caches={"a": pr_cache(1)})

    result = invoke(
        StackContext.for_test(git=git, github=github, store=store),
        ["--porcelain", "pr", "--title", "Add b", "--body", "Details"],
    )

    assert result.exit_code == 0
    data = parse_json(result)
    assert data["status"] == "created"
    assert data["number"] == 2
    assert data["base"] == "a"
    assert git.pushed_branches == [("origin", "b")]

    created = github.created[0]
    assert created.title == "Add b"
    assert created.body is not None
    assert created.body.startswith(MANAGED_BODY_MARKER_START)
    assert f"… → [#1]({REPO_URL}/pull/1) → (this PR)" in created.body
    assert created.body.endswith("Details")

    # the parent's section now links the new pull request
    edited = dict(github.edited_bodies)
    assert f"(this PR) → [#2]({REPO_URL}/pull/2) → …" in edited[1]
    assert edited[1].endswith("A body")

    record = {record.name: record for record in store.list_records()}["b"]
    assert record.pr_number == 2


def test_pr_reports_existing_pull_request() -> None:
    git = _git("b")
    github = FakeGitHub(pull_requests=[pull_request(7, "b", "a")])
    store = build_store({"a": "main", "b": "a"})

    result = invoke(
        StackContext.for_test(git=git, github=github, store=store), ["--porcelain", "pr"]
    )

    assert result.exit_code == 0
    data = parse_json(result)
    assert data["status"] == "exists"
    assert data["number"] == 7
    assert github.created == []
    assert git.pushed_branches == []
    assert {record.name: record for record in store.list_records()}["b"].pr_number == 7


def test_pr_from_untracked_branch_targets_base() -> None:
    git = _git("b")
    github = FakeGitHub()

    result = invoke(
        StackContext.for_test(git=git, github=github, store=build_store({})), ["pr"]
    )

    assert result.exit_code == 0
    assert "'b' is not tracked; opening the pull request against 'main'" in result.stderr
    assert github.created[0].base_ref == "main"
    assert github.created[0].title == "b"


def test_pr_dry_run_does_not_push() -> None:
    git = _git("b")
    github = FakeGitHub()
    store = build_store({"a": "main", "b": "a"})

    result = invoke(
        StackContext.for_test(git=git, github=github, store=store),
        ["--porcelain", "pr", "--dry-run"],
    )

    assert parse_json(result) == {
        "status": "planned",
        "head": "b",
        "base": "a",
        "number": None,
        "url": None,
    }
    assert git.pushed_branches == []
    assert github.created == []


def test_pr_refuses_base_branch() -> None:
    result = invoke(
        StackContext.for_test(git=_git("main"), store=build_store({})), ["pr"]
    )

    assert result.exit_code == 1
    assert "Cannot open a pull request from the base branch 'main'" in result.stderr


def test_pr_creation_failure_is_an_error() -> None:
    github = FakeGitHub(mutation_error="HTTP 422")
    store = build_store({"a": "main"})

    result = invoke(
        StackContext.for_test(git=_git("a"), github=github, store=store), ["pr"]
    )

    assert result.exit_code == 1
    assert "Error: Failed to update GitHub" in result.stderr
