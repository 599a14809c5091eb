"""Tests for the managed section of pull request bodies."""

from stacked.core.pr_body import (
    MANAGED_BODY_MARKER_END,
    MANAGED_BODY_MARKER_START,
    ManagedBranchRef,
    compose_pr_body,
    managed_pr_section,
    merge_managed_section,
    section_for_branch,
)
from tests.test_utils.stack_helpers import REPO_URL, build_graph, pr_cache, pull_request


def _section(text: str) -> str:
    return f"{MANAGED_BODY_MARKER_START}\n{text}\n<hr />\n{MANAGED_BODY_MARKER_END}"


def test_section_for_pr_on_base_without_children() -> None:
    section = managed_pr_section(REPO_URL, "main", parent=None, first_child=None)

    assert section == _section(f"[main]({REPO_URL}/tree/main) → (this PR)")


def test_section_links_parent_pr_and_child_branch() -> None:
    section = managed_pr_section(
        REPO_URL + "/",
        "main",
        parent=ManagedBranchRef("feat/a", 12, f"{REPO_URL}/pull/12"),
        first_child=ManagedBranchRef("feat/c"),
    )

    assert section == _section(
        f"… → [#12]({REPO_URL}/pull/12) → (this PR)"
        f" → [feat/c]({REPO_URL}/tree/feat/c) → …"
    )


def test_section_for_branch_prefers_live_pr_over_cache() -> None:
    graph = build_graph({"a": "main", "b": "a"}, caches={"a": pr_cache(3)})

    cached = section_for_branch(graph, "b", {}, base_url=REPO_URL)
    live = section_for_branch(
        graph, "b", {"a": pull_request(8, "a", "main")}, base_url=REPO_URL
    )

    assert f"[#3]({REPO_URL}/pull/3)" in cached
    assert f"[#8]({REPO_URL}/pull/8)" in live


def test_compose_puts_user_text_after_section() -> None:
    section = _section("x")

    assert compose_pr_body(section, "  Details  ") == f"{section}\n\nDetails"
    assert compose_pr_body(section, None) == section


def test_merge_prepends_when_no_section_exists() -> None:
    section = _section("x")

    assert merge_managed_section("Hand written", section) == f"{section}\n\nHand written"
    assert merge_managed_section(None, section) == section


def test_merge_replaces_section_in_place_and_keeps_surrounding_text() -> None:
    old = _section("old")
    new = _section("new")
    body = f"Intro\n\n{old}\n\nOutro"

    merged = merge_managed_section(body, new)

    assert merged == f"Intro\n\n{new}\n\nOutro"


def test_merge_is_idempotent() -> None:
    section = _section("x")

    once = merge_managed_section("Body", section)

    assert merge_managed_section(once, section) == once
