"""Tests for stack up, down, top and bottom."""

from stacked.core.context import StackContext
from stacked.core.git.fake import FakeGit
from tests.test_utils.cli_helpers import invoke, parse_json
from tests.test_utils.stack_helpers import build_store

# main -> a -> b -> c
#           \-> d
EDGES = {"a": "main", "b": "a", "c": "b", "d": "a"}


def _ctx(current: str, *, porcelain: bool = False) -> tuple[StackContext, FakeGit]:
    git = FakeGit(
        commits={"m1": None},
        branches={name: "m1" for name in ["main", *EDGES]},
        current_branch=current,
    )
    ctx = StackContext.for_test(git=git, store=build_store(EDGES), porcelain=porcelain)
    return ctx, git


def test_up_follows_the_only_child() -> None:
    ctx, git = _ctx("b")

    result = invoke(ctx, ["up"])

    assert result.exit_code == 0
    assert "Using child of 'b': c" in result.stderr
    assert git.current_branch == "c"


def test_up_at_fork_needs_a_choice() -> None:
    ctx, git = _ctx("a")

    result = invoke(ctx, ["up"])

    assert result.exit_code == 1
    assert "Candidates: b, d" in result.stderr
    assert git.checked_out == []


def test_up_at_leaf_fails() -> None:
    ctx, _ = _ctx("c")

    result = invoke(ctx, ["up"])

    assert result.exit_code == 1
    assert "'c' has no children; already at the top" in result.stderr


def test_down_moves_to_parent() -> None:
    ctx, git = _ctx("c")

    result = invoke(ctx, ["down"])

    assert result.exit_code == 0
    assert git.current_branch == "b"


def test_down_stops_above_base() -> None:
    ctx, git = _ctx("a")

    result = invoke(ctx, ["down"])

    assert result.exit_code == 1
    assert "already at the bottom of the stack" in result.stderr
    assert git.current_branch == "a"


def test_top_walks_single_children() -> None:
    ctx, git = _ctx("b")

    result = invoke(ctx, ["top"])

    assert result.exit_code == 0
    assert git.current_branch == "c"


def test_top_from_base_prompts_at_fork() -> None:
    ctx, _ = _ctx("main")

    result = invoke(ctx, ["top"])

    assert result.exit_code == 1
    assert "several candidates for child of 'a'" in result.stderr


def test_bottom_moves_to_branch_on_base() -> None:
    ctx, git = _ctx("c")

    result = invoke(ctx, ["bottom"])

    assert result.exit_code == 0
    assert git.current_branch == "a"


def test_bottom_at_bottom_fails() -> None:
    ctx, _ = _ctx("a")

    result = invoke(ctx, ["bottom"])

    assert result.exit_code == 1
    assert "'a' is already at the bottom of the stack" in result.stderr


def test_porcelain_prints_target_without_checkout() -> None:
    ctx, git = _ctx("c", porcelain=True)

    result = invoke(ctx, ["down"])

    assert parse_json(result) == {"branch": "b"}
    assert git.current_branch == "c"
    assert git.checked_out == []


def test_untracked_current_branch_is_rejected() -> None:
    git = FakeGit(commits={"m1": None}, branches={"main": "m1", "x": "m1"}, current_branch="x")

    result = invoke(StackContext.for_test(git=git, store=build_store(EDGES)), ["up"])

    assert result.exit_code == 1
    assert "'x' is not tracked; run 'stack track' first" in result.stderr
