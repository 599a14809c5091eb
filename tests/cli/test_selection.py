"""Tests for branch selection and confirmation."""

from collections.abc import Callable

import click
import pytest
from click.testing import CliRunner

from stacked.cli.selection import confirm, select_branch
from stacked.core.context import StackContext
from stacked.core.errors import AmbiguityError, StackError
from tests.fakes.recording_feedback import RecordingFeedback


def _run_in_click(func: Callable[[], object], input: str) -> object:
    """Call func inside a click command so prompts read from input."""
    captured: list[object] = []

    @click.command()
    def command() -> None:
        captured.append(func())

    result = CliRunner().invoke(command, [], input=input, catch_exceptions=False)
    assert result.exit_code == 0
    return captured[0]


def test_single_candidate_is_announced() -> None:
    feedback = RecordingFeedback()
    ctx = StackContext.for_test(feedback=feedback)

    assert select_branch(ctx, ["a"], description="child of 'main'") == "a"
    assert feedback.messages == [("info", "Using child of 'main': a")]


def test_no_candidates_is_an_error() -> None:
    with pytest.raises(StackError, match="no parent found"):
        select_branch(StackContext.for_test(), [], description="parent")


def test_several_candidates_without_prompt_raise() -> None:
    with pytest.raises(AmbiguityError) as exc_info:
        select_branch(StackContext.for_test(), ["a", "b"], description="parent")

    assert exc_info.value.candidates == ["a", "b"]


def test_several_candidates_are_prompted_for() -> None:
    ctx = StackContext.for_test(interactive=True)

    chosen = _run_in_click(
        lambda: select_branch(ctx, ["a", "b", "c"], description="parent"), input="2\n"
    )

    assert chosen == "b"


def test_confirm_policy() -> None:
    assert confirm(StackContext.for_test(yes=True), "Apply?") is True
    assert confirm(StackContext.for_test(), "Apply?") is False
    assert confirm(StackContext.for_test(porcelain=True, interactive=True), "Apply?") is False

    interactive = StackContext.for_test(interactive=True)
    assert _run_in_click(lambda: confirm(interactive, "Apply?"), input="y\n") is True
    assert _run_in_click(lambda: confirm(interactive, "Apply?"), input="\n") is False
