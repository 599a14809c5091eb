"""CLI precondition checks with styled output.

The Ensure class asserts invariants in commands with consistent error
messages. Every failure prints a red "Error:" prefix to stderr and exits 1.
"""

from typing import NoReturn

import click

from stacked.cli.output import user_output


def _fail(error_message: str) -> NoReturn:
    user_output(click.style("Error: ", fg="red") + error_message)
    raise SystemExit(1)


class Ensure:
    """Helper class for asserting invariants with consistent error handling."""

    @staticmethod
    def invariant(condition: bool, error_message: str) -> None:
        """Ensure condition is true, otherwise output styled error and exit.

        Args:
            condition: Boolean condition to check
            error_message: Message shown after the red "Error: " prefix

        Raises:
            SystemExit: If condition is false (with exit code 1)
        """
        if not condition:
            _fail(error_message)

    @staticmethod
    def truthy[T](value: T, error_message: str) -> T:
        """Ensure value is truthy and return it unchanged."""
        if not value:
            _fail(error_message)
        return value

    @staticmethod
    def not_none[T](value: T | None, error_message: str) -> T:
        """Ensure value is not None, narrowing `T | None` to `T`.

        Example:
            >>> branch = Ensure.not_none(
            ...     ctx.git.get_current_branch(ctx.cwd), "Not on a branch (detached HEAD)"
            ... )
        """
        if value is None:
            _fail(error_message)
        return value
