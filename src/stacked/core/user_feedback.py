"""User-facing diagnostic output with mode awareness."""

from abc import ABC, abstractmethod

import click

from stacked.cli.output import user_output


class UserFeedback(ABC):
    """Provides user-facing diagnostic output that's mode-aware.

    Functions call ctx.feedback methods instead of threading a porcelain flag
    through their signatures.

    Two modes:
    - Interactive: Show all diagnostics (info, success, warnings, errors)
    - Porcelain: Suppress info and success, only show warnings and errors

    All messages go to stderr; stdout is reserved for porcelain payloads.
    """

    @abstractmethod
    def info(self, message: str) -> None:
        """Show informational message (suppressed in porcelain mode)."""

    @abstractmethod
    def success(self, message: str) -> None:
        """Show success message (suppressed in porcelain mode)."""

    @abstractmethod
    def warning(self, message: str) -> None:
        """Show warning message (always shown)."""

    @abstractmethod
    def error(self, message: str) -> None:
        """Show error message (always shown)."""


class InteractiveFeedback(UserFeedback):
    """Feedback shown in interactive mode (all messages)."""

    def info(self, message: str) -> None:
        user_output(message)

    def success(self, message: str) -> None:
        user_output(click.style(message, fg="green"))

    def warning(self, message: str) -> None:
        user_output(click.style("Warning: ", fg="yellow") + message)

    def error(self, message: str) -> None:
        user_output(click.style(message, fg="red"))


class SuppressedFeedback(UserFeedback):
    """Feedback used with --porcelain (only warnings and errors shown)."""

    def info(self, message: str) -> None:
        pass

    def success(self, message: str) -> None:
        pass

    def warning(self, message: str) -> None:
        user_output(click.style("Warning: ", fg="yellow") + message)

    def error(self, message: str) -> None:
        user_output(click.style(message, fg="red"))
