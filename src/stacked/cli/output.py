"""Output helpers that make the destination stream explicit.

Human-facing text goes to stderr so that stdout stays clean for porcelain
payloads that scripts parse.
"""

from typing import Any

import click


def user_output(message: Any = "", nl: bool = True) -> None:
    """Write a message meant for a person (stderr)."""
    click.echo(message, nl=nl, err=True)


def machine_output(message: Any = "", nl: bool = True) -> None:
    """Write data meant for a program (stdout)."""
    click.echo(message, nl=nl)
