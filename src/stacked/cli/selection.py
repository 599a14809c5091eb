"""Pick one branch out of several candidates.

Every command that needs a single target from a list goes through
select_branch, so the policy lives in one place:
- one candidate: assume it and say so
- several, interactive: numbered prompt
- several, non-interactive: AmbiguityError
"""

from collections.abc import Sequence

import click

from stacked.cli.output import user_output
from stacked.core.context import StackContext
from stacked.core.errors import AmbiguityError, StackError


def select_branch(ctx: StackContext, candidates: Sequence[str], *, description: str) -> str:
    """Return the single branch the user means.

    Args:
        ctx: Context deciding whether prompting is allowed
        candidates: Equally valid choices
        description: What is being chosen, e.g. "child of 'feat/a'"

    Raises:
        StackError: no candidates at all
        AmbiguityError: several candidates and no way to ask
    """
    if not candidates:
        raise StackError(f"no {description} found")

    if len(candidates) == 1:
        ctx.feedback.info(f"Using {description}: {candidates[0]}")
        return candidates[0]

    if not ctx.interactive:
        raise AmbiguityError(
            f"several candidates for {description}; pass one explicitly",
            candidates=list(candidates),
        )

    user_output(f"Several candidates for {description}:")
    for index, name in enumerate(candidates, start=1):
        user_output(f"  {index}. {name}")
    choice = click.prompt(
        "Select", type=click.IntRange(1, len(candidates)), err=True, show_choices=False
    )
    return candidates[choice - 1]


def confirm(ctx: StackContext, message: str) -> bool:
    """True under --yes; False when prompting is impossible; otherwise ask."""
    if ctx.yes:
        return True
    if not ctx.interactive:
        return False
    return click.confirm(message, default=False, err=True)
